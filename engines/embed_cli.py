#!/usr/bin/env python3
"""CLI bridge for embedding memories and auto-linking new ones."""

import argparse
import json
import os
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root / "sdk"))

import memlink
from memlink.logging_config import setup_logging


def cmd_embed(args):
    """Embed every memory file in a directory, reusing cached vectors."""
    memories_dir = Path(args.memories_dir)

    # Collect memory files
    memory_files = sorted(memories_dir.glob("*.md"))
    if not memory_files:
        print("No memories found", file=sys.stderr)
        return

    memories = {}
    for f in memory_files:
        text = f.read_text(encoding="utf-8").strip()
        if text:
            memories[f.stem] = text

    ml = memlink.open(args.store)
    if ml.engine is None:
        print("No embedding provider configured", file=sys.stderr)
        sys.exit(1)

    result = ml.embed_memories(memories)
    print(json.dumps({
        "generated": result.generated,
        "cached": result.cached,
        "failed": result.failed,
    }, indent=2))
    print(f"Embedded {result.generated} memories ({result.cached} cached)", file=sys.stderr)


def cmd_autolink(args):
    """Link one memory to its most similar neighbours."""
    content = Path(args.content_file).read_text(encoding="utf-8")
    ml = memlink.open(args.store)
    result = ml.auto_link(
        args.memory_id,
        content,
        memory_type=args.type,
        threshold=args.threshold,
        limit=args.limit,
    )
    print(json.dumps({
        "memory_id": result.memory_id,
        "created": result.created,
        "matches": [{"id": m.id, "score": round(m.score, 4)} for m in result.matches],
        "skipped": result.skipped,
        "reason": result.reason,
    }, indent=2))


def main(argv=None):
    parser = argparse.ArgumentParser(description="memlink embedding CLI")
    parser.add_argument("--store", default=os.environ.get("MEMLINK_STORE", "."))
    parser.add_argument("--log-level", default=None)
    subparsers = parser.add_subparsers(dest="command")

    # embed command
    embed_parser = subparsers.add_parser("embed")
    embed_parser.add_argument("--memories-dir", required=True)

    # autolink command
    autolink_parser = subparsers.add_parser("autolink")
    autolink_parser.add_argument("--memory-id", required=True)
    autolink_parser.add_argument("--content-file", required=True)
    autolink_parser.add_argument("--type", default="decision")
    autolink_parser.add_argument("--threshold", type=float, default=None)
    autolink_parser.add_argument("--limit", type=int, default=None)

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        if args.command == "embed":
            cmd_embed(args)
        elif args.command == "autolink":
            cmd_autolink(args)
        else:
            parser.print_help()
            sys.exit(1)
    except memlink.MemLinkError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
