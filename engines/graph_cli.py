#!/usr/bin/env python3
"""CLI bridge for the memory graph: link, inspect and draw memories."""

import argparse
import json
import os
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root / "sdk"))

import memlink
from memlink.logging_config import setup_logging


def _open(args) -> memlink.MemLink:
    return memlink.open(args.store)


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2))


def cmd_link(args):
    ml = _open(args)
    result = ml.link(
        args.source, args.target, args.label,
        source_type=args.source_type,
        target_type=args.target_type,
        bidirectional=args.bidirectional,
    )
    _emit({
        "edge": result.edge.to_dict(),
        "already_exists": result.already_exists,
        "reverse_edge": result.reverse_edge.to_dict() if result.reverse_edge else None,
    })


def cmd_unlink(args):
    removed = _open(args).unlink(args.source, args.target, args.label)
    _emit({"removed": removed})


def cmd_edges(args):
    edges = _open(args).edges(args.node)
    _emit({
        "inbound": [e.to_dict() for e in edges["inbound"]],
        "outbound": [e.to_dict() for e in edges["outbound"]],
    })


def cmd_remove_node(args):
    removed, dropped = _open(args).remove_node(args.node)
    _emit({"removed": removed, "edges_removed": dropped})


def cmd_mermaid(args):
    ml = _open(args)
    if args.format == "dot":
        print(ml.dot())
    elif args.format == "text":
        print(ml.text())
    else:
        print(ml.mermaid(
            direction=args.direction,
            from_node=args.from_node,
            depth=args.depth,
            filter_type=args.type,
            show_type=args.show_type or None,
            show_all=args.all or None,
        ))


def cmd_impact(args):
    _emit(_open(args).impact(args.node).to_dict())


def cmd_path(args):
    _emit({"path": _open(args).path(args.source, args.target)})


def cmd_orphans(args):
    _emit({"orphans": _open(args).orphans()})


def cmd_components(args):
    _emit({"components": _open(args).components()})


def cmd_stats(args):
    stats = _open(args).stats()
    _emit({
        "nodes": stats.nodes,
        "edges": stats.edges,
        "orphans": stats.orphans,
        "components": stats.components,
        "node_types": stats.node_types,
        "edge_labels": stats.edge_labels,
        "embeddings": stats.embeddings,
    })


COMMANDS = {
    "link": cmd_link,
    "unlink": cmd_unlink,
    "edges": cmd_edges,
    "remove-node": cmd_remove_node,
    "mermaid": cmd_mermaid,
    "impact": cmd_impact,
    "path": cmd_path,
    "orphans": cmd_orphans,
    "components": cmd_components,
    "stats": cmd_stats,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="memlink graph CLI")
    parser.add_argument("--store", default=os.environ.get("MEMLINK_STORE", "."))
    parser.add_argument("--log-level", default=None)
    subparsers = parser.add_subparsers(dest="command")

    link_parser = subparsers.add_parser("link")
    link_parser.add_argument("source")
    link_parser.add_argument("target")
    link_parser.add_argument("--label", default="relates-to")
    link_parser.add_argument("--source-type")
    link_parser.add_argument("--target-type")
    link_parser.add_argument("--bidirectional", action="store_true")

    unlink_parser = subparsers.add_parser("unlink")
    unlink_parser.add_argument("source")
    unlink_parser.add_argument("target")
    unlink_parser.add_argument("--label")

    for name in ("edges", "remove-node", "impact"):
        p = subparsers.add_parser(name)
        p.add_argument("node")

    mermaid_parser = subparsers.add_parser("mermaid")
    mermaid_parser.add_argument("--direction")
    mermaid_parser.add_argument("--from-node")
    mermaid_parser.add_argument("--depth", type=int)
    mermaid_parser.add_argument("--type")
    mermaid_parser.add_argument("--show-type", action="store_true")
    mermaid_parser.add_argument("--all", action="store_true")
    mermaid_parser.add_argument("--format", choices=("mermaid", "dot", "text"), default="mermaid")

    path_parser = subparsers.add_parser("path")
    path_parser.add_argument("source")
    path_parser.add_argument("target")

    for name in ("orphans", "components", "stats"):
        subparsers.add_parser(name)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        handler(args)
    except memlink.MemLinkError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
