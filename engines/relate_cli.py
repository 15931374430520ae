#!/usr/bin/env python3
"""Suggest semantic links between memories based on embedding similarity."""

import argparse
import json
import os
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root / "sdk"))

import memlink
from memlink.logging_config import setup_logging


def main(argv=None):
    parser = argparse.ArgumentParser(description="memlink relate CLI")
    parser.add_argument("--store", default=os.environ.get("MEMLINK_STORE", "."))
    parser.add_argument("--threshold", type=float, default=None)
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument("--auto-create", action="store_true")
    parser.add_argument("--log-level", default=None)

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    ml = memlink.open(args.store)
    result = ml.suggest_links(
        threshold=args.threshold,
        limit=args.limit,
        auto_create=args.auto_create,
    )

    print(json.dumps({
        "suggestions": [
            {
                "source": s.source,
                "target": s.target,
                "similarity": round(s.similarity, 4),
                "reason": s.reason,
            }
            for s in result.suggestions
        ],
        "created": result.created,
        "skipped": result.skipped,
        "analysed": result.analysed,
        "reason": result.reason,
    }, indent=2))

    print(
        f"Found {len(result.suggestions)} suggested links, created {result.created}",
        file=sys.stderr,
    )


if __name__ == "__main__":
    main()
