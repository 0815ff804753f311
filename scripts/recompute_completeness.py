#!/usr/bin/env python3
"""
Recompute stored profile completeness for every entity.

Usage:
    python scripts/recompute_completeness.py
    python scripts/recompute_completeness.py --entity-type Guest --entity-type Vendor
    python scripts/recompute_completeness.py --page-size 200 --format json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dataquality.errors import normalize_exception
from dataquality.jobs import RUNNER


def format_text(summary: dict[str, Any]) -> str:
    lines = [
        f"run={summary['id']} status={summary['status']}",
        f"processed={summary['processed']} failed={summary['failed']}",
    ]
    for entry in summary["report"]:
        line = (
            f"  {entry['entity_type']}: {entry['status']} "
            f"processed={entry['processed']} failed={entry['failed']}"
        )
        if entry.get("error"):
            line += f" error={entry['error']}"
        lines.append(line)
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Recompute profile completeness for stored entities")
    parser.add_argument(
        "--entity-type",
        action="append",
        dest="entity_types",
        help="Entity type to recompute (repeatable; default: all supported types)",
    )
    parser.add_argument("--page-size", type=int, default=None)
    parser.add_argument("--format", choices=["text", "json"], default="text")
    args = parser.parse_args(argv)

    try:
        summary = RUNNER.recompute_all(entity_types=args.entity_types, page_size=args.page_size)
    except Exception as exc:  # noqa: BLE001
        error = normalize_exception(exc)
        if args.format == "json":
            print(json.dumps({"error": error}))
        else:
            print(f"error: {error['code']} {error['message']}", file=sys.stderr)
        return 2

    if args.format == "json":
        print(json.dumps(summary, indent=2))
    else:
        print(format_text(summary))
    return 0 if summary["status"] in ("succeeded", "cancelled") else 1


if __name__ == "__main__":
    raise SystemExit(main())
