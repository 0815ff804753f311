#!/usr/bin/env python3
"""
Install the default business-rule catalog.

Rules are matched by name, so re-running only adds what is missing.

Usage:
    python scripts/seed_business_rules.py
    python scripts/seed_business_rules.py --format json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dataquality import service
from dataquality.errors import normalize_exception


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Seed default business rules")
    parser.add_argument("--format", choices=["text", "json"], default="text")
    args = parser.parse_args(argv)

    try:
        counts = service.seed_defaults()
        stats = service.rule_statistics()
    except Exception as exc:  # noqa: BLE001
        error = normalize_exception(exc)
        if args.format == "json":
            print(json.dumps({"error": error}))
        else:
            print(f"error: {error['code']} {error['message']}", file=sys.stderr)
        return 2

    if args.format == "json":
        print(json.dumps({**counts, "statistics": stats}, indent=2))
    else:
        print(f"created={counts['created']} skipped={counts['skipped']}")
        print(f"total={stats['total']} active={stats['active']}")
        for entity_type, count in stats["by_entity_type"].items():
            print(f"  {entity_type}: {count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
