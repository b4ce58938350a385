#!/usr/bin/env python3
"""Publish a produced article now, or schedule it with --schedule."""

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from bia_engine.engine import BiaEngine
from bia_engine.models import parse_datetime
from bia_engine.utils.logger import setup_logging


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("article_id", help="Article id")
    parser.add_argument("--schedule", metavar="ISO_DATETIME",
                        help="Publication time, e.g. 2026-11-01T09:00:00Z (UTC if no offset)")
    parser.add_argument("--config", default=str(PROJECT_ROOT / "config.yaml"))
    args = parser.parse_args()

    setup_logging()
    engine = BiaEngine(config_path=args.config)
    engine.cache.sync()

    if args.schedule:
        try:
            when = parse_datetime(args.schedule)
        except ValueError:
            print(f"Invalid date: {args.schedule}", file=sys.stderr)
            return 2
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        result = asyncio.run(engine.publisher.schedule(args.article_id, when))
    else:
        result = asyncio.run(engine.publisher.publish(args.article_id))

    if not result.success:
        print(f"FAILED ({result.error_kind}): {result.message}", file=sys.stderr)
        if result.retryable:
            print("   This error is temporary, retrying later may succeed.", file=sys.stderr)
        return 1

    print(f"Post #{result.post_id}: {result.url}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
