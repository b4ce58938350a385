#!/usr/bin/env python3
"""Sync the site registry and reload one site's WordPress taxonomy."""

import argparse
import asyncio
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from bia_engine.engine import BiaEngine
from bia_engine.utils.logger import setup_logging


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("site_id", help="Site id from the registry")
    parser.add_argument("--config", default=str(PROJECT_ROOT / "config.yaml"))
    args = parser.parse_args()

    setup_logging()
    engine = BiaEngine(config_path=args.config)

    reloaded = asyncio.run(engine.cache.reload_site(args.site_id))
    status = engine.cache.get_site_connectivity_status(args.site_id)
    site = engine.cache.get_site(args.site_id)

    print(f"Reload {'succeeded' if reloaded else 'did not complete'} for site {args.site_id}")
    print(f"  Status: {status.status} - {status.message}")
    if site is not None:
        print(f"  Categories: {len(site.categories)}  Authors: {len(site.authors)}  Tags: {len(site.tags)}")
    return 0 if reloaded else 1


if __name__ == "__main__":
    sys.exit(main())
