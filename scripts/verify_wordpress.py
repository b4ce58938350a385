#!/usr/bin/env python3
"""Verify a WordPress site's REST API credentials and list its taxonomy."""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from bia_engine.errors import WordPressError
from bia_engine.utils.logger import setup_logging
from bia_engine.wp_gateway import WordPressClient


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("url", help="WordPress site URL")
    parser.add_argument("username", help="WordPress username")
    parser.add_argument("app_password", help="WordPress Application Password")
    args = parser.parse_args()

    setup_logging()
    print(f"Verifying WordPress connection to {args.url}...")

    try:
        client = WordPressClient(args.url, args.username, args.app_password)
        result = client.test_connection()
    except WordPressError as e:
        print(f"\nConnection FAILED ({e.kind}): {e.message}")
        if e.retryable:
            print("  This looks temporary, try again in a few minutes.")
        else:
            print("\nPlease check:")
            print("  1. The site URL is correct and the REST API is enabled")
            print("  2. The username exists on the site")
            print("  3. The password is a valid WordPress Application Password")
        return 1

    print(f"  Connected to: {result.url} as {result.username}")
    print(f"  Categories: {len(result.categories)}")
    print(f"  Authors:    {len(result.authors)}")
    print(f"  Tags:       {len(result.tags)}")
    print("\nWordPress connection verified successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
