#!/usr/bin/env python3
"""
Wipe every message from the configured store.

Usage:
    python scripts/clear_messages.py --yes
    python scripts/clear_messages.py --expired-only
"""

import argparse
import sys
from pathlib import Path

# Add project root
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from driftpin.db import init_db
from driftpin.messages import service
from driftpin.messages.backend import open_store
from driftpin.settings import get_config


def main():
    parser = argparse.ArgumentParser(description="Clear Driftpin messages")
    parser.add_argument(
        "--expired-only",
        action="store_true",
        help="Only remove messages whose lifetime has run out",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt when clearing everything",
    )
    args = parser.parse_args()

    backend = get_config().store.backend
    if backend == "sql":
        init_db()

    with open_store() as store:
        if args.expired_only:
            purged = service.purge_expired(store)
            print(f"Purged {purged} expired messages from {backend} store")
            return 0

        if not args.yes:
            answer = input(f"Delete ALL {store.count()} messages from {backend} store? [y/N] ")
            if answer.strip().lower() not in ("y", "yes"):
                print("Aborted")
                return 1

        removed = store.clear()
    print(f"Removed {removed} messages from {backend} store")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
