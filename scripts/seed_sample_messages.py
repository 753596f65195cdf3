#!/usr/bin/env python3
"""
Seed sample messages around a point.

Usage:
    python scripts/seed_sample_messages.py --lat 37.7749 --lng -122.4194
    python scripts/seed_sample_messages.py --lat 51.5 --lng -0.12 --count 20 --seed 7
"""

import argparse
import random
import sys
from pathlib import Path

# Add project root
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from driftpin.db import init_db
from driftpin.messages.backend import open_store
from driftpin.messages.samples import generate_sample_messages
from driftpin.settings import get_config


def main():
    parser = argparse.ArgumentParser(description="Seed Driftpin with sample messages")
    parser.add_argument("--lat", type=float, required=True, help="Centre latitude")
    parser.add_argument("--lng", type=float, required=True, help="Centre longitude")
    parser.add_argument("--count", type=int, default=None, help="Number of messages (default 10-15)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for repeatable data")
    args = parser.parse_args()

    if get_config().store.backend == "sql":
        init_db()

    rng = random.Random(args.seed)
    with open_store() as store:
        created = generate_sample_messages(store, args.lat, args.lng, count=args.count, rng=rng)

    print(f"Seeded {len(created)} messages around ({args.lat}, {args.lng})")
    for message in created:
        print(f"  {message.id}  {message.header:<20} replies={message.reply_count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
