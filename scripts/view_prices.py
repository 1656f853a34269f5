#!/usr/bin/env python3
"""
View stored price history.

Usage:
    python3 scripts/view_prices.py                   # All symbols, last 24h
    python3 scripts/view_prices.py bitcoin           # One symbol
    python3 scripts/view_prices.py bitcoin --hours 2 # Last 2 hours
"""

import argparse
import sys
import time
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from pricewatch.config import config, HOUR_MS
from pricewatch.core import compute_change
from pricewatch.db import PriceDB
from pricewatch.utils import format_change, format_price


def print_header(title: str):
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60)


def view_symbol(db: PriceDB, symbol: str, since_ms: int):
    samples = db.range_since(symbol, since_ms)
    print_header(f"{symbol.upper()} ({len(samples)} samples)")

    if not samples:
        print("No samples in range")
        return

    for sample in samples:
        ts = datetime.fromtimestamp(sample.timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")
        print(f"{ts}  {format_price(sample.price):>14}")

    first, last = samples[0], samples[-1]
    print(f"\nRange change: {format_change(compute_change(first.price, last.price))}")
    print(f"Low: {format_price(min(s.price for s in samples))}  "
          f"High: {format_price(max(s.price for s in samples))}")


def main():
    parser = argparse.ArgumentParser(description="View stored price history")
    parser.add_argument("symbol", nargs="?", help="CoinGecko id (default: all)")
    parser.add_argument("--hours", type=float, default=24, help="Lookback in hours (default: 24)")
    parser.add_argument("--db", default=str(config.db_path), help="SQLite database path")
    args = parser.parse_args()

    db_path = Path(args.db)
    if not db_path.exists():
        print(f"Database not found: {db_path}")
        sys.exit(1)

    db = PriceDB(db_path)
    since_ms = int(time.time() * 1000) - int(args.hours * HOUR_MS)

    symbols = [args.symbol.lower()] if args.symbol else db.symbols()
    if not symbols:
        print("No price history stored yet")
        return

    for symbol in symbols:
        view_symbol(db, symbol, since_ms)


if __name__ == "__main__":
    main()
