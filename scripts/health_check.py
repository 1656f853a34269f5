#!/usr/bin/env python3
"""
Health check script for the Crypto Price Monitor.

Returns exit code 0 if healthy, non-zero otherwise.
Used by Docker health checks to determine container health.

Checks:
1. Database connectivity
2. Newest price sample younger than two check intervals
"""

import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pricewatch.config import config
from pricewatch.db import PriceDB
from pricewatch.errors import PersistenceError


def check_health() -> bool:
    """
    Perform health checks.

    Returns:
        True if healthy, False otherwise
    """
    now_ms = int(time.time() * 1000)

    # Check 1: Database connectivity
    try:
        db = PriceDB()
        newest = db.newest_timestamp()
        total = db.count()
    except PersistenceError as e:
        print(f"FAIL: Database error: {e}")
        return False

    # Check 2: Samples are being written
    if newest is None:
        # This is OK during initial startup
        print("WARN: No price samples yet (may be initializing)")
        return True

    max_age_ms = 2 * config.price_check_interval_ms
    age_ms = now_ms - newest
    if age_ms > max_age_ms:
        print(f"FAIL: No price samples for {age_ms / 1000:.0f}s (> {max_age_ms / 1000:.0f}s)")
        return False

    print(f"OK: {total} samples, {len(db.symbols())} symbols, newest {age_ms / 1000:.0f}s ago")
    return True


def main():
    """Run health check and exit with appropriate code."""
    sys.exit(0 if check_health() else 1)


if __name__ == "__main__":
    main()
