"""
Price Database

SQLite time-series store for price samples, keyed by asset symbol.

- Append-only inserts
- Latest / latest-at-or-before lookups for the hourly window
- Range queries for history views
- Age-based pruning (retention horizon)

Timestamps are epoch milliseconds.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

from ..config import config
from ..errors import PersistenceError
from ..models import PriceSample

logger = logging.getLogger(__name__)

# Database connection settings
DB_TIMEOUT = 10.0  # seconds


class PriceDB:
    """
    SQLite persistence for price samples.

    Designed for minimal overhead:
    - WAL mode for concurrent reads (health check, history viewer)
    - One short-lived connection per operation
    - Composite index on (symbol, timestamp) for window lookups
    """

    def __init__(self, db_path: Path = None):
        """
        Initialize database and schema.

        Args:
            db_path: Path to SQLite database file (default from config)
        """
        self.db_path = Path(db_path) if db_path is not None else config.db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()
        logger.info(f"Price database initialized: {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper cleanup."""
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=DB_TIMEOUT)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self):
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS price_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    price REAL NOT NULL,
                    timestamp INTEGER NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_price_history_symbol_time
                ON price_history(symbol, timestamp)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_price_history_time
                ON price_history(timestamp)
            """)

    @staticmethod
    def _row_to_sample(row: sqlite3.Row) -> PriceSample:
        return PriceSample(
            symbol=row["symbol"],
            price=row["price"],
            timestamp=row["timestamp"],
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(self, symbol: str, price: float, timestamp: int) -> PriceSample:
        """
        Append a price sample.

        Args:
            symbol: Asset id (e.g. "bitcoin")
            price: Spot price in USD
            timestamp: Observation time (epoch ms)

        Returns:
            The stored sample
        """
        with self._get_connection() as conn:
            conn.execute(
                "INSERT INTO price_history (symbol, price, timestamp) VALUES (?, ?, ?)",
                (symbol, float(price), int(timestamp)),
            )
        return PriceSample(symbol=symbol, price=float(price), timestamp=int(timestamp))

    def delete_older_than(self, timestamp: int) -> int:
        """
        Delete samples strictly older than the given time.

        A sample stamped exactly at `timestamp` is kept.

        Returns:
            Number of rows deleted
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM price_history WHERE timestamp < ?", (int(timestamp),)
            )
            deleted = cursor.rowcount

        if deleted > 0:
            logger.info(f"Pruned {deleted} price samples older than {timestamp}")
        return deleted

    # =========================================================================
    # Reads
    # =========================================================================

    def latest(self, symbol: str) -> Optional[PriceSample]:
        """Most recent sample for a symbol, or None."""
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT symbol, price, timestamp FROM price_history
                WHERE symbol = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT 1
                """,
                (symbol,),
            ).fetchone()
        return self._row_to_sample(row) if row else None

    def latest_at_or_before(self, symbol: str, timestamp: int) -> Optional[PriceSample]:
        """Most recent sample with timestamp <= the given time, or None."""
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT symbol, price, timestamp FROM price_history
                WHERE symbol = ? AND timestamp <= ?
                ORDER BY timestamp DESC, id DESC
                LIMIT 1
                """,
                (symbol, int(timestamp)),
            ).fetchone()
        return self._row_to_sample(row) if row else None

    def range_since(self, symbol: str, timestamp: int) -> List[PriceSample]:
        """Samples newer than the given time, oldest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT symbol, price, timestamp FROM price_history
                WHERE symbol = ? AND timestamp > ?
                ORDER BY timestamp ASC, id ASC
                """,
                (symbol, int(timestamp)),
            ).fetchall()
        return [self._row_to_sample(r) for r in rows]

    def symbols(self) -> List[str]:
        """Distinct symbols with at least one stored sample."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT DISTINCT symbol FROM price_history ORDER BY symbol"
            ).fetchall()
        return [r["symbol"] for r in rows]

    def count(self, symbol: str = None) -> int:
        """Number of stored samples, optionally for one symbol."""
        with self._get_connection() as conn:
            if symbol is None:
                row = conn.execute("SELECT COUNT(*) AS n FROM price_history").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS n FROM price_history WHERE symbol = ?", (symbol,)
                ).fetchone()
        return row["n"]

    def newest_timestamp(self) -> Optional[int]:
        """Timestamp of the newest sample across all symbols."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT MAX(timestamp) AS ts FROM price_history").fetchone()
        return row["ts"]
