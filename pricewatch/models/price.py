"""
Price Models
============

Dataclasses for price samples, detected changes and market rankings.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class PriceSample:
    """A stored price observation. Timestamp is epoch milliseconds."""
    symbol: str
    price: float
    timestamp: int


@dataclass(frozen=True)
class PriceChangeResult:
    """Old/new price pair with the percentage move between them."""
    old_price: float
    new_price: float
    percentage_change: float

    @property
    def direction(self) -> str:
        return "increased" if self.percentage_change > 0 else "decreased"


class AlertKind(Enum):
    """Window an alert was raised for."""
    INSTANT = "instant"  # previous cycle vs this cycle
    HOURLY = "hourly"    # oldest sample at least one hour old vs now


@dataclass(frozen=True)
class Alert:
    """A threshold crossing ready to be rendered and sent."""
    kind: AlertKind
    symbol: str
    change: PriceChangeResult


@dataclass
class MarketCoin:
    """One row of the market cap ranking (CoinGecko /coins/markets)."""
    symbol: str
    name: str
    price: float
    change_24h: Optional[float]
    market_cap_usd: float


class AddResult(Enum):
    """Outcome of adding an asset at runtime."""
    ADDED = "added"
    ALREADY_TRACKED = "already_tracked"
    NOT_FOUND = "not_found"


@dataclass
class CycleReport:
    """What one polling cycle did."""
    updated: List[str]
    failed: List[str]
    alerts: List[Alert]
    summary_sent: bool = False
