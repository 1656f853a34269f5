"""
Change Detection

Turns price pairs into threshold alerts for two windows:
- Instant: previous cycle's price vs this cycle's price (no dedup, the cycle
  interval is the rate limit)
- Hourly: newest sample at least one hour old vs now, at most one alert per
  symbol per hour
"""

import logging
from typing import Dict, Optional

from ..config import config, HOUR_MS
from ..errors import DivisionUndefined
from ..models import Alert, AlertKind, PriceChangeResult

logger = logging.getLogger(__name__)


def compute_change(old_price: float, new_price: float) -> float:
    """
    Percentage move from old_price to new_price.

    Raises:
        DivisionUndefined: old_price is zero or negative
    """
    if old_price is None or old_price <= 0:
        raise DivisionUndefined(f"Prior price must be positive, got {old_price!r}")
    return (new_price - old_price) / old_price * 100


def _change(old_price: float, new_price: float) -> PriceChangeResult:
    return PriceChangeResult(
        old_price=old_price,
        new_price=new_price,
        percentage_change=compute_change(old_price, new_price),
    )


def evaluate_instant_alert(
    symbol: str,
    old_price: float,
    new_price: float,
    threshold: float,
) -> Optional[Alert]:
    """Alert when abs(change) >= threshold, else None."""
    change = _change(old_price, new_price)
    if abs(change.percentage_change) >= threshold:
        return Alert(kind=AlertKind.INSTANT, symbol=symbol, change=change)
    return None


def evaluate_hourly_alert(
    symbol: str,
    current_price: float,
    hour_ago_price: float,
    threshold: float,
    last_alert_time: Optional[int],
    now: int,
    cooldown_ms: int = HOUR_MS,
) -> Optional[Alert]:
    """
    Alert when abs(change) >= threshold and the cooldown has elapsed.

    Args:
        last_alert_time: Epoch ms of the previous hourly alert, None if never
        now: Current epoch ms

    The caller must record `now` as the new last alert time when this fires.
    """
    change = _change(hour_ago_price, current_price)
    if abs(change.percentage_change) < threshold:
        return None

    if last_alert_time is not None and now - last_alert_time < cooldown_ms:
        remaining = (cooldown_ms - (now - last_alert_time)) // 1000
        logger.debug(f"Hourly alert for {symbol} in cooldown ({remaining}s remaining)")
        return None

    return Alert(kind=AlertKind.HOURLY, symbol=symbol, change=change)


class ChangeDetector:
    """
    Stateful wrapper around the evaluation functions.

    Owns the threshold and the hourly alert cooldown cache
    (symbol -> epoch ms of the last hourly alert). Cooldown entries are only
    written when an hourly alert fires and are never purged.
    """

    def __init__(
        self,
        threshold: float = None,
        window_ms: int = None,
    ):
        self.threshold = threshold if threshold is not None else config.alert_threshold_pct
        self.window_ms = window_ms or config.hourly_window_ms
        self.last_hourly_alerts: Dict[str, int] = {}

    def hour_ago_cutoff(self, now: int) -> int:
        """Latest timestamp a sample may carry to count as "one hour ago"."""
        return now - self.window_ms

    def check_instant(self, symbol: str, old_price: float, new_price: float) -> Optional[Alert]:
        return evaluate_instant_alert(symbol, old_price, new_price, self.threshold)

    def check_hourly(
        self,
        symbol: str,
        current_price: float,
        hour_ago_price: Optional[float],
        now: int,
    ) -> Optional[Alert]:
        """
        Evaluate the hourly window and record the alert time when it fires.

        A missing hour-ago price (asset tracked for less than an hour) skips
        the check.
        """
        if hour_ago_price is None:
            return None

        alert = evaluate_hourly_alert(
            symbol,
            current_price,
            hour_ago_price,
            self.threshold,
            self.last_hourly_alerts.get(symbol),
            now,
            cooldown_ms=self.window_ms,
        )
        if alert is not None:
            self.last_hourly_alerts[symbol] = now
        return alert
