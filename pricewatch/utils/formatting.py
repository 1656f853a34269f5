"""
Message Formatting
==================

Price display policy and the HTML bodies of every message the service sends.
Telegram parse mode is HTML, so only <b> and line breaks are used.
"""

import html
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from ..models import Alert, AlertKind, MarketCoin

MIN_PRICE_DECIMALS = 2
MAX_PRICE_DECIMALS = 5

UP_EMOJI = "🟢"
DOWN_EMOJI = "🔴"


def significant_decimals(price: float) -> int:
    """
    Count decimals in the shortest round-trip form of a float, trailing zeros stripped.

    1.5 -> 1, 0.0001234 -> 7, 3.0 -> 0, 1.234e-05 -> 8
    """
    exponent = Decimal(repr(float(price))).normalize().as_tuple().exponent
    return max(0, -exponent)


def format_price(price: float) -> str:
    """
    Format a USD price with 2-5 decimals.

    Uses as many decimals as the value needs, at least 2 and at most 5.
    The last kept place is rounded half-up on the exact binary value.
    """
    places = min(max(MIN_PRICE_DECIMALS, significant_decimals(price)), MAX_PRICE_DECIMALS)
    quantum = Decimal(1).scaleb(-places)
    return f"${Decimal(float(price)).quantize(quantum, rounding=ROUND_HALF_UP)}"


def format_change(pct: float) -> str:
    """Signed percentage with two decimals, e.g. +6.00%."""
    return f"{'+' if pct >= 0 else ''}{pct:.2f}%"


def format_timestamp(when: Optional[datetime] = None, tz_name: str = "UTC") -> str:
    """Human readable timestamp in the configured zone."""
    if when is None:
        when = datetime.now(timezone.utc)
    return when.astimezone(ZoneInfo(tz_name)).strftime("%Y-%m-%d %H:%M:%S %Z")


def escape(text: str) -> str:
    """Escape user-supplied text for Telegram HTML."""
    return html.escape(text, quote=False)


# =============================================================================
# Alerts
# =============================================================================

def format_alert(alert: Alert) -> str:
    """Render an instant or hourly alert."""
    change = alert.change
    name = alert.symbol.upper()
    pct = abs(change.percentage_change)

    if alert.kind is AlertKind.HOURLY:
        return (
            f"🚨 <b>HOURLY ALERT</b> 🚨\n\n"
            f"{name} has {change.direction} by {pct:.2f}% in the last hour\n\n"
            f"Hour ago: {format_price(change.old_price)}\n"
            f"Current: {format_price(change.new_price)}"
        )

    return (
        f"🚨 <b>PRICE ALERT</b> 🚨\n\n"
        f"{name} has {change.direction} by {pct:.2f}%\n\n"
        f"Old price: {format_price(change.old_price)}\n"
        f"New price: {format_price(change.new_price)}"
    )


def format_price_update(updates: Dict[str, Dict[str, float]], timestamp: str) -> str:
    """
    Render the per-cycle summary.

    Args:
        updates: symbol -> {"price": float, "price_change": float}
        timestamp: Pre-formatted cycle time
    """
    lines = ["<b>💰 Crypto Price Update</b>", f"🕒 {timestamp}", ""]

    for symbol, data in updates.items():
        change = data["price_change"]
        emoji = UP_EMOJI if change >= 0 else DOWN_EMOJI
        lines.append(f"{emoji} <b>{symbol.upper()}</b>")
        lines.append(f"💵 Price: {format_price(data['price'])}")
        lines.append(f"📊 Change: {format_change(change)}")
        lines.append("")

    return "\n".join(lines)


# =============================================================================
# Command Replies
# =============================================================================

def format_top_coins(coins: List[MarketCoin], k: int) -> str:
    """Render the /top listing."""
    blocks = []
    for index, coin in enumerate(coins, start=1):
        change = coin.change_24h or 0.0
        emoji = UP_EMOJI if change >= 0 else DOWN_EMOJI
        blocks.append(
            f"{index}. {emoji} <b>{escape(coin.symbol.upper())}</b>\n"
            f"💵 Price: {format_price(coin.price)}\n"
            f"📊 24h: {format_change(change)}\n"
            f"💰 Market Cap: ${coin.market_cap_usd / 1e9:.2f}B\n"
        )

    return f"<b>Top {k} Cryptocurrencies</b>\nby Market Cap 📊\n\n" + "\n".join(blocks)


def format_tracked(symbols: Iterable[str]) -> str:
    """Render the /list reply."""
    symbols = list(symbols)
    if not symbols:
        return "Not tracking any cryptocurrencies."
    return f"Currently tracking:\n{', '.join(escape(s) for s in symbols)}"


HELP_TEXT = """
<b>Available Commands:</b>

/list - Show all tracked cryptocurrencies
/top [N] - Show top N cryptocurrencies by market cap (default: 10)
/add - Add a new cryptocurrency to track
/remove - Remove a cryptocurrency from tracking
/help - Show this help message

Examples:
• /add cardano
• /remove bitcoin
• /top 15"""
