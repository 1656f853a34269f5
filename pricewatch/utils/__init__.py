"""
Utilities
=========

- formatting.py: price display policy and message bodies
- health.py: HTTP health endpoint
"""

from .formatting import (
    format_price,
    format_change,
    format_alert,
    format_price_update,
    format_top_coins,
    format_tracked,
    format_timestamp,
    escape,
    HELP_TEXT,
)

__all__ = [
    "format_price",
    "format_change",
    "format_alert",
    "format_price_update",
    "format_top_coins",
    "format_tracked",
    "format_timestamp",
    "escape",
    "HELP_TEXT",
]
