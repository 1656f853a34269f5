"""
Shared Data Models
==================

This package contains dataclasses used across the project.
"""

from .price import (
    PriceSample,
    PriceChangeResult,
    Alert,
    AlertKind,
    MarketCoin,
    AddResult,
    CycleReport,
)

__all__ = [
    "PriceSample",
    "PriceChangeResult",
    "Alert",
    "AlertKind",
    "MarketCoin",
    "AddResult",
    "CycleReport",
]
