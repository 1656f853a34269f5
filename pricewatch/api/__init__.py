"""
API Package
===========

External API clients.

Components:
- coingecko.py: CoinGeckoClient (spot prices, market cap ranking)
"""

from .coingecko import CoinGeckoClient

__all__ = ["CoinGeckoClient"]
