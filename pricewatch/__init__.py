"""
Crypto Price Watch
==================

Polls CoinGecko for a set of assets, stores recent samples in SQLite and
sends Telegram alerts on large instant or hourly price moves.
"""

__version__ = "1.0.0"
