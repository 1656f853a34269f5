"""
CoinGecko API Client

Single responsibility: communicate with the CoinGecko REST API.
"""

import logging
from typing import List, Optional

import requests

from ..config import config
from ..errors import FetchError, NotFoundError, RateLimitedError
from ..models import MarketCoin

logger = logging.getLogger(__name__)


class CoinGeckoClient:
    """
    Sync client for CoinGecko.

    Handles:
    - Spot price for a single coin id
    - Top-N ranking by market cap

    No retries: the next scheduled cycle is the retry.
    """

    def __init__(
        self,
        base_url: str = None,
        api_key: Optional[str] = None,
        timeout: float = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or config.coingecko_url).rstrip("/")
        self.api_key = api_key if api_key is not None else config.coingecko_api_key
        self.timeout = timeout or config.request_timeout_sec
        self._session = session or requests.Session()
        if self.api_key:
            self._session.headers["x-cg-demo-api-key"] = self.api_key

    def close(self):
        """Close the HTTP session."""
        self._session.close()

    def _get(self, path: str, params: dict):
        """
        GET a CoinGecko endpoint and return decoded JSON.

        Raises:
            RateLimitedError: HTTP 429
            FetchError: any other transport or HTTP failure
        """
        url = f"{self.base_url}{path}"
        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise FetchError(f"CoinGecko request timed out: {path}") from e
        except requests.exceptions.RequestException as e:
            raise FetchError(f"CoinGecko request failed: {type(e).__name__}") from e

        if response.status_code == 429:
            raise RateLimitedError("CoinGecko rate limit exceeded (429)")

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise FetchError(f"CoinGecko HTTP error: {response.status_code}") from e

        try:
            return response.json()
        except ValueError as e:
            raise FetchError("CoinGecko returned invalid JSON") from e

    # -------------------------------------------------------------------------
    # Public Methods
    # -------------------------------------------------------------------------

    def fetch_spot_price(self, symbol: str) -> float:
        """
        Get the current USD price for a coin id.

        Args:
            symbol: CoinGecko coin id (e.g. "bitcoin")

        Returns:
            Price in USD

        Raises:
            NotFoundError: unknown id or no usable price in the response
            RateLimitedError, FetchError: request failed
        """
        data = self._get("/simple/price", {"ids": symbol, "vs_currencies": "usd"})

        # Response: {"bitcoin": {"usd": 95000.5}}, or {} for unknown ids
        entry = data.get(symbol) if isinstance(data, dict) else None
        price = entry.get("usd") if isinstance(entry, dict) else None
        if price is None:
            raise NotFoundError(f"No price for {symbol}")

        try:
            price = float(price)
        except (TypeError, ValueError) as e:
            raise NotFoundError(f"Invalid price for {symbol}: {price!r}") from e

        if price <= 0:
            raise NotFoundError(f"Non-positive price for {symbol}: {price}")

        return price

    def fetch_top_market_cap(self, n: int) -> List[MarketCoin]:
        """
        Get the top N coins ordered by market cap.

        Args:
            n: Number of coins (clamped to 1..250)

        Returns:
            List of MarketCoin, highest market cap first
        """
        n = max(1, min(int(n), config.top_max))
        data = self._get(
            "/coins/markets",
            {
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": n,
                "page": 1,
                "sparkline": "false",
            },
        )
        if not isinstance(data, list):
            raise FetchError("Unexpected /coins/markets payload")

        coins = []
        for row in data[:n]:
            try:
                coins.append(MarketCoin(
                    symbol=str(row.get("symbol", "")),
                    name=str(row.get("name", "")),
                    price=float(row.get("current_price") or 0),
                    change_24h=(
                        float(row["price_change_percentage_24h"])
                        if row.get("price_change_percentage_24h") is not None
                        else None
                    ),
                    market_cap_usd=float(row.get("market_cap") or 0),
                ))
            except (AttributeError, TypeError, ValueError):
                logger.debug(f"Skipping malformed market row: {row!r}")
                continue

        return coins
