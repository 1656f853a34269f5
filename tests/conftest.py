import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from pricewatch.config import HOUR_MS
from pricewatch.core import ChangeDetector, PriceMonitor
from pricewatch.db import PriceDB
from pricewatch.errors import DeliveryError, NotFoundError
from pricewatch.models import MarketCoin

# 2025-01-01T00:00:00Z in epoch ms
T0 = 1_735_689_600_000


class FakeClock:
    """Controllable epoch-ms clock"""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class FakeSource:
    """Price source returning configured prices or raising configured errors"""

    def __init__(self, prices=None):
        self.prices = dict(prices or {})
        self.calls = []
        self.top = [
            MarketCoin(symbol="btc", name="Bitcoin", price=95000.5, change_24h=1.234, market_cap_usd=1.9e12),
            MarketCoin(symbol="eth", name="Ethereum", price=3500.0, change_24h=-2.5, market_cap_usd=4.2e11),
        ]
        self.top_error = None
        self.top_requests = []

    def fetch_spot_price(self, symbol):
        self.calls.append(symbol)
        value = self.prices.get(symbol)
        if value is None:
            raise NotFoundError(f"No price for {symbol}")
        if isinstance(value, Exception):
            raise value
        return value

    def fetch_top_market_cap(self, n):
        self.top_requests.append(n)
        if self.top_error is not None:
            raise self.top_error
        return self.top[:n]


class FakeNotifier:
    """Records messages; can be switched to fail"""

    def __init__(self):
        self.messages = []
        self.statuses = []
        self.fail = False

    @property
    def chat_id(self):
        return "42"

    def api_url(self, method):
        return f"https://api.telegram.test/botTOKEN/{method}"

    def send(self, text, skip_rate_limit=False):
        if self.fail:
            raise DeliveryError("Telegram connection error - network issue")
        self.messages.append(text)
        return len(self.messages)

    def send_service_status(self, status, details=""):
        if self.fail:
            raise DeliveryError("Telegram connection error - network issue")
        self.statuses.append(status)
        return len(self.statuses)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def db(tmp_path):
    return PriceDB(tmp_path / "prices.db")


@pytest.fixture
def make_monitor(source, db, notifier, clock):
    """Factory for a monitor wired to the fakes"""

    def _make(assets=("bitcoin",), threshold=5.0, store=None, **kwargs):
        return PriceMonitor(
            source=source,
            store=store if store is not None else db,
            notifier=notifier,
            assets=assets,
            detector=ChangeDetector(threshold=threshold, window_ms=HOUR_MS),
            clock=clock,
            tz_name="UTC",
            **kwargs,
        )

    return _make


@pytest.fixture(scope="session", autouse=True)
def setup_environment():
    """Keep tests away from real credentials"""
    os.environ.pop("TELEGRAM_BOT_TOKEN", None)
    os.environ.pop("TELEGRAM_CHAT_ID", None)
    os.environ.pop("COINGECKO_API_KEY", None)
    yield
