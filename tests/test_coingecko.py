from unittest.mock import MagicMock

import pytest
import requests

from pricewatch.api import CoinGeckoClient
from pricewatch.errors import FetchError, NotFoundError, RateLimitedError

BASE_URL = "https://api.coingecko.test/api/v3"


def _client(payload=None, status_code=200):
    session = MagicMock()
    response = MagicMock(status_code=status_code)
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
    session.get.return_value = response
    return CoinGeckoClient(base_url=BASE_URL, api_key="", timeout=5, session=session), session


def test_fetch_spot_price():
    client, session = _client({"bitcoin": {"usd": 95000.5}})

    assert client.fetch_spot_price("bitcoin") == 95000.5

    url = session.get.call_args.args[0]
    assert url == f"{BASE_URL}/simple/price"
    assert session.get.call_args.kwargs["params"] == {"ids": "bitcoin", "vs_currencies": "usd"}
    assert session.get.call_args.kwargs["timeout"] == 5


@pytest.mark.parametrize("payload", [
    {},
    {"bitcoin": {}},
    {"bitcoin": {"usd": 0}},
    {"bitcoin": {"usd": "n/a"}},
])
def test_unknown_or_unusable_price(payload):
    client, _ = _client(payload)
    with pytest.raises(NotFoundError):
        client.fetch_spot_price("bitcoin")


def test_rate_limited():
    client, _ = _client(status_code=429)
    with pytest.raises(RateLimitedError):
        client.fetch_spot_price("bitcoin")


def test_http_error():
    client, _ = _client(status_code=503)
    with pytest.raises(FetchError) as exc_info:
        client.fetch_spot_price("bitcoin")
    assert not isinstance(exc_info.value, RateLimitedError)


def test_transport_error():
    client, session = _client()
    session.get.side_effect = requests.exceptions.ConnectionError()
    with pytest.raises(FetchError):
        client.fetch_spot_price("bitcoin")


def test_fetch_top_market_cap():
    rows = [
        {"symbol": "btc", "name": "Bitcoin", "current_price": 95000.5,
         "price_change_percentage_24h": 1.2, "market_cap": 1.9e12},
        {"symbol": "eth", "name": "Ethereum", "current_price": 3500,
         "price_change_percentage_24h": None, "market_cap": 4.2e11},
        "garbage",
    ]
    client, session = _client(rows)

    coins = client.fetch_top_market_cap(1000)

    params = session.get.call_args.kwargs["params"]
    assert params["per_page"] == 250
    assert params["order"] == "market_cap_desc"
    assert [c.symbol for c in coins] == ["btc", "eth"]
    assert coins[1].change_24h is None
    assert coins[1].price == 3500.0


def test_top_market_cap_bad_payload():
    client, _ = _client({"error": "nope"})
    with pytest.raises(FetchError):
        client.fetch_top_market_cap(10)


def test_api_key_header():
    session = requests.Session()
    CoinGeckoClient(base_url=BASE_URL, api_key="demo-key", session=session)
    assert session.headers["x-cg-demo-api-key"] == "demo-key"
    session.close()
