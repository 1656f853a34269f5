import threading
import time
from unittest.mock import MagicMock

import pytest

from pricewatch.alerts import CommandHandler, TelegramCommandListener
from pricewatch.errors import FetchError

AUTHORIZED = "42"


@pytest.fixture
def monitor(make_monitor, source):
    source.prices.update({"bitcoin": 100.0, "cardano": 0.5})
    return make_monitor(assets=["bitcoin", "ethereum"])


@pytest.fixture
def handler(monitor):
    return CommandHandler(monitor, AUTHORIZED)


def test_unauthorized_chat_is_ignored(handler, monitor):
    assert handler.handle("999", "/add cardano") is None
    assert handler.handle(999, "/list") is None
    assert monitor.tracked_assets() == ["bitcoin", "ethereum"]


def test_chat_id_may_be_int(handler):
    assert handler.handle(42, "/list") is not None


def test_non_commands_and_unknown_commands(handler):
    assert handler.handle(AUTHORIZED, "hello") is None
    assert handler.handle(AUTHORIZED, "") is None
    assert handler.handle(AUTHORIZED, "/price bitcoin") is None


def test_list(handler):
    assert handler.handle(AUTHORIZED, "/list") == "Currently tracking:\nbitcoin, ethereum"


def test_help(handler):
    assert "Available Commands" in handler.handle(AUTHORIZED, "/help")


def test_add(handler, monitor):
    assert handler.handle(AUTHORIZED, "/add Cardano") == "✅ Added cardano to tracking list!"
    assert monitor.is_tracked("cardano")


def test_add_with_bot_mention(handler, monitor):
    assert handler.handle(AUTHORIZED, "/add@PriceWatchBot cardano").startswith("✅ Added")
    assert monitor.is_tracked("cardano")


def test_add_already_tracked(handler):
    assert handler.handle(AUTHORIZED, "/add bitcoin") == "bitcoin is already being tracked!"


def test_add_unknown(handler, monitor):
    assert handler.handle(AUTHORIZED, "/add notacoin") == "❌ Could not find cryptocurrency: notacoin"
    assert not monitor.is_tracked("notacoin")


def test_add_without_argument(handler):
    assert handler.handle(AUTHORIZED, "/add") == "Usage: /add &lt;coin&gt;"


def test_remove(handler, monitor):
    assert handler.handle(AUTHORIZED, "/remove ethereum") == "✅ Removed ethereum from tracking list!"
    assert monitor.tracked_assets() == ["bitcoin"]
    assert handler.handle(AUTHORIZED, "/remove ethereum") == "❌ ethereum is not in the tracking list!"


@pytest.mark.parametrize("text,expected_k", [
    ("/top", 10),
    ("/top 2", 2),
    ("/top 0", 10),
    ("/top -5", 10),
    ("/top abc", 10),
    ("/top 1000", 250),
])
def test_top_argument_handling(handler, source, text, expected_k):
    reply = handler.handle(AUTHORIZED, text)
    assert source.top_requests == [expected_k]
    assert reply.startswith(f"<b>Top {expected_k} Cryptocurrencies</b>")


def test_top_fetch_error(handler, source):
    source.top_error = FetchError("CoinGecko HTTP error: 503")
    reply = handler.handle(AUTHORIZED, "/top 5")
    assert reply == "❌ Error fetching top cryptocurrencies: CoinGecko HTTP error: 503"


# =============================================================================
# Listener
# =============================================================================

def _updates_response(updates):
    response = MagicMock()
    response.json.return_value = {"ok": True, "result": updates}
    return response


def test_listener_answers_authorized_commands(handler, notifier):
    listener = TelegramCommandListener(notifier, handler)
    listener._session = MagicMock()
    listener._session.get.return_value = _updates_response([
        {"update_id": 10, "message": {"chat": {"id": 42}, "text": "/list"}},
        {"update_id": 11, "message": {"chat": {"id": 7}, "text": "/list"}},
        {"update_id": 12, "message": {"chat": {"id": 42}}},
        {"update_id": 13, "edited_message": {"chat": {"id": 42}, "text": "/help"}},
    ])

    assert listener.poll_once() == 4
    assert notifier.messages == ["Currently tracking:\nbitcoin, ethereum"]

    # Next poll acknowledges everything consumed so far
    listener._session.get.return_value = _updates_response([])
    listener.poll_once()
    params = listener._session.get.call_args.kwargs["params"]
    assert params["offset"] == 14


def test_listener_raises_on_not_ok(handler, notifier):
    listener = TelegramCommandListener(notifier, handler)
    listener._session = MagicMock()
    response = MagicMock()
    response.json.return_value = {"ok": False, "description": "Conflict"}
    listener._session.get.return_value = response

    with pytest.raises(FetchError):
        listener.poll_once()


def test_listener_reply_failure_is_contained(handler, notifier):
    notifier.fail = True
    listener = TelegramCommandListener(notifier, handler)
    listener._session = MagicMock()
    listener._session.get.return_value = _updates_response([
        {"update_id": 1, "message": {"chat": {"id": 42}, "text": "/help"}},
    ])

    assert listener.poll_once() == 1


def test_commands_after_monitor_stopped(monitor, handler):
    thread = threading.Thread(target=monitor.run, daemon=True)
    thread.start()
    assert monitor.started.wait(5)
    monitor.stop()
    thread.join(timeout=5)

    assert "monitor busy" in handler.handle(AUTHORIZED, "/add cardano")
    assert "monitor busy" in handler.handle(AUTHORIZED, "/list")
    assert not monitor.is_tracked("cardano")


def test_listener_waits_until_ready(handler, notifier):
    ready = threading.Event()
    listener = TelegramCommandListener(notifier, handler, ready=ready)
    listener._session = MagicMock()
    listener._session.get.return_value = _updates_response([])

    listener.start()
    try:
        time.sleep(0.2)
        listener._session.get.assert_not_called()

        ready.set()
        deadline = time.monotonic() + 5
        while not listener._session.get.called and time.monotonic() < deadline:
            time.sleep(0.01)
        assert listener._session.get.called
    finally:
        listener.stop()
