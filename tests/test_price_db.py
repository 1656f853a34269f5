import pytest

from pricewatch.config import DAY_MS, HOUR_MS
from pricewatch.db import PriceDB
from pricewatch.errors import PersistenceError

from conftest import T0


def test_insert_and_latest(db):
    assert db.latest("bitcoin") is None

    db.insert("bitcoin", 100.0, T0)
    db.insert("bitcoin", 101.5, T0 + 1000)
    db.insert("ethereum", 2000.0, T0 + 2000)

    latest = db.latest("bitcoin")
    assert latest.price == 101.5
    assert latest.timestamp == T0 + 1000
    assert db.count() == 3
    assert db.count("bitcoin") == 2
    assert db.symbols() == ["bitcoin", "ethereum"]
    assert db.newest_timestamp() == T0 + 2000


def test_latest_at_or_before_is_inclusive(db):
    db.insert("bitcoin", 100.0, T0)
    db.insert("bitcoin", 105.0, T0 + HOUR_MS)

    assert db.latest_at_or_before("bitcoin", T0 - 1) is None
    assert db.latest_at_or_before("bitcoin", T0).price == 100.0
    assert db.latest_at_or_before("bitcoin", T0 + HOUR_MS - 1).price == 100.0
    assert db.latest_at_or_before("bitcoin", T0 + HOUR_MS).price == 105.0
    assert db.latest_at_or_before("ethereum", T0 + HOUR_MS) is None


def test_range_since_is_exclusive_and_ascending(db):
    for i, price in enumerate([3.0, 1.0, 2.0]):
        db.insert("dogecoin", price, T0 + i * 1000)

    samples = db.range_since("dogecoin", T0)
    assert [s.timestamp for s in samples] == [T0 + 1000, T0 + 2000]
    assert [s.price for s in samples] == [1.0, 2.0]


def test_delete_older_than_boundary(db):
    now = T0 + 2 * DAY_MS
    db.insert("bitcoin", 1.0, now - DAY_MS - 1)
    db.insert("bitcoin", 2.0, now - DAY_MS)
    db.insert("bitcoin", 3.0, now)

    assert db.delete_older_than(now - DAY_MS) == 1
    assert [s.price for s in db.range_since("bitcoin", 0)] == [2.0, 3.0]
    assert db.delete_older_than(now - DAY_MS) == 0


def test_data_survives_reopen(tmp_path):
    path = tmp_path / "nested" / "prices.db"
    PriceDB(path).insert("bitcoin", 100.0, T0)
    assert PriceDB(path).latest("bitcoin").price == 100.0


def test_unusable_path_raises_persistence_error(tmp_path):
    # A directory cannot be opened as a database
    with pytest.raises(PersistenceError):
        PriceDB(tmp_path)
