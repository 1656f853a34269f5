import pytest

from pricewatch.config import HOUR_MS
from pricewatch.core import (
    ChangeDetector,
    compute_change,
    evaluate_hourly_alert,
    evaluate_instant_alert,
)
from pricewatch.errors import DivisionUndefined
from pricewatch.models import AlertKind

from conftest import T0


def test_compute_change():
    assert compute_change(100, 105) == 5.0
    assert compute_change(105, 100) == pytest.approx(-4.7619, abs=1e-4)
    assert compute_change(50, 50) == 0.0


def test_compute_change_zero_prior_price():
    with pytest.raises(DivisionUndefined):
        compute_change(0, 100)
    # Also catchable as a plain division error
    with pytest.raises(ZeroDivisionError):
        compute_change(0.0, 1.0)


def test_instant_alert_fires_exactly_at_threshold():
    alert = evaluate_instant_alert("bitcoin", 100, 105, 5.0)
    assert alert is not None
    assert alert.kind is AlertKind.INSTANT
    assert alert.change.percentage_change == 5.0
    assert alert.change.direction == "increased"


def test_instant_alert_below_threshold():
    assert evaluate_instant_alert("bitcoin", 100, 104.999999, 5.0) is None


def test_instant_alert_on_drop():
    alert = evaluate_instant_alert("bitcoin", 100, 94, 5.0)
    assert alert is not None
    assert alert.change.direction == "decreased"


def test_hourly_alert_without_previous_alert():
    alert = evaluate_hourly_alert("bitcoin", 110, 100, 5.0, None, T0)
    assert alert is not None
    assert alert.kind is AlertKind.HOURLY
    assert alert.change.old_price == 100
    assert alert.change.new_price == 110


def test_hourly_alert_cooldown_boundary():
    # 1ms short of an hour: suppressed
    assert evaluate_hourly_alert("bitcoin", 110, 100, 5.0, T0 - HOUR_MS + 1, T0) is None
    # exactly an hour: allowed
    assert evaluate_hourly_alert("bitcoin", 110, 100, 5.0, T0 - HOUR_MS, T0) is not None


def test_hourly_alert_below_threshold_ignores_cooldown():
    assert evaluate_hourly_alert("bitcoin", 102, 100, 5.0, None, T0) is None


def test_detector_skips_hourly_without_history():
    detector = ChangeDetector(threshold=5.0)
    assert detector.check_hourly("bitcoin", 110, None, T0) is None
    assert "bitcoin" not in detector.last_hourly_alerts


def test_detector_records_hourly_alert_time():
    detector = ChangeDetector(threshold=5.0, window_ms=HOUR_MS)
    assert detector.check_hourly("bitcoin", 110, 100, T0) is not None
    assert detector.last_hourly_alerts["bitcoin"] == T0
    assert detector.check_hourly("bitcoin", 120, 100, T0 + 60_000) is None
    # Suppressed checks do not move the window
    assert detector.last_hourly_alerts["bitcoin"] == T0


def test_hourly_alerts_at_least_an_hour_apart():
    detector = ChangeDetector(threshold=5.0, window_ms=HOUR_MS)
    fired = []

    # Every 5 minutes for 4 hours, always a 10% move
    for step in range(48):
        now = T0 + step * 300_000
        if detector.check_hourly("bitcoin", 110, 100, now):
            fired.append(now)

    assert len(fired) == 4
    assert all(b - a >= HOUR_MS for a, b in zip(fired, fired[1:]))


def test_hourly_cooldown_is_per_symbol():
    detector = ChangeDetector(threshold=5.0)
    assert detector.check_hourly("bitcoin", 110, 100, T0) is not None
    assert detector.check_hourly("ethereum", 110, 100, T0) is not None
    assert detector.check_hourly("bitcoin", 110, 100, T0 + 1) is None
