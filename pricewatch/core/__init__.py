# Core business logic
from .detector import (
    ChangeDetector,
    compute_change,
    evaluate_instant_alert,
    evaluate_hourly_alert,
)
from .monitor import PriceMonitor, MonitorState, normalize_symbol

__all__ = [
    "ChangeDetector",
    "compute_change",
    "evaluate_instant_alert",
    "evaluate_hourly_alert",
    "PriceMonitor",
    "MonitorState",
    "normalize_symbol",
]
