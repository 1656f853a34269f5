"""
Configuration for Crypto Price Watch

All settings in one place for easy tuning.
Values can be overridden from the environment or a .env file at the project root.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import os

from dotenv import load_dotenv

_project_root = Path(__file__).parent.parent
_env_path = _project_root / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


# =============================================================================
# Timing Constants (milliseconds)
# =============================================================================

HOUR_MS = 3_600_000
DAY_MS = 86_400_000

DEFAULT_ASSETS = ["bitcoin", "ethereum", "dogecoin"]


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_assets(name: str, default: List[str]) -> List[str]:
    raw = os.environ.get(name)
    if not raw:
        return list(default)
    return [a.strip().lower() for a in raw.split(",") if a.strip()]


@dataclass
class Config:
    """All configuration settings."""

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------
    # Seconds between price checks (5 minutes)
    price_check_interval_sec: float = field(
        default_factory=lambda: _env_float("PRICE_CHECK_INTERVAL_SECONDS", 300)
    )

    # Assets tracked at startup (CoinGecko ids)
    tracked_assets: List[str] = field(
        default_factory=lambda: _env_assets("TRACKED_ASSETS", DEFAULT_ASSETS)
    )

    # -------------------------------------------------------------------------
    # Alert Thresholds
    # -------------------------------------------------------------------------
    # Absolute % change that triggers an alert (both windows)
    alert_threshold_pct: float = field(
        default_factory=lambda: _env_float("ALERT_THRESHOLD_PCT", 5.0)
    )

    # Lookback for the hourly window, also the hourly alert cooldown
    hourly_window_ms: int = HOUR_MS

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------
    history_retention_ms: int = DAY_MS

    db_path: Path = field(
        default_factory=lambda: Path(
            os.environ.get("PRICE_DB_PATH", str(_project_root / "data" / "prices.db"))
        )
    )

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    coingecko_url: str = field(
        default_factory=lambda: os.environ.get(
            "COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3"
        )
    )

    # Applies to every outbound call (price fetch, Telegram send)
    request_timeout_sec: float = field(
        default_factory=lambda: _env_float("REQUEST_TIMEOUT_SECONDS", 10.0)
    )

    # Default / maximum size of the /top listing
    top_default: int = 10
    top_max: int = 250

    # -------------------------------------------------------------------------
    # Process
    # -------------------------------------------------------------------------
    health_host: str = "0.0.0.0"
    health_port: int = field(default_factory=lambda: int(_env_float("PORT", 3000)))

    timezone: str = field(default_factory=lambda: os.environ.get("ALERT_TIMEZONE", "UTC"))

    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO"))
    log_file: str = field(
        default_factory=lambda: os.environ.get("LOG_FILE", str(_project_root / "logs" / "monitor.log"))
    )

    # -------------------------------------------------------------------------
    # Secrets (from environment)
    # -------------------------------------------------------------------------
    @property
    def coingecko_api_key(self) -> Optional[str]:
        return os.environ.get("COINGECKO_API_KEY")

    @property
    def telegram_bot_token(self) -> Optional[str]:
        return os.environ.get("TELEGRAM_BOT_TOKEN")

    @property
    def telegram_chat_id(self) -> Optional[str]:
        return os.environ.get("TELEGRAM_CHAT_ID")

    @property
    def price_check_interval_ms(self) -> int:
        return int(self.price_check_interval_sec * 1000)


# Global config instance
config = Config()
