"""
Telegram Alerts
===============

Telegram notification sender for the price monitor service.

Message types:
- Price alerts: instant and hourly threshold crossings
- Price updates: one summary per cycle
- Command replies
- Service status: started / stopped / error
"""

import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

import requests

from ..config import config
from ..errors import DeliveryError

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"

# Rate limiting constants
MIN_MESSAGE_INTERVAL_SECONDS = 1  # 1 second between any messages (Telegram limit: 30/sec)
MAX_ALERTS_PER_MINUTE = 20  # Global rate limit


@dataclass
class AlertConfig:
    """Destination chat and sending limits."""
    bot_token: str
    chat_id: str
    dry_run: bool = False
    max_message_length: int = 4000
    timeout: float = 10.0
    # Rate limiting settings
    min_message_interval: float = MIN_MESSAGE_INTERVAL_SECONDS
    max_per_minute: int = MAX_ALERTS_PER_MINUTE


class TelegramNotifier:
    """
    Telegram sender for one destination chat.

    Sends are throttled (min interval + per-minute cap).
    Failures raise DeliveryError; callers decide whether to skip or report.
    """

    def __init__(self, config: AlertConfig, session: Optional[requests.Session] = None):
        """
        Initialize Telegram notifier.

        Args:
            config: AlertConfig with bot token, chat ID, and settings
            session: Optional requests session (shared with the command listener)
        """
        self.config = config
        self._validate()
        self._session = session or requests.Session()

        # Rate limiting state
        self._last_message_time: float = 0
        self._sent_this_minute: List[float] = []  # timestamps of recent sends
        self._send_lock = threading.Lock()

    @classmethod
    def from_env(cls, dry_run: bool = False) -> Optional["TelegramNotifier"]:
        """
        Create TelegramNotifier from environment variables.

        Returns:
            TelegramNotifier instance if configured (or dry run), None otherwise
        """
        bot_token = os.environ.get("TELEGRAM_BOT_TOKEN", "")
        chat_id = os.environ.get("TELEGRAM_CHAT_ID", "")

        if not dry_run and (not bot_token or not chat_id):
            logger.warning(
                "Telegram not configured (set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID)"
            )
            return None

        return cls(AlertConfig(
            bot_token=bot_token,
            chat_id=chat_id,
            dry_run=dry_run,
            timeout=config.request_timeout_sec,
        ))

    def _validate(self):
        """Credentials are required unless dry run."""
        if not self.config.dry_run:
            if not self.config.bot_token:
                raise ValueError("TELEGRAM_BOT_TOKEN is required (or use --dry-run)")
            if not self.config.chat_id:
                raise ValueError("TELEGRAM_CHAT_ID is required (or use --dry-run)")

    @property
    def chat_id(self) -> str:
        return str(self.config.chat_id)

    def api_url(self, method: str) -> str:
        return f"{TELEGRAM_API}/bot{self.config.bot_token}/{method}"

    def _check_rate_limit(self) -> bool:
        """True while fewer than max_per_minute messages went out in the last minute."""
        now = time.time()

        # Sliding one-minute window
        self._sent_this_minute = [t for t in self._sent_this_minute if now - t < 60]

        if len(self._sent_this_minute) >= self.config.max_per_minute:
            logger.warning(f"Rate limited: {len(self._sent_this_minute)} messages in last minute")
            return False

        return True

    def _enforce_message_interval(self):
        """Sleep until min_message_interval has passed since the last send."""
        elapsed = time.time() - self._last_message_time

        if elapsed < self.config.min_message_interval:
            time.sleep(self.config.min_message_interval - elapsed)

    def _truncate_message(self, text: str) -> str:
        """Cut text to max_message_length with a truncation marker."""
        if len(text) > self.config.max_message_length:
            return text[:self.config.max_message_length - 20] + "\n... (truncated)"
        return text

    def send(self, text: str, skip_rate_limit: bool = False) -> int:
        """
        Send an HTML message to the configured chat.

        Args:
            text: Message text (HTML formatted)
            skip_rate_limit: If True, skip rate limit check (service status)

        Returns:
            Telegram message_id

        Raises:
            DeliveryError: message was dropped or Telegram rejected it
        """
        text = self._truncate_message(text)

        if self.config.dry_run:
            logger.info(f"[DRY RUN] Would send Telegram message:\n{text}")
            print(f"\n{'='*60}")
            print("[DRY RUN] Telegram Message:")
            print("="*60)
            print(text.replace("<b>", "").replace("</b>", ""))
            print("="*60 + "\n")
            # Fake message_id
            return 999999

        # Loop thread (alerts, summaries) and command listener share this sender
        with self._send_lock:
            if not skip_rate_limit and not self._check_rate_limit():
                raise DeliveryError("Message dropped due to rate limiting")

            self._enforce_message_interval()

            payload = {
                "chat_id": self.config.chat_id,
                "text": text,
                "parse_mode": "HTML",
            }

            # Never put the exception text in the error: it can contain the URL/token
            try:
                response = self._session.post(
                    self.api_url("sendMessage"), json=payload, timeout=self.config.timeout
                )
                response.raise_for_status()
            except requests.exceptions.Timeout:
                raise DeliveryError("Telegram request timed out") from None
            except requests.exceptions.HTTPError as e:
                status_code = e.response.status_code if e.response is not None else "unknown"
                if status_code == 429:
                    logger.warning("Telegram rate limit hit (429) - backing off")
                raise DeliveryError(f"Telegram HTTP error: {status_code}") from None
            except requests.exceptions.ConnectionError:
                raise DeliveryError("Telegram connection error - network issue") from None
            except requests.exceptions.RequestException:
                raise DeliveryError("Telegram request failed") from None

            now = time.time()
            self._last_message_time = now
            self._sent_this_minute.append(now)

        try:
            message_id = response.json().get("result", {}).get("message_id")
        except ValueError:
            message_id = None

        logger.info(f"Telegram message sent successfully (message_id: {message_id})")
        return message_id

    def send_service_status(
        self,
        status: str,
        details: str = "",
        timestamp: datetime = None
    ) -> int:
        """
        Send a started/stopped/error notice.

        These are operational messages and skip rate limiting.

        Args:
            status: Status type ("started", "stopped", "error")
            details: Additional details
            timestamp: Timestamp (default: now)
        """
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        status_text = {
            "started": "Price monitor started",
            "stopped": "Price monitor stopped",
            "error": "Price monitor error",
        }.get(status, f"Status: {status}")

        time_str = timestamp.astimezone(ZoneInfo(config.timezone)).strftime('%H:%M:%S %Z')
        lines = [f"<b>{status_text} at {time_str}</b>"]

        if details:
            lines.append("")
            lines.append(details)

        return self.send("\n".join(lines), skip_rate_limit=True)


def send_test_alert(
    bot_token: str = None,
    chat_id: str = None,
    dry_run: bool = False
) -> bool:
    """
    Send a test message to verify Telegram configuration.

    Args:
        bot_token: Telegram bot token (default: from env)
        chat_id: Telegram chat ID (default: from env)
        dry_run: If True, print message instead of sending

    Returns:
        True if successful
    """
    if bot_token is None:
        bot_token = os.environ.get("TELEGRAM_BOT_TOKEN", "")
    if chat_id is None:
        chat_id = os.environ.get("TELEGRAM_CHAT_ID", "")

    notifier = TelegramNotifier(AlertConfig(
        bot_token=bot_token,
        chat_id=chat_id,
        dry_run=dry_run,
    ))
    try:
        notifier.send_service_status(
            "started",
            "Test alert - price monitor configuration verified."
        )
    except DeliveryError as e:
        logger.error(f"Test alert failed: {e}")
        return False
    return True
