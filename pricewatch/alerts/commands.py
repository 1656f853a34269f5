"""
Telegram Commands
=================

Operator command surface on the alert chat.

Commands:
- /list: tracked assets
- /top [N]: top N coins by market cap (default 10)
- /add <coin>: start tracking a coin (validated by a price fetch)
- /remove <coin>: stop tracking a coin
- /help: command list

Only messages from the configured chat are handled; everything else is
ignored without a reply.
"""

import logging
import re
import threading
from concurrent.futures import CancelledError, TimeoutError as FutureTimeoutError
from typing import Callable, Dict, Optional

import requests

from ..config import config
from ..errors import DeliveryError, FetchError
from ..models import AddResult
from ..utils.formatting import HELP_TEXT, escape, format_top_coins, format_tracked
from .telegram import TelegramNotifier

logger = logging.getLogger(__name__)

# "/cmd", "/cmd arg", "/cmd@BotName arg"
COMMAND_PATTERN = re.compile(r"^/(\w+)(?:@\w+)?(?:\s+(.*))?$", re.DOTALL)

# Max seconds a command waits for the monitor loop to run it
COMMAND_TIMEOUT_SECONDS = 60


class CommandHandler:
    """
    Parses command text and runs it against the monitor.

    Mutations go through monitor.call() so they run on the monitor loop
    thread, serialized with polling cycles.
    """

    def __init__(self, monitor, chat_id: str, timeout: float = COMMAND_TIMEOUT_SECONDS):
        self.monitor = monitor
        self.chat_id = str(chat_id)
        self.timeout = timeout
        self._commands: Dict[str, Callable[[str], str]] = {
            "list": self._list,
            "top": self._top,
            "add": self._add,
            "remove": self._remove,
            "help": self._help,
        }

    def is_authorized(self, chat_id) -> bool:
        return str(chat_id) == self.chat_id

    def handle(self, chat_id, text: str) -> Optional[str]:
        """
        Run a command message.

        Returns:
            Reply text, or None when the message is ignored
        """
        if not self.is_authorized(chat_id):
            logger.debug(f"Ignoring message from unauthorized chat {chat_id}")
            return None

        match = COMMAND_PATTERN.match((text or "").strip())
        if not match:
            return None

        command = match.group(1).lower()
        arg = (match.group(2) or "").strip()
        handler = self._commands.get(command)
        if handler is None:
            return None

        logger.info(f"Command /{command} {arg}".rstrip())
        try:
            return handler(arg)
        except (FutureTimeoutError, CancelledError):
            return f"❌ Error running /{command}: monitor busy, try again"

    def _list(self, arg: str) -> str:
        return format_tracked(self.monitor.call(self.monitor.tracked_assets, timeout=self.timeout))

    def _top(self, arg: str) -> str:
        k = config.top_default
        if arg:
            try:
                k = int(arg.split()[0])
            except ValueError:
                k = config.top_default
        if k <= 0:
            k = config.top_default
        k = min(k, config.top_max)

        try:
            coins = self.monitor.top_assets(k)
        except FetchError as e:
            return f"❌ Error fetching top cryptocurrencies: {escape(str(e))}"

        return format_top_coins(coins, k)

    def _add(self, arg: str) -> str:
        if not arg:
            return "Usage: /add &lt;coin&gt;"
        coin = arg.lower()

        try:
            result = self.monitor.call(self.monitor.add_asset, coin, timeout=self.timeout)
        except (FutureTimeoutError, CancelledError):
            return f"❌ Error adding {escape(coin)}: monitor busy, try again"

        if result is AddResult.ALREADY_TRACKED:
            return f"{escape(coin)} is already being tracked!"
        if result is AddResult.NOT_FOUND:
            return f"❌ Could not find cryptocurrency: {escape(coin)}"
        return f"✅ Added {escape(coin)} to tracking list!"

    def _remove(self, arg: str) -> str:
        if not arg:
            return "Usage: /remove &lt;coin&gt;"
        coin = arg.lower()

        try:
            removed = self.monitor.call(self.monitor.remove_asset, coin, timeout=self.timeout)
        except (FutureTimeoutError, CancelledError):
            return f"❌ Error removing {escape(coin)}: monitor busy, try again"

        if removed:
            return f"✅ Removed {escape(coin)} from tracking list!"
        return f"❌ {escape(coin)} is not in the tracking list!"

    def _help(self, arg: str) -> str:
        return HELP_TEXT


class TelegramCommandListener:
    """
    Long-polls Telegram getUpdates on a background thread and replies to
    commands through the notifier.
    """

    def __init__(
        self,
        notifier: TelegramNotifier,
        handler: CommandHandler,
        poll_timeout: int = 30,
        error_backoff: float = 5.0,
        ready: Optional[threading.Event] = None,
    ):
        self.notifier = notifier
        self.handler = handler
        self.poll_timeout = poll_timeout
        self.error_backoff = error_backoff
        # Polling starts once this is set (the monitor loop is running)
        self.ready = ready
        self._session = requests.Session()
        self._offset: Optional[int] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start polling in a daemon thread."""
        self._thread = threading.Thread(
            target=self._run, daemon=True, name="TelegramCommandListener"
        )
        self._thread.start()
        logger.info("Telegram command listener started")

    def stop(self):
        """Stop polling (the in-flight long poll is abandoned)."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        self._session.close()

    def _get_updates(self) -> list:
        params = {"timeout": self.poll_timeout, "allowed_updates": '["message"]'}
        if self._offset is not None:
            params["offset"] = self._offset

        response = self._session.get(
            self.notifier.api_url("getUpdates"),
            params=params,
            timeout=self.poll_timeout + 10,
        )
        response.raise_for_status()
        data = response.json()
        if not data.get("ok"):
            raise FetchError(f"getUpdates not ok: {data.get('description', 'unknown')}")
        return data.get("result", [])

    def poll_once(self) -> int:
        """
        Fetch pending updates and answer any commands.

        Returns:
            Number of updates consumed
        """
        updates = self._get_updates()

        for update in updates:
            self._offset = update["update_id"] + 1

            message = update.get("message") or {}
            text = message.get("text")
            chat_id = (message.get("chat") or {}).get("id")
            if not text or chat_id is None:
                continue

            reply = self.handler.handle(chat_id, text)
            if reply is None:
                continue

            try:
                self.notifier.send(reply)
            except DeliveryError as e:
                logger.error(f"Could not send command reply: {e}")

        return len(updates)

    def _run(self):
        if self.ready is not None:
            while not self.ready.wait(0.5):
                if self._stop.is_set():
                    return

        while not self._stop.is_set():
            try:
                self.poll_once()
            except requests.exceptions.RequestException:
                # Exception text can contain the bot token
                logger.warning("Telegram getUpdates request failed")
                self._stop.wait(self.error_backoff)
            except (FetchError, ValueError) as e:
                logger.warning(f"Telegram getUpdates error: {e}")
                self._stop.wait(self.error_backoff)
