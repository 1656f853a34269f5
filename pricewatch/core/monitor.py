"""
Monitor Service

Main polling loop that, every cycle:
1. Fetches the spot price of each tracked asset
2. Persists the sample
3. Checks the hourly window (vs stored history) and the instant window
   (vs the previous cycle's price)
4. Sends an alert per threshold crossing, then one summary message
5. Prunes history older than the retention horizon

Runtime mutations (add/remove asset) arrive from the command listener thread
and are executed on the loop thread through a single job queue, so a cycle
and a mutation never interleave.
"""

import logging
import signal
import threading
import time
from concurrent.futures import CancelledError, Future
from enum import Enum
from queue import Queue, Empty
from typing import Callable, Dict, Iterable, List, Optional

from ..config import config
from ..errors import (
    DeliveryError,
    DivisionUndefined,
    FetchError,
    NotFoundError,
    PersistenceError,
    RateLimitedError,
)
from ..models import AddResult, Alert, CycleReport, MarketCoin
from ..utils.formatting import (
    format_alert,
    format_change,
    format_price,
    format_price_update,
    format_timestamp,
)
from .detector import ChangeDetector, compute_change

logger = logging.getLogger(__name__)

_STOP = object()


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def normalize_symbol(symbol: str) -> str:
    """CoinGecko ids are lowercase without surrounding whitespace."""
    return symbol.strip().lower()


class MonitorState(Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    STOPPED = "stopped"


class PriceMonitor:
    """
    Price polling service.

    Owns the tracked asset set, the last-seen price cache and the change
    detector (which holds the hourly alert cooldowns). Collaborators are
    injected so tests can run cycles against fakes:

    - source: fetch_spot_price(symbol), fetch_top_market_cap(n)
    - store: insert, latest_at_or_before, delete_older_than
    - notifier: send(text), send_service_status(status, details)
    """

    def __init__(
        self,
        source,
        store,
        notifier,
        assets: Iterable[str] = None,
        detector: ChangeDetector = None,
        interval_sec: float = None,
        retention_ms: int = None,
        clock: Callable[[], int] = None,
        tz_name: str = None,
    ):
        """
        Initialize the monitor.

        Args:
            source: Price source (CoinGeckoClient)
            store: Price history store (PriceDB)
            notifier: Message sender (TelegramNotifier)
            assets: Initial tracked assets (default from config)
            detector: ChangeDetector (default: configured threshold)
            interval_sec: Seconds between cycles
            retention_ms: History kept before pruning
            clock: Returns current epoch ms
            tz_name: Zone used for summary timestamps
        """
        self.source = source
        self.store = store
        self.notifier = notifier
        self.detector = detector or ChangeDetector()
        self.interval_sec = interval_sec or config.price_check_interval_sec
        self.retention_ms = retention_ms or config.history_retention_ms
        self.clock = clock or _epoch_ms
        self.tz_name = tz_name or config.timezone

        if assets is None:
            assets = config.tracked_assets

        # Insertion-ordered set of tracked ids
        self._tracked: Dict[str, None] = dict.fromkeys(normalize_symbol(a) for a in assets)

        # symbol -> last fetched price (instant window only)
        self.last_prices: Dict[str, float] = {}

        self.state = MonitorState.UNINITIALIZED
        self.running = False
        self._jobs: Queue = Queue()
        self._loop_thread_id: Optional[int] = None
        self._jobs_lock = threading.Lock()

        # Set once run() owns the loop thread
        self.started = threading.Event()

    # =========================================================================
    # Tracked Set
    # =========================================================================

    def tracked_assets(self) -> List[str]:
        return list(self._tracked)

    def is_tracked(self, symbol: str) -> bool:
        return normalize_symbol(symbol) in self._tracked

    # =========================================================================
    # Collaborator Calls (each failure is contained here)
    # =========================================================================

    def _fetch(self, symbol: str) -> Optional[float]:
        """Fetch a spot price, or None if unavailable this cycle."""
        try:
            return self.source.fetch_spot_price(symbol)
        except RateLimitedError:
            logger.error("Rate limit exceeded. Consider upgrading your CoinGecko plan.")
        except NotFoundError as e:
            logger.warning(f"No price for {symbol}: {e}")
        except FetchError as e:
            logger.error(f"Error fetching price for {symbol}: {e}")
        return None

    def _persist(self, symbol: str, price: float, now: int) -> bool:
        try:
            self.store.insert(symbol, price, now)
            return True
        except PersistenceError as e:
            logger.error(f"Error saving price for {symbol}: {e}")
            return False

    def _notify(self, text: str) -> bool:
        try:
            self.notifier.send(text)
            return True
        except DeliveryError as e:
            logger.error(f"Error sending Telegram message: {e}")
            return False

    def _hour_ago_price(self, symbol: str, now: int) -> Optional[float]:
        try:
            sample = self.store.latest_at_or_before(symbol, self.detector.hour_ago_cutoff(now))
        except PersistenceError as e:
            logger.error(f"Error reading hourly history for {symbol}: {e}")
            return None
        return sample.price if sample else None

    def _prune(self, now: int):
        try:
            self.store.delete_older_than(now - self.retention_ms)
        except PersistenceError as e:
            logger.error(f"Error cleaning up old data: {e}")

    def _send_status(self, status: str, details: str = ""):
        try:
            self.notifier.send_service_status(status, details)
        except DeliveryError as e:
            logger.warning(f"Could not send {status} status: {e}")

    # =========================================================================
    # Initialization
    # =========================================================================

    def _initialize_asset(self, symbol: str, price: float):
        """Seed the cache and history with a first observed price."""
        self.last_prices[symbol] = price
        logger.info(f"Initial {symbol.upper()} price: {format_price(price)}")
        self._persist(symbol, price, self.clock())

    def initialize(self):
        """
        Fetch a starting price for every tracked asset.

        Assets whose fetch fails stay out of the cache until a later cycle
        fetches them successfully.
        """
        for symbol in self.tracked_assets():
            price = self._fetch(symbol)
            if price is not None:
                self._initialize_asset(symbol, price)

        self.state = MonitorState.RUNNING
        logger.info(
            f"Initialized {len(self.last_prices)}/{len(self._tracked)} assets"
        )

    # =========================================================================
    # Cycle
    # =========================================================================

    def _check_alerts(self, symbol: str, old_price: float, new_price: float, now: int) -> List[Alert]:
        alerts = []
        try:
            hourly = self.detector.check_hourly(
                symbol, new_price, self._hour_ago_price(symbol, now), now
            )
            if hourly:
                alerts.append(hourly)

            instant = self.detector.check_instant(symbol, old_price, new_price)
            if instant:
                alerts.append(instant)
        except DivisionUndefined as e:
            logger.error(f"Skipping alert checks for {symbol}: {e}")
        return alerts

    def run_cycle(self) -> CycleReport:
        """
        One pass over all tracked assets.

        Returns:
            CycleReport with updated/failed symbols and fired alerts
        """
        now = self.clock()
        logger.info("=== Price Check ===")
        logger.info(f"Time: {format_timestamp(tz_name=self.tz_name)}")

        report = CycleReport(updated=[], failed=[], alerts=[])
        price_updates: Dict[str, Dict[str, float]] = {}

        for symbol in self.tracked_assets():
            old_price = self.last_prices.get(symbol)
            new_price = self._fetch(symbol)

            if new_price is None:
                report.failed.append(symbol)
                continue

            if old_price is not None:
                try:
                    price_change = compute_change(old_price, new_price)
                except DivisionUndefined as e:
                    logger.error(f"Skipping {symbol} this cycle: {e}")
                    self.last_prices[symbol] = new_price
                    report.failed.append(symbol)
                    continue

                logger.info(
                    f"{symbol.upper()}: {format_price(new_price)} ({format_change(price_change)})"
                )

                self._persist(symbol, new_price, now)

                for alert in self._check_alerts(symbol, old_price, new_price, now):
                    logger.info(
                        f"{alert.kind.value} alert: {symbol.upper()} "
                        f"{format_change(alert.change.percentage_change)}"
                    )
                    self._notify(format_alert(alert))
                    report.alerts.append(alert)

                price_updates[symbol] = {"price": new_price, "price_change": price_change}
                report.updated.append(symbol)
            else:
                logger.info(f"{symbol.upper()}: {format_price(new_price)} (first price)")

            self.last_prices[symbol] = new_price

        if price_updates:
            report.summary_sent = self._notify(
                format_price_update(price_updates, format_timestamp(tz_name=self.tz_name))
            )

        self._prune(now)

        logger.info(
            f"Cycle complete: {len(report.updated)} updated, "
            f"{len(report.failed)} failed, {len(report.alerts)} alerts"
        )
        return report

    # =========================================================================
    # Runtime Mutations
    # =========================================================================

    def add_asset(self, symbol: str) -> AddResult:
        """
        Start tracking an asset after a validating fetch.

        A failed fetch leaves the tracked set unchanged.
        """
        symbol = normalize_symbol(symbol)
        if symbol in self._tracked:
            return AddResult.ALREADY_TRACKED

        price = self._fetch(symbol)
        if price is None:
            return AddResult.NOT_FOUND

        self._tracked[symbol] = None
        self._initialize_asset(symbol, price)
        logger.info(f"Added {symbol} to tracking list")
        return AddResult.ADDED

    def remove_asset(self, symbol: str) -> bool:
        """
        Stop tracking an asset.

        Cached price and cooldown entries are left in place and ignored.
        """
        symbol = normalize_symbol(symbol)
        if symbol not in self._tracked:
            return False
        del self._tracked[symbol]
        logger.info(f"Removed {symbol} from tracking list")
        return True

    def top_assets(self, n: int) -> List[MarketCoin]:
        """Top N coins by market cap (raises FetchError)."""
        return self.source.fetch_top_market_cap(n)

    # =========================================================================
    # Job Queue
    # =========================================================================

    def call(self, fn: Callable, *args, timeout: float = None):
        """
        Run fn(*args) on the loop thread and return its result.

        Runs inline when no loop was ever started or when already on the
        loop thread. Once the loop has stopped, jobs are refused.

        Raises:
            CancelledError: the loop stopped before running the job
            TimeoutError: the job did not finish within timeout
        """
        if self._loop_thread_id is None or threading.get_ident() == self._loop_thread_id:
            return fn(*args)

        future: Future = Future()
        with self._jobs_lock:
            if self.state is MonitorState.STOPPED:
                raise CancelledError(f"Monitor stopped, {getattr(fn, '__name__', fn)} not run")
            self._jobs.put((fn, args, future))
        return future.result(timeout=timeout)

    def _run_job(self, job):
        fn, args, future = job
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn(*args))
        except Exception as e:
            logger.error(f"Job {getattr(fn, '__name__', fn)} failed: {e}")
            future.set_exception(e)

    def _drain_jobs(self):
        while True:
            try:
                job = self._jobs.get_nowait()
            except Empty:
                return
            if job is not _STOP:
                job[2].cancel()

    # =========================================================================
    # Service Loop
    # =========================================================================

    def install_signal_handlers(self):
        """Stop gracefully on SIGINT/SIGTERM (main thread only)."""
        signal.signal(signal.SIGINT, self._handle_shutdown)
        signal.signal(signal.SIGTERM, self._handle_shutdown)

    def _handle_shutdown(self, signum, frame):
        """Handle shutdown signals gracefully."""
        logger.info("Shutdown signal received, stopping monitor...")
        self.stop()

    def run(self):
        """
        Main entry point - initialize, then run a cycle every interval.

        Queued jobs are executed between cycles as they arrive.
        """
        self.running = True
        self._loop_thread_id = threading.get_ident()
        self.started.set()
        logger.info("=" * 60)
        logger.info("PRICE MONITOR SERVICE STARTING")
        logger.info("=" * 60)
        logger.info(f"Tracking: {', '.join(self.tracked_assets()) or '(none)'}")
        logger.info(f"Interval: {self.interval_sec}s | Threshold: {self.detector.threshold}%")

        try:
            self.initialize()
            self._send_status("started", f"Tracking: {', '.join(self.tracked_assets())}")

            next_cycle = time.monotonic() + self.interval_sec
            while self.running:
                timeout = max(0.0, next_cycle - time.monotonic())
                try:
                    job = self._jobs.get(timeout=timeout)
                except Empty:
                    job = None

                if job is _STOP:
                    break
                if job is not None:
                    self._run_job(job)

                if self.running and time.monotonic() >= next_cycle:
                    try:
                        self.run_cycle()
                    except Exception as e:
                        logger.exception(f"Cycle error: {e}")
                    next_cycle += self.interval_sec
                    if next_cycle <= time.monotonic():
                        next_cycle = time.monotonic() + self.interval_sec

        finally:
            self.running = False
            with self._jobs_lock:
                self.state = MonitorState.STOPPED
                self._drain_jobs()
            logger.info("PRICE MONITOR SERVICE STOPPED")
            self._send_status("stopped")

    def stop(self):
        """Stop the service loop after the current job or cycle."""
        self.running = False
        self._jobs.put(_STOP)
