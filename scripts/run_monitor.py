#!/usr/bin/env python3
"""
Price Monitor Service - CLI Entry Point
=======================================

Runs the continuous price monitor:
    - Fetches a spot price for every tracked asset each interval (default 5 min)
    - Alerts on instant (cycle-over-cycle) and hourly moves above the threshold
    - Sends a price update summary after every cycle
    - Accepts /list /top /add /remove /help from the configured Telegram chat
    - Serves GET /health for container health checks

Usage:
    # Start monitor
    python scripts/run_monitor.py

    # Dry run (console alerts only, no Telegram)
    python scripts/run_monitor.py --dry-run

    # Test Telegram configuration
    python scripts/run_monitor.py --test-telegram
"""

import argparse
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from pricewatch.config import config
from pricewatch.api import CoinGeckoClient
from pricewatch.db import PriceDB
from pricewatch.alerts import (
    CommandHandler,
    TelegramCommandListener,
    TelegramNotifier,
    send_test_alert,
)
from pricewatch.core import ChangeDetector, PriceMonitor
from pricewatch.utils.health import HealthServer


def setup_logging(log_level: str = config.log_level, log_file: str = config.log_file):
    """Configure logging for the monitor service."""
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Create date-stamped log file (e.g., logs/monitor_2026-01-18.log)
    date_str = datetime.now().strftime("%Y-%m-%d")
    dated_log_file = log_path.parent / f"{log_path.stem}_{date_str}{log_path.suffix}"

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # File handler (date-stamped)
    file_handler = logging.FileHandler(dated_log_file)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from HTTP libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    root_logger.info(f"Logging to: {dated_log_file}")


def main():
    parser = argparse.ArgumentParser(
        description='Crypto Price Monitor Service',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_monitor.py                          # Start monitor
  python scripts/run_monitor.py --dry-run                # Console alerts only
  python scripts/run_monitor.py --test-telegram          # Test Telegram setup
  python scripts/run_monitor.py --assets bitcoin,solana  # Custom asset list
        """
    )

    parser.add_argument(
        '--interval',
        type=float,
        default=config.price_check_interval_sec,
        help=f'Seconds between price checks (default: {config.price_check_interval_sec:g})'
    )

    parser.add_argument(
        '--threshold',
        type=float,
        default=config.alert_threshold_pct,
        help=f'Alert threshold in percent (default: {config.alert_threshold_pct:g})'
    )

    parser.add_argument(
        '--assets',
        default=",".join(config.tracked_assets),
        help='Comma-separated CoinGecko ids to track at startup'
    )

    parser.add_argument(
        '--db',
        default=str(config.db_path),
        help=f'SQLite database path (default: {config.db_path})'
    )

    parser.add_argument(
        '--port',
        type=int,
        default=config.health_port,
        help=f'Health endpoint port, 0 to disable (default: {config.health_port})'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Print alerts to console instead of sending to Telegram'
    )

    parser.add_argument(
        '--no-commands',
        action='store_true',
        help='Do not listen for Telegram commands'
    )

    parser.add_argument(
        '--test-telegram',
        action='store_true',
        help='Send a test alert to verify Telegram configuration'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=config.log_level.upper(),
        help=f'Log level (default: {config.log_level})'
    )

    args = parser.parse_args()

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    # Test Telegram mode
    if args.test_telegram:
        print("Testing Telegram configuration...")
        if send_test_alert(dry_run=args.dry_run):
            print("Test alert sent successfully!")
            sys.exit(0)
        print("Failed to send test alert. Check your TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID.")
        sys.exit(1)

    if not args.dry_run:
        if not os.environ.get("TELEGRAM_BOT_TOKEN"):
            print("\nWARNING: TELEGRAM_BOT_TOKEN not set!")
            print("Set environment variable or use --dry-run for console output.")
            sys.exit(1)
        if not os.environ.get("TELEGRAM_CHAT_ID"):
            print("\nWARNING: TELEGRAM_CHAT_ID not set!")
            print("Set environment variable or use --dry-run for console output.")
            sys.exit(1)

    assets = [a.strip().lower() for a in args.assets.split(",") if a.strip()]

    print("\n" + "=" * 60)
    print("CRYPTO PRICE MONITOR SERVICE")
    print("=" * 60)
    print(f"Assets:         {', '.join(assets)}")
    print(f"Interval:       {args.interval:g} seconds")
    print(f"Threshold:      {args.threshold:g}%")
    print(f"Database:       {args.db}")
    print(f"Health port:    {args.port or 'disabled'}")
    print(f"Dry run:        {args.dry_run}")
    print(f"Log level:      {args.log_level}")
    print("=" * 60)

    health_server = None
    listener = None
    source = None

    try:
        source = CoinGeckoClient()
        notifier = TelegramNotifier.from_env(dry_run=args.dry_run)
        monitor = PriceMonitor(
            source=source,
            store=PriceDB(Path(args.db)),
            notifier=notifier,
            assets=assets,
            detector=ChangeDetector(threshold=args.threshold),
            interval_sec=args.interval,
        )
        monitor.install_signal_handlers()

        if args.port:
            health_server = HealthServer(port=args.port)
            health_server.start()

        if not args.no_commands and not args.dry_run:
            listener = TelegramCommandListener(
                notifier,
                CommandHandler(monitor, notifier.chat_id),
                ready=monitor.started,
            )
            listener.start()

        print("\nStarting monitor service...")
        print("Press Ctrl+C to stop\n")

        monitor.run()

    except KeyboardInterrupt:
        print("\n\nMonitor stopped by user")
    except Exception as e:
        logger.exception(f"Monitor service error: {e}")
        sys.exit(1)
    finally:
        if listener is not None:
            listener.stop()
        if health_server is not None:
            health_server.stop()
        if source is not None:
            source.close()


if __name__ == "__main__":
    main()
