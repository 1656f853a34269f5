"""
Alerts Package
==============

- telegram.py: TelegramNotifier (sendMessage), send_test_alert
- commands.py: CommandHandler, TelegramCommandListener (getUpdates)
"""

from .telegram import TelegramNotifier, AlertConfig, send_test_alert
from .commands import CommandHandler, TelegramCommandListener

__all__ = [
    "TelegramNotifier",
    "AlertConfig",
    "send_test_alert",
    "CommandHandler",
    "TelegramCommandListener",
]
