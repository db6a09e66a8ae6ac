"""
Telegram Bot API transport.

Components:
- base: ChatTransport interface used by the pipelines
- client: aiohttp implementation with error classification
- models: Update, InboundMessage, BotInfo, BotCommand
"""

from .base import ChatTransport
from .client import TelegramClient, classify_api_error
from .models import BotCommand, BotInfo, InboundMessage, ParseMode, Update

__all__ = [
    "ChatTransport",
    "TelegramClient",
    "classify_api_error",
    "BotCommand",
    "BotInfo",
    "InboundMessage",
    "ParseMode",
    "Update",
]
