"""
Inbound update ingestion.

Components:
- cursor: monotonically advancing getUpdates offset
- poller: long-poll loop with at-least-once processing
- commands: command table, subscription gate and replies
"""

from .commands import BOT_COMMANDS, OPEN_COMMANDS, CommandRouter, parse_command
from .config import IngestionConfig
from .cursor import IngestionCursor
from .poller import PollerState, UpdatePoller

__all__ = [
    "BOT_COMMANDS",
    "OPEN_COMMANDS",
    "CommandRouter",
    "parse_command",
    "IngestionConfig",
    "IngestionCursor",
    "PollerState",
    "UpdatePoller",
]
