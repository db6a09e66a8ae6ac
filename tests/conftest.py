"""
Shared fixtures for the notifier test suites.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Set, Tuple

import pytest

from core.clock import MockClock
from core.exceptions import DirectoryUnavailableError, TransportError, TransportErrorCategory
from delivery.config import DeliveryConfig
from delivery.queue import DeliveryQueue
from recipients.base import RecipientDirectory
from telegram_api.base import ChatTransport
from telegram_api.models import BotCommand, BotInfo, ParseMode, Update


# ============================================================
# FAKES
# ============================================================

class RecordingTransport(ChatTransport):
    """In-memory transport that records sends and can fail per chat."""

    def __init__(self):
        self.sent: List[Tuple[str, str, Optional[ParseMode]]] = []
        self.failing: Dict[str, TransportErrorCategory] = {}
        self.update_batches: List[object] = []
        self.poll_calls: List[Tuple[int, int]] = []
        self.commands: List[BotCommand] = []
        self.closed = False

    async def send_message(self, chat_id, text, parse_mode=None):
        if chat_id in self.failing:
            raise TransportError(
                f"send to {chat_id} failed",
                category=self.failing[chat_id],
                method="sendMessage",
            )
        self.sent.append((chat_id, text, parse_mode))

    async def get_updates(self, offset: int, timeout: int) -> List[Update]:
        self.poll_calls.append((offset, timeout))
        if not self.update_batches:
            return []
        batch = self.update_batches.pop(0)
        if isinstance(batch, BaseException):
            raise batch
        return batch

    async def get_me(self) -> BotInfo:
        return BotInfo(id=1, username="notifier_bot")

    async def set_my_commands(self, commands: Sequence[BotCommand]) -> None:
        self.commands = list(commands)

    async def close(self) -> None:
        self.closed = True

    def recipients_of(self, text: str) -> List[str]:
        return [chat_id for chat_id, sent_text, _ in self.sent if sent_text == text]


class MemoryDirectory(RecipientDirectory):
    """Subscription directory kept in a set."""

    requires_subscription = True

    def __init__(self, members: Optional[Set[str]] = None):
        self.members: Set[str] = set(members or ())
        self.unavailable = False

    def _check(self, operation: str) -> None:
        if self.unavailable:
            raise DirectoryUnavailableError("store offline", operation=operation)

    async def add(self, identifier: str) -> bool:
        self._check("add")
        if identifier in self.members:
            return False
        self.members.add(identifier)
        return True

    async def remove(self, identifier: str) -> bool:
        self._check("remove")
        if identifier not in self.members:
            return False
        self.members.discard(identifier)
        return True

    async def contains(self, identifier: str) -> bool:
        self._check("contains")
        return identifier in self.members

    async def list_all(self) -> Set[str]:
        self._check("list_all")
        return set(self.members)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    """Mock clock pinned to a fixed instant."""
    return MockClock(datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc))


@pytest.fixture
def delivery_config():
    """Delivery config without inter-send spacing."""
    return DeliveryConfig(send_interval_seconds=0)


@pytest.fixture
def queue(delivery_config, clock):
    return DeliveryQueue(config=delivery_config, clock=clock)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def directory():
    return MemoryDirectory()
