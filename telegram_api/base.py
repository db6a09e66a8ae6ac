"""
Telegram - Transport Interface.

The delivery and ingestion pipelines depend only on this
interface; the aiohttp client is one implementation.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from .models import BotCommand, BotInfo, ParseMode, Update



class ChatTransport(ABC):
    """
    Chat platform operations.

    Implementations raise core.exceptions.TransportError on failure.
    """

    @abstractmethod
    async def send_message(
        self,
        chat_id: str,
        text: str,
        parse_mode: Optional[ParseMode] = None,
    ) -> None:
        """Deliver one text message to one destination."""
        pass

    @abstractmethod
    async def get_updates(self, offset: int, timeout: int) -> List[Update]:
        """Long-poll for updates with id >= offset."""
        pass

    @abstractmethod
    async def get_me(self) -> BotInfo:
        pass

    @abstractmethod
    async def set_my_commands(self, commands: Sequence[BotCommand]) -> None:
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass
