"""
Telegram - Data Models.

Typed views over the Bot API JSON the service consumes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class ParseMode(Enum):
    """Chat platform rendering modes."""

    MARKDOWN = "Markdown"
    HTML = "HTML"


@dataclass(frozen=True)
class InboundMessage:
    """A text message received by the bot."""

    chat_id: str
    text: Optional[str] = None
    from_username: Optional[str] = None
    chat_type: Optional[str] = None


@dataclass(frozen=True)
class Update:
    """One entry of a getUpdates batch."""

    update_id: int
    message: Optional[InboundMessage] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Update":
        """Parse a raw update; non-message updates keep message=None."""
        raw = data.get("message") or data.get("channel_post")
        message = None

        if raw and raw.get("chat", {}).get("id") is not None:
            sender = raw.get("from") or {}
            message = InboundMessage(
                chat_id=str(raw["chat"]["id"]),
                text=raw.get("text"),
                from_username=sender.get("username"),
                chat_type=raw["chat"].get("type"),
            )

        return cls(update_id=int(data["update_id"]), message=message)


@dataclass(frozen=True)
class BotInfo:
    """Result of getMe."""

    id: int
    username: str
    first_name: Optional[str] = None

    @property
    def link(self) -> str:
        return f"https://t.me/{self.username}"

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "BotInfo":
        return cls(
            id=int(data["id"]),
            username=data.get("username", ""),
            first_name=data.get("first_name"),
        )


@dataclass(frozen=True)
class BotCommand:
    """Entry of the bot's published command menu."""

    command: str
    description: str

    def to_api(self) -> Dict[str, str]:
        return {"command": self.command, "description": self.description}


def parse_updates(result: List[Dict[str, Any]]) -> List[Update]:
    """Parse a getUpdates result, ascending by update_id."""
    return sorted((Update.from_api(item) for item in result), key=lambda u: u.update_id)
