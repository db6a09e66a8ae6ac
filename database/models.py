"""
Database ORM Models.

============================================================
TABLES
============================================================
telegram_chats - chats subscribed to broadcasts

============================================================
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String

from .engine import Base


def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


class TelegramChat(Base):
    """
    A chat that receives broadcasts.

    Source: /subscribe command, POST /admin/chats
    Deduplicated by chat_id.
    """
    __tablename__ = "telegram_chats"

    chat_id = Column(String(64), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<TelegramChat chat_id={self.chat_id}>"
