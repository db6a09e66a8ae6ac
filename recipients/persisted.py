"""
Recipients - Persisted Directory.

============================================================
PURPOSE
============================================================
Subscriber set stored in the `telegram_chats` table.

- add/remove run in their own transaction
- list_all reads the table fresh on every call, so the
  dispatcher never works from a stale copy
- blocking session work runs in a worker thread

============================================================
"""

import asyncio
import logging
from typing import Callable, Optional, Set, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import DirectoryUnavailableError
from database.engine import DatabasePersistenceError, get_session_factory, transaction_scope
from database.models import TelegramChat

from .base import RecipientDirectory


logger = logging.getLogger(__name__)

T = TypeVar("T")


class PersistedRecipientDirectory(RecipientDirectory):
    """
    Dynamic subscriber directory backed by SQLAlchemy.
    """

    requires_subscription = True

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory

    def _factory(self) -> sessionmaker:
        return self._session_factory or get_session_factory()

    async def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        def _in_transaction() -> T:
            with transaction_scope(self._factory()) as session:
                return work(session)

        try:
            return await asyncio.to_thread(_in_transaction)
        except (DatabasePersistenceError, SQLAlchemyError) as e:
            raise DirectoryUnavailableError(
                f"Recipient store {operation} failed: {e}",
                operation=operation,
                cause=e,
            ) from e

    async def add(self, identifier: str) -> bool:
        def work(session: Session) -> bool:
            if session.get(TelegramChat, identifier) is not None:
                return False
            session.add(TelegramChat(chat_id=identifier))
            return True

        added = await self._run("add", work)
        if added:
            logger.info(f"Chat {identifier} added to recipients")
        else:
            logger.info(f"Chat {identifier} already subscribed")
        return added

    async def remove(self, identifier: str) -> bool:
        def work(session: Session) -> bool:
            result = session.execute(
                delete(TelegramChat).where(TelegramChat.chat_id == identifier)
            )
            return result.rowcount > 0

        removed = await self._run("remove", work)
        logger.info(f"Chat {identifier} removed from recipients | existed={removed}")
        return removed

    async def contains(self, identifier: str) -> bool:
        return await self._run(
            "contains",
            lambda session: session.get(TelegramChat, identifier) is not None,
        )

    async def list_all(self) -> Set[str]:
        return await self._run(
            "list_all",
            lambda session: set(session.scalars(select(TelegramChat.chat_id)).all()),
        )
