"""
Recipients - Fixed Directory.

A single destination taken from configuration, typically
a group chat. Membership cannot be changed at runtime.
"""

from typing import Set

from core.exceptions import DirectoryReadOnlyError

from .base import RecipientDirectory


class FixedRecipientDirectory(RecipientDirectory):
    """Broadcasts always go to one configured chat."""

    requires_subscription = False

    def __init__(self, chat_id: str):
        if not chat_id:
            raise ValueError("chat_id is required for a fixed directory")
        self._chat_id = str(chat_id)

    @property
    def chat_id(self) -> str:
        return self._chat_id

    async def add(self, identifier: str) -> bool:
        raise DirectoryReadOnlyError(
            "Recipients are managed by configuration",
            context={"operation": "add", "identifier": identifier},
        )

    async def remove(self, identifier: str) -> bool:
        raise DirectoryReadOnlyError(
            "Recipients are managed by configuration",
            context={"operation": "remove", "identifier": identifier},
        )

    async def contains(self, identifier: str) -> bool:
        return identifier == self._chat_id

    async def list_all(self) -> Set[str]:
        return {self._chat_id}
