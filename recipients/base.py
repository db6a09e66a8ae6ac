"""
Recipients - Directory Interface.

Who a broadcast goes to. Two shapes share this contract:
a persisted, subscription-managed set and a single fixed
destination. The dispatcher and the command router only
see this interface.
"""

from abc import ABC, abstractmethod
from typing import Set


class RecipientDirectory(ABC):
    """
    Destination lookup for broadcasts.

    Implementations raise core.exceptions.DirectoryError subclasses.
    """

    requires_subscription: bool = False
    """True when chats must subscribe before using gated commands."""

    @abstractmethod
    async def add(self, identifier: str) -> bool:
        """Add a destination. Returns False if it was already present."""
        pass

    @abstractmethod
    async def remove(self, identifier: str) -> bool:
        """Remove a destination. Returns False if it was absent."""
        pass

    @abstractmethod
    async def contains(self, identifier: str) -> bool:
        pass

    @abstractmethod
    async def list_all(self) -> Set[str]:
        """Current destinations, read fresh on every call."""
        pass
