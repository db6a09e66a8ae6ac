"""
Recipient directories.

- base: RecipientDirectory interface
- persisted: subscriber table (dynamic mode)
- fixed: one configured destination (fixed mode)
"""

from .base import RecipientDirectory
from .fixed import FixedRecipientDirectory
from .persisted import PersistedRecipientDirectory

__all__ = [
    "RecipientDirectory",
    "FixedRecipientDirectory",
    "PersistedRecipientDirectory",
]
