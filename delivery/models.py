"""
Delivery - Data Models.

============================================================
PURPOSE
============================================================
Types shared by the delivery queue and the dispatcher.

OWNERSHIP:
- QueuedMessage bookkeeping (attempts, last_attempt_at,
  delivered_to) is mutated by DeliveryQueue only
- Producers only ever choose kind and payload

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Set

from telegram_api.models import ParseMode


# ============================================================
# ENUMS
# ============================================================

class MessageKind(Enum):
    """Logical message type, used for observability only."""

    PLAIN = "plain"
    METRICS = "metrics"


# ============================================================
# PAYLOAD
# ============================================================

@dataclass(frozen=True)
class MessagePayload:
    """
    Outbound content.

    `destination` is None for broadcasts, which are resolved
    against the recipient directory at dispatch time.
    """

    text: str
    parse_mode: Optional[ParseMode] = None
    destination: Optional[str] = None

    @property
    def is_broadcast(self) -> bool:
        return self.destination is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "parse_mode": self.parse_mode.value if self.parse_mode else None,
            "destination": self.destination,
        }


# ============================================================
# QUEUED MESSAGE
# ============================================================

@dataclass
class QueuedMessage:
    """One pending outbound notification."""

    id: str
    kind: MessageKind
    payload: MessagePayload
    created_at: datetime
    attempts: int = 0
    last_attempt_at: Optional[datetime] = None
    delivered_to: Set[str] = field(default_factory=set)

    @property
    def never_attempted(self) -> bool:
        return self.last_attempt_at is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "payload": self.payload.to_dict(),
            "attempts": self.attempts,
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            "created_at": self.created_at.isoformat(),
            "delivered_to": sorted(self.delivered_to),
        }


@dataclass(frozen=True)
class PermanentFailure:
    """Record of a message dropped at the attempt ceiling."""

    message_id: str
    kind: MessageKind
    attempts: int
    created_at: datetime
    dropped_at: datetime
    delivered_to: FrozenSet[str] = frozenset()


# ============================================================
# STATUS
# ============================================================

@dataclass(frozen=True)
class QueueStatus:
    """Read-only observability snapshot of the queue."""

    total_pending: int
    pending_by_kind: Dict[str, int]
    oldest_pending_at: Optional[datetime]
    permanently_failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_pending": self.total_pending,
            "pending_by_kind": dict(self.pending_by_kind),
            "oldest_pending_at": self.oldest_pending_at.isoformat() if self.oldest_pending_at else None,
            "permanently_failed": self.permanently_failed,
        }
