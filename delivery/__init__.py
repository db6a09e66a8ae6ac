"""
Outbound delivery pipeline.

Components:
- backoff: capped retry schedule
- queue: pending messages and attempt bookkeeping
- dispatcher: single-flight, rate-limited consumer
- formatting: notification rendering and truncation
"""

from .backoff import BackoffPolicy
from .config import DeliveryConfig, MAX_MESSAGE_LENGTH, TRUNCATION_MARKER
from .dispatcher import PassResult, RateLimitedDispatcher
from .formatting import format_notification, truncate_message
from .models import (
    MessageKind,
    MessagePayload,
    PermanentFailure,
    QueuedMessage,
    QueueStatus,
)
from .queue import DeliveryQueue

__all__ = [
    "BackoffPolicy",
    "DeliveryConfig",
    "MAX_MESSAGE_LENGTH",
    "TRUNCATION_MARKER",
    "PassResult",
    "RateLimitedDispatcher",
    "format_notification",
    "truncate_message",
    "MessageKind",
    "MessagePayload",
    "PermanentFailure",
    "QueuedMessage",
    "QueueStatus",
    "DeliveryQueue",
]
