"""
Delivery - Delivery Queue.

============================================================
RESPONSIBILITY
============================================================
Holds pending outbound messages and their retry bookkeeping.

- enqueue never waits on the transport
- drain returns ready messages oldest first, skipping
  (not blocking on) messages still inside their backoff
- a message that hits the attempt ceiling is dropped and
  reported, never silently discarded

============================================================
CONCURRENCY
============================================================
All state sits behind one lock. Methods never await, so the
queue can be shared by HTTP handlers, the command router and
the dispatcher on the same event loop (or across threads).

============================================================
"""

import logging
import threading
import uuid
from collections import Counter
from typing import Callable, Dict, List, Optional, Union

from core.clock import ClockFactory, ClockProtocol

from .backoff import BackoffPolicy
from .config import DeliveryConfig
from .formatting import truncate_message
from .models import (
    MessageKind,
    MessagePayload,
    PermanentFailure,
    QueuedMessage,
    QueueStatus,
)


logger = logging.getLogger(__name__)


EnqueueListener = Callable[[QueuedMessage], None]
FailureListener = Callable[[PermanentFailure], None]


class DeliveryQueue:
    """
    In-process queue of outbound notifications.

    Insertion order is preserved; it is the dispatch order among
    ready messages.
    """

    def __init__(
        self,
        config: Optional[DeliveryConfig] = None,
        backoff: Optional[BackoffPolicy] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._config = config or DeliveryConfig()
        self._backoff = backoff or BackoffPolicy(self._config.retry_delays_seconds)
        self._clock = clock or ClockFactory.get_clock()

        self._messages: Dict[str, QueuedMessage] = {}
        self._lock = threading.Lock()

        self._enqueue_listeners: List[EnqueueListener] = []
        self._failure_listeners: List[FailureListener] = []
        self._permanent_failures: List[PermanentFailure] = []

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    @property
    def backoff(self) -> BackoffPolicy:
        return self._backoff

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    # --------------------------------------------------------
    # Listeners
    # --------------------------------------------------------

    def add_enqueue_listener(self, listener: EnqueueListener) -> None:
        """Register a callback fired after every enqueue (dispatcher wake-up)."""
        self._enqueue_listeners.append(listener)

    def add_failure_listener(self, listener: FailureListener) -> None:
        """Register a callback fired when a message is permanently dropped."""
        self._failure_listeners.append(listener)

    # --------------------------------------------------------
    # Producer side
    # --------------------------------------------------------

    def enqueue(
        self,
        kind: Union[MessageKind, str],
        payload: MessagePayload,
    ) -> str:
        """
        Append a message and return its id.

        Text longer than the configured limit is truncated here,
        before the message is ever visible to the dispatcher.
        """
        kind = MessageKind(kind)
        text = truncate_message(payload.text, self._config.max_message_length)
        if text is not payload.text:
            payload = MessagePayload(
                text=text,
                parse_mode=payload.parse_mode,
                destination=payload.destination,
            )

        message = QueuedMessage(
            id=str(uuid.uuid4()),
            kind=kind,
            payload=payload,
            created_at=self._clock.now(),
        )

        with self._lock:
            self._messages[message.id] = message

        logger.debug(f"Message added to queue | id={message.id} | kind={kind.value}")

        for listener in self._enqueue_listeners:
            try:
                listener(message)
            except Exception as e:
                logger.error(f"Enqueue listener failed: {e}")

        return message.id

    # --------------------------------------------------------
    # Dispatcher side
    # --------------------------------------------------------

    def drain(self) -> List[QueuedMessage]:
        """
        Ready messages in enqueue order.

        Ready means never attempted, or the backoff for the
        current attempt count has elapsed. Nothing is removed.
        """
        now = self._clock.now()
        with self._lock:
            return [
                message
                for message in self._messages.values()
                if message.never_attempted
                or now - message.last_attempt_at >= self._backoff.delay(message.attempts)
            ]

    def record_delivery(self, message_id: str, recipient: str) -> None:
        """Mark one recipient of a broadcast as served."""
        with self._lock:
            message = self._messages.get(message_id)
            if message is not None:
                message.delivered_to.add(recipient)

    def record_success(self, message_id: str) -> None:
        """Remove a fully delivered message."""
        with self._lock:
            message = self._messages.pop(message_id, None)

        if message is not None:
            logger.debug(
                f"Message delivered | id={message_id} | attempts={message.attempts}"
            )

    def record_failure(self, message_id: str) -> bool:
        """
        Count a failed attempt.

        Returns True when the message was dropped at the ceiling.
        """
        now = self._clock.now()
        failure: Optional[PermanentFailure] = None

        with self._lock:
            message = self._messages.get(message_id)
            if message is None:
                return False

            message.attempts += 1
            message.last_attempt_at = now

            if message.attempts >= self._config.max_attempts:
                del self._messages[message_id]
                failure = PermanentFailure(
                    message_id=message.id,
                    kind=message.kind,
                    attempts=message.attempts,
                    created_at=message.created_at,
                    dropped_at=now,
                    delivered_to=frozenset(message.delivered_to),
                )
                self._permanent_failures.append(failure)
            else:
                next_retry = self._backoff.delay(message.attempts)

        if failure is None:
            logger.info(
                f"Message requeued for retry | id={message_id} | "
                f"attempts={message.attempts} | "
                f"next_retry_in={next_retry.total_seconds():.0f}s"
            )
            return False

        logger.error(
            f"Message exceeded maximum retry attempts, dropping | "
            f"id={failure.message_id} | kind={failure.kind.value} | "
            f"attempts={failure.attempts}"
        )
        for listener in self._failure_listeners:
            try:
                listener(failure)
            except Exception as e:
                logger.error(f"Failure listener failed: {e}")
        return True

    # --------------------------------------------------------
    # Observability
    # --------------------------------------------------------

    def get(self, message_id: str) -> Optional[QueuedMessage]:
        with self._lock:
            return self._messages.get(message_id)

    @property
    def permanent_failures(self) -> List[PermanentFailure]:
        with self._lock:
            return list(self._permanent_failures)

    def status(self) -> QueueStatus:
        """Snapshot of pending work."""
        with self._lock:
            messages = list(self._messages.values())
            failed = len(self._permanent_failures)

        by_kind = Counter(message.kind.value for message in messages)
        oldest = min((m.created_at for m in messages), default=None)

        return QueueStatus(
            total_pending=len(messages),
            pending_by_kind=dict(by_kind),
            oldest_pending_at=oldest,
            permanently_failed=failed,
        )
