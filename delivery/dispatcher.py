"""
Delivery - Rate-Limited Dispatcher.

============================================================
RESPONSIBILITY
============================================================
Drains the delivery queue into the chat transport.

- Single-flight: at most one dispatch pass at a time
- Woken immediately on enqueue, and on a fixed tick for retries
- Fixed spacing between consecutive transport calls
- Broadcasts track per-recipient completion so a retry only
  goes to the recipients that have not received the message

============================================================
FAILURE SEMANTICS
============================================================
- Transport errors become record_failure, never propagate
- No recipients (or an unreadable directory) leaves broadcast
  messages untouched; it is not a delivery failure

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Set

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import DirectoryError, classify_transport_error
from recipients.base import RecipientDirectory
from telegram_api.base import ChatTransport

from .config import DeliveryConfig
from .models import QueuedMessage
from .queue import DeliveryQueue


logger = logging.getLogger(__name__)


Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class PassResult:
    """Outcome counters for one dispatch pass."""

    ready: int = 0
    delivered: int = 0
    failed: int = 0
    dropped: int = 0
    deferred: int = 0
    sends: int = 0


class RateLimitedDispatcher:
    """
    Single consumer of the delivery queue.
    """

    def __init__(
        self,
        queue: DeliveryQueue,
        transport: ChatTransport,
        directory: RecipientDirectory,
        config: Optional[DeliveryConfig] = None,
        clock: Optional[ClockProtocol] = None,
        sleep: Optional[Sleeper] = None,
    ):
        self._queue = queue
        self._transport = transport
        self._directory = directory
        self._config = config or DeliveryConfig()
        self._clock = clock or ClockFactory.get_clock()
        self._sleep = sleep or asyncio.sleep

        self._processing = False
        self._last_send_at: Optional[float] = None

        self._wake = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._running = False

        self._queue.add_enqueue_listener(lambda _message: self.nudge())

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def is_running(self) -> bool:
        return self._running

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    def start(self) -> None:
        """Start the background dispatch loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name="delivery-dispatcher")
        logger.info(
            f"Dispatcher started | tick={self._config.tick_interval_seconds}s | "
            f"send_interval={self._config.send_interval_seconds}s"
        )

    async def stop(self) -> None:
        """Stop the loop; a pass in flight is cancelled."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Dispatcher stopped")

    def nudge(self) -> None:
        """Request a pass as soon as possible."""
        self._wake.set()

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.wait_for(
                    self._wake.wait(),
                    timeout=self._config.tick_interval_seconds,
                )
            except asyncio.TimeoutError:
                pass

            self._wake.clear()

            try:
                await self.run_pass()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Dispatch pass crashed: {e}", exc_info=True)

    # --------------------------------------------------------
    # Dispatch pass
    # --------------------------------------------------------

    async def run_pass(self) -> Optional[PassResult]:
        """
        One drain-and-send cycle.

        Returns None when another pass is already in flight.
        """
        if self._processing:
            return None

        self._processing = True
        try:
            return await self._process()
        finally:
            self._processing = False

    async def _process(self) -> PassResult:
        result = PassResult()
        ready = self._queue.drain()
        result.ready = len(ready)
        if not ready:
            return result

        recipients: Set[str] = set()
        if any(message.payload.is_broadcast for message in ready):
            recipients = await self._resolve_recipients()

        for message in ready:
            targets = self._targets_for(message, recipients)
            if not targets:
                result.deferred += 1
                continue

            failed = False
            for target in targets:
                if target in message.delivered_to:
                    continue

                await self._throttle()
                result.sends += 1

                try:
                    await self._transport.send_message(
                        target,
                        message.payload.text,
                        message.payload.parse_mode,
                    )
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    error = classify_transport_error(e, method="sendMessage")
                    failed = True
                    logger.warning(
                        f"Send failed | id={message.id} | recipient={target} | "
                        f"attempts={message.attempts} | error={error}"
                    )
                    continue

                self._queue.record_delivery(message.id, target)

            if failed:
                result.failed += 1
                if self._queue.record_failure(message.id):
                    result.dropped += 1
            else:
                result.delivered += 1
                self._queue.record_success(message.id)

        if result.sends:
            logger.debug(
                f"Dispatch pass complete | ready={result.ready} | "
                f"delivered={result.delivered} | failed={result.failed} | "
                f"deferred={result.deferred}"
            )
        return result

    def _targets_for(self, message: QueuedMessage, recipients: Set[str]) -> List[str]:
        if not message.payload.is_broadcast:
            return [message.payload.destination]
        return sorted(recipients)

    async def _resolve_recipients(self) -> Set[str]:
        try:
            recipients = await self._directory.list_all()
        except DirectoryError as e:
            logger.warning(f"Recipient directory unavailable, deferring broadcasts: {e}")
            return set()

        if not recipients:
            logger.debug("No recipients registered, deferring broadcasts")
        return set(recipients)

    async def _throttle(self) -> None:
        interval = self._config.send_interval_seconds
        if self._last_send_at is not None and interval > 0:
            elapsed = self._clock.monotonic() - self._last_send_at
            if elapsed < interval:
                await self._sleep(interval - elapsed)
        self._last_send_at = self._clock.monotonic()
