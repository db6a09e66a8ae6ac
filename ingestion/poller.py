"""
Ingestion - Update Poller.

============================================================
RESPONSIBILITY
============================================================
Long-polls the chat platform and feeds each update to the
command router.

- One poll at a time; the loop is explicit, not self-restarting
- Cursor advances strictly after each update is processed, so
  a crash replays at most the update in flight
- A handler error is logged and the batch continues
- Transport errors pause for a cool-down and retry with the
  unchanged cursor
- UNAUTHORIZED (bad bot token) is the only terminal error

============================================================
STATES
============================================================
IDLE -> POLLING -> PROCESSING -> POLLING ...
POLLING -> COOLDOWN -> POLLING       (transport error)
any -> STOPPED                       (stop() or bad credentials)

============================================================
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from core.exceptions import TransportErrorCategory, classify_transport_error
from telegram_api.base import ChatTransport
from telegram_api.models import Update

from .config import IngestionConfig
from .cursor import IngestionCursor


logger = logging.getLogger(__name__)


UpdateHandler = Callable[[Update], Awaitable[object]]
Sleeper = Callable[[float], Awaitable[None]]


class PollerState(Enum):
    """Lifecycle states of the poll loop."""

    IDLE = "IDLE"
    POLLING = "POLLING"
    PROCESSING = "PROCESSING"
    COOLDOWN = "COOLDOWN"
    STOPPED = "STOPPED"


class UpdatePoller:
    """
    Single-task long-poll loop.
    """

    def __init__(
        self,
        transport: ChatTransport,
        handler: UpdateHandler,
        config: Optional[IngestionConfig] = None,
        cursor: Optional[IngestionCursor] = None,
        sleep: Optional[Sleeper] = None,
    ):
        self._transport = transport
        self._handler = handler
        self._config = config or IngestionConfig()
        self._cursor = cursor or IngestionCursor(self._config.initial_offset)
        self._sleep = sleep or asyncio.sleep

        self._state = PollerState.IDLE
        self._stop_requested = False
        self._task: Optional[asyncio.Task] = None

        self._processed = 0
        self._handler_errors = 0
        self._poll_errors = 0

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def offset(self) -> int:
        return self._cursor.offset

    @property
    def cursor(self) -> IngestionCursor:
        return self._cursor

    def get_stats(self) -> dict:
        return {
            "state": self._state.value,
            "offset": self._cursor.offset,
            "processed": self._processed,
            "handler_errors": self._handler_errors,
            "poll_errors": self._poll_errors,
        }

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    def start(self) -> None:
        """Run the loop as a background task."""
        if self._task is not None and not self._task.done():
            return
        self._stop_requested = False
        self._task = asyncio.create_task(self.run(), name="update-poller")

    async def stop(self) -> None:
        """Stop the loop; an in-flight long-poll is abandoned."""
        self._stop_requested = True
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._state = PollerState.STOPPED

    async def run(self) -> None:
        """Poll until stopped or the credentials are rejected."""
        logger.info(f"Update polling started | offset={self._cursor.offset}")
        try:
            while not self._stop_requested:
                if not await self.poll_once():
                    break
        finally:
            self._state = PollerState.STOPPED
            logger.info(f"Update polling stopped | offset={self._cursor.offset}")

    # --------------------------------------------------------
    # One iteration
    # --------------------------------------------------------

    async def poll_once(self) -> bool:
        """
        One poll plus processing of its batch.

        Returns False when the loop must terminate.
        """
        self._state = PollerState.POLLING
        try:
            updates = await self._transport.get_updates(
                self._cursor.offset,
                self._config.poll_timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = classify_transport_error(e, method="getUpdates")
            self._poll_errors += 1

            if error.category == TransportErrorCategory.UNAUTHORIZED:
                logger.critical(f"Bot credentials rejected, polling stops: {error}")
                return False

            logger.error(
                f"Error in polling updates: {error} | "
                f"retrying in {self._config.error_cooldown_seconds}s"
            )
            self._state = PollerState.COOLDOWN
            await self._sleep(self._config.error_cooldown_seconds)
            return True

        await self.process_batch(updates)
        return True

    async def process_batch(self, updates: List[Update]) -> int:
        """
        Handle updates in ascending id order.

        Updates below the cursor (redelivered) are skipped.

        Returns:
            Number of updates handed to the handler
        """
        self._state = PollerState.PROCESSING
        handled = 0

        for update in sorted(updates, key=lambda u: u.update_id):
            if not self._cursor.is_pending(update.update_id):
                logger.debug(f"Skipping already processed update {update.update_id}")
                continue

            try:
                await self._handler(update)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._handler_errors += 1
                logger.error(
                    f"Failed to handle update {update.update_id}: {e}",
                    exc_info=True,
                )

            self._cursor.advance_past(update.update_id)
            self._processed += 1
            handled += 1

        return handled
