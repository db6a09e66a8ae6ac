"""
Tests for the Update Ingestion Loop.

============================================================
PURPOSE
============================================================
Verify at-least-once processing and cursor discipline.

TEST PRINCIPLES:
- Batches are scripted on a fake transport
- Cool-down sleeps are captured, never awaited for real
- Handler failures must never stall the cursor

============================================================
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from core.exceptions import TransportError, TransportErrorCategory
from ingestion.config import IngestionConfig
from ingestion.cursor import IngestionCursor
from ingestion.poller import PollerState, UpdatePoller
from telegram_api.models import InboundMessage, Update


def make_update(update_id: int, text: str = "/start", chat_id: str = "100") -> Update:
    return Update(update_id=update_id, message=InboundMessage(chat_id=chat_id, text=text))


@pytest.fixture
def handled():
    return []


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def poller(transport, handled, sleep):
    async def handler(update):
        handled.append(update.update_id)

    return UpdatePoller(
        transport=transport,
        handler=handler,
        config=IngestionConfig(poll_timeout_seconds=30, error_cooldown_seconds=5),
        sleep=sleep,
    )


# ============================================================
# CURSOR
# ============================================================

class TestIngestionCursor:
    """Tests for the offset bookkeeping."""

    def test_advance_past(self):
        cursor = IngestionCursor()

        assert cursor.advance_past(41) == 42
        assert cursor.offset == 42
        assert not cursor.is_pending(41)
        assert cursor.is_pending(42)

    def test_never_moves_backwards(self):
        cursor = IngestionCursor(10)

        with pytest.raises(ValueError):
            cursor.advance_past(3)
        assert cursor.offset == 10

    def test_negative_start_rejected(self):
        with pytest.raises(ValueError):
            IngestionCursor(-1)


# ============================================================
# BATCH PROCESSING
# ============================================================

class TestProcessBatch:
    """Tests for per-update handling."""

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stall_cursor(self, transport):
        calls = []

        async def handler(update):
            calls.append(update.update_id)
            if update.update_id == 6:
                raise RuntimeError("handler bug")

        transport.update_batches = [[make_update(5), make_update(6), make_update(7)]]
        poller = UpdatePoller(
            transport,
            handler,
            config=IngestionConfig(poll_timeout_seconds=30),
            cursor=IngestionCursor(5),
        )

        assert await poller.poll_once() is True

        assert transport.poll_calls == [(5, 30)]
        assert calls == [5, 6, 7]
        assert poller.offset == 8
        assert poller.get_stats()["handler_errors"] == 1

    @pytest.mark.asyncio
    async def test_processes_in_ascending_order(self, poller, handled):
        await poller.process_batch([make_update(9), make_update(7), make_update(8)])

        assert handled == [7, 8, 9]
        assert poller.offset == 10

    @pytest.mark.asyncio
    async def test_redelivered_updates_skipped(self, poller, handled):
        await poller.process_batch([make_update(3)])
        await poller.process_batch([make_update(3), make_update(4)])

        assert handled == [3, 4]
        assert poller.offset == 5

    @pytest.mark.asyncio
    async def test_empty_batch_keeps_offset(self, poller):
        assert await poller.process_batch([]) == 0
        assert poller.offset == 0


# ============================================================
# POLLING
# ============================================================

class TestPollOnce:
    """Tests for one poll iteration."""

    @pytest.mark.asyncio
    async def test_passes_offset_and_timeout(self, poller, transport, handled):
        transport.update_batches = [[make_update(1)], []]

        await poller.poll_once()
        await poller.poll_once()

        assert transport.poll_calls == [(0, 30), (2, 30)]
        assert handled == [1]

    @pytest.mark.asyncio
    async def test_transport_error_cools_down_and_keeps_offset(self, poller, transport, sleep):
        await poller.process_batch([make_update(10)])
        transport.update_batches = [
            TransportError("boom", category=TransportErrorCategory.NETWORK),
            [make_update(11)],
        ]

        assert await poller.poll_once() is True
        sleep.assert_awaited_once_with(5)
        assert poller.state == PollerState.COOLDOWN
        assert poller.offset == 11

        await poller.poll_once()
        assert transport.poll_calls == [(11, 30), (11, 30)]
        assert poller.offset == 12

    @pytest.mark.asyncio
    async def test_raw_exception_is_classified(self, poller, transport, sleep):
        transport.update_batches = [ConnectionResetError("reset")]

        assert await poller.poll_once() is True
        sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unauthorized_is_terminal(self, poller, transport, sleep):
        transport.update_batches = [
            TransportError("bad token", category=TransportErrorCategory.UNAUTHORIZED),
        ]

        assert await poller.poll_once() is False
        sleep.assert_not_awaited()


# ============================================================
# LIFECYCLE
# ============================================================

class TestLifecycle:
    """Tests for the background loop."""

    @pytest.mark.asyncio
    async def test_run_stops_on_unauthorized(self, poller, transport, handled):
        transport.update_batches = [
            [make_update(1), make_update(2)],
            TransportError("bad token", category=TransportErrorCategory.UNAUTHORIZED),
        ]

        await poller.run()

        assert handled == [1, 2]
        assert poller.state == PollerState.STOPPED
        assert poller.offset == 3

    @pytest.mark.asyncio
    async def test_stop_abandons_in_flight_poll(self, handled):
        started = asyncio.Event()

        class HangingTransport:
            async def get_updates(self, offset, timeout):
                started.set()
                await asyncio.sleep(3600)

        async def handler(update):
            handled.append(update.update_id)

        poller = UpdatePoller(HangingTransport(), handler)
        poller.start()
        await asyncio.wait_for(started.wait(), timeout=1)

        await poller.stop()

        assert poller.state == PollerState.STOPPED
        assert handled == []
