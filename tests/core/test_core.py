"""
Tests for the clock and exception hierarchy.
"""

from datetime import datetime, timezone

from core.clock import ClockFactory, MockClock, SystemClock, now_utc
from core.exceptions import (
    ErrorClassification,
    InvalidConfigError,
    Severity,
    StartupError,
    TransportError,
    TransportErrorCategory,
)


# ============================================================
# CLOCK
# ============================================================

class TestMockClock:
    """Tests for deterministic time."""

    def test_naive_start_is_utc(self):
        clock = MockClock(datetime(2025, 1, 15, 10, 30))

        assert clock.now().tzinfo == timezone.utc

    def test_advance_moves_both_readings(self):
        clock = MockClock(datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc))

        clock.advance(seconds=90)

        assert clock.now() == datetime(2025, 1, 15, 10, 31, 30, tzinfo=timezone.utc)
        assert clock.monotonic() == 90

    def test_set_time_leaves_monotonic(self):
        clock = MockClock(datetime(2025, 1, 15, tzinfo=timezone.utc))

        clock.set_time(datetime(2030, 1, 1))

        assert clock.now().year == 2030
        assert clock.monotonic() == 0

    def test_epoch_millis(self):
        clock = MockClock(datetime(1970, 1, 1, 0, 0, 2, tzinfo=timezone.utc))

        assert clock.epoch_millis() == 2000


class TestClockFactory:
    """Tests for the process-wide clock."""

    def test_use_mock_restores(self):
        original = ClockFactory.get_clock()
        start = datetime(2025, 1, 15, tzinfo=timezone.utc)

        with ClockFactory.use_mock(start) as mock:
            assert now_utc() == start
            mock.advance(hours=1)
            assert now_utc().hour == 1

        assert ClockFactory.get_clock() is original

    def test_default_is_system_clock(self):
        ClockFactory.reset()

        assert isinstance(ClockFactory.get_clock(), SystemClock)


# ============================================================
# EXCEPTIONS
# ============================================================

class TestExceptions:
    """Tests for classification and context."""

    def test_rate_limited_is_transient(self):
        error = TransportError("slow down", category=TransportErrorCategory.RATE_LIMITED, retry_after=3)

        assert error.is_transient
        assert error.is_recoverable
        assert error.context["retry_after"] == 3
        assert str(error) == "[RATE_LIMITED] slow down"

    def test_destination_invalid_is_permanent(self):
        error = TransportError("blocked", category=TransportErrorCategory.DESTINATION_INVALID)

        assert not error.is_transient
        assert error.classification == ErrorClassification.NON_RECOVERABLE

    def test_invalid_config_context(self):
        error = InvalidConfigError("PORT", "abc", "expected an integer")

        assert error.context["config_key"] == "PORT"
        assert error.severity == Severity.CRITICAL
        assert not error.is_recoverable

    def test_startup_error_serializes(self):
        cause = RuntimeError("no route")
        error = StartupError("Bot API unreachable", stage="transport", cause=cause)

        data = error.to_dict()

        assert data["type"] == "StartupError"
        assert data["context"]["stage"] == "transport"
        assert data["context"]["cause_type"] == "RuntimeError"
