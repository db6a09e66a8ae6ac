"""
Tests for notification formatting and truncation.
"""

from delivery.config import TRUNCATION_MARKER
from delivery.formatting import format_notification, truncate_message


class TestTruncateMessage:
    """Tests for the outbound length cap."""

    def test_short_text_returned_as_is(self):
        text = "short"
        assert truncate_message(text) is text

    def test_exact_limit_not_truncated(self):
        text = "x" * 4096
        assert truncate_message(text) == text

    def test_long_text_exactly_limit(self):
        result = truncate_message("y" * 5000)

        assert len(result) == 4096
        assert result.endswith(TRUNCATION_MARKER)
        assert result.startswith("y" * 100)

    def test_custom_limit(self):
        result = truncate_message("z" * 100, limit=50, marker="...")

        assert result == "z" * 47 + "..."


class TestFormatNotification:
    """Tests for /notify rendering."""

    def test_plain_text(self):
        assert format_notification("Build failed") == "Build failed"

    def test_board_line(self):
        result = format_notification("Oops", {"boardId": "b-42"})

        assert result == "Oops\n[#] Board: b-42"

    def test_operation_block(self):
        meta = {
            "operationContext": {
                "requestType": "generate",
                "model": "large",
                "startTime": 1_000,
                "pipelineSteps": [
                    {"name": "fetch", "status": "success"},
                    {"name": "render", "status": "error"},
                    {"name": "publish", "status": "pending"},
                ],
            }
        }

        result = format_notification("Slow request", meta, now_ms=3_500)

        assert "⚙ Operation Details:" in result
        assert "• Type: generate" in result
        assert "• Model: large" in result
        assert "• Duration: 2500ms" in result
        assert "✓ fetch\n✗ render\n… publish" in result

    def test_duration_unknown_without_clock(self):
        meta = {"operationContext": {"requestType": "generate", "startTime": 1_000}}

        result = format_notification("x", meta)

        assert "• Duration: N/A" in result
        assert "• Model: N/A" in result

    def test_error_block(self):
        meta = {
            "errorContext": {
                "boardId": "b-1",
                "chatId": "c-9",
                "timestamp": "2025-01-15T10:30:00Z",
                "activeOperations": [
                    {"itemId": "i-1", "boardId": "b-1", "requestType": "chat", "startTime": 1_000},
                    {"itemId": "i-2", "boardId": "b-1", "requestType": "image", "startTime": 2_000, "model": "large"},
                ],
                "activeStreams": [],
            }
        }

        result = format_notification("Crash", meta)

        assert "⚠ Error Details:" in result
        assert "• Chat: c-9" in result
        assert "• Active Operations: 2" in result
        assert "• Active Streams: 0" in result

    def test_result_truncated(self):
        result = format_notification("e" * 4000, {"boardId": "b" * 500})

        assert len(result) == 4096
        assert result.endswith(TRUNCATION_MARKER)
