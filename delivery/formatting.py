"""
Delivery - Message Formatting.

Renders producer notifications into chat text and enforces
the outbound length limit.
"""

from typing import Any, Dict, List, Optional

from .config import MAX_MESSAGE_LENGTH, TRUNCATION_MARKER


STEP_ICONS = {
    "success": "✓",
    "error": "✗",
    "pending": "…",
}


def truncate_message(
    text: str,
    limit: int = MAX_MESSAGE_LENGTH,
    marker: str = TRUNCATION_MARKER,
) -> str:
    """
    Cut text to at most `limit` characters.

    Over-long text comes back exactly `limit` long and ends with the marker.
    """
    if len(text) <= limit:
        return text
    return text[: limit - len(marker)] + marker


def format_notification(
    text: str,
    meta: Optional[Dict[str, Any]] = None,
    now_ms: Optional[int] = None,
) -> str:
    """
    Render a notification with its optional context blocks.

    Args:
        text: Headline text from the producer
        meta: Wire-format metadata (boardId, operationContext, errorContext)
        now_ms: Current epoch millis, used for operation duration
    """
    parts: List[str] = [text]
    meta = meta or {}

    board_id = meta.get("boardId")
    if board_id:
        parts.append(f"\n[#] Board: {board_id}")

    operation = meta.get("operationContext")
    if operation:
        parts.append(_format_operation(operation, now_ms))

    error = meta.get("errorContext")
    if error:
        parts.append(_format_error(error))

    return truncate_message("".join(parts))


def _format_operation(ctx: Dict[str, Any], now_ms: Optional[int]) -> str:
    start_time = ctx.get("startTime")
    if now_ms is not None and start_time is not None:
        duration = f"{int(now_ms - start_time)}ms"
    else:
        duration = "N/A"

    block = (
        "\n\n⚙ Operation Details:"
        f"\n• Type: {ctx.get('requestType', 'N/A')}"
        f"\n• Model: {ctx.get('model') or 'N/A'}"
        f"\n• Duration: {duration}"
    )

    steps = ctx.get("pipelineSteps")
    if steps:
        lines = [
            f"{STEP_ICONS.get(step.get('status'), '…')} {step.get('name')}"
            for step in steps
        ]
        block += "\n\n⚡ Pipeline Status:\n" + "\n".join(lines)

    return block


def _format_error(ctx: Dict[str, Any]) -> str:
    return (
        "\n\n⚠ Error Details:"
        f"\n• Board: {ctx.get('boardId')}"
        f"\n• Chat: {ctx.get('chatId')}"
        f"\n• Time: {ctx.get('timestamp')}"
        f"\n• Active Operations: {len(ctx.get('activeOperations') or [])}"
        f"\n• Active Streams: {len(ctx.get('activeStreams') or [])}"
    )
