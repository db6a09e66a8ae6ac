"""
Ingestion - Update Cursor.

The next update id to request. Only moves forward, and only
after the update below it has been processed.
"""

import threading


class IngestionCursor:
    """Monotonically non-decreasing getUpdates offset."""

    def __init__(self, offset: int = 0):
        if offset < 0:
            raise ValueError("offset must not be negative")
        self._offset = offset
        self._lock = threading.Lock()

    @property
    def offset(self) -> int:
        with self._lock:
            return self._offset

    def is_pending(self, update_id: int) -> bool:
        """True when `update_id` has not been processed yet."""
        return update_id >= self.offset

    def advance_past(self, update_id: int) -> int:
        """
        Mark `update_id` processed.

        Raises:
            ValueError: if this would move the cursor backwards
        """
        with self._lock:
            new_offset = update_id + 1
            if new_offset < self._offset:
                raise ValueError(
                    f"Cursor regression: {new_offset} < {self._offset}"
                )
            self._offset = new_offset
            return new_offset

    def __repr__(self) -> str:
        return f"IngestionCursor(offset={self.offset})"
