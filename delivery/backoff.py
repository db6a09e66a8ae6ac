"""
Delivery - Backoff Policy.

Maps a failed-attempt count to the wait before the next attempt.
The table is capped: past its end the last entry is returned.
"""

from datetime import timedelta
from typing import Sequence

from .config import DEFAULT_RETRY_DELAYS_SECONDS


class BackoffPolicy:
    """Fixed, ascending retry schedule."""

    def __init__(self, delays_seconds: Sequence[float] = DEFAULT_RETRY_DELAYS_SECONDS):
        if not delays_seconds:
            raise ValueError("Backoff table must not be empty")
        if list(delays_seconds) != sorted(delays_seconds):
            raise ValueError("Backoff table must be ascending")
        self._delays = tuple(float(d) for d in delays_seconds)

    @property
    def max_delay(self) -> timedelta:
        return timedelta(seconds=self._delays[-1])

    def delay(self, attempts: int) -> timedelta:
        """
        Wait required after `attempts` failures.

        Args:
            attempts: Failed attempts so far (>= 1)
        """
        if attempts < 1:
            raise ValueError(f"attempts must be positive, got {attempts}")
        index = min(attempts - 1, len(self._delays) - 1)
        return timedelta(seconds=self._delays[index])

    def __len__(self) -> int:
        return len(self._delays)
