"""
Delivery - Configuration.

============================================================
PURPOSE
============================================================
All tunables of the outbound delivery pipeline.

CONSTRAINTS:
- Capped backoff, never unbounded exponential
- Bounded attempt count per message
- Fixed spacing between transport calls

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import List, Tuple


# ============================================================
# DEFAULTS
# ============================================================

DEFAULT_RETRY_DELAYS_SECONDS: Tuple[float, ...] = (
    1.0,      # 1 second
    5.0,      # 5 seconds
    30.0,     # 30 seconds
    60.0,     # 1 minute
    300.0,    # 5 minutes
    900.0,    # 15 minutes
    3600.0,   # 1 hour
)

MAX_MESSAGE_LENGTH = 4096
TRUNCATION_MARKER = "\n... [message truncated]"


# ============================================================
# DELIVERY CONFIGURATION
# ============================================================

@dataclass
class DeliveryConfig:
    """
    Delivery queue and dispatcher configuration.
    """

    max_attempts: int = 10
    """Failed attempts after which a message is dropped."""

    retry_delays_seconds: Tuple[float, ...] = field(
        default_factory=lambda: DEFAULT_RETRY_DELAYS_SECONDS
    )
    """Ascending backoff table, indexed by attempt count."""

    tick_interval_seconds: float = 10.0
    """Periodic dispatcher tick for retries."""

    send_interval_seconds: float = 1.0
    """Minimum spacing between consecutive transport calls."""

    max_message_length: int = MAX_MESSAGE_LENGTH
    """Hard cap on outbound text length."""

    @classmethod
    def from_env(cls) -> "DeliveryConfig":
        """Load configuration from environment variables."""
        return cls(
            max_attempts=int(os.getenv("DELIVERY_MAX_ATTEMPTS", "10")),
            tick_interval_seconds=float(os.getenv("DELIVERY_TICK_SECONDS", "10")),
            send_interval_seconds=float(os.getenv("DELIVERY_SEND_INTERVAL_SECONDS", "1")),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.max_attempts < 1:
            errors.append("max_attempts must be at least 1")

        if not self.retry_delays_seconds:
            errors.append("retry_delays_seconds must not be empty")
        elif list(self.retry_delays_seconds) != sorted(self.retry_delays_seconds):
            errors.append("retry_delays_seconds must be ascending")

        if self.tick_interval_seconds <= 0:
            errors.append("tick_interval_seconds must be positive")

        if self.send_interval_seconds < 0:
            errors.append("send_interval_seconds must not be negative")

        if self.max_message_length <= len(TRUNCATION_MARKER):
            errors.append("max_message_length is too small for the truncation marker")

        return errors
