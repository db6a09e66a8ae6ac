"""
Ingestion - Configuration.
"""

import os
from dataclasses import dataclass
from typing import List


@dataclass
class IngestionConfig:
    """Long-poll loop configuration."""

    poll_timeout_seconds: int = 30
    """Server-side wait for getUpdates."""

    error_cooldown_seconds: float = 5.0
    """Pause after a failed poll before retrying with the same offset."""

    initial_offset: int = 0
    """Cursor start; 0 lets the platform pick the oldest unconfirmed update."""

    @classmethod
    def from_env(cls) -> "IngestionConfig":
        """Load configuration from environment variables."""
        return cls(
            poll_timeout_seconds=int(os.getenv("POLL_TIMEOUT_SECONDS", "30")),
            error_cooldown_seconds=float(os.getenv("POLL_ERROR_COOLDOWN_SECONDS", "5")),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.poll_timeout_seconds < 0:
            errors.append("poll_timeout_seconds must not be negative")

        if self.error_cooldown_seconds <= 0:
            errors.append("error_cooldown_seconds must be positive")

        if self.initial_offset < 0:
            errors.append("initial_offset must not be negative")

        return errors
