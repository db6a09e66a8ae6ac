"""
Core Module Package.

This package contains the infrastructure every other
package depends on.

Components:
- clock: Unified, mockable UTC clock
- exceptions: Exception hierarchy and transport error taxonomy
"""

from .clock import ClockProtocol, SystemClock, MockClock, ClockFactory, now_utc
from .exceptions import (
    NotifierException,
    ConfigurationError,
    TransportError,
    TransportErrorCategory,
    DirectoryError,
    StartupError,
)
