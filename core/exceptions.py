"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the exception hierarchy for the notification service.

- Reduces raw transport failures to a small taxonomy
- Tells the dispatcher what is transient and what is permanent
- Carries context for structured log lines

============================================================
EXCEPTION HIERARCHY
============================================================
NotifierException (base)
├── ConfigurationError
│   └── InvalidConfigError
├── TransportError
├── DirectoryError
│   ├── DirectoryUnavailableError
│   └── DirectoryReadOnlyError
├── StartupError
└── ShutdownError

============================================================
"""

import asyncio
from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, delivery is impacted."""

    CRITICAL = "critical"
    """The service cannot run."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Error can be recovered from automatically."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class NotifierException(Exception):
    """
    Base exception for all notification service errors.

    All exceptions carry:
    - severity: for log level selection
    - context: for debugging
    - classification: for retry decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_recoverable(self) -> bool:
        """Check if error is recoverable."""
        return self.classification in (
            ErrorClassification.RECOVERABLE,
            ErrorClassification.TRANSIENT,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(NotifierException):
    """Error in configuration."""

    default_severity = Severity.CRITICAL
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key

        super().__init__(message, context=context, **kwargs)


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            context={"reason": reason, "actual_value": str(value)[:100]},
        )


# ============================================================
# TRANSPORT ERRORS
# ============================================================

class TransportErrorCategory(Enum):
    """Machine-distinguishable reasons a transport call failed."""

    NETWORK = "NETWORK"
    RATE_LIMITED = "RATE_LIMITED"
    DESTINATION_INVALID = "DESTINATION_INVALID"
    UNAUTHORIZED = "UNAUTHORIZED"
    SERVER_ERROR = "SERVER_ERROR"
    UNKNOWN = "UNKNOWN"


_PERMANENT_CATEGORIES = (
    TransportErrorCategory.DESTINATION_INVALID,
    TransportErrorCategory.UNAUTHORIZED,
)


class TransportError(NotifierException):
    """A chat platform API call failed."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        category: TransportErrorCategory = TransportErrorCategory.UNKNOWN,
        method: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        context["category"] = category.value

        if method:
            context["method"] = method
        if status_code is not None:
            context["status_code"] = status_code
        if retry_after is not None:
            context["retry_after"] = retry_after

        if "classification" not in kwargs:
            kwargs["classification"] = (
                ErrorClassification.NON_RECOVERABLE
                if category in _PERMANENT_CATEGORIES
                else ErrorClassification.TRANSIENT
            )

        super().__init__(message, context=context, **kwargs)

        self.category = category
        self.method = method
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def is_transient(self) -> bool:
        return self.classification == ErrorClassification.TRANSIENT

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.message}"


def classify_transport_error(
    exc: BaseException,
    method: Optional[str] = None,
) -> TransportError:
    """
    Reduce an arbitrary exception to a TransportError.

    Anything not recognised is UNKNOWN and treated as transient.
    """
    if isinstance(exc, TransportError):
        return exc

    if isinstance(exc, asyncio.TimeoutError):
        return TransportError(
            "Request timed out",
            category=TransportErrorCategory.NETWORK,
            method=method,
            cause=exc,
        )

    if isinstance(exc, (ConnectionError, OSError)):
        return TransportError(
            f"Connection failed: {exc}",
            category=TransportErrorCategory.NETWORK,
            method=method,
            cause=exc,
        )

    return TransportError(
        f"Unexpected transport failure: {exc}",
        category=TransportErrorCategory.UNKNOWN,
        method=method,
        cause=exc,
    )


# ============================================================
# DIRECTORY ERRORS
# ============================================================

class DirectoryError(NotifierException):
    """Base class for recipient directory errors."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.TRANSIENT


class DirectoryUnavailableError(DirectoryError):
    """The backing store could not be read or written."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if operation:
            context["operation"] = operation

        super().__init__(message, context=context, **kwargs)


class DirectoryReadOnlyError(DirectoryError):
    """The directory does not accept add/remove."""

    default_severity = Severity.LOW
    default_classification = ErrorClassification.NON_RECOVERABLE


# ============================================================
# LIFECYCLE ERRORS
# ============================================================

class StartupError(NotifierException):
    """Service startup failed."""

    default_severity = Severity.CRITICAL
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if stage:
            context["stage"] = stage

        super().__init__(message, context=context, **kwargs)


class ShutdownError(NotifierException):
    """Service shutdown failed."""

    default_severity = Severity.MEDIUM


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "Severity",
    "ErrorClassification",
    "NotifierException",
    "ConfigurationError",
    "InvalidConfigError",
    "TransportErrorCategory",
    "TransportError",
    "classify_transport_error",
    "DirectoryError",
    "DirectoryUnavailableError",
    "DirectoryReadOnlyError",
    "StartupError",
    "ShutdownError",
]
