"""
HTTP surface of the notifier.
"""

from .routes import NotifierAPI, create_app, json_response, request_logging_middleware
from .schemas import ActiveOperation, AdminChatRequest, ErrorContext, MetricsRequest, NotifyRequest

__all__ = [
    "NotifierAPI",
    "create_app",
    "json_response",
    "request_logging_middleware",
    "ActiveOperation",
    "AdminChatRequest",
    "ErrorContext",
    "MetricsRequest",
    "NotifyRequest",
]
