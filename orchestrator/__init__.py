"""
Orchestrator Package - Runtime Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
Builds the notifier from configuration and controls startup,
shutdown and signal handling.

    +-----------------------------------------------------+
    |                   NotifierRuntime                   |
    |-----------------------------------------------------|
    |  DeliveryQueue + RateLimitedDispatcher  (outbound)  |
    |  UpdatePoller + CommandRouter           (inbound)   |
    |  MetricsCache + MetricsCollector        (metrics)   |
    |  aiohttp application                    (HTTP)      |
    +-----------------------------------------------------+

============================================================
"""

from .config import NotifierConfig, RecipientMode
from .core import NotifierRuntime, setup_logging
from .cli import create_parser, build_config, main

__all__ = [
    "NotifierConfig",
    "RecipientMode",
    "NotifierRuntime",
    "setup_logging",
    "create_parser",
    "build_config",
    "main",
]
