"""
Monitoring Package.

============================================================
PURPOSE
============================================================
Operational metrics shown to operators through /metrics.

PRINCIPLES:
1. Snapshots are replaced, never merged
2. Missing data renders a fixed message, never an error
3. A failing source never blocks the others

============================================================
"""

from .collector import MetricsCollector, next_refresh_at
from .metrics_cache import (
    COUNTER_LABELS,
    DEFAULT_REFRESH_HOURS,
    NO_DATA_MESSAGE,
    MetricsCache,
    MetricsCounters,
    MetricsSnapshot,
)
from .sources import DEFAULT_SOURCES, MetricsSource, SourceRegistry, parse_sources

__all__ = [
    "MetricsCollector",
    "next_refresh_at",
    "COUNTER_LABELS",
    "DEFAULT_REFRESH_HOURS",
    "NO_DATA_MESSAGE",
    "MetricsCache",
    "MetricsCounters",
    "MetricsSnapshot",
    "DEFAULT_SOURCES",
    "MetricsSource",
    "SourceRegistry",
    "parse_sources",
]
