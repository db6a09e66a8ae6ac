"""
Monitoring - Metrics Cache.

============================================================
PURPOSE
============================================================
Holds the latest metrics snapshot per source and renders it
for chat.

- update replaces a snapshot wholesale, never merges
- a source with no snapshot renders a fixed message
- rendering has no side effects

============================================================
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from core.clock import ClockFactory, ClockProtocol

from .sources import MetricsSource, SourceRegistry


logger = logging.getLogger(__name__)


DEFAULT_REFRESH_HOURS: Tuple[int, ...] = (11, 23)

NO_DATA_MESSAGE = "No metrics data yet. Metrics appear after the next scheduled refresh."


# ============================================================
# COUNTERS
# ============================================================

class MetricsCounters(BaseModel):
    """Dashboard counters as reported by a source."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    total_boards: int = Field(alias="totalBoards")
    new_boards_today: int = Field(alias="newBoardsToday")
    total_users: int = Field(alias="totalUsers")
    new_users_today: int = Field(alias="newUsersToday")
    total_board_events: int = Field(alias="totalBoardEvents")
    first_payments_today: int = Field(alias="firstPaymentsToday")
    renewals_today: int = Field(alias="renewalsToday")
    total_paying_users: int = Field(alias="totalPayingUsers")


# Rendering order and labels
COUNTER_LABELS: List[Tuple[str, str]] = [
    ("total_boards", "Total Boards"),
    ("new_boards_today", "New Boards Today"),
    ("total_users", "Total Users"),
    ("new_users_today", "New Users Today"),
    ("total_board_events", "Total Board Events"),
    ("first_payments_today", "First Payments Today"),
    ("renewals_today", "Renewals Today"),
    ("total_paying_users", "Total Paying Users"),
]


@dataclass(frozen=True)
class MetricsSnapshot:
    """Latest counters for one source."""

    source: MetricsSource
    counters: MetricsCounters
    last_updated_at: datetime


def format_timestamp(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M UTC")


def refresh_note(hours: Sequence[int]) -> str:
    """Cadence note appended to every rendered snapshot."""
    times = " and ".join(f"{hour:02d}:00" for hour in sorted(hours))
    return f"Metrics are updated daily at {times} UTC or when the server is rebooted."


# ============================================================
# CACHE
# ============================================================

class MetricsCache:
    """
    Latest snapshot per source, kept for the process lifetime.
    """

    def __init__(
        self,
        registry: Optional[SourceRegistry] = None,
        clock: Optional[ClockProtocol] = None,
        refresh_hours: Sequence[int] = DEFAULT_REFRESH_HOURS,
    ):
        self._registry = registry or SourceRegistry()
        self._refresh_note = refresh_note(refresh_hours)
        self._clock = clock or ClockFactory.get_clock()
        self._snapshots: Dict[str, MetricsSnapshot] = {}
        self._lock = threading.Lock()

    @property
    def registry(self) -> SourceRegistry:
        return self._registry

    def update(self, source_id: str, counters: MetricsCounters) -> MetricsSnapshot:
        """Replace the snapshot for `source_id`."""
        snapshot = MetricsSnapshot(
            source=self._registry.get(source_id),
            counters=counters,
            last_updated_at=self._clock.now(),
        )
        with self._lock:
            self._snapshots[source_id] = snapshot

        logger.debug(f"Metrics cache updated | source={source_id}")
        return snapshot

    def get(self, source_id: str) -> Optional[MetricsSnapshot]:
        with self._lock:
            return self._snapshots.get(source_id)

    def sources(self) -> List[str]:
        with self._lock:
            return sorted(self._snapshots)

    def format(self, source_id: str) -> str:
        """Chat text for one source (Markdown)."""
        snapshot = self.get(source_id)
        if snapshot is None:
            return NO_DATA_MESSAGE

        lines = [
            f"📊 Dashboard Metrics (Last updated: {format_timestamp(snapshot.last_updated_at)}, "
            f"env: {snapshot.source.name}):"
        ]
        for field_name, label in COUNTER_LABELS:
            lines.append(f"• {label}: {getattr(snapshot.counters, field_name)}")
        lines.append("")
        lines.append(f"Note: {self._refresh_note}")

        return "\n".join(lines)
