"""
Monitoring - Metrics Sources.

A source is one deployment whose dashboard endpoint reports
the counters shown by /metrics.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricsSource:
    """One environment reporting metrics."""

    id: str
    name: str
    link: Optional[str] = None


DEFAULT_SOURCES: List[MetricsSource] = [
    MetricsSource(id="production", name="production 🍎"),
    MetricsSource(id="development", name="development 🍏"),
]


class SourceRegistry:
    """Known sources by id; unknown ids are accepted with their id as name."""

    def __init__(self, sources: Optional[Iterable[MetricsSource]] = None):
        self._sources: Dict[str, MetricsSource] = {}
        for source in sources if sources is not None else DEFAULT_SOURCES:
            self._sources[source.id] = source

    def get(self, source_id: str) -> MetricsSource:
        return self._sources.get(source_id) or MetricsSource(id=source_id, name=source_id)

    def all(self) -> List[MetricsSource]:
        return list(self._sources.values())

    def with_links(self) -> List[MetricsSource]:
        return [source for source in self._sources.values() if source.link]


def parse_sources(spec: str, defaults: Optional[Iterable[MetricsSource]] = None) -> List[MetricsSource]:
    """
    Parse `id=url,id=url` into sources.

    Display names come from the defaults when the id matches.
    """
    known = {s.id: s for s in (defaults if defaults is not None else DEFAULT_SOURCES)}
    parsed: Dict[str, MetricsSource] = dict(known)

    for entry in filter(None, (part.strip() for part in spec.split(","))):
        if "=" not in entry:
            raise ValueError(f"Invalid metrics source entry: {entry!r} (expected id=url)")
        source_id, link = (piece.strip() for piece in entry.split("=", 1))
        name = known[source_id].name if source_id in known else source_id
        parsed[source_id] = MetricsSource(id=source_id, name=name, link=link)

    return list(parsed.values())
