"""
Monitoring - Metrics Collector.

============================================================
PURPOSE
============================================================
Pulls dashboard counters from every source that exposes an
endpoint and refreshes the metrics cache.

PRINCIPLES:
- One failing source never blocks the others
- Refresh at start, then at fixed UTC hours
- Invalid payloads are rejected, the previous snapshot stays

============================================================
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional, Sequence

import aiohttp
from pydantic import ValidationError

from core.clock import ClockFactory, ClockProtocol

from .metrics_cache import DEFAULT_REFRESH_HOURS, MetricsCache, MetricsCounters
from .sources import MetricsSource


logger = logging.getLogger(__name__)


Sleeper = Callable[[float], Awaitable[None]]


def next_refresh_at(now: datetime, hours: Sequence[int]) -> datetime:
    """First scheduled hour strictly after `now`."""
    if not hours:
        raise ValueError("At least one refresh hour is required")

    today = now.replace(minute=0, second=0, microsecond=0)
    for hour in sorted(hours):
        candidate = today.replace(hour=hour)
        if candidate > now:
            return candidate
    return today.replace(hour=min(hours)) + timedelta(days=1)


class MetricsCollector:
    """
    Scheduled fetcher for source dashboards.
    """

    def __init__(
        self,
        cache: MetricsCache,
        refresh_hours: Sequence[int] = DEFAULT_REFRESH_HOURS,
        request_timeout_seconds: float = 15.0,
        clock: Optional[ClockProtocol] = None,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Optional[Sleeper] = None,
    ):
        self._cache = cache
        self._refresh_hours = tuple(refresh_hours)
        self._timeout = aiohttp.ClientTimeout(total=request_timeout_seconds)
        self._clock = clock or ClockFactory.get_clock()
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep or asyncio.sleep
        self._task: Optional[asyncio.Task] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    # --------------------------------------------------------
    # Refresh
    # --------------------------------------------------------

    async def fetch(self, source: MetricsSource) -> MetricsCounters:
        """Fetch and validate one source's counters."""
        session = await self._get_session()
        async with session.get(source.link, timeout=self._timeout) as response:
            response.raise_for_status()
            data = await response.json(content_type=None)
        return MetricsCounters.model_validate(data)

    async def refresh(self) -> Dict[str, bool]:
        """
        Refresh every source with a link.

        Returns:
            Mapping of source id to success
        """
        sources = self._cache.registry.with_links()
        results = await asyncio.gather(
            *(self.fetch(source) for source in sources),
            return_exceptions=True,
        )

        outcome: Dict[str, bool] = {}
        for source, result in zip(sources, results):
            if isinstance(result, MetricsCounters):
                self._cache.update(source.id, result)
                outcome[source.id] = True
            elif isinstance(result, ValidationError):
                logger.error(f"Invalid metrics payload from {source.id}: {result}")
                outcome[source.id] = False
            else:
                logger.error(f"Failed to fetch metrics from {source.id}: {result}")
                outcome[source.id] = False

        if sources:
            logger.info(
                f"Metrics refresh complete | ok={sum(outcome.values())}/{len(sources)}"
            )
        return outcome

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="metrics-collector")

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _run(self) -> None:
        if not self._cache.registry.with_links():
            logger.info("No metrics source endpoints configured, collector idle")
            return

        while True:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Metrics refresh crashed: {e}", exc_info=True)

            now = self._clock.now()
            wait = (next_refresh_at(now, self._refresh_hours) - now).total_seconds()
            logger.debug(f"Next metrics refresh in {wait:.0f}s")
            await self._sleep(wait)
