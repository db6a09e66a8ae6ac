"""
Tests for the Metrics Cache, sources and collector.

============================================================
PURPOSE
============================================================
Verify snapshot replacement, rendering and scheduled refresh.

TEST PRINCIPLES:
- Rendering is checked against literal text
- Source endpoints are served by a local aiohttp TestServer
- A failing source must never affect the others

============================================================
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from monitoring.collector import MetricsCollector, next_refresh_at
from monitoring.metrics_cache import (
    NO_DATA_MESSAGE,
    MetricsCache,
    MetricsCounters,
    refresh_note,
)
from monitoring.sources import MetricsSource, SourceRegistry, parse_sources


COUNTERS = {
    "totalBoards": 120,
    "newBoardsToday": 4,
    "totalUsers": 87,
    "newUsersToday": 2,
    "totalBoardEvents": 9001,
    "firstPaymentsToday": 1,
    "renewalsToday": 3,
    "totalPayingUsers": 15,
}


@pytest.fixture
def cache(clock):
    return MetricsCache(clock=clock)


# ============================================================
# SOURCES
# ============================================================

class TestSources:
    """Tests for source registry and parsing."""

    def test_default_names(self):
        registry = SourceRegistry()

        assert registry.get("production").name == "production 🍎"
        assert registry.get("development").name == "development 🍏"

    def test_unknown_source_named_by_id(self):
        assert SourceRegistry().get("staging").name == "staging"

    def test_parse_sources_keeps_default_names(self):
        sources = {s.id: s for s in parse_sources("production=https://prod/metrics, staging=https://stg/m")}

        assert sources["production"].link == "https://prod/metrics"
        assert sources["production"].name == "production 🍎"
        assert sources["staging"].name == "staging"
        assert sources["development"].link is None

    def test_parse_sources_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_sources("production")


# ============================================================
# CACHE
# ============================================================

class TestMetricsCache:
    """Tests for snapshot storage and rendering."""

    def test_no_data_message(self, cache):
        assert cache.format("production") == NO_DATA_MESSAGE

    def test_format_contains_every_counter(self, cache):
        cache.update("production", MetricsCounters.model_validate(COUNTERS))

        text = cache.format("production")

        assert text.startswith(
            "📊 Dashboard Metrics (Last updated: 2025-01-15 10:30 UTC, env: production 🍎):"
        )
        for line in (
            "• Total Boards: 120",
            "• New Boards Today: 4",
            "• Total Users: 87",
            "• New Users Today: 2",
            "• Total Board Events: 9001",
            "• First Payments Today: 1",
            "• Renewals Today: 3",
            "• Total Paying Users: 15",
        ):
            assert line in text
        assert text.endswith(
            "Note: Metrics are updated daily at 11:00 and 23:00 UTC or when the server is rebooted."
        )

    def test_update_replaces_snapshot(self, cache, clock):
        cache.update("production", MetricsCounters.model_validate(COUNTERS))
        clock.advance(hours=2)
        newer = dict(COUNTERS, totalBoards=121)
        cache.update("production", MetricsCounters.model_validate(newer))

        snapshot = cache.get("production")

        assert snapshot.counters.total_boards == 121
        assert snapshot.last_updated_at == clock.now()
        assert "12:30 UTC" in cache.format("production")

    def test_sources_are_independent(self, cache):
        cache.update("production", MetricsCounters.model_validate(COUNTERS))

        assert cache.sources() == ["production"]
        assert cache.format("development") == NO_DATA_MESSAGE

    def test_refresh_note_follows_hours(self):
        assert refresh_note([6]) == (
            "Metrics are updated daily at 06:00 UTC or when the server is rebooted."
        )


# ============================================================
# SCHEDULE
# ============================================================

class TestNextRefreshAt:
    """Tests for the refresh schedule."""

    def test_later_today(self):
        now = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert next_refresh_at(now, (11, 23)) == datetime(2025, 1, 15, 11, tzinfo=timezone.utc)

    def test_exact_hour_moves_on(self):
        now = datetime(2025, 1, 15, 11, 0, tzinfo=timezone.utc)
        assert next_refresh_at(now, (11, 23)) == datetime(2025, 1, 15, 23, tzinfo=timezone.utc)

    def test_rolls_to_tomorrow(self):
        now = datetime(2025, 1, 31, 23, 15, tzinfo=timezone.utc)
        assert next_refresh_at(now, (11, 23)) == datetime(2025, 2, 1, 11, tzinfo=timezone.utc)

    def test_requires_hours(self):
        with pytest.raises(ValueError):
            next_refresh_at(datetime.now(timezone.utc), ())


# ============================================================
# COLLECTOR
# ============================================================

def metrics_app() -> web.Application:
    async def good(request):
        return web.json_response(COUNTERS)

    async def broken(request):
        return web.json_response({"error": "down"}, status=503)

    async def invalid(request):
        return web.json_response({"totalBoards": "many"})

    app = web.Application()
    app.router.add_get("/good", good)
    app.router.add_get("/broken", broken)
    app.router.add_get("/invalid", invalid)
    return app


class TestMetricsCollector:
    """Tests for fetching source dashboards."""

    @pytest.mark.asyncio
    async def test_refresh_isolates_failures(self, clock):
        async with TestServer(metrics_app()) as server:
            registry = SourceRegistry([
                MetricsSource("production", "production 🍎", str(server.make_url("/good"))),
                MetricsSource("staging", "staging", str(server.make_url("/broken"))),
                MetricsSource("development", "development 🍏", str(server.make_url("/invalid"))),
                MetricsSource("local", "local"),
            ])
            cache = MetricsCache(registry=registry, clock=clock)
            collector = MetricsCollector(cache, clock=clock)

            try:
                outcome = await collector.refresh()
            finally:
                await collector.stop()

        assert outcome == {"production": True, "staging": False, "development": False}
        assert cache.get("production").counters.total_paying_users == 15
        assert cache.get("staging") is None
        assert cache.get("development") is None

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_snapshot(self, clock):
        async with TestServer(metrics_app()) as server:
            registry = SourceRegistry([
                MetricsSource("production", "production 🍎", str(server.make_url("/broken"))),
            ])
            cache = MetricsCache(registry=registry, clock=clock)
            cache.update("production", MetricsCounters.model_validate(COUNTERS))
            collector = MetricsCollector(cache, clock=clock)

            try:
                await collector.refresh()
            finally:
                await collector.stop()

        assert cache.get("production").counters.total_boards == 120

    @pytest.mark.asyncio
    async def test_run_idle_without_links(self, cache, clock):
        sleep = AsyncMock()
        collector = MetricsCollector(cache, clock=clock, sleep=sleep)

        await collector._run()

        sleep.assert_not_awaited()
