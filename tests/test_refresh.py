"""Tests for taskflow.gateway.refresh module."""

import asyncio

import pytest

from taskflow.gateway import CatalogRefresher


class TestCatalogRefresher:
    """Tests for the periodic catalog refresh."""

    def test_rejects_non_positive_interval(self, gateway):
        with pytest.raises(ValueError):
            CatalogRefresher(gateway, 0)

    @pytest.mark.asyncio
    async def test_refresh_once(self, gateway, service):
        outcome = await CatalogRefresher(gateway, 60).refresh_once()

        assert outcome == {"categories": True, "taskTemplates": True, "statistics": True}
        assert gateway.cache_stats()["validEntries"] == 3

    @pytest.mark.asyncio
    async def test_refresh_once_reports_failures(self, gateway, service):
        service.catalog.pop("statistics.json")
        outcome = await CatalogRefresher(gateway, 60).refresh_once()
        assert outcome["statistics"] is False
        assert outcome["categories"] is True

    @pytest.mark.asyncio
    async def test_refresh_replaces_cached_entry(self, gateway, service):
        await gateway.get_categories()
        service.catalog["categories.json"] = {"categories": []}

        await CatalogRefresher(gateway, 60).refresh_once()
        assert await gateway.get_categories() == {"categories": []}

    @pytest.mark.asyncio
    async def test_loop_runs_until_stopped(self, gateway):
        waits = []

        async def fast_sleep(seconds):
            waits.append(seconds)
            await asyncio.sleep(0)

        refresher = CatalogRefresher(gateway, 600, sleep=fast_sleep)
        refresher.start()
        assert refresher.is_running

        for _ in range(200):
            if refresher.runs >= 2:
                break
            await asyncio.sleep(0)

        await refresher.stop()
        assert not refresher.is_running
        assert refresher.runs >= 2
        assert waits[0] == 600

    @pytest.mark.asyncio
    async def test_loop_survives_refresh_errors(self, gateway):
        async def fast_sleep(seconds):
            await asyncio.sleep(0)

        refresher = CatalogRefresher(gateway, 1, sleep=fast_sleep)
        calls = 0

        async def broken(key):
            nonlocal calls
            calls += 1
            raise RuntimeError("boom")

        gateway.refresh_catalog = broken
        refresher.start()
        for _ in range(20):
            await asyncio.sleep(0)
        await refresher.stop()

        assert calls >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self, gateway):
        await CatalogRefresher(gateway, 5).stop()
