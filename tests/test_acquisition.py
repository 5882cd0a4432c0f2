"""Unit tests for the acquisition service (cache, freshness, refresh, fallback)."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from aramstats.errors import CacheStoreError, ExtractionError, FetchError, ParseError
from aramstats.models.champion import (
    AcquisitionState,
    ChampionRecord,
    FetchResult,
    Origin,
    StatModifiers,
)
from aramstats.services.acquisition import AcquisitionService

NOW = 1_700_000_000_000
HOUR = 60 * 60 * 1000
URL = "https://wiki.example/Module:ChampionData/data?action=edit"


def _entry(age_ms: int, version: str = "V14.1") -> FetchResult:
    record = ChampionRecord(id=266, name="Aatrox", modes={"aram": StatModifiers(dmg_dealt=1.05)})
    return FetchResult(records={"266": record}, fetched_at=NOW - age_ms, source_version=version, origin=Origin.CACHE)


def _service(page=None, cached=None, fetch_error=None):
    chain = MagicMock()
    chain.fetch = AsyncMock(return_value=page, side_effect=fetch_error)
    chain.close = AsyncMock()

    store = MagicMock()
    store.get = AsyncMock(return_value=cached)
    store.save = AsyncMock()
    store.close = AsyncMock()

    service = AcquisitionService(chain, store, wiki_url=URL, max_age_ms=24 * HOUR, clock=lambda: NOW)
    return service, chain, store


@pytest.mark.asyncio
class TestGetData:
    """Freshness window and refresh decisions."""

    async def test_fresh_cache_is_returned_without_fetch(self, wiki_page):
        service, chain, store = _service(page=wiki_page, cached=_entry(HOUR))

        result = await service.get_data()

        assert result.origin == Origin.CACHE
        assert result.source_version == "V14.1"
        chain.fetch.assert_not_called()
        store.save.assert_not_called()
        assert service.state == AcquisitionState.FRESH

    async def test_stale_cache_triggers_refresh_and_persist(self, wiki_page):
        service, chain, store = _service(page=wiki_page, cached=_entry(25 * HOUR))

        result = await service.get_data()

        chain.fetch.assert_awaited_once_with(URL)
        assert result.origin == Origin.FRESH
        assert result.fetched_at == NOW
        assert result.source_version == "V14.10"
        assert set(result.records) == {"266", "62", "222"}
        store.save.assert_awaited_once_with(result)
        assert service.state == AcquisitionState.FRESH

    async def test_custom_max_age(self, wiki_page):
        service, chain, _ = _service(page=wiki_page, cached=_entry(2 * HOUR))

        result = await service.get_data(max_age_ms=HOUR)

        assert result.origin == Origin.FRESH
        chain.fetch.assert_awaited_once()

    async def test_cold_start_fetches(self, wiki_page):
        service, chain, store = _service(page=wiki_page, cached=None)
        assert service.state == AcquisitionState.COLD

        result = await service.get_data()

        assert result.origin == Origin.FRESH
        store.save.assert_awaited_once()

    async def test_cold_start_failure_raises(self):
        service, _, store = _service(
            cached=None, fetch_error=FetchError("All fetch strategies failed", tier="headless"),
        )

        with pytest.raises(FetchError):
            await service.get_data()

        assert service.state == AcquisitionState.ERROR
        assert isinstance(service.last_error, FetchError)
        store.save.assert_not_called()

    async def test_forced_refresh_failure_falls_back_to_cache(self):
        service, chain, _ = _service(cached=_entry(HOUR), fetch_error=FetchError("blocked", status=403))

        result = await service.get_data(force_refresh=True)

        chain.fetch.assert_awaited_once()
        assert result.origin == Origin.STALE_FALLBACK
        assert result.source_version == "V14.1"
        assert isinstance(service.last_error, FetchError)

    async def test_stale_cache_failure_falls_back(self):
        service, _, _ = _service(cached=_entry(30 * HOUR), fetch_error=FetchError("blocked"))

        result = await service.get_data()

        assert result.origin == Origin.STALE_FALLBACK
        assert service.state == AcquisitionState.STALE

    async def test_zero_records_is_a_parse_failure(self):
        service, _, store = _service(page="<textarea>return { }</textarea>", cached=None)

        with pytest.raises(ParseError):
            await service.get_data()

        store.save.assert_not_called()

    async def test_zero_records_falls_back_like_fetch_failure(self):
        service, _, _ = _service(page="<textarea>return { }</textarea>", cached=_entry(30 * HOUR))

        result = await service.get_data()

        assert result.origin == Origin.STALE_FALLBACK
        assert isinstance(service.last_error, ParseError)

    async def test_page_without_table_raises_extraction_error(self):
        service, _, _ = _service(page="<html>Just a moment...</html>", cached=None)

        with pytest.raises(ExtractionError):
            await service.get_data()

    async def test_store_write_failure_is_swallowed(self, wiki_page):
        service, _, store = _service(page=wiki_page, cached=None)
        store.save.side_effect = CacheStoreError("HTTP 403", status=403)

        result = await service.get_data()

        assert result.origin == Origin.FRESH
        # La copie en mémoire sert les lectures suivantes
        store.get.return_value = None
        again = await service.get_data()
        assert again.origin == Origin.CACHE
        assert len(again) == 3

    async def test_store_read_failure_uses_memory_copy(self, wiki_page):
        service, chain, store = _service(page=wiki_page, cached=None)
        await service.get_data()
        store.get.side_effect = CacheStoreError("unreachable")

        result = await service.get_data()

        assert result.origin == Origin.CACHE
        assert chain.fetch.await_count == 1

    async def test_display_names_applied(self, wiki_page):
        service, _, _ = _service(page=wiki_page, cached=None)

        result = await service.get_data()

        wukong = result.records["62"]
        assert wukong.name == "MonkeyKing"
        assert wukong.display_name == "Wukong"
        assert result.records["266"].display_name == "Aatrox"


@pytest.mark.asyncio
class TestConcurrency:
    """Single-flight refresh and non-blocking readers."""

    async def test_readers_are_not_blocked_by_inflight_refresh(self, wiki_page):
        service, chain, _ = _service(cached=_entry(HOUR))
        release = asyncio.Event()
        started = asyncio.Event()

        async def slow_fetch(url):
            started.set()
            await release.wait()
            return wiki_page

        chain.fetch = AsyncMock(side_effect=slow_fetch)

        refresh = asyncio.create_task(service.get_data(force_refresh=True))
        await asyncio.wait_for(started.wait(), timeout=1)

        assert service.state == AcquisitionState.REFRESHING
        reader = await asyncio.wait_for(service.get_data(), timeout=1)
        assert reader.origin == Origin.CACHE
        assert reader.source_version == "V14.1"

        release.set()
        fresh = await refresh
        assert fresh.origin == Origin.FRESH
        assert service.state == AcquisitionState.FRESH

    async def test_concurrent_refreshes_share_one_fetch(self, wiki_page):
        service, chain, _ = _service(cached=None)
        release = asyncio.Event()

        async def slow_fetch(url):
            await release.wait()
            return wiki_page

        chain.fetch = AsyncMock(side_effect=slow_fetch)

        first = asyncio.create_task(service.get_data(force_refresh=True))
        second = asyncio.create_task(service.get_data(force_refresh=True))
        await asyncio.sleep(0.01)
        release.set()

        a, b = await asyncio.gather(first, second)
        assert chain.fetch.await_count == 1
        assert a.records == b.records

    async def test_close_cancels_inflight_and_releases_resources(self):
        service, chain, store = _service(cached=None)
        started = asyncio.Event()

        async def hang(url):
            started.set()
            await asyncio.Event().wait()

        chain.fetch = AsyncMock(side_effect=hang)
        reader = asyncio.create_task(service.get_data())
        await asyncio.wait_for(started.wait(), timeout=1)

        await service.close()

        chain.close.assert_awaited_once()
        store.close.assert_awaited_once()
        assert not service.refreshing
        with pytest.raises(asyncio.CancelledError):
            await reader


@pytest.mark.asyncio
class TestOperatorViews:

    async def test_refresh_report(self, wiki_page):
        service, _, _ = _service(page=wiki_page, cached=_entry(HOUR))

        report = await service.refresh()

        assert report.records_count == 3
        assert report.source_version == "V14.10"
        assert report.timestamp == NOW
        assert report.origin == Origin.FRESH

    async def test_refresh_report_on_fallback(self):
        service, _, _ = _service(cached=_entry(HOUR), fetch_error=FetchError("blocked"))

        report = await service.refresh()

        assert report.origin == Origin.STALE_FALLBACK
        assert report.records_count == 1

    async def test_get_cached_never_fetches(self):
        service, chain, _ = _service(cached=_entry(30 * HOUR))

        result = await service.get_cached()

        assert result.origin == Origin.CACHE
        chain.fetch.assert_not_called()
        assert service.state == AcquisitionState.STALE

    async def test_get_cached_empty_raises(self):
        service, _, _ = _service(cached=None)
        with pytest.raises(CacheStoreError):
            await service.get_cached()

    async def test_data_age(self):
        service, _, store = _service(cached=_entry(3 * HOUR))
        assert await service.data_age_ms() == 3 * HOUR

        store.get.return_value = None
        service._current = None
        assert await service.data_age_ms() is None
