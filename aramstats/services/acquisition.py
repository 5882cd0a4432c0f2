# aramstats/services/acquisition.py
# ============================================================================
# Orchestration : cache → fraîcheur → chaîne de fetch → extraction → parsing
#                 → persistance, avec repli sur le cache périmé en cas d'échec.
# Un refresh en cours ne bloque jamais un lecteur qui a déjà des données.
# ============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from aramstats.errors import CacheStoreError, ExtractionError, FetchError, ParseError
from aramstats.models.champion import (
    AcquisitionState,
    FetchResult,
    Origin,
    RefreshReport,
    now_ms,
)
from aramstats.services.champions import apply_display_names
from aramstats.wiki.lua import extract_table
from aramstats.wiki.parser import extract_patch_version, parse_records

log = logging.getLogger(__name__)

# Échecs traités comme "pas de données fraîches" → repli sur le cache
REFRESH_ERRORS = (FetchError, ExtractionError, ParseError)


class AcquisitionService:
    """
    Owns the in-process view of the current champion dataset.

    Build one per process and pass it to whoever needs the data.
    """

    def __init__(
        self,
        chain,
        store,
        *,
        wiki_url: str,
        max_age_ms: int = 24 * 60 * 60 * 1000,
        clock: Callable[[], int] = now_ms,
    ):
        self.chain = chain
        self.store = store
        self.wiki_url = wiki_url
        self.max_age_ms = max_age_ms
        self._clock = clock

        self._current: Optional[FetchResult] = None
        self._inflight: Optional[asyncio.Task] = None
        self._state = AcquisitionState.COLD
        self.last_error: Optional[Exception] = None

    # ───────────────────────── état ─────────────────────────
    @property
    def state(self) -> AcquisitionState:
        if self.refreshing:
            return AcquisitionState.REFRESHING
        return self._state

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def _settle_state(self, entry: Optional[FetchResult], max_age_ms: int) -> None:
        if entry is None:
            return
        stale = entry.is_stale(max_age_ms, self._clock())
        self._state = AcquisitionState.STALE if stale else AcquisitionState.FRESH

    # ───────────────────────── lecture du cache ─────────────────────────
    async def _read_entry(self) -> Optional[FetchResult]:
        """
        Latest known entry: the durable store when reachable, else the in-process copy.

        A store failure on read is logged and never propagated.
        """
        try:
            cached = await self.store.get()
        except CacheStoreError as e:
            log.warning(f"Cache store read failed, using in-process copy: {e}")
            return self._current

        if cached is None or not cached.records:
            return self._current
        if self._current is None or cached.fetched_at >= self._current.fetched_at:
            self._current = cached
        return self._current

    # ───────────────────────── API publique ─────────────────────────
    async def get_data(self, force_refresh: bool = False, max_age_ms: Optional[int] = None) -> FetchResult:
        """
        Return the champion dataset, refreshing it when needed.

        Args:
            force_refresh: Always hit the fetch chain, whatever the cache age
            max_age_ms: Override of the configured freshness window

        Returns:
            FetchResult tagged fresh, cache or stale-fallback

        Raises:
            FetchError | ExtractionError | ParseError: Refresh failed and no
                cached entry of any age exists
        """
        max_age = self.max_age_ms if max_age_ms is None else max_age_ms

        # Refresh déjà en vol : les lecteurs ne l'attendent pas s'ils ont des données
        if self.refreshing and not force_refresh and self._current is not None:
            return self._current.with_origin(Origin.CACHE)

        entry = await self._read_entry()
        self._settle_state(entry, max_age)

        if not force_refresh and entry is not None:
            if not entry.is_stale(max_age, self._clock()):
                log.debug(f"Returning cached data (age {entry.age_ms(self._clock())} ms)")
                return entry.with_origin(Origin.CACHE)
            if self.refreshing:
                return entry.with_origin(Origin.CACHE)

        return await self._refresh_or_fallback(max_age)

    async def refresh(self) -> RefreshReport:
        """Operator 'refresh now': always hits the fetch chain."""
        result = await self.get_data(force_refresh=True)
        report = RefreshReport.from_result(result)
        log.info(
            f"Refresh finished: {report.records_count} champions, "
            f"patch {report.source_version}, origin {report.origin.value}"
        )
        return report

    async def get_cached(self) -> FetchResult:
        """
        Cache-only read, never triggers a fetch.

        Raises:
            CacheStoreError: No entry exists yet
        """
        entry = await self._read_entry()
        if entry is None:
            raise CacheStoreError("No data available in cache store, trigger a refresh to populate it")
        self._settle_state(entry, self.max_age_ms)
        return entry.with_origin(Origin.CACHE)

    async def data_age_ms(self) -> Optional[int]:
        """Milliseconds since the cached entry was fetched, None when there is none."""
        entry = await self._read_entry()
        if entry is None:
            return None
        return entry.age_ms(self._clock())

    async def close(self) -> None:
        """Stop any in-flight refresh and release HTTP sessions and the browser."""
        if self.refreshing:
            self._inflight.cancel()
            await asyncio.gather(self._inflight, return_exceptions=True)
        await self.chain.close()
        await self.store.close()

    # ───────────────────────── refresh ─────────────────────────
    async def _refresh_or_fallback(self, max_age_ms: int) -> FetchResult:
        task = self._inflight
        if task is None or task.done():
            task = asyncio.create_task(self._refresh())
            self._inflight = task

        try:
            # shield : un appelant annulé n'interrompt pas le refresh partagé
            return await asyncio.shield(task)
        except REFRESH_ERRORS as e:
            self.last_error = e
            fallback = self._current
            if fallback is not None:
                log.warning(f"Refresh failed, serving previous data (stale-fallback): {e}")
                self._settle_state(fallback, max_age_ms)
                return fallback.with_origin(Origin.STALE_FALLBACK)
            self._state = AcquisitionState.ERROR
            log.error(f"Refresh failed and no cached data exists: {e}")
            raise
        finally:
            if task.done() and self._inflight is task:
                self._inflight = None

    @staticmethod
    def _parse(page: str) -> FetchResult:
        literal = extract_table(page)
        records = parse_records(literal)
        if not records:
            log.debug(f"Raw Lua sample for debugging: {literal[:1000]}")
            raise ParseError("Lua table found but no champion could be parsed")
        return FetchResult(
            records=records,
            fetched_at=0,
            source_version=extract_patch_version(literal),
            origin=Origin.FRESH,
        )

    async def _refresh(self) -> FetchResult:
        log.info(f"Fetching fresh data from {self.wiki_url}")
        page = await self.chain.fetch(self.wiki_url)

        # Parsing CPU (page ~1 Mo) hors de la boucle d'événements
        result = await asyncio.to_thread(self._parse, page)
        result.fetched_at = self._clock()
        apply_display_names(result)

        self._current = result
        self._state = AcquisitionState.FRESH
        self.last_error = None

        try:
            await self.store.save(result)
        except CacheStoreError as e:
            log.error(f"Could not persist dataset, serving in-memory copy: {e}")

        sample = next(iter(result.records.values()))
        log.info(
            f"Fresh data fetched: {len(result.records)} champions, patch {result.source_version} "
            f"(sample {sample.name}: {sample.stats_for().modified_fields()})"
        )
        return result
