# aramstats/store/pocketbase.py
# ============================================================================
# Cache durable : un unique enregistrement PocketBase (id réservé) qui contient
# le dernier résultat de parsing { data, patchVersion, timestamp }.
# Écriture = upsert (PATCH, puis POST si 404).
# ============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from aramstats.errors import CacheStoreError
from aramstats.models.champion import FetchResult, Origin

log = logging.getLogger(__name__)


class PocketBaseStore:
    """Async client for the record holding the latest champion dataset."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        collection: str = "data",
        record_id: str = "latestaramdata1",
        timeout: float = 10.0,
    ):
        if not base_url:
            raise ValueError("PocketBase base URL is required")
        if not token:
            log.warning("No PocketBase token configured (POCKETBASE_TOKEN / PB_TOKEN): writes will likely be rejected")
        self.base_url = base_url.rstrip("/")
        self.token = token or ""
        self.collection = collection
        self.record_id = record_id
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    # ───────────────────────── session ─────────────────────────
    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            token = self.token
            if not token.lower().startswith("bearer "):
                token = f"Bearer {token}"
            headers["Authorization"] = token
        return headers

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def records_url(self) -> str:
        return f"{self.base_url}/api/collections/{self.collection}/records"

    @property
    def record_url(self) -> str:
        return f"{self.records_url}/{self.record_id}"

    async def _request(self, method: str, url: str, payload: Optional[dict] = None) -> tuple[int, Any]:
        """
        Send a request and return (status, parsed JSON or None).

        Raises:
            CacheStoreError: On network errors and timeouts
        """
        session = await self._get_session()
        try:
            async with session.request(method, url, json=payload) as resp:
                body = None
                if resp.status != 204:
                    try:
                        body = await resp.json(content_type=None)
                    except ValueError:
                        body = None
                return resp.status, body
        except asyncio.TimeoutError as e:
            raise CacheStoreError(f"PocketBase timeout on {method} {url}") from e
        except aiohttp.ClientError as e:
            raise CacheStoreError(f"PocketBase unreachable on {method} {url}: {e}") from e

    # ───────────────────────── API ─────────────────────────
    async def get(self) -> Optional[FetchResult]:
        """
        Read the cached dataset.

        Returns:
            The stored FetchResult (origin=cache), or None when the record does not exist yet

        Raises:
            CacheStoreError: Store unreachable or non-404 error status
        """
        status, body = await self._request("GET", self.record_url)
        if status == 404:
            log.info("No cached dataset yet (404)")
            return None
        if not 200 <= status < 300:
            raise CacheStoreError(f"PocketBase GET failed with HTTP {status}", status=status)

        content = (body or {}).get("content")
        if not isinstance(content, dict):
            raise CacheStoreError("PocketBase record has no usable `content` field", status=status)

        result = FetchResult.from_content(content, origin=Origin.CACHE)
        log.info(
            f"Cached dataset loaded: {len(result.records)} champions, "
            f"patch {result.source_version}, timestamp {result.fetched_at}"
        )
        return result

    async def save(self, result: FetchResult) -> None:
        """
        Upsert the dataset: PATCH the reserved record, POST it on 404.

        Raises:
            CacheStoreError: Store unreachable or write rejected
        """
        content = result.to_content()

        status, _ = await self._request("PATCH", self.record_url, {"content": content})
        if 200 <= status < 300:
            log.info("Cached dataset updated")
            return

        if status != 404:
            raise CacheStoreError(f"PocketBase update failed with HTTP {status}", status=status)

        log.info("Record not found, creating it")
        status, _ = await self._request(
            "POST", self.records_url, {"id": self.record_id, "content": content}
        )
        if not 200 <= status < 300:
            raise CacheStoreError(f"PocketBase create failed with HTTP {status}", status=status)
        log.info("Cached dataset created")

    async def check_health(self) -> bool:
        """True when the PocketBase health endpoint answers 2xx."""
        try:
            status, _ = await self._request("GET", f"{self.base_url}/api/health")
        except CacheStoreError as e:
            log.error(f"PocketBase health check failed: {e}")
            return False
        return 200 <= status < 300

    async def list_records(self) -> List[Dict[str, Any]]:
        """Every record of the collection (debugging / administration)."""
        status, body = await self._request("GET", self.records_url)
        if not 200 <= status < 300:
            raise CacheStoreError(f"PocketBase list failed with HTTP {status}", status=status)
        return list((body or {}).get("items") or [])
