# aramstats/fetch/strategies.py
# ============================================================================
# Chaîne de stratégies de fetch, essayées dans l'ordre jusqu'à un succès :
#   1. requête directe avec cookie de session (bootstrap + TTL 30 min)
#   2. relais proxy configurés
#   3. rendu headless (Playwright)
# Ajouter/retirer un niveau = modifier la liste passée à FetchChain.
# ============================================================================

from __future__ import annotations

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Sequence

import aiohttp
from playwright.async_api import Error as PlaywrightError

from aramstats.errors import ExtractionError, FetchError
from aramstats.fetch.headless import HeadlessBrowser
from aramstats.wiki.lua import extract_table, is_table, iter_fields

log = logging.getLogger(__name__)

BROWSER_HEADERS: Dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Referer": "https://leagueoflegends.fandom.com/",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
    "Upgrade-Insecure-Requests": "1",
}


def has_lua_table(text: str) -> bool:
    """
    True when a response carries the module table rather than a challenge page.

    A bare `return {` is not enough: challenge pages ship inline scripts such
    as `return {a: 1}`. The literal must hold at least one named entry whose
    value is itself a table.
    """
    if not text:
        return False
    try:
        literal = extract_table(text)
    except ExtractionError:
        return False
    return any(isinstance(key, str) and is_table(raw) for key, raw in iter_fields(literal))


class CookieCache:
    """Session cookie value with an expiry, shared by concurrent fetches."""

    def __init__(self, ttl: float = 30 * 60, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._value: Optional[str] = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    def get(self) -> Optional[str]:
        """Cached value, or None when absent or expired."""
        with self._lock:
            if self._value is not None and self._clock() < self._expires_at:
                return self._value
            return None

    def set(self, value: str) -> None:
        with self._lock:
            self._value = value
            self._expires_at = self._clock() + self.ttl

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
            self._expires_at = 0.0


class FetchStrategy(ABC):
    """One way of getting the page text. Every failure is a FetchError."""

    name: str = "strategy"

    @property
    def enabled(self) -> bool:
        return True

    @abstractmethod
    async def fetch(self, url: str) -> str:
        ...

    async def close(self) -> None:
        pass


class _HttpStrategy(FetchStrategy):
    """Shared aiohttp plumbing for the direct and relay tiers."""

    def __init__(self, timeout: float = 20.0, headers: Optional[Dict[str, str]] = None):
        self.timeout = timeout
        self.headers = dict(headers or BROWSER_HEADERS)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            # Les cookies sont gérés à la main (CookieCache), pas par aiohttp
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                cookie_jar=aiohttp.DummyCookieJar(),
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _get_text(self, url: str, headers: Optional[Dict[str, str]] = None) -> str:
        text, _ = await self._get(url, headers)
        return text

    async def _get(self, url: str, headers: Optional[Dict[str, str]] = None):
        """GET `url`, returning (text, cookies); non-2xx, timeouts and network errors raise FetchError."""
        session = await self._get_session()
        try:
            async with session.get(url, headers=headers or self.headers, allow_redirects=True) as resp:
                if not 200 <= resp.status < 300:
                    raise FetchError(f"HTTP {resp.status} for {url}", tier=self.name, status=resp.status)
                text = await resp.text(errors="replace")
                return text, resp.cookies
        except asyncio.TimeoutError as e:
            raise FetchError(f"Timeout after {self.timeout}s for {url}", tier=self.name) from e
        except aiohttp.ClientError as e:
            raise FetchError(f"Network error for {url}: {e}", tier=self.name) from e


class DirectSessionStrategy(_HttpStrategy):
    """Direct request with browser headers and a reusable session cookie."""

    name = "direct"

    def __init__(
        self,
        bootstrap_url: Optional[str],
        *,
        cookie_override: Optional[str] = None,
        cookie_ttl: float = 30 * 60,
        timeout: float = 20.0,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(timeout=timeout, headers=headers)
        self.bootstrap_url = bootstrap_url
        self.cookie_override = (cookie_override or "").strip() or None
        self.cookies = CookieCache(ttl=cookie_ttl)
        self._bootstrap_lock = asyncio.Lock()

    async def _bootstrap(self) -> Optional[str]:
        """Hit the related page and collect its Set-Cookie values."""
        if not self.bootstrap_url:
            return None
        try:
            _, cookies = await self._get(self.bootstrap_url)
        except FetchError as e:
            log.warning(f"Cookie bootstrap failed, continuing without cookie: {e}")
            return None
        value = "; ".join(f"{morsel.key}={morsel.value}" for morsel in cookies.values())
        log.info(f"Cookie bootstrap OK ({len(cookies)} cookies)")
        return value

    async def get_cookie(self) -> Optional[str]:
        """Cookie header value: operator override, cached value, or a fresh bootstrap."""
        if self.cookie_override:
            return self.cookie_override

        cached = self.cookies.get()
        if cached is not None:
            return cached or None

        async with self._bootstrap_lock:
            # Un autre appel a pu bootstrapper pendant l'attente du lock
            cached = self.cookies.get()
            if cached is not None:
                return cached or None
            value = await self._bootstrap()
            if value is not None:
                self.cookies.set(value)
            return value or None

    async def fetch(self, url: str) -> str:
        headers = dict(self.headers)
        cookie = await self.get_cookie()
        if cookie:
            headers["Cookie"] = cookie
        try:
            return await self._get_text(url, headers)
        except FetchError as e:
            if e.status in (401, 403) and not self.cookie_override:
                # Cookie probablement révoqué par le challenge : re-bootstrap au prochain appel
                self.cookies.invalidate()
            raise


class RelayProxyStrategy(_HttpStrategy):
    """Third-party URL relays: `prefix + target_url`, first success wins."""

    name = "relay"

    def __init__(
        self,
        prefixes: Sequence[str],
        *,
        timeout: float = 20.0,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(timeout=timeout, headers=headers)
        self.prefixes = [p for p in prefixes if p]

    @property
    def enabled(self) -> bool:
        return bool(self.prefixes)

    async def fetch(self, url: str) -> str:
        last_error: Optional[FetchError] = None
        for prefix in self.prefixes:
            try:
                log.info(f"Trying relay {prefix}")
                return await self._get_text(prefix + url)
            except FetchError as e:
                log.warning(f"Relay {prefix} failed: {e}")
                last_error = e
        raise FetchError(
            f"All {len(self.prefixes)} relays failed: {last_error}",
            tier=self.name,
            status=last_error.status if last_error else None,
        ) from last_error


class HeadlessRenderStrategy(FetchStrategy):
    """Full browser render, used only when the HTTP tiers are blocked."""

    name = "headless"

    def __init__(self, browser: HeadlessBrowser, *, enabled: bool = True):
        self.browser = browser
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def fetch(self, url: str) -> str:
        try:
            return await self.browser.render(url)
        except PlaywrightError as e:
            raise FetchError(f"Headless render failed for {url}: {e}", tier=self.name) from e
        except asyncio.TimeoutError as e:
            raise FetchError(f"Headless render timed out for {url}", tier=self.name) from e

    async def close(self) -> None:
        await self.browser.close()


class FetchChain:
    """Ordered fetch strategies with uniform error handling."""

    def __init__(
        self,
        strategies: Sequence[FetchStrategy],
        accept: Optional[Callable[[str], bool]] = None,
    ):
        self.strategies: List[FetchStrategy] = list(strategies)
        self.accept = accept

    async def fetch(self, url: str) -> str:
        """
        Return the page text from the first strategy that succeeds.

        Raises:
            FetchError: Aggregate error carrying the last tier's failure
        """
        attempts: List[FetchError] = []
        for strategy in self.strategies:
            if not strategy.enabled:
                log.debug(f"Skipping disabled strategy {strategy.name}")
                continue

            started = time.monotonic()
            log.info(f"Fetching {url} via {strategy.name}")
            try:
                text = await strategy.fetch(url)
                if self.accept is not None and not self.accept(text):
                    raise FetchError("Response does not contain the module table", tier=strategy.name)
            except FetchError as e:
                log.warning(f"Strategy {strategy.name} failed: {e}")
                attempts.append(e)
                continue

            log.info(f"Fetched {len(text)} chars via {strategy.name} in {time.monotonic() - started:.1f}s")
            return text

        last = attempts[-1] if attempts else None
        raise FetchError(
            f"All fetch strategies failed: {last}" if last else "No fetch strategy enabled",
            tier=last.tier if last else None,
            status=last.status if last else None,
            attempts=attempts,
        ) from last

    async def close(self) -> None:
        for strategy in self.strategies:
            await strategy.close()


def build_default_chain(config) -> FetchChain:
    """Direct → relays → headless, configured from Settings."""
    browser = HeadlessBrowser(
        navigation_timeout=config.HEADLESS_TIMEOUT,
        settle_ms=config.HEADLESS_SETTLE_MS,
        persistent=config.HEADLESS_PERSISTENT,
    )
    return FetchChain(
        [
            DirectSessionStrategy(
                config.WIKI_BOOTSTRAP_URL,
                cookie_override=config.WIKI_COOKIE,
                cookie_ttl=config.COOKIE_TTL,
                timeout=config.HTTP_TIMEOUT,
            ),
            RelayProxyStrategy(config.PROXY_URLS, timeout=config.HTTP_TIMEOUT),
            HeadlessRenderStrategy(browser, enabled=config.HEADLESS_ENABLED),
        ],
        accept=has_lua_table,
    )
