# aramstats/fetch/headless.py
# ============================================================================
# Rendu par navigateur headless (Playwright / Chromium)
# Dernier recours contre le challenge anti-bot : lent (secondes), une seule
# page pilotée à la fois, cycle de vie contrôlé de l'extérieur.
# ============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

log = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]
USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:144.0) Gecko/20100101 Firefox/144.0"
# Textarea de la vue ?action=edit qui contient le module Lua
EDITOR_SELECTOR = "textarea#wpTextbox1"


class HeadlessBrowser:
    """Lazily started Chromium instance shared by every headless fetch."""

    def __init__(
        self,
        *,
        navigation_timeout: float = 45.0,
        settle_ms: int = 3000,
        selector_timeout: float = 10.0,
        persistent: bool = False,
        selector: str = EDITOR_SELECTOR,
    ):
        self.navigation_timeout = navigation_timeout
        self.settle_ms = settle_ms
        self.selector_timeout = selector_timeout
        self.persistent = persistent
        self.selector = selector
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    @property
    def started(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        """Launch Chromium if it is not running yet."""
        if self._browser is not None:
            log.info("Browser already initialized")
            return
        log.info("Launching headless Chromium")
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=True, args=LAUNCH_ARGS)
        except PlaywrightError:
            await self._playwright.stop()
            self._playwright = None
            raise

    async def close(self) -> None:
        """Shut the browser and the Playwright driver down."""
        if self._browser is not None:
            log.info("Closing headless Chromium")
            try:
                await self._browser.close()
            finally:
                self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def render(self, url: str) -> str:
        """
        Load `url`, let it settle and return the rendered document.

        Raises:
            playwright.async_api.Error: Navigation, selector wait or launch failure
        """
        async with self._lock:
            await self.start()
            try:
                return await self._render(url)
            finally:
                if not self.persistent:
                    await self.close()

    async def _render(self, url: str) -> str:
        context = await self._browser.new_context(
            user_agent=USER_AGENT,
            viewport={"width": 1920, "height": 1080},
            locale="en-US",
        )
        try:
            page = await context.new_page()
            log.info(f"Navigating to {url}")
            await page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout * 1000)

            # Laisser passer le challenge JS avant de chercher l'éditeur
            await page.wait_for_timeout(self.settle_ms)
            await page.wait_for_selector(self.selector, state="attached", timeout=self.selector_timeout * 1000)

            content = await page.content()
            log.info(f"Rendered {len(content)} bytes")
            return content
        finally:
            await context.close()

    async def health_check(self) -> bool:
        """Verify Chromium can be launched."""
        try:
            async with async_playwright() as pw:
                browser = await pw.chromium.launch(headless=True, args=LAUNCH_ARGS)
                await browser.close()
            return True
        except PlaywrightError as e:
            log.error(f"Headless health check failed: {e}")
            return False
