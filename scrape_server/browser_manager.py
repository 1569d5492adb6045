"""Process-wide browser manager for Playwright."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from playwright.async_api import async_playwright, Browser, Playwright

from scrape_server.config import Config, get_config
from scrape_server.utils.errors import SessionUnavailable

logger = logging.getLogger(__name__)


class BrowserManager:
    """Owns the single long-lived browser shared by every request.

    The browser is launched lazily on the first ``acquire()``. Concurrent
    first callers wait on the same launch instead of starting their own
    process. A failed launch leaves the manager empty, so the next request
    tries again.
    """

    _instance: Optional['BrowserManager'] = None

    def __init__(self, config: Optional[Config] = None):
        self._config = config or Config()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    @classmethod
    async def get_instance(cls) -> 'BrowserManager':
        """Get or create the process-wide instance."""
        if cls._instance is None:
            cls._instance = cls(get_config())
        return cls._instance

    def is_running(self) -> bool:
        """Check if a connected browser is available."""
        return self._browser is not None and self._browser.is_connected()

    async def acquire(self) -> Browser:
        """Return the shared browser, launching it on first use."""
        if self.is_running():
            return self._browser

        async with self._lock:
            # Another caller may have finished the launch while we waited
            if self.is_running():
                return self._browser

            if self._browser is not None:
                logger.warning("Browser disconnected, relaunching")
            await self._teardown()

            launch_options = {
                "headless": self._config.headless,
                "args": list(self._config.launch_args),
            }
            if self._config.executable_path:
                launch_options["executable_path"] = self._config.executable_path

            try:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(**launch_options)
            except Exception as e:
                await self._teardown()
                raise SessionUnavailable(f"Browser failed to launch: {e}") from e

            logger.info(
                "Browser launched (%s mode)",
                "headless" if self._config.headless else "headed",
            )
            return self._browser

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        async with self._lock:
            if self._browser is None and self._playwright is None:
                return
            await self._teardown()
            logger.info("Browser closed")

    async def _teardown(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None

        if browser is not None:
            try:
                await browser.close()
            except Exception:
                logger.debug("Closing browser failed", exc_info=True)
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception:
                logger.debug("Stopping Playwright failed", exc_info=True)
