"""Shared Playwright browser for the rendered adoption sites.

The process holds at most one browser. With a Browserless token configured it
attaches to the remote renderer over CDP; otherwise it launches Chromium
locally. Each adapter works inside a context named after its source slug and
closes that context when its run ends.
"""

import asyncio
from typing import Dict, Optional

import structlog
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from palbase.config import settings
from palbase.scrapers.utils.user_agents import get_random_user_agent

logger = structlog.get_logger(__name__)

LOCAL_LAUNCH_ARGS = (
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
)

# Listing pages only need markup and XHR payloads
BLOCKED_ASSETS = "**/*.{png,jpg,jpeg,gif,svg,webp,woff,woff2,ttf,eot}"

CONTEXT_OPTIONS = {
    "viewport": {"width": 1280, "height": 800},
    "locale": "en-US",
    "timezone_id": "America/New_York",
    "java_script_enabled": True,
}

STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
window.chrome = { runtime: {} };
"""


class BrowserManager:
    """Owns the browser connection and the per-source contexts."""

    def __init__(
        self,
        remote_url: Optional[str] = None,
        headless: bool = True,
        page_timeout_ms: int = 30000,
        block_resources: bool = True,
    ):
        self._remote_url = remote_url
        self._headless = headless
        self._page_timeout_ms = page_timeout_ms
        self._block_resources = block_resources
        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._contexts: Dict[str, BrowserContext] = {}
        self._lock = asyncio.Lock()

    @property
    def is_remote(self) -> bool:
        return bool(self._remote_url)

    @property
    def is_started(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        async with self._lock:
            if self._browser is None:
                self._pw = await async_playwright().start()
                self._browser = await self._open_browser(self._pw)

    async def _open_browser(self, pw: Playwright) -> Browser:
        if self.is_remote:
            browser = await pw.chromium.connect_over_cdp(self._remote_url)
            logger.info("browser_connected", mode="remote")
            return browser

        browser = await pw.chromium.launch(headless=self._headless, args=list(LOCAL_LAUNCH_ARGS))
        logger.info("browser_started", mode="local", headless=self._headless)
        return browser

    async def stop(self) -> None:
        """Close every open context and release the browser.

        For a remote renderer closing the browser only drops the CDP
        connection; the Browserless instance keeps running.
        """
        async with self._lock:
            contexts, self._contexts = self._contexts, {}
            for source, context in contexts.items():
                try:
                    await context.close()
                except Exception as e:
                    logger.warning("browser_context_close_failed", name=source, error=str(e))

            browser, self._browser = self._browser, None
            if browser is not None:
                await browser.close()
                logger.info("browser_disconnected" if self.is_remote else "browser_stopped")

            pw, self._pw = self._pw, None
            if pw is not None:
                await pw.stop()

    async def get_context(self, name: str = "default") -> BrowserContext:
        """Return the context for ``name``, creating it on first use."""
        existing = self._contexts.get(name)
        if existing is not None:
            return existing

        await self.start()
        context = await self._browser.new_context(user_agent=get_random_user_agent(), **CONTEXT_OPTIONS)
        await self._configure(context)

        self._contexts[name] = context
        logger.info("browser_context_created", name=name, remote=self.is_remote)
        return context

    async def _configure(self, context: BrowserContext) -> None:
        context.set_default_timeout(self._page_timeout_ms)
        context.set_default_navigation_timeout(self._page_timeout_ms)
        await context.add_init_script(STEALTH_JS)
        if self._block_resources:
            await context.route(BLOCKED_ASSETS, lambda route: route.abort())

    async def new_page(self, name: str = "default") -> Page:
        context = await self.get_context(name)
        return await context.new_page()

    async def close_context(self, name: str) -> None:
        context = self._contexts.pop(name, None)
        if context is None:
            return
        await context.close()
        logger.debug("browser_context_closed", name=name)


_manager: Optional[BrowserManager] = None


def get_browser_manager() -> BrowserManager:
    """Process-wide BrowserManager built from settings."""
    global _manager
    if _manager is None:
        _manager = BrowserManager(
            remote_url=settings.remote_browser_url,
            headless=settings.HEADLESS,
            page_timeout_ms=settings.SCRAPER_PAGE_TIMEOUT,
        )
    return _manager
