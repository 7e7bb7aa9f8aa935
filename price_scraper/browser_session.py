"""
Browser Sessions - one browser per worker, optionally one shared browser.

THE PROBLEM:
    Each worker process needs its own page to crawl with. Launching a
    Chromium per worker costs 1-3 seconds and 100-200MB RAM each, which
    adds up on long date ranges.

THE SOLUTION:
    For large runs the orchestrator launches ONE browser with a remote
    debugging port (SharedBrowser). Workers connect to it over CDP and open
    their own isolated context, so no two workers ever touch the same tab.
    For small runs each worker simply launches its own browser.

    ┌──────────────── SharedBrowser (orchestrator) ────────────────┐
    │  Chromium --remote-debugging-port=N                          │
    │   ├── context (worker 1) ── page                             │
    │   ├── context (worker 2) ── page                             │
    │   └── context (worker 3) ── page                             │
    └──────────────────────────────────────────────────────────────┘

USAGE:
    # Orchestrator
    async with SharedBrowser(headless=True) as shared:
        endpoint = shared.endpoint     # passed to every WorkerTask

    # Worker
    async with WorkerBrowser(headless=True, endpoint=endpoint) as session:
        await session.page.goto(url)
    # page, context and browser released here, even on failure
"""

import socket
from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

from .logger import get_logger
from .stealth import create_stealth_context, launch_stealth_browser

log = get_logger('browser')


def _free_port() -> int:
    """Ask the OS for an unused local TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(('127.0.0.1', 0))
        return sock.getsockname()[1]


class SharedBrowser:
    """
    A single Chromium that worker processes connect to over CDP.

    Workers only connect to it; they never close it. The orchestrator
    owns its lifetime.
    """

    def __init__(self, headless: bool = True, port: Optional[int] = None):
        self.headless = headless
        self.port = port
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    @property
    def endpoint(self) -> Optional[str]:
        if self._browser is None:
            return None
        return f"http://127.0.0.1:{self.port}"

    async def start(self):
        if self._browser is not None:
            return
        self.port = self.port or _free_port()
        self._playwright = await async_playwright().start()
        try:
            self._browser = await launch_stealth_browser(
                self._playwright, headless=self.headless, debugging_port=self.port
            )
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise
        log.info(f"Shared browser listening on {self.endpoint}")

    async def shutdown(self):
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                log.warning(f"Error closing shared browser: {e}")
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()
        return False


class WorkerBrowser:
    """
    One worker's browser session: browser (own or shared), context, page.

    Everything opened here is closed in close(), best-effort, on every
    exit path including a failed open().
    """

    def __init__(self, headless: bool = True, endpoint: Optional[str] = None, logger=None):
        self.headless = headless
        self.endpoint = endpoint
        self.log = logger or log
        self._playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    async def open(self) -> Page:
        try:
            self._playwright = await async_playwright().start()
            if self.endpoint:
                self.log.debug(f"Connecting to shared browser at {self.endpoint}")
                self.browser = await self._playwright.chromium.connect_over_cdp(self.endpoint)
            else:
                self.browser = await launch_stealth_browser(self._playwright, headless=self.headless)
            self.context = await create_stealth_context(self.browser)
            self.page = await self.context.new_page()
            return self.page
        except Exception:
            await self.close()
            raise

    async def close(self):
        # For a CDP connection, browser.close() only disconnects
        for name in ('page', 'context', 'browser'):
            resource = getattr(self, name)
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                self.log.debug(f"Ignoring error while closing {name}: {e}")
            setattr(self, name, None)
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                self.log.debug(f"Ignoring error while stopping Playwright: {e}")
            self._playwright = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
