"""
Page loader for a reusable Playwright tab.

Two entry points:
    load_page()             -> never raises for navigation problems, returns bool
                               (a closed page/browser raises BrowserSessionError)
    load_page_with_retry()  -> retries with linear backoff, raises PageLoadError
                               once attempts are exhausted

Usage:
    if not await load_page(page, url, timeout_ms=30000):
        ...  # caller decides to skip

    await load_page_with_retry(page, url, timeout_ms=30000, attempts=3)
"""

import asyncio

from playwright.async_api import Page, Error as PlaywrightError
from playwright._impl._errors import TargetClosedError

from .config import CONTENT_MARKER_SELECTOR
from .errors import BrowserSessionError, PageLoadError
from .logger import get_logger

log = get_logger('page_loader')

MARKER_TIMEOUT_MS = 3000
SETTLE_MS = 500
TARGET_CLOSED_MESSAGE = "Target page, context or browser has been closed"


def check_session(page: Page, error: BaseException):
    """Raise BrowserSessionError if `error` means the page itself is gone."""
    if (
        isinstance(error, TargetClosedError)
        or TARGET_CLOSED_MESSAGE in str(error)
        or page.is_closed()
    ):
        raise BrowserSessionError(f"Browser session closed: {error}") from error


async def load_page(
    page: Page,
    url: str,
    timeout_ms: int = 30000,
    marker_selector: str = CONTENT_MARKER_SELECTOR,
    logger=None,
) -> bool:
    """
    Navigate `page` to `url`.

    Waits for DOMContentLoaded (bounded by timeout_ms), then briefly for a
    content marker. A missing marker is not a failure - content may still
    be readable. Returns False on navigation errors, timeouts and HTTP
    error statuses. Raises BrowserSessionError when the page, context or
    browser has been closed.
    """
    logger = logger or log
    try:
        response = await page.goto(url, wait_until='domcontentloaded', timeout=timeout_ms)
        if response is not None and response.status >= 400:
            logger.warning(f"HTTP {response.status} for {url}")
            return False

        try:
            await page.wait_for_selector(marker_selector, timeout=MARKER_TIMEOUT_MS)
        except PlaywrightError as e:
            check_session(page, e)
            logger.debug(f"Content marker not found on {url}, continuing")

        # Brief pause for late scripts
        await page.wait_for_timeout(SETTLE_MS)
        return True

    except PlaywrightError as e:
        check_session(page, e)
        logger.error(f"Error loading {url}: {e}")
        return False


async def load_page_with_retry(
    page: Page,
    url: str,
    timeout_ms: int = 30000,
    attempts: int = 3,
    backoff_seconds: float = 2.0,
    logger=None,
) -> int:
    """
    load_page() with up to `attempts` tries.

    Sleeps backoff_seconds * attempt between tries. Returns the attempt
    number that succeeded; raises PageLoadError after the last failure.
    """
    logger = logger or log
    attempts = max(1, attempts)

    for attempt in range(1, attempts + 1):
        if await load_page(page, url, timeout_ms=timeout_ms, logger=logger):
            return attempt

        if attempt < attempts:
            delay = backoff_seconds * attempt
            logger.info(f"Retry {attempt}/{attempts - 1} for {url} in {delay:.1f}s")
            await asyncio.sleep(delay)

    raise PageLoadError(url, attempts)
