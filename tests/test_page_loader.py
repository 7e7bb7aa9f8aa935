"""
tests/test_page_loader.py

Pytest unit tests for load_page / load_page_with_retry against FakePage.
"""

from __future__ import annotations

import asyncio
from typing import List

import pytest
from playwright.async_api import Error as PlaywrightError

from price_scraper import page_loader
from price_scraper.errors import BrowserSessionError, PageLoadError
from price_scraper.page_loader import load_page, load_page_with_retry

from fakes import FakePage

URL = "https://www.newagebd.net/article/1"


@pytest.fixture()
def sleeps(monkeypatch) -> List[float]:
    """Record backoff delays instead of sleeping."""
    recorded: List[float] = []

    async def fake_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr(page_loader.asyncio, "sleep", fake_sleep)
    return recorded


class TestLoadPage:
    def test_success(self) -> None:
        page = FakePage()
        assert asyncio.run(load_page(page, URL)) is True
        assert page.url == URL

    def test_navigation_error_returns_false(self) -> None:
        page = FakePage(failing=[URL])
        assert asyncio.run(load_page(page, URL)) is False

    def test_http_error_status_returns_false(self) -> None:
        page = FakePage(statuses={URL: 503})
        assert asyncio.run(load_page(page, URL)) is False


class TestLoadPageWithRetry:
    def test_first_attempt_wins(self, sleeps: List[float]) -> None:
        page = FakePage()
        assert asyncio.run(load_page_with_retry(page, URL, attempts=3)) == 1
        assert sleeps == []

    def test_recovers_after_transient_failures(self, sleeps: List[float]) -> None:
        page = FakePage(flaky={URL: 2})
        attempt = asyncio.run(load_page_with_retry(page, URL, attempts=3, backoff_seconds=2.0))

        assert attempt == 3
        assert sleeps == [2.0, 4.0]
        assert page.visited == [URL, URL, URL]

    def test_raises_after_last_attempt(self, sleeps: List[float]) -> None:
        page = FakePage(failing=[URL])
        with pytest.raises(PageLoadError) as exc_info:
            asyncio.run(load_page_with_retry(page, URL, attempts=3, backoff_seconds=1.0))

        assert exc_info.value.url == URL
        assert exc_info.value.attempts == 3
        assert len(page.visited) == 3
        # no sleep after the final attempt
        assert sleeps == [1.0, 2.0]

    def test_attempts_floor_is_one(self, sleeps: List[float]) -> None:
        page = FakePage(failing=[URL])
        with pytest.raises(PageLoadError):
            asyncio.run(load_page_with_retry(page, URL, attempts=0))
        assert page.visited == [URL]


class TestClosedSession:
    def test_closed_page_raises(self) -> None:
        page = FakePage(close_on=[URL])
        with pytest.raises(BrowserSessionError):
            asyncio.run(load_page(page, URL))

    def test_closed_browser_message_raises(self, monkeypatch) -> None:
        page = FakePage()

        async def dead_goto(url: str, wait_until: str = "load", timeout: int = 30000):
            raise PlaywrightError("Target page, context or browser has been closed")

        monkeypatch.setattr(page, "goto", dead_goto)
        with pytest.raises(BrowserSessionError):
            asyncio.run(load_page(page, URL))

    def test_closed_page_not_retried(self, sleeps: List[float]) -> None:
        page = FakePage(close_on=[URL])
        with pytest.raises(BrowserSessionError):
            asyncio.run(load_page_with_retry(page, URL, attempts=3))

        assert page.visited == [URL]
        assert sleeps == []
