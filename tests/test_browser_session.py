"""
tests/test_browser_session.py

Browser session plumbing that can be checked without launching Chromium.
"""

from __future__ import annotations

import asyncio

from price_scraper.browser_session import SharedBrowser, WorkerBrowser, _free_port
from price_scraper.stealth import get_context_options, get_stealth_args


class TestStealthOptions:
    def test_debugging_port_flag_only_when_requested(self) -> None:
        assert not any(a.startswith("--remote-debugging-port") for a in get_stealth_args())
        assert "--remote-debugging-port=9333" in get_stealth_args(9333)

    def test_automation_flag_disabled(self) -> None:
        assert "--disable-blink-features=AutomationControlled" in get_stealth_args()

    def test_context_options(self) -> None:
        options = get_context_options()
        assert options["viewport"] == {"width": 1920, "height": 1080}
        assert "Chrome/" in options["user_agent"]


class TestSessions:
    def test_free_port(self) -> None:
        assert 0 < _free_port() < 65536

    def test_shared_browser_has_no_endpoint_until_started(self) -> None:
        assert SharedBrowser(port=9333).endpoint is None

    def test_close_unopened_worker_session(self) -> None:
        session = WorkerBrowser()
        asyncio.run(session.close())
        assert session.page is None
        assert session.browser is None
