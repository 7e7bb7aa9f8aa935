"""
Stealth Browser Module

Provides Playwright browsers and contexts with anti-detection settings.
"""

from playwright.async_api import Browser, BrowserContext, Playwright

from .patches import STEALTH_JS, get_context_options, get_stealth_args


async def launch_stealth_browser(playwright: Playwright, headless: bool = True, debugging_port=None) -> Browser:
    """Launch Chromium with stealth flags."""
    return await playwright.chromium.launch(
        headless=headless,
        args=get_stealth_args(debugging_port),
    )


async def create_stealth_context(browser: Browser) -> BrowserContext:
    """Create an isolated browser context with stealth settings."""
    context = await browser.new_context(**get_context_options())
    # Inject stealth scripts before any page loads
    await context.add_init_script(STEALTH_JS)
    return context


__all__ = [
    'STEALTH_JS',
    'create_stealth_context',
    'get_context_options',
    'get_stealth_args',
    'launch_stealth_browser',
]
