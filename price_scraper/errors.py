"""
Exception types raised by the scraper.
"""

from typing import Optional


class ScraperError(Exception):
    """Base class for scraper errors."""


class ConfigError(ScraperError):
    """Invalid job parameters (dates, worker count, commodity names)."""


class PageLoadError(ScraperError):
    """A page could not be loaded after all retry attempts."""

    def __init__(self, url: str, attempts: int):
        super().__init__(f"Failed to load {url} after {attempts} attempt(s)")
        self.url = url
        self.attempts = attempts


class WorkerFailedError(ScraperError):
    """A worker process faulted; the whole run is aborted."""

    def __init__(self, worker_id: Optional[int], message: str):
        label = f"Worker {worker_id}" if worker_id is not None else "Worker"
        super().__init__(f"{label} failed: {message}")
        self.worker_id = worker_id


class BrowserSessionError(ScraperError):
    """The worker's page, context or browser is gone; the worker cannot continue."""
