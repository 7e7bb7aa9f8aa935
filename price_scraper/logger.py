"""
Logging configuration for the price scraper.
"""

import logging
import sys
from pathlib import Path

# Create logger
logger = logging.getLogger('price_scraper')
logger.setLevel(logging.INFO)
logger.propagate = False

formatter = logging.Formatter(
    '%(asctime)s | %(levelname)-5s | %(name)s | %(message)s',
    datefmt='%H:%M:%S'
)

# Console handler with formatting
if not logger.handlers:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG)
    console.setFormatter(formatter)
    logger.addHandler(console)


def get_logger(name):
    """Get a child logger for a component or worker."""
    return logger.getChild(name)


def set_debug(enabled: bool):
    logger.setLevel(logging.DEBUG if enabled else logging.INFO)


def add_file_handler(path) -> logging.Handler:
    """Also write log lines to a file (appending). Adding the same file twice is a no-op."""
    path = Path(path)
    for existing in logger.handlers:
        if isinstance(existing, logging.FileHandler) and Path(existing.baseFilename) == path.resolve():
            return existing
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding='utf-8')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return handler
