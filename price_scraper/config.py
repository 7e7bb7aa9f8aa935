#!/usr/bin/env python3
"""
Configuration Management
=======================

Static lookup tables (commodity variants, keywords, selectors) plus the
environment-backed Settings and the ScrapeJob builder.

Nothing here is mutated after import; ScrapeJob and Settings are frozen and
threaded explicitly through every component.
"""

import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, List, Iterable, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigError
from .models import ScrapeJob

# Load environment variables from .env file (package dir, then cwd)
package_dir = Path(__file__).resolve().parent
load_dotenv(package_dir.parent / '.env')
load_dotenv()

ARCHIVE_URL_BASE = 'https://www.newagebd.net/archive?date='
LOG_FILENAME = 'scraper.log'

DEFAULT_COMMODITIES = [
    'Sugar', 'Rice', 'Broiler Chicken', 'Hilsa Fish', 'Pangas Fish', 'Potato',
    'Onion', 'Soybean Oil', 'Palm Oil', 'Eggs', 'Green Chillies',
]

# Canonical commodity name -> surface forms used for matching
PRODUCT_VARIANTS: Dict[str, List[str]] = {
    'Sugar': ['sugar', 'refined sugar', 'white sugar', 'packaged sugar', 'চিনি'],
    'Rice': ['rice', 'chal', 'চাল', 'miniket', 'najirshail', 'coarse rice', 'fine rice'],
    'Broiler Chicken': ['broiler', 'chicken', 'murgi', 'মুরগি', 'farm chicken', 'poultry'],
    'Hilsa Fish': ['hilsa', 'ilish', 'ইলিশ', 'hilsha'],
    'Pangas Fish': ['pangas', 'পাঙ্গাস', 'pangash'],
    'Potato': ['potato', 'alu', 'আলু', 'potatoes'],
    'Onion': ['onion', 'peyaj', 'পেঁয়াজ', 'onions'],
    'Soybean Oil': ['soybean oil', 'soyabean oil', 'soya oil', 'সয়াবিন তেল'],
    'Palm Oil': ['palm oil', 'palm', 'পাম তেল'],
    'Eggs': ['egg', 'eggs', 'dim', 'ডিম', 'hali'],
    'Green Chillies': ['green chilli', 'green chillies', 'kacha morich', 'কাঁচা মরিচ', 'chilli', 'chillies'],
    'Garlic': ['garlic', 'roshun', 'রসুন'],
    'Ginger': ['ginger', 'ada', 'আদা'],
    'Tomato': ['tomato', 'tomatoes', 'টমেটো'],
    'Beef': ['beef', 'গরুর মাংস', 'cow meat'],
    'Mutton': ['mutton', 'খাসির মাংস', 'goat meat'],
    'Katla Fish': ['katla', 'কাতলা'],
    'Rohita Fish': ['rohita', 'rui', 'রুই'],
    'Tilapia Fish': ['tilapia', 'তেলাপিয়া'],
    'Lentils': ['lentils', 'dal', 'ডাল', 'mosur', 'মসুর'],
    'Milk': ['milk', 'dudh', 'দুধ'],
    'Aubergine': ['aubergine', 'brinjal', 'begun', 'বেগুন', 'eggplant'],
    'Papaya': ['papaya', 'pepe', 'পেঁপে'],
    'Bitter Gourd': ['bitter gourd', 'korola', 'করলা', 'uchche'],
    'Pointed Gourd': ['pointed gourd', 'potol', 'পটল'],
    'Okra': ['okra', 'bhindi', 'ঢেঁড়স', 'dherosh'],
    'String Beans': ['string beans', 'sheem', 'শিম', 'beans'],
    'Teasel Gourd': ['teasel gourd', 'kakrol', 'কাঁকরোল'],
    'Ridge Gourd': ['ridge gourd', 'jhinge', 'ঝিঙে'],
    'Snake Gourd': ['snake gourd', 'chichinga', 'চিচিঙ্গা'],
    'Sonalika Chicken': ['sonalika chicken', 'sonalika', 'সোনালী মুরগি', 'sonali chicken'],
}

# Title keywords that make an article worth visiting
PRICE_KEYWORDS = [
    'price', 'prices', 'Tk', 'taka', 'market', 'commodity', 'commodities',
    'rises', 'rise', 'falls', 'fall', 'increase', 'decrease', 'up', 'down',
    'wholesale', 'retail', 'essentials', 'kitchen', 'bazaar', 'bazar',
    'per kg', 'per kilogram', 'per litre', 'per hali', 'cost', 'rate',
    'টাকা', 'দাম', 'মূল্য', 'বাজার',
]

# Archive listing markup
ARTICLE_CARD_SELECTOR = 'article.card.card-full'
ARTICLE_TITLE_SELECTOR = 'h2.card-title a'
ARTICLE_TIME_SELECTOR = 'time'

# Article body containers, tried in order
CONTENT_SELECTORS = [
    'div.post-content',
    'article .content',
    'main .article-body',
    '.news-content',
]

# Best-effort marker that the page has real content
CONTENT_MARKER_SELECTOR = 'div.post-content, article .content, main'

# Signals that the infinite-scroll archive has nothing more to load
END_MARKER_SELECTORS = [
    'div.google-auto-placed',
    '.no-more-articles',
    '.end-of-content',
]


def _get_int_env(name: str, default: int) -> int:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Deployment settings (environment-backed) and crawl pacing."""
    archive_url_base: str = ARCHIVE_URL_BASE
    output_dir: str = 'output'
    log_dir: str = 'logs'
    shared_browser_threshold: int = 10   # dates; above this, workers share one browser
    min_article_length: int = 50         # chars of body text
    scroll_wait_ms: int = 1500
    scroll_max_attempts: int = 10
    article_delay: Tuple[float, float] = (0.5, 1.0)   # seconds, random in range
    date_delay: Tuple[float, float] = (1.0, 2.0)
    retry_backoff_seconds: float = 2.0

    @property
    def log_file(self) -> Path:
        return Path(self.log_dir) / LOG_FILENAME

    def to_dict(self) -> dict:
        return {
            'archive_url_base': self.archive_url_base,
            'output_dir': self.output_dir,
            'log_dir': self.log_dir,
            'shared_browser_threshold': self.shared_browser_threshold,
            'min_article_length': self.min_article_length,
        }


def load_settings(**overrides) -> Settings:
    """Build Settings from environment variables, then apply overrides."""
    values = dict(
        archive_url_base=os.getenv('ARCHIVE_URL_BASE', ARCHIVE_URL_BASE),
        output_dir=os.getenv('OUTPUT_DIR', 'output'),
        log_dir=os.getenv('LOG_DIR', 'logs'),
        shared_browser_threshold=_get_int_env('SHARED_BROWSER_THRESHOLD', 10),
        min_article_length=_get_int_env('MIN_ARTICLE_LENGTH', 50),
        scroll_wait_ms=_get_int_env('SCROLL_WAIT_MS', 1500),
        retry_backoff_seconds=_get_float_env('RETRY_BACKOFF_SECONDS', 2.0),
    )
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)


def parse_iso_date(value, label: str = 'date') -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ConfigError(f"Invalid {label} '{value}': expected YYYY-MM-DD")


def resolve_commodities(names: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """
    Map user-supplied commodity names onto canonical table keys.

    Matching is case-insensitive; unknown names raise ConfigError so every
    observation's commodity is guaranteed to be a PRODUCT_VARIANTS key.
    """
    if names is None:
        names = DEFAULT_COMMODITIES
    if isinstance(names, str):
        names = names.split(',')

    by_lower = {key.lower(): key for key in PRODUCT_VARIANTS}
    resolved = []
    unknown = []
    for raw in names:
        name = raw.strip()
        if not name:
            continue
        key = by_lower.get(name.lower())
        if key is None:
            unknown.append(name)
        elif key not in resolved:
            resolved.append(key)

    if unknown:
        raise ConfigError(
            f"Unknown commodities: {', '.join(unknown)}. "
            f"Known: {', '.join(sorted(PRODUCT_VARIANTS))}"
        )
    if not resolved:
        raise ConfigError("At least one commodity is required")
    return tuple(resolved)


def build_job(
    start,
    end,
    commodities=None,
    workers: int = 4,
    retry_attempts: int = 3,
    page_timeout: int = 30,
    headless: bool = True,
    debug: bool = False,
) -> ScrapeJob:
    """Validate raw parameters and return an immutable ScrapeJob."""
    start_date = parse_iso_date(start, 'start date')
    end_date = parse_iso_date(end, 'end date')
    if start_date > end_date:
        raise ConfigError(f"Start date {start_date} is after end date {end_date}")
    if workers < 1:
        raise ConfigError("--workers must be at least 1")
    if retry_attempts < 1:
        raise ConfigError("--retry-attempts must be at least 1")
    if page_timeout < 1:
        raise ConfigError("--page-timeout must be at least 1 second")

    return ScrapeJob(
        start=start_date,
        end=end_date,
        commodities=resolve_commodities(commodities),
        workers=workers,
        retry_attempts=retry_attempts,
        page_timeout_seconds=page_timeout,
        headless=headless,
        debug=debug,
    )
