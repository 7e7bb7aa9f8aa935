"""
Data models for archive scraping and price extraction.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Optional, List, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .config import Settings


# A contiguous run of ISO dates handled by one worker
DateSlice = Tuple[str, ...]


class PriceType(Enum):
    """Whether a quoted price is a retail or wholesale price."""
    RETAIL = "Retail"
    WHOLESALE = "Wholesale"


@dataclass(frozen=True)
class ScrapeJob:
    """
    Parameters for one scraping run.

    Built once from the CLI or scheduler (see config.build_job) and passed
    explicitly to every component, including worker processes.
    """
    start: date
    end: date
    commodities: Tuple[str, ...]
    workers: int = 4
    retry_attempts: int = 3
    page_timeout_seconds: int = 30
    headless: bool = True
    debug: bool = False

    @property
    def date_range(self) -> Tuple[str, str]:
        return self.start.isoformat(), self.end.isoformat()

    @property
    def page_timeout_ms(self) -> int:
        return self.page_timeout_seconds * 1000

    def dates(self) -> List[str]:
        """Every date in the range (inclusive) as YYYY-MM-DD."""
        days = (self.end - self.start).days
        return [(self.start + timedelta(days=i)).isoformat() for i in range(days + 1)]


@dataclass(frozen=True)
class ArticleRef:
    """An article stub found on an archive page."""
    title: str
    url: str
    published_date: str = ""  # raw datetime attribute, may be empty


@dataclass(frozen=True)
class PriceMatch:
    """A price found in article text for one commodity."""
    commodity: str
    price: str
    price_type: PriceType
    context: str
    variant: str
    confidence: str = "high"  # "medium" for nearby-sentence matches


@dataclass(frozen=True)
class PriceObservation:
    """One extracted (date, commodity, price, type) record."""
    date: str
    commodity: str
    price: str
    price_type: PriceType
    article_title: str
    article_url: str
    match_context: Optional[str] = None
    confidence: str = "high"
    matched_variant: Optional[str] = None

    @classmethod
    def from_match(cls, match: PriceMatch, article: ArticleRef, obs_date: str) -> 'PriceObservation':
        return cls(
            date=obs_date,
            commodity=match.commodity,
            price=match.price,
            price_type=match.price_type,
            article_title=article.title,
            article_url=article.url,
            match_context=match.context,
            confidence=match.confidence,
            matched_variant=match.variant,
        )

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "commodity": self.commodity,
            "price": self.price,
            "priceType": self.price_type.value,
            "articleTitle": self.article_title,
            "articleUrl": self.article_url,
            "context": self.match_context,
            "confidence": self.confidence,
            "variant": self.matched_variant,
        }


@dataclass
class DateReport:
    """Outcome of walking a single archive date."""
    date: str
    observations: List[PriceObservation] = field(default_factory=list)
    articles_found: int = 0
    relevant: int = 0
    processed: int = 0
    failed: int = 0
    skipped: bool = False     # archive page never loaded
    abandoned: bool = False   # too many article failures


@dataclass(frozen=True)
class WorkerTask:
    """Everything a worker process needs; crosses the process boundary."""
    worker_id: int
    dates: DateSlice
    job: ScrapeJob
    settings: 'Settings'
    browser_endpoint: Optional[str] = None
    log_file: Optional[str] = None   # attached in the worker process


@dataclass(frozen=True)
class WorkerResult:
    """What a worker process sends back to the orchestrator."""
    worker_id: int
    observations: Tuple[PriceObservation, ...] = ()
    dates_processed: int = 0
    dates_skipped: int = 0
    articles_visited: int = 0
    articles_failed: int = 0
