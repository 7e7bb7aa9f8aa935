"""
Archive Walker - one archive date -> PriceObservations.

For a single date:
    1. Load the archive listing (retry-wrapped; skip the date if it never loads)
    2. Scroll until lazy-loaded cards stop appearing
    3. Parse article stubs, keep the ones whose title looks price-related
    4. Visit each article, pull the body text, run the extractor
    5. Give up on the rest of the date once failures exceed half the
       relevant articles
"""

import asyncio
import random
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from playwright.async_api import Page, Error as PlaywrightError

from .config import (
    ARTICLE_CARD_SELECTOR,
    ARTICLE_TIME_SELECTOR,
    ARTICLE_TITLE_SELECTOR,
    CONTENT_SELECTORS,
    END_MARKER_SELECTORS,
    Settings,
)
from .errors import PageLoadError
from .extraction import PriceExtractor, has_relevant_keywords
from .logger import get_logger
from .models import ArticleRef, DateReport, PriceObservation, ScrapeJob
from .page_loader import check_session, load_page_with_retry

log = get_logger('walker')

SCROLL_HEIGHT_JS = "() => document.body.scrollHeight"
SCROLL_TO_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"
END_MARKER_JS = "(selectors) => selectors.some(s => document.querySelector(s) !== null)"

FINAL_SCROLL_WAIT_MS = 1000


def archive_url(base: str, archive_date: str) -> str:
    return f"{base}{archive_date}"


@dataclass
class ScrollOutcome:
    attempts: int
    height: int
    reason: str  # "stable", "end_marker" or "max_attempts"


async def scroll_to_bottom(
    page: Page,
    max_attempts: int = 10,
    wait_ms: int = 1500,
    end_marker_limit: int = 1,
    stable_checks: int = 1,
) -> ScrollOutcome:
    """
    Scroll to the bottom repeatedly so infinite-scroll content materializes.

    Stops at whichever comes first: page height unchanged for
    `stable_checks` consecutive scrolls, an end marker seen
    `end_marker_limit` times, or `max_attempts` scrolls.
    """
    height = await page.evaluate(SCROLL_HEIGHT_JS)
    attempts = 0
    stable = 0
    markers_seen = 0
    reason = "max_attempts"

    while attempts < max_attempts:
        await page.evaluate(SCROLL_TO_BOTTOM_JS)
        await page.wait_for_timeout(wait_ms)
        attempts += 1

        if await page.evaluate(END_MARKER_JS, END_MARKER_SELECTORS):
            markers_seen += 1
            if markers_seen >= end_marker_limit:
                reason = "end_marker"
                break

        new_height = await page.evaluate(SCROLL_HEIGHT_JS)
        if new_height == height:
            stable += 1
            if stable >= stable_checks:
                reason = "stable"
                break
        else:
            stable = 0
            height = new_height

    # Final wait for any last content
    await page.wait_for_timeout(FINAL_SCROLL_WAIT_MS)
    return ScrollOutcome(attempts=attempts, height=height, reason=reason)


def parse_article_refs(html: str, base_url: str = "") -> List[ArticleRef]:
    """Article stubs from an archive page; stubs without title or url are dropped."""
    soup = BeautifulSoup(html, 'html.parser')
    refs = []
    seen_urls = set()

    for card in soup.select(ARTICLE_CARD_SELECTOR):
        link = card.select_one(ARTICLE_TITLE_SELECTOR)
        if link is None:
            continue
        title = link.get_text(strip=True)
        href = (link.get('href') or '').strip()
        if not title or not href:
            continue

        url = urljoin(base_url, href)
        if url in seen_urls:
            continue
        seen_urls.add(url)

        time_el = card.select_one(ARTICLE_TIME_SELECTOR)
        published = (time_el.get('datetime') or '').strip() if time_el else ''
        refs.append(ArticleRef(title=title, url=url, published_date=published))

    return refs


def extract_article_text(html: str) -> str:
    """
    Body text of an article page.

    Tries the known content containers in order (paragraph text joined);
    falls back to the whole page text when none of them has any.
    """
    soup = BeautifulSoup(html, 'html.parser')
    for tag in soup(['script', 'style', 'noscript']):
        tag.decompose()

    for selector in CONTENT_SELECTORS:
        container = soup.select_one(selector)
        if container is None:
            continue
        paragraphs = [p.get_text(' ', strip=True) for p in container.find_all('p')]
        text = ' '.join(p for p in paragraphs if p)
        if text:
            return text

    body = soup.body or soup
    return body.get_text(' ', strip=True)


def parse_published_date(published: str) -> Optional[date]:
    raw = (published or '').strip()
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace('Z', '+00:00')).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def resolve_observation_date(
    published: str,
    archive_date: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> str:
    """
    ISO date for an observation: the article's own date when it parses and
    lies within [start, end], otherwise the archive date being crawled.
    """
    parsed = parse_published_date(published)
    if parsed is None:
        return archive_date
    if (start is not None and parsed < start) or (end is not None and parsed > end):
        return archive_date
    return parsed.isoformat()


class ArchiveWalker:
    """
    Walks archive dates on one browser page.

    Args:
        page: the worker's Playwright page (reused for every navigation)
        job: the run's ScrapeJob
        settings: pacing / thresholds
        extractor: PriceExtractor (default tables if omitted)
        logger: per-worker logger
    """

    def __init__(
        self,
        page: Page,
        job: ScrapeJob,
        settings: Settings,
        extractor: Optional[PriceExtractor] = None,
        logger=None,
    ):
        self.page = page
        self.job = job
        self.settings = settings
        self.extractor = extractor or PriceExtractor()
        self.log = logger or log

    async def _load(self, url: str):
        await load_page_with_retry(
            self.page,
            url,
            timeout_ms=self.job.page_timeout_ms,
            attempts=self.job.retry_attempts,
            backoff_seconds=self.settings.retry_backoff_seconds,
            logger=self.log,
        )

    async def _pause(self, bounds):
        low, high = bounds
        if high > 0:
            await asyncio.sleep(random.uniform(low, high))

    async def walk_date(self, archive_date: str) -> DateReport:
        report = DateReport(date=archive_date)
        url = archive_url(self.settings.archive_url_base, archive_date)

        try:
            await self._load(url)
        except PageLoadError as e:
            self.log.warning(f"[{archive_date}] Skipping date: {e}")
            report.skipped = True
            return report

        outcome = await scroll_to_bottom(
            self.page,
            max_attempts=self.settings.scroll_max_attempts,
            wait_ms=self.settings.scroll_wait_ms,
        )
        self.log.debug(f"[{archive_date}] Scrolled {outcome.attempts}x, stopped on {outcome.reason}")

        articles = parse_article_refs(await self.page.content(), self.page.url or url)
        report.articles_found = len(articles)
        relevant = [a for a in articles if has_relevant_keywords(a.title)]
        report.relevant = len(relevant)
        self.log.info(f"[{archive_date}] Found {len(articles)} articles, {len(relevant)} with price keywords")

        for article in relevant:
            try:
                observations = await self.process_article(article, archive_date)
            except (PageLoadError, PlaywrightError) as e:
                check_session(self.page, e)
                report.failed += 1
                self.log.warning(f"[{archive_date}] Failed article '{article.title}': {e}")
                if report.failed > len(relevant) * 0.5:
                    self.log.error(f"[{archive_date}] Too many failures, moving to next date")
                    report.abandoned = True
                    break
                continue

            if observations is None:
                continue
            report.processed += 1
            report.observations.extend(observations)
            await self._pause(self.settings.article_delay)

        self.log.info(
            f"[{archive_date}] Processed {report.processed}/{report.relevant} articles, "
            f"{len(report.observations)} prices"
        )
        return report

    async def process_article(self, article: ArticleRef, archive_date: str) -> Optional[List[PriceObservation]]:
        """
        Visit one article and extract its prices.

        Returns None when the page has too little text to hold a price.
        Raises PageLoadError if the page never loads.
        """
        await self._load(article.url)
        text = extract_article_text(await self.page.content())

        if len(text) < self.settings.min_article_length:
            self.log.info(f"Skipping article with insufficient content: {article.title}")
            return None

        obs_date = resolve_observation_date(
            article.published_date, archive_date, self.job.start, self.job.end
        )
        matches = self.extractor.extract(text, self.job.commodities)
        if matches:
            self.log.debug(f"{len(matches)} price(s) in '{article.title}'")
        return [PriceObservation.from_match(match, article, obs_date) for match in matches]
