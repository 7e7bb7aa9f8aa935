"""
Worker process entry point.

Each worker owns exactly one browser session and walks its DateSlice
strictly in order. run_worker() is a plain module-level function so a
ProcessPoolExecutor can pickle it; it takes a WorkerTask and returns a
WorkerResult.

A failure on one date is logged and the worker moves on. A failure of the
browser session itself (could not open, or page/context/browser closed
underneath us) propagates, which fails the whole run.
"""

import asyncio
import random
import time
from typing import List

from .archive_walker import ArchiveWalker
from .browser_session import WorkerBrowser
from .errors import BrowserSessionError
from .extraction import PriceExtractor
from .logger import add_file_handler, get_logger, set_debug
from .models import PriceObservation, WorkerResult, WorkerTask
from .page_loader import check_session


async def run_worker_async(task: WorkerTask) -> WorkerResult:
    log = get_logger(f'worker.{task.worker_id}')
    settings = task.settings
    observations: List[PriceObservation] = []
    processed = skipped = visited = failed = 0
    start = time.time()

    log.info(f"Starting with {len(task.dates)} date(s): {task.dates[0]} .. {task.dates[-1]}")

    async with WorkerBrowser(headless=task.job.headless, endpoint=task.browser_endpoint, logger=log) as session:
        walker = ArchiveWalker(session.page, task.job, settings, PriceExtractor(), logger=log)

        for index, archive_date in enumerate(task.dates):
            log.info(f"Processing {archive_date}")
            try:
                report = await walker.walk_date(archive_date)
            except BrowserSessionError:
                raise
            except Exception as e:
                check_session(session.page, e)
                log.error(f"Failed to process {archive_date}: {e}")
                skipped += 1
                continue

            if report.skipped:
                skipped += 1
            else:
                processed += 1
            visited += report.processed
            failed += report.failed
            observations.extend(report.observations)

            if index < len(task.dates) - 1:
                low, high = settings.date_delay
                if high > 0:
                    await asyncio.sleep(random.uniform(low, high))

    log.info(
        f"Done in {time.time() - start:.1f}s: {processed} date(s), "
        f"{len(observations)} price entries"
    )
    return WorkerResult(
        worker_id=task.worker_id,
        observations=tuple(observations),
        dates_processed=processed,
        dates_skipped=skipped,
        articles_visited=visited,
        articles_failed=failed,
    )


def run_worker(task: WorkerTask) -> WorkerResult:
    """Process entry point: run one worker's slice to completion."""
    set_debug(task.job.debug)
    if task.log_file:
        # Spawned processes start with only the console handler
        add_file_handler(task.log_file)
    return asyncio.run(run_worker_async(task))
