"""
Worker Pool Orchestrator
========================

Splits the job's dates into contiguous slices, runs one worker process per
slice and merges what they send back.

    dates ──partition──▶ [slice 1] [slice 2] ... [slice N]
                              │         │              │
                         worker 1   worker 2  ...  worker N   (spawned processes)
                              └─────────┴──────┬───────┘
                                         gather (all or nothing)
                                               │
                                         ReportWriter

The coordinator only suspends on the joint completion of all workers. If
any worker faults, the run fails with WorkerFailedError; partial results
are not written.
"""

import asyncio
import math
import multiprocessing
import time
from concurrent.futures import Executor, ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .browser_session import SharedBrowser
from .config import Settings
from .errors import WorkerFailedError
from .logger import get_logger
from .models import DateSlice, PriceObservation, ScrapeJob, WorkerResult, WorkerTask
from .report import ReportPaths, ReportWriter
from .worker import run_worker

log = get_logger('orchestrator')


def partition_dates(dates: Sequence[str], workers: int) -> List[DateSlice]:
    """
    Split dates into at most `workers` contiguous slices of ceil(n / workers).

    Order is preserved and every date lands in exactly one slice; empty
    trailing slices are dropped.
    """
    if workers < 1:
        raise ValueError("workers must be at least 1")
    if not dates:
        return []
    size = math.ceil(len(dates) / workers)
    return [tuple(dates[i:i + size]) for i in range(0, len(dates), size)]


def default_executor(max_workers: int) -> Executor:
    # Playwright does not survive fork; always spawn fresh interpreters
    return ProcessPoolExecutor(
        max_workers=max_workers,
        mp_context=multiprocessing.get_context('spawn'),
    )


@dataclass
class RunSummary:
    observations: List[PriceObservation] = field(default_factory=list)
    worker_results: List[WorkerResult] = field(default_factory=list)
    report: Optional[ReportPaths] = None
    duration_seconds: float = 0.0

    @property
    def dates_processed(self) -> int:
        return sum(r.dates_processed for r in self.worker_results)

    @property
    def dates_skipped(self) -> int:
        return sum(r.dates_skipped for r in self.worker_results)

    def counts_by_commodity(self) -> dict:
        counts = {}
        for obs in self.observations:
            counts[obs.commodity] = counts.get(obs.commodity, 0) + 1
        return counts


class ScrapeOrchestrator:
    """
    Runs a ScrapeJob across a pool of worker processes.

    Args:
        job: validated ScrapeJob
        settings: deployment settings
        worker_fn: callable(WorkerTask) -> WorkerResult, run inside the executor
        executor_factory: callable(max_workers) -> Executor
        writer: ReportWriter (defaults to settings.output_dir)
    """

    def __init__(
        self,
        job: ScrapeJob,
        settings: Settings,
        worker_fn: Callable[[WorkerTask], WorkerResult] = run_worker,
        executor_factory: Optional[Callable[[int], Executor]] = None,
        writer: Optional[ReportWriter] = None,
    ):
        self.job = job
        self.settings = settings
        self.worker_fn = worker_fn
        self.executor_factory = executor_factory or default_executor
        self.writer = writer or ReportWriter(settings.output_dir)

    def build_tasks(self, slices: List[DateSlice], endpoint: Optional[str] = None) -> List[WorkerTask]:
        return [
            WorkerTask(
                worker_id=i + 1,
                dates=dates,
                job=self.job,
                settings=self.settings,
                browser_endpoint=endpoint,
                log_file=str(self.settings.log_file),
            )
            for i, dates in enumerate(slices)
        ]

    async def run(self) -> RunSummary:
        start = time.time()
        dates = self.job.dates()
        slices = partition_dates(dates, self.job.workers)
        log.info(
            f"Scraping {len(dates)} date(s) {self.job.date_range[0]} .. {self.job.date_range[1]} "
            f"with {len(slices)} worker(s)"
        )
        for i, dates_slice in enumerate(slices, 1):
            log.info(f"  Worker {i}: {dates_slice[0]} .. {dates_slice[-1]} ({len(dates_slice)} dates)")

        shared: Optional[SharedBrowser] = None
        try:
            if len(dates) > self.settings.shared_browser_threshold:
                shared = SharedBrowser(headless=self.job.headless)
                await shared.start()
            tasks = self.build_tasks(slices, shared.endpoint if shared else None)
            results = await self._run_workers(tasks)
        finally:
            if shared is not None:
                await shared.shutdown()

        results.sort(key=lambda r: r.worker_id)
        observations = [obs for result in results for obs in result.observations]
        log.info(f"All workers finished: {len(observations)} price entries")

        report = self.writer.write(observations, self.job)
        return RunSummary(
            observations=observations,
            worker_results=results,
            report=report,
            duration_seconds=time.time() - start,
        )

    async def _run_workers(self, tasks: List[WorkerTask]) -> List[WorkerResult]:
        if not tasks:
            return []

        loop = asyncio.get_running_loop()
        executor = self.executor_factory(len(tasks))
        try:
            futures = [loop.run_in_executor(executor, self.worker_fn, task) for task in tasks]
            outcomes = await asyncio.gather(*futures, return_exceptions=True)
        finally:
            executor.shutdown(wait=True)

        results = []
        for task, outcome in zip(tasks, outcomes):
            if isinstance(outcome, WorkerFailedError):
                raise outcome
            if isinstance(outcome, BaseException):
                log.error(f"Worker {task.worker_id} failed: {outcome!r}")
                raise WorkerFailedError(task.worker_id, str(outcome) or type(outcome).__name__) from outcome
            results.append(outcome)
        return results


def run_scraper(job: ScrapeJob, settings: Settings, **kwargs) -> RunSummary:
    """Run a job to completion from synchronous code (CLI, scheduler)."""
    return asyncio.run(ScrapeOrchestrator(job, settings, **kwargs).run())
