"""
tests/test_orchestrator.py

Pytest unit tests for date partitioning and the worker pool orchestrator.

Workers are replaced by plain functions run on a thread pool, so the
fan-out / gather / merge logic is exercised without processes or
browsers.
"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from pathlib import Path
from typing import List

import pytest

from price_scraper import orchestrator as orchestrator_module
from price_scraper.config import Settings
from price_scraper.errors import WorkerFailedError
from price_scraper.models import PriceObservation, PriceType, ScrapeJob, WorkerResult, WorkerTask
from price_scraper.orchestrator import ScrapeOrchestrator, partition_dates
from price_scraper.report import JSON_FILENAME, ReportWriter


def thread_executor(max_workers: int) -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=max_workers)


def make_job(days: int = 6, workers: int = 3) -> ScrapeJob:
    return ScrapeJob(
        start=date(2024, 3, 1),
        end=date(2024, 3, days),
        commodities=("Rice",),
        workers=workers,
    )


def fake_worker(task: WorkerTask) -> WorkerResult:
    observations = tuple(
        PriceObservation(
            date=day,
            commodity="Rice",
            price=f"Tk {60 + i} per kg",
            price_type=PriceType.RETAIL,
            article_title="Rice prices",
            article_url=f"https://www.newagebd.net/article/{day}",
        )
        for i, day in enumerate(task.dates)
    )
    return WorkerResult(
        worker_id=task.worker_id,
        observations=observations,
        dates_processed=len(task.dates),
    )


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(output_dir=str(tmp_path), shared_browser_threshold=1000)


# ---------------------------------------------------------------------------
# partition_dates
# ---------------------------------------------------------------------------


class TestPartitionDates:
    def test_even_split(self) -> None:
        assert partition_dates(["a", "b", "c", "d"], 2) == [("a", "b"), ("c", "d")]

    def test_last_slice_shorter(self) -> None:
        assert partition_dates(["a", "b", "c", "d", "e"], 2) == [("a", "b", "c"), ("d", "e")]

    def test_empty_slices_dropped(self) -> None:
        # ceil(5 / 4) = 2 -> only three non-empty slices
        assert partition_dates(["a", "b", "c", "d", "e"], 4) == [("a", "b"), ("c", "d"), ("e",)]

    def test_more_workers_than_dates(self) -> None:
        assert partition_dates(["a", "b"], 8) == [("a",), ("b",)]

    @pytest.mark.parametrize("count, workers", [(1, 1), (7, 3), (30, 4), (31, 7), (10, 10)])
    def test_covers_every_date_once_in_order(self, count: int, workers: int) -> None:
        dates = [f"d{i}" for i in range(count)]
        slices = partition_dates(dates, workers)

        assert [d for s in slices for d in s] == dates
        assert len(slices) <= workers
        assert all(slices)

    def test_empty_input(self) -> None:
        assert partition_dates([], 3) == []

    def test_rejects_zero_workers(self) -> None:
        with pytest.raises(ValueError):
            partition_dates(["a"], 0)


# ---------------------------------------------------------------------------
# ScrapeOrchestrator
# ---------------------------------------------------------------------------


class TestScrapeOrchestrator:
    def test_merges_all_workers(self, settings: Settings, tmp_path: Path) -> None:
        orchestrator = ScrapeOrchestrator(
            make_job(days=6, workers=3),
            settings,
            worker_fn=fake_worker,
            executor_factory=thread_executor,
        )

        summary = asyncio.run(orchestrator.run())

        assert len(summary.worker_results) == 3
        assert [r.worker_id for r in summary.worker_results] == [1, 2, 3]
        assert sorted(o.date for o in summary.observations) == [f"2024-03-0{d}" for d in range(1, 7)]
        assert summary.dates_processed == 6
        assert summary.counts_by_commodity() == {"Rice": 6}
        assert (tmp_path / "Rice_prices.csv").exists()
        assert (tmp_path / JSON_FILENAME).exists()

    def test_tasks_carry_their_slice(self, settings: Settings) -> None:
        seen: List[WorkerTask] = []
        lock = threading.Lock()

        def recording_worker(task: WorkerTask) -> WorkerResult:
            with lock:
                seen.append(task)
            return WorkerResult(worker_id=task.worker_id)

        orchestrator = ScrapeOrchestrator(
            make_job(days=5, workers=2),
            settings,
            worker_fn=recording_worker,
            executor_factory=thread_executor,
        )
        asyncio.run(orchestrator.run())

        slices = {t.worker_id: t.dates for t in seen}
        assert slices == {
            1: ("2024-03-01", "2024-03-02", "2024-03-03"),
            2: ("2024-03-04", "2024-03-05"),
        }
        assert all(t.browser_endpoint is None for t in seen)
        assert all(t.settings is settings for t in seen)

    def test_worker_failure_fails_run(self, settings: Settings, tmp_path: Path) -> None:
        def flaky_worker(task: WorkerTask) -> WorkerResult:
            if task.worker_id == 2:
                raise RuntimeError("browser crashed")
            return fake_worker(task)

        orchestrator = ScrapeOrchestrator(
            make_job(days=6, workers=3),
            settings,
            worker_fn=flaky_worker,
            executor_factory=thread_executor,
        )

        with pytest.raises(WorkerFailedError) as exc_info:
            asyncio.run(orchestrator.run())

        assert exc_info.value.worker_id == 2
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        # no partial report
        assert not (tmp_path / JSON_FILENAME).exists()

    def test_uses_given_writer(self, settings: Settings, tmp_path: Path) -> None:
        out = tmp_path / "custom"
        orchestrator = ScrapeOrchestrator(
            make_job(days=2, workers=1),
            settings,
            worker_fn=fake_worker,
            executor_factory=thread_executor,
            writer=ReportWriter(out),
        )

        summary = asyncio.run(orchestrator.run())

        assert summary.report.json_file == out / JSON_FILENAME
        assert summary.report.total_entries == 2

    def test_tasks_carry_log_file(self, settings: Settings) -> None:
        orchestrator = ScrapeOrchestrator(make_job(days=2, workers=2), settings)
        tasks = orchestrator.build_tasks([("2024-03-01",), ("2024-03-02",)])

        assert [t.log_file for t in tasks] == [str(settings.log_file)] * 2


# ---------------------------------------------------------------------------
# Shared browser
# ---------------------------------------------------------------------------


class FakeSharedBrowser:
    instances: List["FakeSharedBrowser"] = []

    def __init__(self, headless: bool = True, port=None) -> None:
        self.headless = headless
        self.started = False
        self.shut_down = False
        FakeSharedBrowser.instances.append(self)

    @property
    def endpoint(self):
        return "http://127.0.0.1:9333" if self.started else None

    async def start(self) -> None:
        self.started = True

    async def shutdown(self) -> None:
        self.shut_down = True


class TestSharedBrowser:
    @pytest.fixture(autouse=True)
    def fake_shared(self, monkeypatch) -> None:
        FakeSharedBrowser.instances = []
        monkeypatch.setattr(orchestrator_module, "SharedBrowser", FakeSharedBrowser)

    @pytest.fixture()
    def shared_settings(self, tmp_path: Path) -> Settings:
        return Settings(output_dir=str(tmp_path), shared_browser_threshold=2)

    def test_endpoint_passed_to_every_task(self, shared_settings: Settings) -> None:
        seen: List[WorkerTask] = []
        lock = threading.Lock()

        def recording_worker(task: WorkerTask) -> WorkerResult:
            with lock:
                seen.append(task)
            return WorkerResult(worker_id=task.worker_id)

        orchestrator = ScrapeOrchestrator(
            make_job(days=6, workers=3),
            shared_settings,
            worker_fn=recording_worker,
            executor_factory=thread_executor,
        )
        asyncio.run(orchestrator.run())

        assert len(seen) == 3
        assert {t.browser_endpoint for t in seen} == {"http://127.0.0.1:9333"}
        [shared] = FakeSharedBrowser.instances
        assert shared.shut_down

    def test_shutdown_when_worker_faults(self, shared_settings: Settings) -> None:
        def crashing_worker(task: WorkerTask) -> WorkerResult:
            raise RuntimeError("browser crashed")

        orchestrator = ScrapeOrchestrator(
            make_job(days=6, workers=3),
            shared_settings,
            worker_fn=crashing_worker,
            executor_factory=thread_executor,
        )

        with pytest.raises(WorkerFailedError):
            asyncio.run(orchestrator.run())

        [shared] = FakeSharedBrowser.instances
        assert shared.shut_down

    def test_small_runs_launch_no_shared_browser(self, shared_settings: Settings) -> None:
        orchestrator = ScrapeOrchestrator(
            make_job(days=2, workers=2),
            shared_settings,
            worker_fn=fake_worker,
            executor_factory=thread_executor,
        )
        asyncio.run(orchestrator.run())

        assert FakeSharedBrowser.instances == []
