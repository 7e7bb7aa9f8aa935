"""
Daily scheduler.

Every day at a fixed local time (02:00 by default) scrape the trailing
window of days that ended yesterday. Each run appends JSON lines to
<log_dir>/scheduler.log:

    {"timestamp": "...", "status": "Started",   "details": {...}}
    {"timestamp": "...", "status": "Completed", "details": {...}}

Usage:
    price-scraper-scheduler                 # block and run on schedule
    price-scraper-scheduler --run-now       # one run, then exit
"""

import argparse
import json
import os
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Optional, Tuple

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from playwright.async_api import Error as PlaywrightError

from .config import Settings, build_job, load_settings
from .errors import ScraperError
from .logger import add_file_handler, get_logger
from .orchestrator import run_scraper

log = get_logger('scheduler')

SCHEDULE_AT = os.getenv('SCHEDULE_AT', '02:00')
SCHEDULE_DAYS = int(os.getenv('SCHEDULE_DAYS', '1'))
SCHEDULE_WORKERS = int(os.getenv('SCHEDULE_WORKERS', '4'))
LOG_FILENAME = 'scheduler.log'
JOB_ID = 'daily_price_scrape'


def trailing_window(today: date, days: int) -> Tuple[date, date]:
    """(today - days, today - 1): the last `days` complete days."""
    if days < 1:
        raise ValueError("days must be at least 1")
    return today - timedelta(days=days), today - timedelta(days=1)


def parse_time_of_day(value: str) -> Tuple[int, int]:
    """'HH:MM' -> (hour, minute); raises ValueError on anything else."""
    parsed = datetime.strptime(value.strip(), '%H:%M')
    return parsed.hour, parsed.minute


def log_scheduled_run(log_dir, status: str, details: Optional[dict] = None) -> Path:
    """Append one JSON status line to the scheduler log."""
    path = Path(log_dir) / LOG_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    entry = {
        'timestamp': datetime.now().isoformat(),
        'status': status,
        'details': details or {},
    }
    with open(path, 'a', encoding='utf-8') as f:
        f.write(json.dumps(entry, ensure_ascii=False) + '\n')
    return path


def run_scheduled_scrape(
    days: int = SCHEDULE_DAYS,
    workers: int = SCHEDULE_WORKERS,
    commodities=None,
    settings: Optional[Settings] = None,
    today: Optional[date] = None,
    runner: Callable = run_scraper,
) -> bool:
    """
    Scrape the trailing window once. Returns True on success.

    Scrape failures (bad job parameters, worker faults, browser and I/O
    errors) are logged to the logger and scheduler.log and reported as
    False. Anything else propagates; under the scheduler APScheduler logs
    it and the next day's run still fires.
    """
    settings = settings or load_settings()
    start, end = trailing_window(today or date.today(), days)
    details = {'startDate': start.isoformat(), 'endDate': end.isoformat(), 'workers': workers}

    log.info(f"Scheduled scrape for {start} .. {end}")
    log_scheduled_run(settings.log_dir, 'Started', details)

    try:
        job = build_job(start, end, commodities=commodities, workers=workers)
        summary = runner(job, settings)
    except (ScraperError, PlaywrightError, OSError, RuntimeError, ValueError) as e:
        log.error(f"Scheduled scrape failed: {e}")
        log_scheduled_run(settings.log_dir, 'Failed', {**details, 'error': str(e)})
        return False

    log_scheduled_run(settings.log_dir, 'Completed', {
        **details,
        'totalEntries': len(summary.observations),
        'durationSeconds': round(summary.duration_seconds, 1),
    })
    log.info("Scheduled scrape completed")
    return True


def build_scheduler(
    at: str = SCHEDULE_AT,
    days: int = SCHEDULE_DAYS,
    workers: int = SCHEDULE_WORKERS,
    timezone=None,
) -> BlockingScheduler:
    """
    Configured but not yet started scheduler with the daily scrape job.

    `timezone` defaults to the machine's local zone.
    """
    hour, minute = parse_time_of_day(at)
    scheduler = BlockingScheduler(timezone=timezone) if timezone else BlockingScheduler()
    scheduler.add_job(
        run_scheduled_scrape,
        trigger=CronTrigger(hour=hour, minute=minute, timezone=timezone),
        kwargs={'days': days, 'workers': workers},
        id=JOB_ID,
        name='Daily price scrape',
        replace_existing=True,
        coalesce=True,
        max_instances=1,
        misfire_grace_time=3600,
    )
    return scheduler


def run_forever(at: str = SCHEDULE_AT, days: int = SCHEDULE_DAYS, workers: int = SCHEDULE_WORKERS):
    """Block, running the scrape daily at `at` until interrupted."""
    scheduler = build_scheduler(at, days, workers)
    log.info(f"Scheduler started: daily at {at}, scraping the last {days} day(s)")
    scheduler.start()


def _time_of_day(value: str) -> str:
    try:
        parse_time_of_day(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected HH:MM, got '{value}'")
    return value


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='price-scraper-scheduler',
        description='Run the price scraper every day for the trailing window',
    )
    parser.add_argument('--run-now', action='store_true', help='Run once immediately and exit')
    parser.add_argument('--at', type=_time_of_day, default=SCHEDULE_AT, help='Daily run time (HH:MM)')
    parser.add_argument('--days', type=int, default=SCHEDULE_DAYS, help='Days to scrape per run')
    parser.add_argument('--workers', type=int, default=SCHEDULE_WORKERS, help='Worker processes')
    args = parser.parse_args(argv)

    if args.days < 1:
        parser.error('--days must be at least 1')

    settings = load_settings()
    add_file_handler(settings.log_file)

    if args.run_now:
        ok = run_scheduled_scrape(days=args.days, workers=args.workers, settings=settings)
        return 0 if ok else 1

    try:
        run_forever(at=args.at, days=args.days, workers=args.workers)
    except (KeyboardInterrupt, SystemExit):
        log.info("Scheduler stopped")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
