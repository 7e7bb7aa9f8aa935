#!/usr/bin/env python3
"""
CLI for the price archive scraper.

Usage:
    # Scrape one week with the default commodities
    price-scraper --start 2024-03-01 --end 2024-03-07

    # Two commodities, visible browser, 2 workers
    price-scraper --start 2024-03-01 --end 2024-03-31 \\
        --commodities "Rice,Eggs" --headless false --workers 2
"""

import argparse
import sys

from rich.console import Console
from rich.table import Table

from .config import DEFAULT_COMMODITIES, build_job, load_settings
from .errors import ConfigError, WorkerFailedError
from .logger import add_file_handler, get_logger, set_debug
from .orchestrator import RunSummary, run_scraper

log = get_logger('cli')


def _bool_arg(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ('true', '1', 'yes', 'y'):
        return True
    if lowered in ('false', '0', 'no', 'n'):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got '{value}'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='price-scraper',
        description='Scrape commodity prices from a news archive',
    )
    parser.add_argument('--start', required=True, help='Start date (YYYY-MM-DD)')
    parser.add_argument('--end', required=True, help='End date (YYYY-MM-DD), inclusive')
    parser.add_argument('--workers', type=int, default=4, help='Worker processes (default: 4)')
    parser.add_argument(
        '--commodities',
        default=None,
        help=f"Comma-separated commodity names (default: {', '.join(DEFAULT_COMMODITIES)})",
    )
    parser.add_argument('--debug', action='store_true', help='Verbose logging')
    parser.add_argument('--headless', type=_bool_arg, default=True, help='Run browsers headless (true|false)')
    parser.add_argument('--retry-attempts', type=int, default=3, help='Page load attempts (default: 3)')
    parser.add_argument('--page-timeout', type=int, default=30, help='Page load timeout in seconds (default: 30)')
    parser.add_argument('--output-dir', default=None, help='Directory for CSV/JSON output')
    return parser


def print_summary(summary: RunSummary, console: Console = None):
    """Per-commodity counts and per-worker stats."""
    console = console or Console()

    counts = summary.counts_by_commodity()
    table = Table(title="Price Entries")
    table.add_column("Commodity", style="cyan")
    table.add_column("Entries", justify="right")
    table.add_column("Report", style="dim")
    for commodity in sorted(counts):
        report_file = summary.report.csv_files.get(commodity) if summary.report else None
        table.add_row(commodity, str(counts[commodity]), str(report_file or ''))
    console.print(table)

    workers = Table(title="Workers")
    workers.add_column("Worker", justify="right")
    workers.add_column("Dates", justify="right")
    workers.add_column("Skipped", justify="right")
    workers.add_column("Articles", justify="right")
    workers.add_column("Failed", justify="right")
    workers.add_column("Prices", justify="right")
    for result in summary.worker_results:
        workers.add_row(
            str(result.worker_id),
            str(result.dates_processed),
            str(result.dates_skipped),
            str(result.articles_visited),
            str(result.articles_failed),
            str(len(result.observations)),
        )
    console.print(workers)

    console.print(
        f"[bold green]✓[/bold green] {len(summary.observations)} price entries "
        f"in {summary.duration_seconds:.1f}s"
    )
    if summary.report and summary.report.json_file:
        console.print(f"Combined data: {summary.report.json_file}")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    set_debug(args.debug)

    try:
        job = build_job(
            args.start,
            args.end,
            commodities=args.commodities,
            workers=args.workers,
            retry_attempts=args.retry_attempts,
            page_timeout=args.page_timeout,
            headless=args.headless,
            debug=args.debug,
        )
    except ConfigError as e:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return 2

    settings = load_settings(output_dir=args.output_dir)
    add_file_handler(settings.log_file)

    try:
        summary = run_scraper(job, settings)
    except WorkerFailedError as e:
        log.error(f"Run aborted: {e}")
        return 1
    except KeyboardInterrupt:
        log.warning("Interrupted")
        return 130

    print_summary(summary)
    return 0


if __name__ == '__main__':
    sys.exit(main())
