"""
tests/test_config.py

Pytest unit tests for job building, commodity resolution, environment
settings and CLI argument handling.
"""

from __future__ import annotations

from datetime import date

import pytest

from price_scraper.cli import build_parser, main
from price_scraper.config import (
    DEFAULT_COMMODITIES,
    PRODUCT_VARIANTS,
    build_job,
    load_settings,
    resolve_commodities,
)
from price_scraper.errors import ConfigError


class TestResolveCommodities:
    def test_defaults(self) -> None:
        assert resolve_commodities(None) == tuple(DEFAULT_COMMODITIES)

    def test_comma_string_case_insensitive(self) -> None:
        assert resolve_commodities("rice, EGGS ,Rice") == ("Rice", "Eggs")

    def test_unknown_name_rejected(self) -> None:
        with pytest.raises(ConfigError, match="Caviar"):
            resolve_commodities(["Rice", "Caviar"])

    def test_empty_rejected(self) -> None:
        with pytest.raises(ConfigError):
            resolve_commodities(" , ")

    def test_defaults_are_table_keys(self) -> None:
        assert all(name in PRODUCT_VARIANTS for name in DEFAULT_COMMODITIES)


class TestBuildJob:
    def test_inclusive_date_range(self) -> None:
        job = build_job("2024-02-27", "2024-03-02", commodities="Rice")

        assert job.start == date(2024, 2, 27)
        assert job.dates() == ["2024-02-27", "2024-02-28", "2024-02-29", "2024-03-01", "2024-03-02"]
        assert job.page_timeout_ms == 30000

    def test_single_day(self) -> None:
        assert build_job("2024-03-05", "2024-03-05").dates() == ["2024-03-05"]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"start": "2024-03-10", "end": "2024-03-01"},
            {"start": "2024-02-30", "end": "2024-03-01"},
            {"start": "03/01/2024", "end": "2024-03-01"},
            {"start": "2024-03-01", "end": "2024-03-02", "workers": 0},
            {"start": "2024-03-01", "end": "2024-03-02", "retry_attempts": 0},
            {"start": "2024-03-01", "end": "2024-03-02", "page_timeout": 0},
        ],
    )
    def test_rejects_bad_input(self, kwargs: dict) -> None:
        with pytest.raises(ConfigError):
            build_job(**kwargs)

    def test_job_is_frozen(self) -> None:
        job = build_job("2024-03-01", "2024-03-02")
        with pytest.raises((AttributeError, TypeError)):
            job.workers = 9  # type: ignore[misc]


class TestSettings:
    def test_environment_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("OUTPUT_DIR", "/tmp/prices")
        monkeypatch.setenv("SHARED_BROWSER_THRESHOLD", "3")
        monkeypatch.setenv("MIN_ARTICLE_LENGTH", "not-a-number")

        settings = load_settings()

        assert settings.output_dir == "/tmp/prices"
        assert settings.shared_browser_threshold == 3
        assert settings.min_article_length == 50

    def test_explicit_overrides_win_and_none_ignored(self, monkeypatch) -> None:
        monkeypatch.setenv("OUTPUT_DIR", "/tmp/prices")

        assert load_settings(output_dir="reports").output_dir == "reports"
        assert load_settings(output_dir=None).output_dir == "/tmp/prices"


class TestCli:
    def test_defaults(self) -> None:
        args = build_parser().parse_args(["--start", "2024-03-01", "--end", "2024-03-02"])

        assert args.workers == 4
        assert args.headless is True
        assert args.retry_attempts == 3
        assert args.page_timeout == 30

    def test_headless_false(self) -> None:
        args = build_parser().parse_args(
            ["--start", "2024-03-01", "--end", "2024-03-02", "--headless", "false"]
        )
        assert args.headless is False

    def test_bad_dates_exit_code(self, capsys) -> None:
        assert main(["--start", "2024-03-10", "--end", "2024-03-01"]) == 2
        assert "after end date" in capsys.readouterr().err

    def test_unknown_commodity_exit_code(self) -> None:
        assert main(["--start", "2024-03-01", "--end", "2024-03-01", "--commodities", "Caviar"]) == 2
