"""Populate RBZ exchange rates from the daily bulletins into SQLite."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Sequence

from rbz_rates.config import Settings
from rbz_rates.db import DEFAULT_SQLITE_DB_PATH
from rbz_rates.db.sqlite_manager import PersistenceResult, SQLiteManager
from rbz_rates.db.url_cache import SQLiteURLCache
from rbz_rates.ingestion.models import ExtractionFailure, ExtractionResult, ExtractionSuccess
from rbz_rates.ingestion.orchestrator import RBZRateExtractor, run_batch_extraction
from rbz_rates.ingestion.rbz_links import RBZLinkResolver
from rbz_rates.utils.date_range import days_between
from rbz_rates.utils.logger import get_logger

LOGGER = get_logger(__name__)

LARGE_RANGE_DAYS = 31

__all__ = [
    "SeedReport",
    "main",
    "parse_args",
    "persist_results",
    "seed_month_urls",
    "seed_rbz_historical",
    "seed_rbz_latest",
]


@dataclass(slots=True)
class SeedReport:
    """Outcome of a seeding run."""

    persistence: PersistenceResult = field(default_factory=PersistenceResult)
    failures: list[ExtractionFailure] = field(default_factory=list)
    succeeded: int = 0


def persist_results(manager: SQLiteManager, results: Sequence[ExtractionResult]) -> SeedReport:
    """Store successful days and report failures with their reasons."""

    report = SeedReport()
    successes = [result for result in results if isinstance(result, ExtractionSuccess)]
    report.failures = [result for result in results if isinstance(result, ExtractionFailure)]
    report.succeeded = len(successes)

    if report.failures:
        LOGGER.error("%s rate(s) failed to extract:", len(report.failures))
        for index, failure in enumerate(report.failures, start=1):
            LOGGER.error("  %s. %s (%s)", index, failure.reason.strip(), failure.error_type)

    rows = [row for success in successes for row in success.rows.values()]
    if not rows:
        LOGGER.warning("No valid rates were retrieved.")
        return report
    report.persistence = manager.insert_rates(rows)
    return report


def _extractor_for(manager: SQLiteManager, settings: Settings | None) -> RBZRateExtractor:
    return RBZRateExtractor(settings=settings, cache=SQLiteURLCache(manager))


def seed_rbz_latest(
    *,
    db_path: str | Path = DEFAULT_SQLITE_DB_PATH,
    target_date: date | None = None,
    settings: Settings | None = None,
) -> SeedReport:
    """Extract today's bulletin (or ``target_date``) and insert its rows."""

    day = target_date or date.today()
    with SQLiteManager(db_path) as manager:
        with _extractor_for(manager, settings) as extractor:
            result = extractor.run(day)
        report = persist_results(manager, [result])
    if report.succeeded:
        LOGGER.info("Latest rates inserted for %s", day.isoformat())
    return report


def seed_rbz_historical(
    *,
    start: date,
    end: date | None = None,
    db_path: str | Path = DEFAULT_SQLITE_DB_PATH,
    settings: Settings | None = None,
) -> SeedReport:
    """Extract every day in ``[start, end]`` sequentially and insert the successes."""

    end_date = end or date.today()
    if end_date < start:
        raise ValueError("End date must be after start date.")
    span = days_between(start, end_date)
    if span > LARGE_RANGE_DAYS:
        LOGGER.warning("Retrieving rates for %s days. This may take time.", span + 1)

    with SQLiteManager(db_path) as manager:
        with _extractor_for(manager, settings) as extractor:
            results = run_batch_extraction(start, end_date, extractor.run)
        report = persist_results(manager, results)
    LOGGER.info(
        "Inserted %s rate(s) from %s to %s",
        report.succeeded,
        start.isoformat(),
        end_date.isoformat(),
    )
    return report


def seed_month_urls(
    *,
    db_path: str | Path = DEFAULT_SQLITE_DB_PATH,
    settings: Settings | None = None,
) -> int:
    """Cache every month page URL listed on the archive index."""

    with SQLiteManager(db_path) as manager:
        with _extractor_for(manager, settings) as extractor:
            resolver: RBZLinkResolver = extractor.resolver
            return resolver.prime_month_cache()


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--db",
        dest="db_path",
        default=str(DEFAULT_SQLITE_DB_PATH),
        help="SQLite database path",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    latest = subparsers.add_parser("latest", help="Insert the most recent bulletin")
    latest.add_argument(
        "--date",
        dest="target_date",
        type=date.fromisoformat,
        help="Bulletin date (YYYY-MM-DD); defaults to today",
    )

    batch = subparsers.add_parser("batch", help="Insert every bulletin of a date range")
    batch.add_argument("--from", dest="start", required=True, type=date.fromisoformat)
    batch.add_argument("--to", dest="end", type=date.fromisoformat, help="Defaults to today")

    subparsers.add_parser("months", help="Cache every month page URL from the archive index")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    if args.command == "months":
        seed_month_urls(db_path=args.db_path)
        return 0
    if args.command == "latest":
        report = seed_rbz_latest(db_path=args.db_path, target_date=args.target_date)
    else:
        report = seed_rbz_historical(start=args.start, end=args.end, db_path=args.db_path)
    return 1 if report.failures and not report.succeeded else 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
