"""Public interface for the rbz_rates package."""

from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Any

from rbz_rates.config import RuntimeMode, Settings
from rbz_rates.db import DEFAULT_SQLITE_DB_PATH
from rbz_rates.db.sqlite_manager import PersistenceResult, SQLiteManager
from rbz_rates.db.url_cache import SQLiteURLCache
from rbz_rates.ingestion.models import (
    ExtractedRateRow,
    ExtractionFailure,
    ExtractionResult,
    ExtractionSuccess,
    StoredRate,
)
from rbz_rates.ingestion.orchestrator import (
    RBZRateExtractor,
    run_batch_extraction,
    run_extraction,
)

__all__ = [
    "__version__",
    "ExtractedRateRow",
    "ExtractionFailure",
    "ExtractionResult",
    "ExtractionSuccess",
    "PersistenceResult",
    "RBZRateExtractor",
    "RBZRates",
    "RuntimeMode",
    "SQLiteManager",
    "Settings",
    "run_batch_extraction",
    "run_extraction",
    "seed_month_urls",
    "seed_rbz_historical",
    "seed_rbz_latest",
]

try:
    __version__ = importlib_metadata.version("rbz-rates")
except importlib_metadata.PackageNotFoundError:  # pragma: no cover - fallback for local runs
    __version__ = "0.1.0"


def seed_rbz_latest(*args, **kwargs):
    from rbz_rates.seeds.populate_rbz_rates import seed_rbz_latest as _seed_rbz_latest

    return _seed_rbz_latest(*args, **kwargs)


def seed_rbz_historical(*args, **kwargs):
    from rbz_rates.seeds.populate_rbz_rates import seed_rbz_historical as _seed_rbz_historical

    return _seed_rbz_historical(*args, **kwargs)


def seed_month_urls(*args, **kwargs):
    from rbz_rates.seeds.populate_rbz_rates import seed_month_urls as _seed_month_urls

    return _seed_month_urls(*args, **kwargs)


def _row_payload(row: StoredRate) -> dict[str, Any]:
    return {
        "bid": row.bid,
        "ask": row.ask,
        "mid_rate": row.mid_rate,
        "bid_zwg": row.bid_zwg,
        "ask_zwg": row.ask_zwg,
        "mid_zwg": row.mid_zwg,
    }


class RBZRates:
    """Package facade tying extraction to the bundled SQLite store."""

    __slots__ = ("db_path", "settings")

    __version__ = __version__

    def __init__(
        self,
        db_path: str | Path = DEFAULT_SQLITE_DB_PATH,
        *,
        settings: Settings | None = None,
    ) -> None:
        """Configure where rates are stored and how the RBZ site is reached.

        When ``settings`` is omitted they are read from the ``RBZ_RATES_*``
        environment variables.
        """

        self.db_path = Path(db_path)
        self.settings = settings or Settings.from_env()

    def extract(self, target_date: date | datetime | None = None) -> ExtractionResult:
        """Extract one bulletin without persisting it."""

        with SQLiteManager(self.db_path) as manager:
            with RBZRateExtractor(settings=self.settings, cache=SQLiteURLCache(manager)) as extractor:
                return extractor.run(target_date or date.today())

    def seed(self, target_date: date | None = None):
        """Insert today's (or ``target_date``'s) bulletin."""

        return seed_rbz_latest(db_path=self.db_path, target_date=target_date, settings=self.settings)

    def seed_historical(self, *, from_date: date, to_date: date | None = None):
        """Insert every bulletin between ``from_date`` and ``to_date``."""

        return seed_rbz_historical(
            start=from_date, end=to_date, db_path=self.db_path, settings=self.settings
        )

    def rate(self, rate_date: date | None = None) -> dict[str, Any] | None:
        """Return the snapshot for ``rate_date`` (or the latest stored date)."""

        with SQLiteManager(self.db_path) as manager:
            target = rate_date or manager.latest_rate_date()
            if target is None:
                return None
            rows = manager.fetch_range(target, target)
        if not rows:
            return None
        return {
            "rate_date": target,
            "base_currency": "ZWG",
            "source": "RBZ",
            "rates": {row.currency: _row_payload(row) for row in rows},
        }

    def history(
        self,
        from_date: date,
        to_date: date | None = None,
        *,
        currency: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return one snapshot per stored date in the window, oldest first."""

        with SQLiteManager(self.db_path) as manager:
            rows = manager.fetch_range(from_date, to_date, currency=currency)
        grouped: "OrderedDict[date, dict[str, Any]]" = OrderedDict()
        for row in rows:
            grouped.setdefault(row.rate_date, {})[row.currency] = _row_payload(row)
        return [
            {"rate_date": rate_date, "base_currency": "ZWG", "source": "RBZ", "rates": rates}
            for rate_date, rates in grouped.items()
        ]
