"""Compose link resolution, download and table reconstruction per bulletin date."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import date, datetime
from pathlib import Path
from typing import Callable

from rbz_rates.config import DEVELOPMENT_PDF_NAME, PageSourceKind, RuntimeMode, Settings
from rbz_rates.db.url_cache import MonthURLCache
from rbz_rates.ingestion.errors import ExtractionTimeout, error_kind
from rbz_rates.ingestion.models import ExtractionFailure, ExtractionResult, ExtractionSuccess
from rbz_rates.ingestion.rbz_links import RBZLinkResolver
from rbz_rates.ingestion.rbz_pdf import RBZPDFParser
from rbz_rates.ingestion.rbz_requests import RBZRequestsClient
from rbz_rates.ingestion.rbz_selenium import RBZSeleniumClient
from rbz_rates.ingestion.strategy import FixturePageSource, PageSource
from rbz_rates.utils.date_range import bulletin_label, iter_days, parse_date
from rbz_rates.utils.logger import get_logger

LOGGER = get_logger(__name__)

ExtractionRunner = Callable[[date], ExtractionResult]


def build_page_source(settings: Settings) -> PageSource:
    """Return the page source matching the configured mode and transport."""

    if not settings.mode.is_live:
        return FixturePageSource(settings.fixture_dir)
    if settings.page_source is PageSourceKind.BROWSER:
        return RBZSeleniumClient(
            timeout=max(int(settings.request_timeout), 1),
            index_url=settings.index_url,
        )
    return RBZRequestsClient(
        timeout=settings.request_timeout,
        max_retries=settings.max_retries,
        index_url=settings.index_url,
        verify_tls=settings.verify_tls,
    )


class RBZRateExtractor:
    """Run the full month page → bulletin → table chain for one date."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        source: PageSource | None = None,
        resolver: RBZLinkResolver | None = None,
        parser: RBZPDFParser | None = None,
        cache: MonthURLCache | None = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self._owns_source = source is None
        self.source = source or build_page_source(self.settings)
        self.resolver = resolver or RBZLinkResolver(
            self.source, cache=cache, base_url=self.settings.base_url
        )
        self.parser = parser or RBZPDFParser()

    def close(self) -> None:
        """Release the page source when this extractor built it."""

        closer = getattr(self.source, "close", None)
        if self._owns_source and callable(closer):
            closer()

    def __enter__(self) -> "RBZRateExtractor":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()

    def pdf_path_for(self, target_date: date) -> Path:
        if self.settings.mode is RuntimeMode.DEVELOPMENT:
            return self.settings.download_dir / DEVELOPMENT_PDF_NAME
        return self.settings.download_dir / f"{target_date.isoformat()}.pdf"

    def extract(
        self,
        target_date: date | datetime,
        *,
        cancelled: threading.Event | None = None,
    ) -> ExtractionSuccess:
        """Return the rates for ``target_date``; raises on any failure.

        When ``cancelled`` is set the chain stops before its next step with
        :class:`ExtractionTimeout`. A request already in flight still completes.
        """

        day = parse_date(target_date)

        def _checkpoint(step: str) -> None:
            if cancelled is not None and cancelled.is_set():
                raise ExtractionTimeout(f"Extraction for {day.isoformat()} abandoned before {step}")

        LOGGER.info("Starting rate extraction for %s (%s mode)", bulletin_label(day), self.settings.mode.value)

        _checkpoint("the month lookup")
        month_page_url = self.resolver.resolve_month_page_url(day.month, day.year)
        _checkpoint("the daily lookup")
        pdf_url = self.resolver.resolve_daily_pdf_url(month_page_url, day.day)

        _checkpoint("the download")
        pdf_path = self.pdf_path_for(day)
        if self.settings.mode is RuntimeMode.DEVELOPMENT:
            pdf_path.unlink(missing_ok=True)
        if pdf_path.exists():
            LOGGER.info("Reusing previously downloaded bulletin %s", pdf_path)
        else:
            self.source.download(pdf_url, pdf_path)

        _checkpoint("parsing")
        parsed = self.parser.parse(pdf_path, rate_date=day)
        return ExtractionSuccess(rate_date=day, rows=parsed.rates)

    def run(self, target_date: date | datetime, timeout: float | None = None) -> ExtractionResult:
        """Like :meth:`extract` but bounded by ``timeout`` and never raising."""

        day = parse_date(target_date)
        budget = self.settings.extraction_timeout if timeout is None else timeout
        cancelled = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rbz-extract")
        try:
            future = executor.submit(self.extract, day, cancelled=cancelled)
            try:
                return future.result(timeout=budget)
            except FutureTimeoutError:
                # The worker stops at its next step; it never starts a download late.
                cancelled.set()
                future.cancel()
                raise ExtractionTimeout(
                    f"Script timed out after {budget:g}s trying to get rates for {day.isoformat()}"
                ) from None
        except Exception as exc:
            reason = (
                f"[{bulletin_label(day)}] An error occurred during the rate extraction process: {exc}"
            )
            LOGGER.error(reason)
            return ExtractionFailure(rate_date=day, reason=reason, error_type=error_kind(exc))
        finally:
            executor.shutdown(wait=False)


def run_extraction(
    target_date: date | datetime,
    timeout: float | None = None,
    *,
    extractor: RBZRateExtractor | None = None,
) -> ExtractionResult:
    """Extract one day's rates, returning a success or failure result."""

    if extractor is not None:
        return extractor.run(target_date, timeout=timeout)
    with RBZRateExtractor() as owned:
        return owned.run(target_date, timeout=timeout)


def run_batch_extraction(
    start_date: str | date | datetime,
    end_date: str | date | datetime,
    run: ExtractionRunner | None = None,
) -> list[ExtractionResult]:
    """Extract every day in ``[start_date, end_date]`` one after another.

    Days are processed strictly sequentially to keep the load on the upstream
    site low; a failed day is recorded and the walk continues.
    """

    days = list(iter_days(start_date, end_date))
    if run is None:
        with RBZRateExtractor() as owned:
            return run_batch_extraction(start_date, end_date, owned.run)

    LOGGER.info("Extracting rates for %s days from %s to %s", len(days), days[0], days[-1])
    results: list[ExtractionResult] = []
    for day in days:
        results.append(run(day))
    failed = sum(1 for result in results if not result.ok)
    if failed:
        LOGGER.warning("%s of %s days failed to extract", failed, len(results))
    return results


__all__ = [
    "ExtractionRunner",
    "RBZRateExtractor",
    "build_page_source",
    "run_batch_extraction",
    "run_extraction",
]
