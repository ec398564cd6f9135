"""Locate RBZ month pages and daily bulletin PDF links."""

from __future__ import annotations

import re
from typing import Iterator
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from rbz_rates.config import RBZ_BASE_URL
from rbz_rates.db.url_cache import MemoryURLCache, MonthURLCache
from rbz_rates.ingestion.errors import MalformedDocument, NotFound
from rbz_rates.ingestion.models import MonthPageLocator, month_key
from rbz_rates.ingestion.strategy import PageSource
from rbz_rates.utils.logger import get_logger

LOGGER = get_logger(__name__)

MONTH_NUMBERS: dict[str, int] = {
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
}

DEFAULT_DAY_FALLBACKS = 4

_HEADING_PATTERN = re.compile(r"^([A-Za-z]+)\s+(\d{4})$")
_LEADING_DAY = re.compile(r"^\s*(\d+)")


def iter_month_headings(html: str, base_url: str = RBZ_BASE_URL) -> Iterator[MonthPageLocator]:
    """Yield a locator for every well-formed ``"<Month> <Year>"`` heading.

    Headings with any other text are skipped. Raises
    :class:`MalformedDocument` when the page has no month headings at all.
    """

    soup = BeautifulSoup(html, "html.parser")
    headings = soup.select("div.page-header h2")
    if not headings:
        raise MalformedDocument(
            "No month headings found on the exchange-rate archive page; the selector is outdated."
        )

    for heading in headings:
        link = heading.find("a", recursive=False)
        if link is None or not link.get("href"):
            LOGGER.debug("Skipping month heading without a link: %r", heading.get_text(strip=True))
            continue
        label = " ".join(link.get_text().split())
        match = _HEADING_PATTERN.match(label)
        if not match:
            LOGGER.debug("Skipping month heading with unexpected text: %r", label)
            continue
        month_number = MONTH_NUMBERS.get(match.group(1).lower())
        if month_number is None:
            LOGGER.debug("Skipping month heading with unknown month name: %r", label)
            continue
        yield MonthPageLocator(
            month=month_number,
            year=int(match.group(2)),
            url=urljoin(base_url, str(link["href"])),
        )


def find_daily_pdf_link(
    html: str,
    target_day: int,
    *,
    max_fallbacks: int = DEFAULT_DAY_FALLBACKS,
    base_url: str = RBZ_BASE_URL,
) -> str | None:
    """Return the bulletin link for ``target_day`` or the closest earlier day.

    Bulletins are not published on weekends and holidays, so the search steps
    back one day at a time, at most ``max_fallbacks`` times and never before
    day 1.
    """

    soup = BeautifulSoup(html, "html.parser")
    links_by_day: dict[int, str] = {}
    for row in soup.select("tbody tr"):
        cells = row.find_all("td", recursive=False)
        if len(cells) < 2:
            continue
        day_match = _LEADING_DAY.match(cells[0].get_text())
        link = cells[1].select_one("a[href$='.pdf']")
        if not day_match or link is None:
            continue
        links_by_day.setdefault(int(day_match.group(1)), str(link["href"]))

    for offset in range(max_fallbacks + 1):
        day = target_day - offset
        if day < 1:
            break
        href = links_by_day.get(day)
        if href:
            if offset:
                LOGGER.info("No bulletin for day %s; using day %s instead", target_day, day)
            return urljoin(base_url, href)
        LOGGER.debug("No bulletin link for day %s", day)
    return None


class RBZLinkResolver:
    """Resolve month-page and bulletin URLs, caching month pages."""

    def __init__(
        self,
        source: PageSource,
        *,
        cache: MonthURLCache | None = None,
        base_url: str = RBZ_BASE_URL,
        max_fallbacks: int = DEFAULT_DAY_FALLBACKS,
    ) -> None:
        self.source = source
        self.cache: MonthURLCache = cache if cache is not None else MemoryURLCache()
        self.base_url = base_url
        self.max_fallbacks = max_fallbacks

    def resolve_month_page_url(self, month: int, year: int) -> str:
        """Return the URL of the page listing ``month``/``year`` bulletins."""

        if not 1 <= month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {month}")
        key = month_key(month, year)
        cached = self.cache.get(key)
        if cached:
            LOGGER.info("Using cached page URL for %s", key)
            return cached

        LOGGER.warning("No cached page URL for %s; scanning the archive index", key)
        for locator in iter_month_headings(self.source.fetch_index(), self.base_url):
            if locator.month == month and locator.year == year:
                self.cache.put(key, locator.url)
                LOGGER.info("Cached monthly rate page URL for %s", key)
                return locator.url
        raise NotFound(f"no URL for {month}/{year}")

    def resolve_daily_pdf_url(self, month_page_url: str, target_day: int) -> str:
        """Return the bulletin PDF URL for ``target_day`` on a month page."""

        LOGGER.info("Looking for day %s bulletin on %s", target_day, month_page_url)
        html = self.source.fetch_page(month_page_url)
        url = find_daily_pdf_link(
            html, target_day, max_fallbacks=self.max_fallbacks, base_url=self.base_url
        )
        if url is None:
            raise NotFound(
                f"Could not find the PDF download URL for day {target_day} "
                f"(or the {self.max_fallbacks} days before it) on page {month_page_url}"
            )
        return url

    def prime_month_cache(self) -> int:
        """Cache every month page listed on the archive index; return how many were new."""

        added = 0
        for locator in iter_month_headings(self.source.fetch_index(), self.base_url):
            if self.cache.get(locator.key):
                continue
            self.cache.put(locator.key, locator.url)
            added += 1
        LOGGER.info("Cached %s new monthly rate page URLs", added)
        return added


__all__ = [
    "DEFAULT_DAY_FALLBACKS",
    "MONTH_NUMBERS",
    "RBZLinkResolver",
    "find_daily_pdf_link",
    "iter_month_headings",
]
