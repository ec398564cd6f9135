from __future__ import annotations

from pathlib import Path

import pytest

from rbz_rates.db.url_cache import MemoryURLCache
from rbz_rates.ingestion.errors import MalformedDocument, NotFound
from rbz_rates.ingestion.rbz_links import (
    RBZLinkResolver,
    find_daily_pdf_link,
    iter_month_headings,
)

FIXTURES = Path(__file__).parent / "fixtures"
INDEX_HTML = (FIXTURES / "exchange-rates.html").read_text(encoding="utf-8")
MONTH_HTML = (FIXTURES / "daily-exchange-rates.html").read_text(encoding="utf-8")
MONTH_URL = "https://www.rbz.co.zw/index.php/research/markets/exchange-rates/13-daily-exchange-rates/1301-december-2024"


class _CountingSource:
    def __init__(self, index_html: str = INDEX_HTML, month_html: str = MONTH_HTML) -> None:
        self.index_html = index_html
        self.month_html = month_html
        self.index_calls = 0
        self.page_calls: list[str] = []

    def fetch_index(self) -> str:
        self.index_calls += 1
        return self.index_html

    def fetch_page(self, url: str) -> str:
        self.page_calls.append(url)
        return self.month_html

    def download(self, url, destination):  # pragma: no cover - unused here
        raise AssertionError("download should not be called")


def _pdf_url(day: int) -> str:
    return (
        "https://www.rbz.co.zw/documents/Exchange_Rates/2024/December/"
        f"RATES_{day}_DECEMBER_2024.pdf"
    )


def test_iter_month_headings_skips_malformed_headings() -> None:
    locators = list(iter_month_headings(INDEX_HTML))

    assert [locator.key for locator in locators] == ["12-2024", "11-2024", "2-2025", "2-2017", "2-2017"]
    assert locators[0].url == MONTH_URL


def test_iter_month_headings_requires_headings() -> None:
    with pytest.raises(MalformedDocument):
        list(iter_month_headings("<html><body><h2>December 2024</h2></body></html>"))


def test_resolve_month_page_url_scans_index_and_caches() -> None:
    source = _CountingSource()
    cache = MemoryURLCache()
    resolver = RBZLinkResolver(source, cache=cache)

    url = resolver.resolve_month_page_url(2, 2017)

    assert "2017" in url
    assert "february" in url
    assert url.endswith("266-february-2017")
    assert cache.get("2-2017") == url
    assert source.index_calls == 1


def test_resolve_month_page_url_uses_cache_without_fetching() -> None:
    source = _CountingSource()
    cache = MemoryURLCache({"3-2021": "https://example.test/march-2021"})
    resolver = RBZLinkResolver(source, cache=cache)

    assert resolver.resolve_month_page_url(3, 2021) == "https://example.test/march-2021"
    assert source.index_calls == 0
    assert source.page_calls == []


def test_resolve_month_page_url_raises_when_month_missing() -> None:
    resolver = RBZLinkResolver(_CountingSource(), cache=MemoryURLCache())

    with pytest.raises(NotFound, match="no URL for 3/2019"):
        resolver.resolve_month_page_url(3, 2019)


def test_resolve_month_page_url_rejects_invalid_month() -> None:
    resolver = RBZLinkResolver(_CountingSource())

    with pytest.raises(ValueError):
        resolver.resolve_month_page_url(13, 2024)


def test_find_daily_pdf_link_returns_exact_day() -> None:
    assert find_daily_pdf_link(MONTH_HTML, 18) == _pdf_url(18)


def test_find_daily_pdf_link_falls_back_to_previous_day() -> None:
    assert find_daily_pdf_link(MONTH_HTML, 24) == _pdf_url(23)


def test_find_daily_pdf_link_steps_back_over_a_long_weekend() -> None:
    assert find_daily_pdf_link(MONTH_HTML, 22) == _pdf_url(19)


def test_find_daily_pdf_link_ignores_non_pdf_links() -> None:
    assert find_daily_pdf_link(MONTH_HTML, 8) == _pdf_url(6)


def test_find_daily_pdf_link_honours_fallback_limit() -> None:
    assert find_daily_pdf_link(MONTH_HTML, 22, max_fallbacks=2) is None
    assert find_daily_pdf_link(MONTH_HTML, 24, max_fallbacks=0) is None


def test_find_daily_pdf_link_never_goes_before_first_day() -> None:
    assert find_daily_pdf_link(MONTH_HTML, 1) is None


def test_resolve_daily_pdf_url_raises_not_found() -> None:
    source = _CountingSource()
    resolver = RBZLinkResolver(source, max_fallbacks=0)

    with pytest.raises(NotFound):
        resolver.resolve_daily_pdf_url(MONTH_URL, 21)
    assert source.page_calls == [MONTH_URL]


def test_prime_month_cache_counts_new_entries() -> None:
    cache = MemoryURLCache({"12-2024": MONTH_URL})
    resolver = RBZLinkResolver(_CountingSource(), cache=cache)

    assert resolver.prime_month_cache() == 3
    assert len(cache) == 4
    assert "2-2025" in cache
    assert cache.get("2-2017").endswith("266-february-2017")
