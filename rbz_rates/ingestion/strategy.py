"""Abstractions for pluggable RBZ page sources."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlsplit

from rbz_rates.ingestion.errors import NotFound
from rbz_rates.utils.logger import get_logger

LOGGER = get_logger(__name__)

INDEX_FIXTURE = "exchange-rates.html"
MONTH_FIXTURE = "daily-exchange-rates.html"
PDF_FIXTURE = "rates.pdf"


class PageSource(Protocol):
    """Contract for reading RBZ pages and bulletins.

    Live implementations talk to the RBZ site; the fixture implementation
    serves files from disk so the pipeline can run deterministically.
    """

    def fetch_index(self) -> str:
        ...  # pragma: no cover - protocol definition

    def fetch_page(self, url: str) -> str:
        ...  # pragma: no cover - protocol definition

    def download(self, url: str, destination: str | Path) -> Path:
        ...  # pragma: no cover - protocol definition


class FixturePageSource:
    """Serve the archive index, month page and bulletins from a local directory."""

    def __init__(self, fixture_dir: str | Path) -> None:
        self.fixture_dir = Path(fixture_dir)

    def _read(self, name: str) -> str:
        path = self.fixture_dir / name
        if not path.exists():
            raise NotFound(f"Fixture page {path} does not exist")
        return path.read_text(encoding="utf-8")

    def fetch_index(self) -> str:
        return self._read(INDEX_FIXTURE)

    def fetch_page(self, url: str) -> str:
        LOGGER.debug("Serving %s from fixture %s", url, MONTH_FIXTURE)
        return self._read(MONTH_FIXTURE)

    def download(self, url: str, destination: str | Path) -> Path:
        name = Path(unquote(urlsplit(url).path)).name
        source = self.fixture_dir / name
        if not source.exists():
            source = self.fixture_dir / PDF_FIXTURE
        if not source.exists():
            raise NotFound(f"No fixture bulletin for {url} in {self.fixture_dir}")
        destination_path = Path(destination)
        destination_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination_path)
        return destination_path


__all__ = ["FixturePageSource", "PageSource"]
