"""Runtime configuration for the RBZ scraping pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping

RBZ_BASE_URL = "https://www.rbz.co.zw"
RBZ_EXCHANGE_RATES_PATH = "/index.php/research/markets/exchange-rates"
RBZ_EXCHANGE_RATES_URL = f"{RBZ_BASE_URL}{RBZ_EXCHANGE_RATES_PATH}"

# Unpaginated archive listing; ``limit=0`` asks Joomla for every month at once.
RBZ_ARCHIVE_FORM = (
    "filter-search=&month=&year=&limit=0&view=archive&option=com_content&limitstart=0"
)

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_EXTRACTION_TIMEOUT = 20.0
DEFAULT_MAX_RETRIES = 5
DEFAULT_DOWNLOAD_DIR = Path.cwd() / "rbz_downloads"
DEFAULT_FIXTURE_DIR = Path.cwd() / "tests" / "fixtures"
DEVELOPMENT_PDF_NAME = "rates.pdf"

ENV_PREFIX = "RBZ_RATES_"


class RuntimeMode(str, Enum):
    """Where the pipeline reads upstream pages from."""

    PRODUCTION = "production"
    DEVELOPMENT = "development"
    FIXTURE = "fixture"

    @classmethod
    def parse(cls, value: str | None) -> "RuntimeMode":
        if not value:
            return cls.PRODUCTION
        lowered = value.strip().lower()
        if lowered in {"test", "testing"}:
            return cls.FIXTURE
        try:
            return cls(lowered)
        except ValueError:
            raise ValueError(
                f"Unsupported {ENV_PREFIX}ENV value {value!r}; "
                "expected production, development or fixture."
            ) from None

    @property
    def is_live(self) -> bool:
        """Return True when pages come from the real upstream site."""

        return self is not RuntimeMode.FIXTURE


class PageSourceKind(str, Enum):
    """How live pages are fetched from the upstream site."""

    HTTP = "http"
    BROWSER = "browser"

    @classmethod
    def parse(cls, value: str | None) -> "PageSourceKind":
        if not value:
            return cls.HTTP
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(
                f"Unsupported {ENV_PREFIX}PAGE_SOURCE value {value!r}; expected http or browser."
            ) from None


@dataclass(slots=True)
class Settings:
    """Pipeline settings, usually built from the environment."""

    mode: RuntimeMode = RuntimeMode.PRODUCTION
    page_source: PageSourceKind = PageSourceKind.HTTP
    base_url: str = RBZ_BASE_URL
    index_url: str = RBZ_EXCHANGE_RATES_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    extraction_timeout: float = DEFAULT_EXTRACTION_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    download_dir: Path = field(default_factory=lambda: DEFAULT_DOWNLOAD_DIR)
    fixture_dir: Path = field(default_factory=lambda: DEFAULT_FIXTURE_DIR)
    # The RBZ certificate chain is routinely broken; verification is disabled
    # for this upstream only.
    verify_tls: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``RBZ_RATES_*`` environment variables."""

        env = os.environ if environ is None else environ

        def _get(name: str) -> str | None:
            value = env.get(f"{ENV_PREFIX}{name}")
            return value if value not in (None, "") else None

        settings = cls(
            mode=RuntimeMode.parse(_get("ENV")),
            page_source=PageSourceKind.parse(_get("PAGE_SOURCE")),
        )
        download_dir = _get("DOWNLOAD_DIR")
        if download_dir is not None:
            settings.download_dir = Path(download_dir)
        fixture_dir = _get("FIXTURE_DIR")
        if fixture_dir is not None:
            settings.fixture_dir = Path(fixture_dir)
        request_timeout = _get("REQUEST_TIMEOUT")
        if request_timeout is not None:
            settings.request_timeout = float(request_timeout)
        extraction_timeout = _get("EXTRACTION_TIMEOUT")
        if extraction_timeout is not None:
            settings.extraction_timeout = float(extraction_timeout)
        max_retries = _get("MAX_RETRIES")
        if max_retries is not None:
            settings.max_retries = int(max_retries)
        return settings


__all__ = [
    "DEFAULT_DOWNLOAD_DIR",
    "DEFAULT_EXTRACTION_TIMEOUT",
    "DEFAULT_FIXTURE_DIR",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_REQUEST_TIMEOUT",
    "DEVELOPMENT_PDF_NAME",
    "RBZ_ARCHIVE_FORM",
    "RBZ_BASE_URL",
    "RBZ_EXCHANGE_RATES_URL",
    "PageSourceKind",
    "RuntimeMode",
    "Settings",
]
