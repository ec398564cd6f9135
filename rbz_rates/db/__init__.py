"""Helpers for working with the bundled SQLite database."""

from __future__ import annotations

from pathlib import Path
from typing import Final

__all__ = ["DEFAULT_SQLITE_DB_PATH"]

# Resolved next to this module so the location does not depend on the working
# directory when the package is installed in site-packages.
DEFAULT_SQLITE_DB_PATH: Final[Path] = Path(__file__).resolve().with_name("rates.db")
