"""Key-value stores backing the month-page URL cache."""

from __future__ import annotations

from typing import Protocol

from rbz_rates.db.sqlite_manager import SQLiteManager


class MonthURLCache(Protocol):
    """Minimal store the link resolver depends on."""

    def get(self, key: str) -> str | None:
        ...  # pragma: no cover - protocol definition

    def put(self, key: str, url: str) -> None:
        ...  # pragma: no cover - protocol definition


class MemoryURLCache:
    """Process-local cache, used when no database is configured."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._entries: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._entries.get(key)

    def put(self, key: str, url: str) -> None:
        # Month pages never move once published; the first URL stays.
        self._entries.setdefault(key, url)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class SQLiteURLCache:
    """Cache persisted in the ``monthly_exchange_rates_urls`` table."""

    def __init__(self, manager: SQLiteManager) -> None:
        self.manager = manager

    def get(self, key: str) -> str | None:
        return self.manager.get_month_url(key)

    def put(self, key: str, url: str) -> None:
        self.manager.put_month_url(key, url)


__all__ = ["MemoryURLCache", "MonthURLCache", "SQLiteURLCache"]
