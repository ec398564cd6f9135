"""Date helpers used when walking bulletin dates."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterator


def parse_date(value: str | date | datetime) -> date:
    """Parse an ISO ``YYYY-MM-DD`` string (or datetime) to :class:`date`.

    ``datetime`` values are truncated to midnight so callers can pass
    timestamps without shifting the day count.
    """

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def days_between(start: str | date | datetime, end: str | date | datetime) -> int:
    """Return the absolute number of whole days between two dates."""

    return abs((parse_date(end) - parse_date(start)).days)


def iter_days(start: str | date | datetime, end: str | date | datetime) -> Iterator[date]:
    """Yield every calendar day of the inclusive window in ascending order."""

    start_date = parse_date(start)
    end_date = parse_date(end)
    if start_date > end_date:
        raise ValueError("start date must not be after end date")

    for offset in range(days_between(start_date, end_date) + 1):
        yield start_date + timedelta(days=offset)


def bulletin_label(day: date) -> str:
    """Format ``day`` the way log lines and failure messages show it."""

    return day.strftime("%a %b %d %Y")
