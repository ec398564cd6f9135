"""Data models shared across ingestion modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal, Union


@dataclass(frozen=True, slots=True)
class MonthPageLocator:
    """Location of one month's bulletin listing on the RBZ site."""

    month: int
    year: int
    url: str

    @property
    def key(self) -> str:
        return month_key(self.month, self.year)


def month_key(month: int, year: int) -> str:
    """Return the cache key used for a month page (``"2-2017"``)."""

    return f"{month}-{year}"


@dataclass(frozen=True, slots=True)
class PositionedToken:
    """One text fragment emitted by the PDF text layer."""

    x: float
    y: float
    width: float
    text: str


@dataclass(slots=True)
class ExtractedRateRow:
    """Representation of a single currency row extracted from an RBZ bulletin."""

    currency: str
    bid: float
    ask: float
    mid_rate: float
    bid_zwg: float
    ask_zwg: float
    mid_zwg: float
    rate_date: date

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-friendly mapping with an ISO formatted date."""

        return {
            "currency": self.currency,
            "bid": self.bid,
            "ask": self.ask,
            "mid_rate": self.mid_rate,
            "bid_zwg": self.bid_zwg,
            "ask_zwg": self.ask_zwg,
            "mid_zwg": self.mid_zwg,
            "rate_date": self.rate_date.isoformat(),
        }


@dataclass(slots=True)
class ExtractionSuccess:
    """Rates recovered for one bulletin date."""

    rate_date: date
    rows: dict[str, ExtractedRateRow] = field(default_factory=dict)
    ok: Literal[True] = True


@dataclass(slots=True)
class ExtractionFailure:
    """Why the rates for one bulletin date could not be recovered."""

    rate_date: date
    reason: str
    error_type: str = "ExtractionError"
    ok: Literal[False] = False


ExtractionResult = Union[ExtractionSuccess, ExtractionFailure]


@dataclass(slots=True)
class StoredRate:
    """A persisted rate row including its link to the previous day."""

    id: int
    currency: str
    rate_date: date
    bid: float
    ask: float
    mid_rate: float
    bid_zwg: float
    ask_zwg: float
    mid_zwg: float
    previous_rate: int | None = None


__all__ = [
    "ExtractedRateRow",
    "ExtractionFailure",
    "ExtractionResult",
    "ExtractionSuccess",
    "MonthPageLocator",
    "PositionedToken",
    "StoredRate",
    "month_key",
]
