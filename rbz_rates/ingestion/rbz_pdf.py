"""Rebuild RBZ daily bulletin tables from positioned PDF text tokens."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Sequence

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from rbz_rates.ingestion.errors import MalformedDocument
from rbz_rates.ingestion.models import ExtractedRateRow, PositionedToken
from rbz_rates.ingestion.tokens import decode_token, is_currency_code, parse_rate_value
from rbz_rates.utils.logger import get_logger

LOGGER = get_logger(__name__)

RATE_FIELDS = ("bid", "ask", "mid_rate", "bid_zwg", "ask_zwg", "mid_zwg")

AVERAGE_GLYPH_RATIO = 0.5

_WORD = re.compile(r"\S+")

TokenReader = Callable[[Path], list[list[PositionedToken]]]


@dataclass(slots=True)
class RBZPDFParseResult:
    """Represents the parsed content of a single RBZ bulletin."""

    rate_date: date
    rates: dict[str, ExtractedRateRow]


def split_words(text: str, x: float, y: float, font_size: float) -> list[PositionedToken]:
    """Split one text-layer run into a token per whitespace-separated word.

    The text layer merges every cell drawn inside one text object into a single
    line, so a whole table row can arrive as one string. Word positions are
    estimated from the run origin with an average glyph width of half the font
    size.
    """

    glyph_width = max(float(font_size), 0.0) * AVERAGE_GLYPH_RATIO
    return [
        PositionedToken(
            x=x + match.start() * glyph_width,
            y=y,
            width=len(match.group()) * glyph_width,
            text=match.group(),
        )
        for match in _WORD.finditer(text)
    ]


def read_pdf_tokens(path: str | Path) -> list[list[PositionedToken]]:
    """Return the positioned words of every page, in emission order."""

    try:
        reader = PdfReader(Path(path))
        pages: list[list[PositionedToken]] = []
        for page in reader.pages:
            tokens: list[PositionedToken] = []

            def _visit(text, cm, tm, font_dict, font_size) -> None:  # type: ignore[no-untyped-def]
                if not text or not text.strip():
                    return
                # Text matrix composed with the current transformation matrix.
                x = tm[4] * cm[0] + tm[5] * cm[2] + cm[4]
                y = tm[4] * cm[1] + tm[5] * cm[3] + cm[5]
                tokens.extend(split_words(text, float(x), float(y), font_size or 0.0))

            page.extract_text(visitor_text=_visit)
            pages.append(tokens)
    except (PdfReadError, OSError, ValueError) as exc:
        raise MalformedDocument(f"Failed to parse PDF: {exc}") from exc
    return pages


def reconstruct(tokens: Sequence[PositionedToken], rate_date: date) -> dict[str, ExtractedRateRow]:
    """Group a flat token stream into one rate row per currency.

    The bulletin carries no table markup, so rows are recovered by counting:
    every currency label is followed (in emission order) by the same number of
    numeric cells. The numbers are split into equal consecutive chunks, one per
    currency, and the first six values of each chunk become ``bid``, ``ask``,
    ``mid_rate``, ``bid_zwg``, ``ask_zwg`` and ``mid_zwg``.

    Raises :class:`MalformedDocument` when the counts do not divide evenly,
    which means the publisher changed the layout.
    """

    currencies = [decode_token(token.text) for token in tokens if is_currency_code(token.text)]

    flat_rates: list[float] = []
    for token in tokens:
        value = parse_rate_value(token.text)
        if value is None or value == 0:
            continue
        flat_rates.append(value)

    if not currencies:
        raise MalformedDocument("No currencies found in the PDF. Unable to extract rates.")

    rates_per_currency, remainder = divmod(len(flat_rates), len(currencies))
    if remainder or rates_per_currency == 0:
        raise MalformedDocument(
            "Rates per currency are not consistent or no rates found "
            f"({len(flat_rates)} values for {len(currencies)} currencies). "
            "PDF structure might have changed."
        )

    grouped = [
        flat_rates[start : start + rates_per_currency]
        for start in range(0, len(flat_rates), rates_per_currency)
    ]
    if len(grouped) != len(currencies):
        raise MalformedDocument(
            f"Number of rate groups ({len(grouped)}) does not match "
            f"number of currencies ({len(currencies)})."
        )

    rows: dict[str, ExtractedRateRow] = {}
    for currency, values in zip(currencies, grouped):
        if len(values) < len(RATE_FIELDS):
            LOGGER.warning(
                "Not enough rate values for %s: expected %s, got %s. Skipping this currency.",
                currency,
                len(RATE_FIELDS),
                len(values),
            )
            continue
        bid, ask, mid_rate, bid_zwg, ask_zwg, mid_zwg = values[: len(RATE_FIELDS)]
        rows[currency] = ExtractedRateRow(
            currency=currency,
            bid=bid,
            ask=ask,
            mid_rate=mid_rate,
            bid_zwg=bid_zwg,
            ask_zwg=ask_zwg,
            mid_zwg=mid_zwg,
            rate_date=rate_date,
        )
    return rows


class RBZPDFParser:
    """Convert RBZ bulletin PDFs into structured rows."""

    def __init__(self, token_reader: TokenReader | None = None) -> None:
        self._token_reader = token_reader or read_pdf_tokens

    def parse(self, pdf_path: str | Path, *, rate_date: date) -> RBZPDFParseResult:
        path = Path(pdf_path)
        LOGGER.info("Extracting rates from %s", path)
        pages = self._token_reader(path)
        # The rate table always sits on the first page of the bulletin.
        first_page = pages[0] if pages else []
        rows = reconstruct(first_page, rate_date)
        LOGGER.info("Extracted %s currencies for %s", len(rows), rate_date.isoformat())
        return RBZPDFParseResult(rate_date=rate_date, rates=rows)


__all__ = [
    "AVERAGE_GLYPH_RATIO",
    "RATE_FIELDS",
    "RBZPDFParseResult",
    "RBZPDFParser",
    "TokenReader",
    "read_pdf_tokens",
    "reconstruct",
    "split_words",
]
