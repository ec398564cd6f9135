"""Normalisation helpers for raw PDF text tokens."""

from __future__ import annotations

import math
import re
from urllib.parse import unquote

_CURRENCY_PATTERN = re.compile(r"[A-Z]{3}(?:/[A-Z]+)?")
_IGNORED_LABELS = re.compile(r"(?:BID|ASK|ZWG)", re.IGNORECASE)


def decode_token(text: str) -> str:
    """URL-decode a token (``USD%2FZAR`` -> ``USD/ZAR``) and trim it."""

    return unquote(text).strip()


def parse_rate_value(text: str) -> float | None:
    """Return the numeric value of a token, or ``None`` when it is not a number.

    Thousands separators are dropped, so ``"1%2C234.50"`` parses as ``1234.5``.
    """

    cleaned = decode_token(text).replace(",", "")
    if not cleaned or "_" in cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def is_currency_code(text: str) -> bool:
    """Return True for currency labels such as ``USD`` or ``EUR/GBP``.

    Column headings that happen to look like codes (``BID``, ``ASK``, ``ZWG``)
    are rejected.
    """

    decoded = decode_token(text)
    if not _CURRENCY_PATTERN.fullmatch(decoded):
        return False
    return not _IGNORED_LABELS.fullmatch(decoded)


__all__ = ["decode_token", "is_currency_code", "parse_rate_value"]
