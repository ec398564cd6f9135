"""Failure taxonomy for the RBZ extraction pipeline."""

from __future__ import annotations


class RBZExtractionError(RuntimeError):
    """Base class for every failure raised inside the extraction chain."""

    kind = "ExtractionError"


class NotFound(RBZExtractionError):
    """The month page, the day row or its PDF link is absent upstream."""

    kind = "NotFound"


class MalformedDocument(RBZExtractionError):
    """An upstream page or bulletin no longer matches the expected layout."""

    kind = "MalformedDocument"


class TransientNetwork(RBZExtractionError):
    """DNS resolution kept failing after every retry was spent."""

    kind = "TransientNetwork"


class HttpStatus(RBZExtractionError):
    """The upstream answered with a non-2xx status."""

    kind = "HttpStatus"

    def __init__(self, status_code: int, url: str, hint: str = "") -> None:
        self.status_code = status_code
        self.url = url
        message = f"RBZ responded with HTTP {status_code} for {url}."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)


class ExtractionTimeout(RBZExtractionError):
    """The wall-clock budget of a single-day extraction ran out."""

    kind = "Timeout"


def error_kind(exc: BaseException) -> str:
    """Return the taxonomy name reported for ``exc``."""

    if isinstance(exc, RBZExtractionError):
        return exc.kind
    return type(exc).__name__


__all__ = [
    "ExtractionTimeout",
    "HttpStatus",
    "MalformedDocument",
    "NotFound",
    "RBZExtractionError",
    "TransientNetwork",
    "error_kind",
]
