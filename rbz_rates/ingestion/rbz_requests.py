"""requests-based access to the RBZ site with DNS retry and browser-like headers."""

from __future__ import annotations

import functools
import random
import re
import socket
import time
from pathlib import Path
from typing import Callable, Optional, TypeVar
from urllib.parse import urlsplit

import requests
import urllib3
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

from rbz_rates.config import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
    RBZ_ARCHIVE_FORM,
    RBZ_EXCHANGE_RATES_URL,
)
from rbz_rates.ingestion.errors import HttpStatus, TransientNetwork
from rbz_rates.utils.logger import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")

DEFAULT_BACKOFF: wait_base = wait_exponential(multiplier=1, exp_base=2) + wait_random(0, 1)

USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:132.0) Gecko/20100101 Firefox/132.0",
)
ACCEPT_LANGUAGES: tuple[str, ...] = (
    "en-US,en;q=0.9",
    "en-GB,en;q=0.8",
    "en-ZA,en;q=0.9,af;q=0.6",
)

_DNS_MESSAGES = re.compile(
    r"Name or service not known|getaddrinfo failed|Temporary failure in name resolution"
    r"|nodename nor servname provided|No address associated with hostname|NameResolutionError",
    re.IGNORECASE,
)


def browser_headers(url: str) -> dict[str, str]:
    """Return a fresh, plausible browser fingerprint for a request to ``url``."""

    parts = urlsplit(url)
    origin = f"{parts.scheme}://{parts.netloc}"
    return {
        "User-Agent": random.choice(USER_AGENTS),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": random.choice(ACCEPT_LANGUAGES),
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Referer": f"{origin}/",
    }


def is_dns_failure(exc: BaseException) -> bool:
    """Return True when ``exc`` (or anything it wraps) is a name-resolution error."""

    seen: set[int] = set()
    pending: list[BaseException] = [exc]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return True
        if isinstance(current, urllib3.exceptions.NameResolutionError):
            return True
        if isinstance(current, (requests.ConnectionError, urllib3.exceptions.HTTPError, OSError)):
            if _DNS_MESSAGES.search(str(current)):
                return True
        for nested in (current.__cause__, current.__context__):
            if nested is not None:
                pending.append(nested)
        for arg in current.args:
            if isinstance(arg, BaseException):
                pending.append(arg)
        reason = getattr(current, "reason", None)
        if isinstance(reason, BaseException):
            pending.append(reason)
    return False


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0
    LOGGER.warning(
        "DNS resolution failed (attempt %s); retrying in %.2fs: %s",
        retry_state.attempt_number,
        delay,
        exc,
    )


def retry_on_dns_failure(
    max_retries: int = DEFAULT_MAX_RETRIES,
    *,
    is_retryable: Callable[[BaseException], bool] = is_dns_failure,
    wait: wait_base = DEFAULT_BACKOFF,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorate an outbound request function with DNS-only exponential backoff.

    Retry ``n`` (counting from zero) waits ``2 ** n`` seconds plus up to one
    second of jitter. Other errors propagate on the first failure. Running out
    of retries raises :class:`TransientNetwork`. Pass ``is_retryable`` or
    ``wait`` to change the error classification or the backoff schedule.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:  # type: ignore[no-untyped-def]
            retrying = Retrying(
                stop=stop_after_attempt(max_retries + 1),
                wait=wait,
                retry=retry_if_exception(is_retryable),
                before_sleep=_log_retry,
                sleep=sleep,
                reraise=True,
            )
            try:
                return retrying(func, *args, **kwargs)
            except Exception as exc:
                if is_retryable(exc):
                    raise TransientNetwork(
                        f"DNS resolution failed after {max_retries} retries: {exc}"
                    ) from exc
                raise

        return wrapper

    return decorator


def fetch_with_retry(
    request_fn: Callable[[], T],
    max_retries: int = DEFAULT_MAX_RETRIES,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``request_fn`` and retry it only on DNS failures."""

    return retry_on_dns_failure(max_retries, sleep=sleep)(request_fn)()


class RBZRequestsClient:
    """Page source that talks to the live RBZ site through ``requests``."""

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        index_url: str = RBZ_EXCHANGE_RATES_URL,
        verify_tls: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_retries = max_retries
        self.index_url = index_url
        self.verify_tls = verify_tls
        self._sleep = sleep
        if not verify_tls:
            # Accepted risk for this upstream only: its certificate chain is broken.
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:  # type: ignore[no-untyped-def]
        extra_headers = kwargs.pop("headers", None) or {}

        def _send() -> requests.Response:
            # Headers are rebuilt for every attempt so retries do not share a fingerprint.
            headers = browser_headers(url)
            headers.update(extra_headers)
            return self.session.request(
                method,
                url,
                headers=headers,
                timeout=self.timeout,
                verify=self.verify_tls,
                **kwargs,
            )

        response = fetch_with_retry(_send, self.max_retries, sleep=self._sleep)
        self._raise_with_context(response, url)
        return response

    def fetch_index(self) -> str:
        """POST the archive filter form and return the unpaginated index HTML."""

        LOGGER.info("Fetching RBZ exchange-rate archive index from %s", self.index_url)
        response = self._request(
            "POST",
            self.index_url,
            data=RBZ_ARCHIVE_FORM,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        return response.text

    def fetch_page(self, url: str) -> str:
        LOGGER.info("Fetching RBZ page %s", url)
        return self._request("GET", url).text

    def download(self, url: str, destination: str | Path) -> Path:
        """Stream ``url`` to ``destination``; partial files never survive a failure."""

        destination_path = Path(destination)
        destination_path.parent.mkdir(parents=True, exist_ok=True)
        LOGGER.info("Downloading %s to %s", url, destination_path)
        try:
            response = self._request("GET", url, stream=True)
            with response, open(destination_path, "wb") as handle:
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        handle.write(chunk)
        except Exception:
            destination_path.unlink(missing_ok=True)
            raise
        LOGGER.info("Saved RBZ bulletin → %s", destination_path)
        return destination_path

    @staticmethod
    def _raise_with_context(response: requests.Response, url: str) -> None:
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = response.status_code
            hint = ""
            if status in {403, 418, 429}:
                hint = "RBZ is blocking automated requests; wait a moment before retrying."
            raise HttpStatus(status, url, hint) from exc

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "RBZRequestsClient":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()


def download_file(
    url: str,
    destination: str | Path,
    *,
    client: RBZRequestsClient | None = None,
) -> Path:
    """Download ``url`` to ``destination`` with the default RBZ client."""

    owned = client is None
    active = client or RBZRequestsClient()
    try:
        return active.download(url, destination)
    finally:
        if owned:
            active.close()


__all__ = [
    "ACCEPT_LANGUAGES",
    "DEFAULT_BACKOFF",
    "RBZRequestsClient",
    "USER_AGENTS",
    "browser_headers",
    "download_file",
    "fetch_with_retry",
    "is_dns_failure",
    "retry_on_dns_failure",
]
