"""Logging utilities for the rbz_rates package."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL_ENV = "RBZ_RATES_LOG_LEVEL"

# Third-party loggers that drown out the pipeline at INFO.
_NOISY_LOGGERS = ("urllib3", "selenium", "pypdf")

_configured = False


def _level_from_env() -> int:
    name = os.environ.get(LOG_LEVEL_ENV, "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str = "rbz_rates") -> logging.Logger:
    """Return ``name``'s logger, configuring the root handler on first use.

    The level comes from ``RBZ_RATES_LOG_LEVEL`` (default ``INFO``).
    """
    global _configured
    if not _configured:
        logging.basicConfig(level=_level_from_env(), format=LOG_FORMAT)
        for noisy in _NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)
        _configured = True
    return logging.getLogger(name)


__all__ = ["LOG_FORMAT", "LOG_LEVEL_ENV", "get_logger"]
