from __future__ import annotations

import logging

import pytest

from rbz_rates.utils import logger as logger_module


def test_get_logger_returns_named_logger() -> None:
    log = logger_module.get_logger("rbz_rates.tests")

    assert log.name == "rbz_rates.tests"
    assert logging.getLogger("urllib3").level == logging.WARNING


@pytest.mark.parametrize(
    ("value", "expected"),
    [("debug", logging.DEBUG), (" WARNING ", logging.WARNING), ("chatty", logging.INFO)],
)
def test_level_from_env(monkeypatch: pytest.MonkeyPatch, value: str, expected: int) -> None:
    monkeypatch.setenv(logger_module.LOG_LEVEL_ENV, value)

    assert logger_module._level_from_env() == expected


def test_level_defaults_to_info(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(logger_module.LOG_LEVEL_ENV, raising=False)

    assert logger_module._level_from_env() == logging.INFO
