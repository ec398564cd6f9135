"""Database seeding utilities for :mod:`rbz_rates`."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

__all__ = ["seed_rbz_latest", "seed_rbz_historical", "seed_month_urls"]

if TYPE_CHECKING:  # pragma: no cover - import only for static analyzers
    from rbz_rates.seeds.populate_rbz_rates import seed_month_urls as seed_month_urls
    from rbz_rates.seeds.populate_rbz_rates import seed_rbz_historical as seed_rbz_historical
    from rbz_rates.seeds.populate_rbz_rates import seed_rbz_latest as seed_rbz_latest


def __getattr__(name: str) -> Any:
    """Lazily expose seed helpers to avoid import-time side effects."""

    if name in __all__:
        from rbz_rates.seeds import populate_rbz_rates

        return getattr(populate_rbz_rates, name)
    raise AttributeError(f"module 'rbz_rates.seeds' has no attribute {name}")
