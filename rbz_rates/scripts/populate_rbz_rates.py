"""CLI entry point for seeding RBZ exchange rates."""

from __future__ import annotations

from rbz_rates.seeds.populate_rbz_rates import main

if __name__ == "__main__":  # pragma: no cover - thin wrapper
    raise SystemExit(main())
