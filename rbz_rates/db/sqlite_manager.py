"""Persistence helpers for rbz_rates built on SQLAlchemy."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Iterable, cast

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from rbz_rates.db import DEFAULT_SQLITE_DB_PATH
from rbz_rates.ingestion.models import ExtractedRateRow, StoredRate
from rbz_rates.utils.logger import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class _Rate(Base):
    __tablename__ = "rates"
    __table_args__ = (UniqueConstraint("currency", "rate_date", name="uq_rates_currency_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    currency = Column(String(255), nullable=False)
    rate_date = Column(Date, nullable=False)
    bid = Column(Float, nullable=False)
    ask = Column(Float, nullable=False)
    mid_rate = Column(Float, nullable=False)
    bid_zwg = Column(Float, nullable=False)
    ask_zwg = Column(Float, nullable=False)
    mid_zwg = Column(Float, nullable=False)
    previous_rate = Column(Integer, ForeignKey("rates.id"), nullable=True)
    created_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"))


class _MonthlyRatesURL(Base):
    __tablename__ = "monthly_exchange_rates_urls"

    id = Column(String, primary_key=True)
    url = Column(Text, nullable=False)


_VALUE_FIELDS = ("bid", "ask", "mid_rate", "bid_zwg", "ask_zwg", "mid_zwg")


@dataclass(slots=True)
class PersistenceResult:
    """Represents how many rows were inserted, updated or relinked in a batch."""

    inserted: int = 0
    updated: int = 0
    linked: int = 0

    @property
    def total(self) -> int:
        """Return the total number of affected rate rows."""

        return self.inserted + self.updated


class SQLiteManager:
    """Store extracted bulletins and the month-page URL cache in SQLite."""

    def __init__(self, db_path: str | Path = DEFAULT_SQLITE_DB_PATH) -> None:
        self.db_path = Path(db_path).expanduser().resolve()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine: Engine = create_engine(
            f"sqlite:///{self.db_path}",
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(self.engine)
        self._SessionFactory: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False, future=True
        )

    def insert_rates(self, rows: Iterable[ExtractedRateRow]) -> PersistenceResult:
        """Upsert rows on ``(currency, rate_date)`` and relink ``previous_rate``.

        Each currency's rows form a chain ordered by ``rate_date``: every row
        points at the row of the closest earlier date.
        """

        result = PersistenceResult()
        touched: set[str] = set()
        with self._SessionFactory() as session:
            for row in rows:
                existing = session.execute(
                    select(_Rate).where(
                        _Rate.currency == row.currency, _Rate.rate_date == row.rate_date
                    )
                ).scalar_one_or_none()
                values = {name: getattr(row, name) for name in _VALUE_FIELDS}
                if existing is None:
                    session.add(_Rate(currency=row.currency, rate_date=row.rate_date, **values))
                    result.inserted += 1
                else:
                    for name, value in values.items():
                        setattr(existing, name, value)
                    result.updated += 1
                touched.add(row.currency)
            session.flush()
            for currency in sorted(touched):
                result.linked += self._relink(session, currency)
            session.commit()
        LOGGER.info(
            "Inserted %s rows, updated %s rows, linked %s previous rates",
            result.inserted,
            result.updated,
            result.linked,
        )
        return result

    @staticmethod
    def _relink(session: Session, currency: str) -> int:
        chain = session.execute(
            select(_Rate).where(_Rate.currency == currency).order_by(_Rate.rate_date, _Rate.id)
        ).scalars().all()
        linked = 0
        previous_id: int | None = None
        for model in chain:
            if model.previous_rate != previous_id:
                setattr(model, "previous_rate", previous_id)
                if previous_id is not None:
                    linked += 1
            previous_id = cast(int, model.id)
        return linked

    def fetch_range(
        self,
        start: date | None = None,
        end: date | None = None,
        *,
        currency: str | None = None,
    ) -> list[StoredRate]:
        with self._SessionFactory() as session:
            stmt = select(_Rate).order_by(_Rate.rate_date, _Rate.currency)
            if start is not None:
                stmt = stmt.where(_Rate.rate_date >= start)
            if end is not None:
                stmt = stmt.where(_Rate.rate_date <= end)
            if currency is not None:
                stmt = stmt.where(_Rate.currency == currency)
            return [self._to_record(model) for model in session.execute(stmt).scalars()]

    def latest_rate_date(self) -> date | None:
        with self._SessionFactory() as session:
            return session.execute(select(func.max(_Rate.rate_date))).scalar_one_or_none()

    def get_month_url(self, key: str) -> str | None:
        with self._SessionFactory() as session:
            model = session.get(_MonthlyRatesURL, key)
            return None if model is None else cast(str, model.url)

    def put_month_url(self, key: str, url: str) -> bool:
        """Store a month URL; returns False when the key was already cached."""

        with self._SessionFactory() as session:
            if session.get(_MonthlyRatesURL, key) is not None:
                return False
            session.add(_MonthlyRatesURL(id=key, url=url))
            session.commit()
        return True

    @staticmethod
    def _to_record(model: _Rate) -> StoredRate:
        return StoredRate(
            id=cast(int, model.id),
            currency=cast(str, model.currency),
            rate_date=cast(date, model.rate_date),
            bid=cast(float, model.bid),
            ask=cast(float, model.ask),
            mid_rate=cast(float, model.mid_rate),
            bid_zwg=cast(float, model.bid_zwg),
            ask_zwg=cast(float, model.ask_zwg),
            mid_zwg=cast(float, model.mid_zwg),
            previous_rate=cast("int | None", model.previous_rate),
        )

    def close(self) -> None:  # pragma: no cover - trivial
        self.engine.dispose()

    def __enter__(self) -> "SQLiteManager":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()


__all__ = ["PersistenceResult", "SQLiteManager"]
