from __future__ import annotations

import shutil
from datetime import date
from pathlib import Path

import pytest

import rbz_rates
import rbz_rates.seeds as seeds
from rbz_rates import RBZRates
from rbz_rates.config import RuntimeMode, Settings
from rbz_rates.db.sqlite_manager import SQLiteManager
from rbz_rates.ingestion.models import ExtractionFailure, ExtractionSuccess, PositionedToken
from rbz_rates.ingestion.orchestrator import RBZRateExtractor
from rbz_rates.ingestion.rbz_pdf import RBZPDFParser
from rbz_rates.seeds import populate_rbz_rates
from rbz_rates.seeds.populate_rbz_rates import (
    main,
    parse_args,
    persist_results,
    seed_month_urls,
    seed_rbz_historical,
    seed_rbz_latest,
)

FIXTURES = Path(__file__).parent / "fixtures"


def _bulletin_page(_path: Path) -> list[list[PositionedToken]]:
    texts = ["USD", "1", "1", "1", "25.35", "25.4", "25.375"]
    texts += ["ZAR", "18.05", "18.1", "18.075", "1404.44", "1408.33", "1406.385"]
    return [[PositionedToken(x=float(i), y=0.0, width=0.0, text=text) for i, text in enumerate(texts)]]


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    fixture_dir = tmp_path / "fixtures"
    fixture_dir.mkdir()
    for name in ("exchange-rates.html", "daily-exchange-rates.html"):
        shutil.copyfile(FIXTURES / name, fixture_dir / name)
    (fixture_dir / "rates.pdf").write_bytes(b"%PDF-1.4 bulletin")
    return Settings(mode=RuntimeMode.FIXTURE, fixture_dir=fixture_dir, download_dir=tmp_path / "downloads")


@pytest.fixture()
def fake_pdf(monkeypatch: pytest.MonkeyPatch) -> None:
    def _extractor(*, settings=None, cache=None):
        return RBZRateExtractor(
            settings=settings,
            cache=cache,
            parser=RBZPDFParser(token_reader=_bulletin_page),
        )

    monkeypatch.setattr(populate_rbz_rates, "RBZRateExtractor", _extractor)


def test_persist_results_stores_successes_only(tmp_path: Path) -> None:
    manager = SQLiteManager(tmp_path / "rates.db")
    success = ExtractionSuccess(
        rate_date=date(2024, 12, 5),
        rows=RBZPDFParser(token_reader=_bulletin_page).parse(tmp_path / "x.pdf", rate_date=date(2024, 12, 5)).rates,
    )
    failure = ExtractionFailure(rate_date=date(2024, 12, 7), reason="no bulletin", error_type="NotFound")

    report = persist_results(manager, [success, failure])

    assert report.succeeded == 1
    assert report.failures == [failure]
    assert report.persistence.inserted == 2


def test_persist_results_with_only_failures(tmp_path: Path) -> None:
    manager = SQLiteManager(tmp_path / "rates.db")
    failure = ExtractionFailure(rate_date=date(2024, 12, 7), reason="no bulletin", error_type="NotFound")

    report = persist_results(manager, [failure])

    assert report.persistence.total == 0
    assert manager.fetch_range() == []


def test_seed_rbz_latest_inserts_rows(tmp_path: Path, settings: Settings, fake_pdf) -> None:
    db_path = tmp_path / "rates.db"

    report = seed_rbz_latest(db_path=db_path, target_date=date(2024, 12, 24), settings=settings)

    assert report.succeeded == 1
    assert report.persistence.inserted == 2
    stored = SQLiteManager(db_path).fetch_range()
    assert {row.currency for row in stored} == {"USD", "ZAR"}
    assert {row.rate_date for row in stored} == {date(2024, 12, 24)}
    assert SQLiteManager(db_path).get_month_url("12-2024").endswith("1301-december-2024")


def test_seed_rbz_historical_records_failed_days(tmp_path: Path, settings: Settings, fake_pdf) -> None:
    db_path = tmp_path / "rates.db"

    report = seed_rbz_historical(
        start=date(2024, 11, 30), end=date(2024, 12, 3), db_path=db_path, settings=settings
    )

    # November's month page fixture is the December listing; day 1 has no bulletin.
    assert report.succeeded == 3
    assert [failure.rate_date for failure in report.failures] == [date(2024, 12, 1)]
    chain = SQLiteManager(db_path).fetch_range(currency="USD")
    assert [row.rate_date.day for row in chain] == [30, 2, 3]
    assert chain[1].previous_rate == chain[0].id


def test_seed_rbz_historical_rejects_reversed_range(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="End date must be after start date"):
        seed_rbz_historical(start=date(2024, 12, 5), end=date(2024, 12, 1), db_path=tmp_path / "r.db")


def test_seed_month_urls(tmp_path: Path, settings: Settings) -> None:
    db_path = tmp_path / "rates.db"

    assert seed_month_urls(db_path=db_path, settings=settings) == 4
    assert seed_month_urls(db_path=db_path, settings=settings) == 0


def test_parse_args_subcommands() -> None:
    latest = parse_args(["--db", "x.db", "latest", "--date", "2024-12-05"])
    batch = parse_args(["batch", "--from", "2024-12-01"])

    assert latest.db_path == "x.db"
    assert latest.target_date == date(2024, 12, 5)
    assert batch.start == date(2024, 12, 1)
    assert batch.end is None


def test_parse_args_requires_command() -> None:
    with pytest.raises(SystemExit):
        parse_args([])


def test_main_dispatches_and_reports_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[str, dict]] = []

    def _latest(**kwargs):
        calls.append(("latest", kwargs))
        return populate_rbz_rates.SeedReport(
            failures=[ExtractionFailure(rate_date=date(2024, 12, 7), reason="gone")]
        )

    def _historical(**kwargs):
        calls.append(("batch", kwargs))
        return populate_rbz_rates.SeedReport(succeeded=2)

    monkeypatch.setattr(populate_rbz_rates, "seed_rbz_latest", _latest)
    monkeypatch.setattr(populate_rbz_rates, "seed_rbz_historical", _historical)

    assert main(["--db", "x.db", "latest", "--date", "2024-12-07"]) == 1
    assert main(["batch", "--from", "2024-12-01", "--to", "2024-12-02"]) == 0
    assert calls[0] == ("latest", {"db_path": "x.db", "target_date": date(2024, 12, 7)})
    assert calls[1][1]["start"] == date(2024, 12, 1)
    assert calls[1][1]["end"] == date(2024, 12, 2)


def test_seeds_package_exposes_helpers_lazily() -> None:
    assert seeds.seed_rbz_latest is seed_rbz_latest
    assert seeds.seed_month_urls is seed_month_urls
    with pytest.raises(AttributeError):
        getattr(seeds, "seed_everything")


def test_facade_seeds_and_reads_back(tmp_path: Path, settings: Settings, fake_pdf) -> None:
    client = RBZRates(tmp_path / "rates.db", settings=settings)
    assert client.rate() is None

    client.seed_historical(from_date=date(2024, 12, 2), to_date=date(2024, 12, 3))

    snapshot = client.rate()
    assert snapshot is not None
    assert snapshot["rate_date"] == date(2024, 12, 3)
    assert snapshot["base_currency"] == "ZWG"
    assert snapshot["rates"]["USD"]["mid_zwg"] == 25.375
    assert client.rate(date(2024, 12, 25)) is None

    history = client.history(date(2024, 12, 1), date(2024, 12, 31), currency="ZAR")
    assert [entry["rate_date"] for entry in history] == [date(2024, 12, 2), date(2024, 12, 3)]
    assert list(history[0]["rates"]) == ["ZAR"]


def test_facade_extract_does_not_persist(tmp_path: Path, settings: Settings) -> None:
    client = RBZRates(tmp_path / "rates.db", settings=settings)

    result = client.extract(date(2019, 3, 4))

    assert not result.ok
    assert SQLiteManager(tmp_path / "rates.db").fetch_range() == []


def test_package_wrappers_delegate(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(populate_rbz_rates, "seed_month_urls", lambda **kwargs: 7)

    assert rbz_rates.seed_month_urls(db_path="x.db") == 7
    assert isinstance(rbz_rates.__version__, str)
