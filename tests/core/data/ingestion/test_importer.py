from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

import pytest

from deltaticks.core.data.ingestion import ImportConfig, TickImporter
from deltaticks.core.data.ingestion import importer as importer_module
from deltaticks.core.data.ingestion.importer import STATUS_CANCELLED, STATUS_FAILED, STATUS_OK
from deltaticks.core.data.stores import DuckDBTickStore, InMemoryTickStore
from deltaticks.core.exceptions import ConfigError, StoreWriteError, TimestampParseError
from deltaticks.core.models import ContractType


class SlowTickStore(InMemoryTickStore):
    def __init__(self, delay: float = 0.005) -> None:
        super().__init__()
        self.delay = delay
        self.batch_sizes: list[int] = []

    async def insert_batch(self, family, ticks):
        self.batch_sizes.append(len(ticks))
        await asyncio.sleep(self.delay)
        return await super().insert_batch(family, ticks)


class FailingOptionsStore(InMemoryTickStore):
    async def insert_batch(self, family, ticks):
        if family is ContractType.OPTIONS:
            raise StoreWriteError("disk full", family.value)
        return await super().insert_batch(family, ticks)


def _rows(count: int, symbol: str = "BTCUSD") -> list[str]:
    return [f"{symbol},2025-08-01 00:{i // 60:02d}:{i % 60:02d},taker,{100 + i},1" for i in range(count)]


@pytest.mark.asyncio
async def test_import_counts_rows_by_outcome(write_trades):
    path = write_trades(
        "trades.csv",
        [
            "BTCUSD,2025-08-01 00:00:01.533193,taker,100,1",
            "P-BTC-116000-010825,2025-08-01 00:00:02,maker,50,0.5",
            "FOOBAR-1,2025-08-01 00:00:03,taker,1,1",
            "BTCUSD,2025-08-01 00:00:04,taker,0,1",
            "BTCUSD,2025-08-01 00:00:05,taker,100,1",
            "BTCUSD,2025-08-01 00:00:05,taker,100,1",
        ],
    )
    store = InMemoryTickStore()
    report = await TickImporter(store).import_file(path)

    assert report.status == STATUS_OK
    assert report.rows_read == 6
    assert report.rows_invalid == 1
    assert report.rows_unrecognized == 1
    assert report.accepted == 4
    assert (report.inserted, report.duplicates, report.lost) == (3, 1, 0)
    assert await store.count(ContractType.FUTURES) == 2
    assert await store.count(ContractType.OPTIONS) == 1
    assert await store.find_earliest("BTCUSD") == datetime(2025, 8, 1, 0, 0, 1, 533000, tzinfo=UTC)


@pytest.mark.asyncio
async def test_reimport_only_produces_duplicates(write_trades):
    path = write_trades("trades.csv", _rows(25))
    store = InMemoryTickStore()
    importer = TickImporter(store, ImportConfig(batch_size=10))

    first = await importer.import_file(path)
    second = await importer.import_file(path)

    assert first.inserted == 25
    assert (second.inserted, second.duplicates) == (0, 25)
    assert await store.count() == 25


@pytest.mark.asyncio
async def test_time_only_rows_roll_over_midnight(write_trades):
    path = write_trades(
        "2025-08-01/BTCUSD.csv.gz",
        ["BTCUSD,23:59:59.900,taker,100,1", "BTCUSD,00:00:00.100,taker,101,1"],
    )
    store = InMemoryTickStore()

    report = await TickImporter(store).import_file(path)

    assert report.inserted == 2
    assert await store.find_earliest("BTCUSD") == datetime(2025, 8, 1, 23, 59, 59, 900000, tzinfo=UTC)
    assert await store.find_latest("BTCUSD") == datetime(2025, 8, 2, 0, 0, 0, 100000, tzinfo=UTC)


@pytest.mark.asyncio
async def test_explicit_start_date_overrides_path(write_trades):
    path = write_trades("2025-08-01.csv", ["BTCUSD,10:00:00,taker,100,1"])
    store = InMemoryTickStore()

    await TickImporter(store).import_file(path, start_date=date(2024, 1, 2))

    assert await store.find_earliest("BTCUSD") == datetime(2024, 1, 2, 10, tzinfo=UTC)


@pytest.mark.asyncio
async def test_timestamp_error_aborts_file_after_flushing_accepted_rows(write_trades):
    path = write_trades(
        "trades.csv",
        ["BTCUSD,2025-08-01 00:00:01,taker,100,1", "BTCUSD,yesterday,taker,100,1"],
    )
    store = InMemoryTickStore()

    with pytest.raises(TimestampParseError):
        await TickImporter(store).import_file(path)

    assert await store.count() == 1


@pytest.mark.asyncio
async def test_import_files_isolates_failures(write_trades, tmp_path):
    good = write_trades("good.csv", _rows(3))
    bad = write_trades("bad.csv", ["BTCUSD,not-a-time,taker,1,1"])
    missing = tmp_path / "missing.csv"
    store = InMemoryTickStore()

    reports = await TickImporter(store).import_files([good, bad, missing])

    assert [report.status for report in reports] == [STATUS_OK, STATUS_FAILED, STATUS_FAILED]
    assert reports[0].inserted == 3
    assert reports[1].error_code == "TIMESTAMP_PARSE_ERROR"
    assert reports[2].error_code == "IO_ERROR"


@pytest.mark.asyncio
async def test_cancelled_files_are_not_started(write_trades):
    paths = [write_trades(f"t{i}.csv", _rows(2)) for i in range(2)]
    cancel = asyncio.Event()
    cancel.set()
    store = InMemoryTickStore()

    reports = await TickImporter(store).import_files(paths, cancel_event=cancel)

    assert {report.status for report in reports} == {STATUS_CANCELLED}
    assert await store.count() == 0


@pytest.mark.asyncio
async def test_unflushed_rows_never_exceed_batch_size(write_trades):
    path = write_trades("trades.csv", _rows(200))
    store = SlowTickStore()

    report = await TickImporter(store, ImportConfig(batch_size=16, flush_interval=0.01)).import_file(path)

    assert report.inserted == 200
    assert 0 < report.peak_unflushed <= 16
    assert max(store.batch_sizes) <= 16


@pytest.mark.asyncio
async def test_flush_interval_fires_while_parsing_a_long_file(write_trades, monkeypatch):
    monkeypatch.setattr(importer_module, "YIELD_EVERY_ROWS", 10)
    path = write_trades("trades.csv", _rows(200))
    store = SlowTickStore(delay=0)

    config = ImportConfig(batch_size=1000, flush_interval=0.000001)
    report = await TickImporter(store, config).import_file(path)

    assert report.inserted == 200
    assert sum(store.batch_sizes) == 200
    assert len(store.batch_sizes) > 1


@pytest.mark.asyncio
async def test_write_errors_count_as_lost(write_trades):
    path = write_trades(
        "trades.csv",
        ["BTCUSD,2025-08-01 00:00:01,taker,100,1", "C-BTC-90000-310125,2025-08-01 00:00:02,taker,5,1"],
    )
    store = FailingOptionsStore()

    report = await TickImporter(store).import_file(path)

    assert report.status == STATUS_OK
    assert (report.inserted, report.lost) == (1, 1)
    assert report.other_errors == ["disk full"]


@pytest.mark.asyncio
async def test_fail_on_write_error_fails_the_file(write_trades):
    path = write_trades("trades.csv", ["C-BTC-90000-310125,2025-08-01 00:00:02,taker,5,1"])
    importer = TickImporter(FailingOptionsStore(), ImportConfig(fail_on_write_error=True))

    reports = await importer.import_files([path])

    assert reports[0].status == STATUS_FAILED
    assert reports[0].error_code == "STORE_WRITE_ERROR"


def test_resolve_sources_expands_recursive_globs(write_trades, tmp_path):
    first = write_trades("2025-08/a.csv", _rows(1))
    second = write_trades("2025-08/nested/b.csv.gz", _rows(1))
    write_trades("2025-08/notes.txt", [])

    files = TickImporter.resolve_sources([str(tmp_path / "**" / "*.csv*"), first])

    assert files == sorted([first, second])


@pytest.mark.asyncio
async def test_import_patterns_without_matches_returns_empty(tmp_path):
    assert await TickImporter(InMemoryTickStore()).import_patterns(str(tmp_path / "*.csv")) == []


def test_import_config_rejects_non_positive_values():
    with pytest.raises(ConfigError):
        ImportConfig(batch_size=0)
    with pytest.raises(ConfigError):
        ImportConfig(max_concurrent_files=0)


@pytest.mark.asyncio
async def test_duckdb_import_is_idempotent(write_trades, tmp_path):
    path = write_trades("trades.csv", [*_rows(30), *_rows(5, "P-BTC-116000-010825")])
    store = DuckDBTickStore(str(tmp_path / "ticks.duckdb"))
    importer = TickImporter(store, ImportConfig(batch_size=8))

    first = await importer.import_patterns(str(path))
    second = await importer.import_patterns(str(path))
    await store.close()

    assert (first[0].inserted, first[0].duplicates) == (35, 0)
    assert (second[0].inserted, second[0].duplicates) == (0, 35)
