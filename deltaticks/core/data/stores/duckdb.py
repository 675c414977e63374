"""DuckDB-backed tick and candle stores."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Callable, Sequence
from datetime import UTC, date, datetime
from typing import Any, TypeVar

import duckdb
import pandas as pd
from duckdb import DuckDBPyConnection

from deltaticks.core.data.schema import CANDLES_TABLE, FUTURES_TICKS_TABLE, OPTIONS_TICKS_TABLE, TableSchema
from deltaticks.core.data.storage import DuckDBFactory, DuckDBFactoryConfig
from deltaticks.core.data.stores.base import CandleStore, InsertResult, TickStore, family_of
from deltaticks.core.exceptions import DuplicateKeyWriteError, StoreWriteError
from deltaticks.core.logging import get_logger
from deltaticks.core.models import Candle, ContractType, InstrumentMeta, OptionType, Tick, TradeRole
from deltaticks.core.services.symbols import classify_symbol

T = TypeVar("T")

_STAGING = "deltaticks_staging"
_QUERY_PAGE_SIZE = 5000
_TICK_SELECT = (
    "id, ts, instrument, asset, contract_type, option_type, strike, expiry, currency, "
    "price, size, role, source_file, row_number"
)

log = get_logger("stores.duckdb")


def to_naive_utc(moment: datetime) -> datetime:
    """DuckDB ``TIMESTAMP`` columns hold naive UTC instants."""

    return moment.astimezone(UTC).replace(tzinfo=None)


def from_naive_utc(moment: datetime) -> datetime:
    return moment.replace(tzinfo=UTC)


def _tick_row(tick: Tick) -> tuple[object, ...]:
    meta = tick.meta
    return (
        tick.id,
        to_naive_utc(tick.timestamp),
        meta.instrument,
        meta.asset,
        meta.contract_type.value,
        meta.option_type.value if meta.option_type else None,
        meta.strike,
        meta.expiry,
        meta.currency,
        tick.price,
        tick.size,
        tick.role.value,
        tick.source_file,
        tick.row_number,
    )


def _ticks_frame(ticks: Sequence[Tick]) -> pd.DataFrame:
    rows = [_tick_row(tick) for tick in ticks]
    frame = pd.DataFrame.from_records(rows, columns=FUTURES_TICKS_TABLE.column_names)
    frame["strike"] = pd.array([row[6] for row in rows], dtype="Int64")
    frame["expiry"] = [row[7].isoformat() if row[7] is not None else None for row in rows]
    return frame


def _candle_row(candle: Candle) -> tuple[object, ...]:
    return (
        candle.id,
        candle.instrument,
        candle.asset,
        candle.interval,
        to_naive_utc(candle.bucket_start),
        candle.local_datetime,
        candle.open,
        candle.high,
        candle.low,
        candle.close,
        candle.volume,
        candle.trade_count,
        to_naive_utc(candle.first_tick_time),
        to_naive_utc(candle.last_tick_time),
    )


def _meta_from_row(instrument: str, row: Sequence[Any]) -> InstrumentMeta:
    meta = classify_symbol(instrument)
    if meta is not None:
        return meta
    _, _, _, asset, contract_type, option_type, strike, expiry, currency = row[:9]
    return InstrumentMeta(
        instrument=instrument,
        asset=asset,
        contract_type=ContractType(contract_type),
        option_type=OptionType(option_type) if option_type else None,
        strike=int(strike) if strike is not None else None,
        expiry=expiry if isinstance(expiry, date) else None,
        currency=currency,
    )


def _tick_from_row(row: Sequence[Any]) -> Tick:
    return Tick(
        id=row[0],
        timestamp=from_naive_utc(row[1]),
        price=float(row[9]),
        size=float(row[10]),
        role=TradeRole(row[11]),
        meta=_meta_from_row(row[2], row),
        source_file=row[12],
        row_number=int(row[13]),
    )


def _candle_from_row(row: Sequence[Any]) -> Candle:
    return Candle(
        id=row[0],
        instrument=row[1],
        asset=row[2],
        interval=row[3],
        bucket_start=from_naive_utc(row[4]),
        local_datetime=row[5],
        open=float(row[6]),
        high=float(row[7]),
        low=float(row[8]),
        close=float(row[9]),
        volume=float(row[10]),
        trade_count=int(row[11]),
        first_tick_time=from_naive_utc(row[12]),
        last_tick_time=from_naive_utc(row[13]),
    )


class _DuckDBStoreBase:
    """Connection handling shared by the DuckDB stores.

    Blocking DuckDB calls run on worker threads. Each call uses its own cursor;
    writes are serialised by a lock so duplicate detection and insertion happen
    atomically with respect to other writers of the same store.
    """

    def __init__(
        self,
        database: str = ":memory:",
        *,
        connection: DuckDBPyConnection | None = None,
        factory: DuckDBFactory | None = None,
    ) -> None:
        self._owns_connection = connection is None
        if connection is None:
            factory = factory or DuckDBFactory(DuckDBFactoryConfig(database=database))
            connection = factory.create_connection()
        self._conn = connection
        self._write_lock = threading.Lock()
        self._closed = False

    @property
    def connection(self) -> DuckDBPyConnection:
        return self._conn

    async def _run(self, func: Callable[[DuckDBPyConnection], T]) -> T:
        def call() -> T:
            cursor = self._conn.cursor()
            try:
                return func(cursor)
            finally:
                cursor.close()

        return await asyncio.to_thread(call)

    async def _write(self, func: Callable[[DuckDBPyConnection], T]) -> T:
        def call(cursor: DuckDBPyConnection) -> T:
            with self._write_lock:
                return func(cursor)

        return await self._run(call)

    async def close(self) -> None:
        if self._owns_connection and not self._closed:
            self._closed = True
            await asyncio.to_thread(self._conn.close)

    def _insert_rows(
        self,
        cursor: DuckDBPyConnection,
        table: TableSchema,
        ids: Sequence[str],
        frame: pd.DataFrame,
        rows: Sequence[tuple[object, ...]],
        select_sql: str,
    ) -> InsertResult:
        """Insert rows whose id is not yet stored; count the rest as duplicates."""

        existing: set[str] = set()
        if ids:
            cursor.register(_STAGING, pd.DataFrame({"id": list(dict.fromkeys(ids))}))
            try:
                existing = {
                    row[0]
                    for row in cursor.execute(
                        f"SELECT t.id FROM {table.name} t JOIN {_STAGING} s ON t.id = s.id"
                    ).fetchall()
                }
            finally:
                cursor.unregister(_STAGING)

        keep: list[int] = []
        seen: set[str] = set()
        for position, record_id in enumerate(ids):
            if record_id in existing or record_id in seen:
                continue
            seen.add(record_id)
            keep.append(position)
        duplicates = len(ids) - len(keep)
        if not keep:
            return InsertResult(duplicates=duplicates)

        staged = frame.iloc[keep].reset_index(drop=True)
        cursor.register(_STAGING, staged)
        try:
            cursor.execute("BEGIN TRANSACTION")
            cursor.execute(f"INSERT INTO {table.name} SELECT {select_sql} FROM {_STAGING}")
            cursor.execute("COMMIT")
            return InsertResult(inserted=len(keep), duplicates=duplicates)
        except duckdb.Error as exc:
            cursor.execute("ROLLBACK")
            log.bind(table=table.name, rows=len(keep)).warning(
                "bulk insert failed, retrying row by row: {}", exc
            )
        finally:
            cursor.unregister(_STAGING)

        return InsertResult(duplicates=duplicates) + self._insert_one_by_one(
            cursor, table, [rows[position] for position in keep]
        )

    def _insert_one_by_one(
        self,
        cursor: DuckDBPyConnection,
        table: TableSchema,
        rows: Sequence[tuple[object, ...]],
    ) -> InsertResult:
        placeholders = ", ".join("?" for _ in table.columns)
        statement = f"INSERT INTO {table.name} VALUES ({placeholders})"
        inserted = duplicates = lost = 0
        errors: list[str] = []
        for row in rows:
            try:
                try:
                    cursor.execute(statement, list(row))
                except duckdb.ConstraintException as exc:
                    raise DuplicateKeyWriteError(str(exc), str(row[0]), table.name) from exc
                except duckdb.Error as exc:
                    raise StoreWriteError(str(exc), table.name) from exc
            except DuplicateKeyWriteError:
                duplicates += 1
                continue
            except StoreWriteError as exc:
                lost += 1
                errors.append(exc.message)
                continue
            inserted += 1
        return InsertResult(inserted=inserted, duplicates=duplicates, lost=lost, other_errors=tuple(errors))


_TICK_INSERT_SELECT = (
    "id, ts, instrument, asset, contract_type, option_type, CAST(strike AS BIGINT), "
    "CAST(expiry AS DATE), currency, price, size, role, source_file, row_number"
)

_CANDLE_COLUMNS = ", ".join(CANDLES_TABLE.column_names)


class DuckDBTickStore(_DuckDBStoreBase, TickStore):
    """Ticks in two DuckDB tables, one per contract family."""

    def __init__(
        self,
        database: str = ":memory:",
        *,
        futures_table: str = FUTURES_TICKS_TABLE.name,
        options_table: str = OPTIONS_TICKS_TABLE.name,
        connection: DuckDBPyConnection | None = None,
        factory: DuckDBFactory | None = None,
    ) -> None:
        super().__init__(database, connection=connection, factory=factory)
        self._tables = {
            ContractType.FUTURES: FUTURES_TICKS_TABLE.renamed(futures_table),
            ContractType.OPTIONS: OPTIONS_TICKS_TABLE.renamed(options_table),
        }

    def table_for(self, family: ContractType) -> TableSchema:
        return self._tables[family]

    async def ensure_schema(self) -> None:
        def create(cursor: DuckDBPyConnection) -> None:
            for table in self._tables.values():
                table.ensure(cursor)

        await self._write(create)

    async def insert_batch(self, family: ContractType, ticks: Sequence[Tick]) -> InsertResult:
        if not ticks:
            return InsertResult()
        table = self.table_for(family)
        rows = [_tick_row(tick) for tick in ticks]
        frame = _ticks_frame(ticks)
        ids = [tick.id for tick in ticks]

        return await self._write(
            lambda cursor: self._insert_rows(cursor, table, ids, frame, rows, _TICK_INSERT_SELECT)
        )

    async def _boundary(self, instrument: str, aggregate: str) -> datetime | None:
        table = self.table_for(family_of(instrument))

        def fetch(cursor: DuckDBPyConnection) -> datetime | None:
            row = cursor.execute(
                f"SELECT {aggregate}(ts) FROM {table.name} WHERE instrument = ?", [instrument]
            ).fetchone()
            return row[0] if row else None

        value = await self._run(fetch)
        return from_naive_utc(value) if value is not None else None

    async def find_earliest(self, instrument: str) -> datetime | None:
        return await self._boundary(instrument, "MIN")

    async def find_latest(self, instrument: str) -> datetime | None:
        return await self._boundary(instrument, "MAX")

    async def query_range(self, instrument: str, start: datetime, end: datetime) -> AsyncIterator[Tick]:
        table = self.table_for(family_of(instrument))
        cursor = self._conn.cursor()
        try:
            await asyncio.to_thread(
                cursor.execute,
                f"SELECT {_TICK_SELECT} FROM {table.name} "
                "WHERE instrument = ? AND ts >= ? AND ts < ? "
                "ORDER BY ts, source_file, row_number, id",
                [instrument, to_naive_utc(start), to_naive_utc(end)],
            )
            while True:
                rows = await asyncio.to_thread(cursor.fetchmany, _QUERY_PAGE_SIZE)
                if not rows:
                    break
                for row in rows:
                    yield _tick_from_row(row)
        finally:
            cursor.close()

    async def count(self, family: ContractType | None = None) -> int:
        families = [family] if family is not None else list(self._tables)

        def fetch(cursor: DuckDBPyConnection) -> int:
            total = 0
            for item in families:
                row = cursor.execute(f"SELECT COUNT(*) FROM {self.table_for(item).name}").fetchone()
                total += int(row[0]) if row else 0
            return total

        return await self._run(fetch)


class DuckDBCandleStore(_DuckDBStoreBase, CandleStore):
    """Candles in a single DuckDB table."""

    def __init__(
        self,
        database: str = ":memory:",
        *,
        table: str = CANDLES_TABLE.name,
        connection: DuckDBPyConnection | None = None,
        factory: DuckDBFactory | None = None,
    ) -> None:
        super().__init__(database, connection=connection, factory=factory)
        self._table = CANDLES_TABLE.renamed(table)

    @property
    def table(self) -> TableSchema:
        return self._table

    async def ensure_schema(self) -> None:
        await self._write(self._table.ensure)

    async def insert_batch(self, candles: Sequence[Candle]) -> InsertResult:
        if not candles:
            return InsertResult()
        rows = [_candle_row(candle) for candle in candles]
        frame = pd.DataFrame.from_records(rows, columns=self._table.column_names)
        ids = [candle.id for candle in candles]

        return await self._write(
            lambda cursor: self._insert_rows(cursor, self._table, ids, frame, rows, _CANDLE_COLUMNS)
        )

    def _query_sql(self, start: datetime | None, end: datetime | None) -> tuple[str, list[object]]:
        clauses = ["instrument = ?", "interval_label = ?"]
        params: list[object] = []
        if start is not None:
            clauses.append("bucket_start >= ?")
            params.append(to_naive_utc(start))
        if end is not None:
            clauses.append("bucket_start < ?")
            params.append(to_naive_utc(end))
        sql = f"SELECT {_CANDLE_COLUMNS} FROM {self._table.name} WHERE {' AND '.join(clauses)} ORDER BY bucket_start"
        return sql, params

    async def query(
        self,
        instrument: str,
        interval: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Candle]:
        sql, params = self._query_sql(start, end)
        rows = await self._run(lambda cursor: cursor.execute(sql, [instrument, interval, *params]).fetchall())
        return [_candle_from_row(row) for row in rows]

    async def query_frame(
        self,
        instrument: str,
        interval: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> pd.DataFrame:
        """Stored candles as a DataFrame with UTC-aware time columns."""

        sql, params = self._query_sql(start, end)
        frame = await self._run(lambda cursor: cursor.execute(sql, [instrument, interval, *params]).df())
        frame = frame.rename(columns={"interval_label": "interval"})
        for column in ("bucket_start", "first_tick_time", "last_tick_time"):
            frame[column] = pd.to_datetime(frame[column]).dt.tz_localize("UTC")
        return frame

    async def count(self) -> int:
        row = await self._run(lambda cursor: cursor.execute(f"SELECT COUNT(*) FROM {self._table.name}").fetchone())
        return int(row[0]) if row else 0


__all__ = ["DuckDBCandleStore", "DuckDBTickStore", "from_naive_utc", "to_naive_utc"]
