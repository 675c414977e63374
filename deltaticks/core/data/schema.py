"""DuckDB table definitions for ticks and candles."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from duckdb import DuckDBPyConnection


@dataclass(frozen=True)
class ColumnDef:
    """Represents a DuckDB table column definition."""

    name: str
    data_type: str
    constraints: Sequence[str] = ()

    def render(self) -> str:
        parts = [self.name, self.data_type, *self.constraints]
        return " ".join(parts)


@dataclass(frozen=True)
class IndexDef:
    """Secondary index on a table."""

    name: str
    columns: Sequence[str]


@dataclass(frozen=True)
class TableSchema:
    """Utility wrapper describing a DuckDB table schema."""

    name: str
    columns: Sequence[ColumnDef]
    primary_key: Sequence[str] = ()
    indexes: Sequence[IndexDef] = ()

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def create_ddl(self) -> str:
        column_defs: list[str] = [column.render() for column in self.columns]
        if self.primary_key:
            pk_cols = ", ".join(self.primary_key)
            column_defs.append(f"PRIMARY KEY ({pk_cols})")
        columns_sql = ",\n                ".join(column_defs)
        return f"""
            CREATE TABLE IF NOT EXISTS {self.name} (
                {columns_sql}
            )
            """.strip()

    def index_ddl(self) -> Iterable[str]:
        for index in self.indexes:
            cols = ", ".join(index.columns)
            yield f"CREATE INDEX IF NOT EXISTS {self.name}_{index.name} ON {self.name} ({cols})"

    def renamed(self, name: str) -> TableSchema:
        """Return the same layout under another table name."""

        return TableSchema(name=name, columns=self.columns, primary_key=self.primary_key, indexes=self.indexes)

    def ensure(self, conn: DuckDBPyConnection) -> None:
        """Create the table and its indexes on the provided connection if missing."""

        conn.execute(self.create_ddl())
        for statement in self.index_ddl():
            conn.execute(statement)


TICK_COLUMNS: tuple[ColumnDef, ...] = (
    ColumnDef("id", "VARCHAR", ("NOT NULL",)),
    ColumnDef("ts", "TIMESTAMP", ("NOT NULL",)),
    ColumnDef("instrument", "VARCHAR", ("NOT NULL",)),
    ColumnDef("asset", "VARCHAR", ("NOT NULL",)),
    ColumnDef("contract_type", "VARCHAR", ("NOT NULL",)),
    ColumnDef("option_type", "VARCHAR"),
    ColumnDef("strike", "BIGINT"),
    ColumnDef("expiry", "DATE"),
    ColumnDef("currency", "VARCHAR", ("NOT NULL",)),
    ColumnDef("price", "DOUBLE", ("NOT NULL",)),
    ColumnDef("size", "DOUBLE", ("NOT NULL",)),
    ColumnDef("role", "VARCHAR", ("NOT NULL",)),
    ColumnDef("source_file", "VARCHAR", ("NOT NULL",)),
    ColumnDef("row_number", "BIGINT", ("NOT NULL",)),
)

FUTURES_TICKS_TABLE = TableSchema(
    name="delta_futures_ts",
    columns=TICK_COLUMNS,
    primary_key=("id",),
    indexes=(IndexDef("instrument_ts", ("instrument", "ts")),),
)

OPTIONS_TICKS_TABLE = FUTURES_TICKS_TABLE.renamed("delta_options_ts")

CANDLES_TABLE = TableSchema(
    name="delta_futures_candles",
    columns=(
        ColumnDef("id", "VARCHAR", ("NOT NULL",)),
        ColumnDef("instrument", "VARCHAR", ("NOT NULL",)),
        ColumnDef("asset", "VARCHAR", ("NOT NULL",)),
        ColumnDef("interval_label", "VARCHAR", ("NOT NULL",)),
        ColumnDef("bucket_start", "TIMESTAMP", ("NOT NULL",)),
        ColumnDef("local_datetime", "VARCHAR", ("NOT NULL",)),
        ColumnDef("open", "DOUBLE", ("NOT NULL",)),
        ColumnDef("high", "DOUBLE", ("NOT NULL",)),
        ColumnDef("low", "DOUBLE", ("NOT NULL",)),
        ColumnDef("close", "DOUBLE", ("NOT NULL",)),
        ColumnDef("volume", "DOUBLE", ("NOT NULL",)),
        ColumnDef("trade_count", "BIGINT", ("NOT NULL",)),
        ColumnDef("first_tick_time", "TIMESTAMP", ("NOT NULL",)),
        ColumnDef("last_tick_time", "TIMESTAMP", ("NOT NULL",)),
    ),
    primary_key=("id",),
    indexes=(IndexDef("instrument_interval_bucket", ("instrument", "interval_label", "bucket_start")),),
)


__all__ = [
    "CANDLES_TABLE",
    "ColumnDef",
    "FUTURES_TICKS_TABLE",
    "IndexDef",
    "OPTIONS_TICKS_TABLE",
    "TICK_COLUMNS",
    "TableSchema",
]
