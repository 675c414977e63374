"""Streaming CSV reader for Delta Exchange trade dumps."""

from __future__ import annotations

import csv
import gzip
import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from deltaticks.core.exceptions import RowValidationError
from deltaticks.core.models import TradeRole

SYMBOL_COLUMNS = ("product_symbol", "symbol")
TIMESTAMP_COLUMNS = ("timestamp", "time")
ROLE_COLUMNS = ("buyer_role", "side")
PRICE_COLUMNS = ("price",)
SIZE_COLUMNS = ("size", "qty", "quantity")


@dataclass(frozen=True, slots=True)
class TradeRow:
    """A source row that passed field validation."""

    symbol: str
    timestamp_raw: str
    role: TradeRole
    price: float
    size: float
    row_number: int


def open_source(path: str | Path) -> TextIO:
    """Open a trade dump as text, decompressing ``.gz`` files on the fly."""

    source = Path(path)
    if source.name.endswith(".gz"):
        return gzip.open(source, "rt", encoding="utf-8-sig", newline="")
    return source.open("r", encoding="utf-8-sig", newline="")


def iter_records(path: str | Path) -> Iterator[tuple[int, dict[str, str]]]:
    """Yield ``(row_number, record)`` with trimmed headers and values.

    Blank lines are skipped and do not advance the row number; the header is
    not counted.
    """

    with open_source(path) as handle:
        reader = csv.reader(handle)
        header: list[str] | None = None
        row_number = 0
        for values in reader:
            cells = [value.strip() for value in values]
            if not any(cells):
                continue
            if header is None:
                header = cells
                continue
            row_number += 1
            yield row_number, dict(zip(header, cells))


def _first(record: Mapping[str, str], columns: tuple[str, ...]) -> str:
    for column in columns:
        value = record.get(column)
        if value is not None and value.strip():
            return value.strip()
    return ""


def _positive_number(raw: str, field: str, row_number: int) -> float:
    # float() also accepts digit separators like "1_000"
    if "_" in raw:
        raise RowValidationError(f"{field} is not a number: {raw!r}", field, row_number)
    try:
        value = float(raw)
    except ValueError:
        raise RowValidationError(f"{field} is not a number: {raw!r}", field, row_number) from None
    if not math.isfinite(value) or value <= 0:
        raise RowValidationError(f"{field} must be a positive finite number: {raw!r}", field, row_number)
    return value


def parse_trade_row(record: Mapping[str, str], row_number: int) -> TradeRow:
    """Normalise one CSV record, accepting the known column aliases."""

    symbol = _first(record, SYMBOL_COLUMNS)
    if not symbol:
        raise RowValidationError("missing instrument symbol", "symbol", row_number)
    timestamp_raw = _first(record, TIMESTAMP_COLUMNS)
    if not timestamp_raw:
        raise RowValidationError("missing timestamp", "timestamp", row_number)
    role_raw = _first(record, ROLE_COLUMNS)
    if not role_raw:
        raise RowValidationError("missing buyer role", "role", row_number)
    price = _positive_number(_first(record, PRICE_COLUMNS), "price", row_number)
    size = _positive_number(_first(record, SIZE_COLUMNS), "size", row_number)
    return TradeRow(
        symbol=symbol,
        timestamp_raw=timestamp_raw,
        role=TradeRole.from_raw(role_raw),
        price=price,
        size=size,
        row_number=row_number,
    )


__all__ = ["TradeRow", "iter_records", "open_source", "parse_trade_row"]
