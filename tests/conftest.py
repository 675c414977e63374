"""Pytest configuration for the deltaticks test suite."""

from __future__ import annotations

import gzip
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pytest

from deltaticks.core.models import Tick, TradeRole
from deltaticks.core.services.identifiers import tick_id
from deltaticks.core.services.symbols import require_instrument

TRADE_HEADER = "product_symbol,timestamp,buyer_role,price,size"


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line options for controlling integration tests."""

    parser.addoption(
        "--deltaticks-run-integration",
        action="store_true",
        default=False,
        help="Run deltaticks integration tests that use file-backed databases.",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register the integration marker for deltaticks tests."""

    config.addinivalue_line(
        "markers",
        "integration: marks deltaticks tests exercising a file-backed DuckDB database end to end",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly requested."""

    if config.getoption("--deltaticks-run-integration"):
        return

    skip_integration = pytest.mark.skip(
        reason="integration tests require --deltaticks-run-integration",
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep DELTATICKS_* variables from the host out of the tests."""

    import os

    for name in list(os.environ):
        if name.startswith("DELTATICKS_"):
            monkeypatch.delenv(name, raising=False)


def build_tick(
    timestamp: datetime,
    price: float,
    size: float = 1.0,
    *,
    instrument: str = "BTCUSD",
    role: TradeRole = TradeRole.TAKER,
    source_file: str = "ticks.csv",
    row_number: int = 1,
) -> Tick:
    meta = require_instrument(instrument)
    return Tick(
        id=tick_id(meta.instrument, timestamp, price, size, role),
        timestamp=timestamp,
        price=price,
        size=size,
        role=role,
        meta=meta,
        source_file=source_file,
        row_number=row_number,
    )


@pytest.fixture()
def make_tick() -> Callable[..., Tick]:
    return build_tick


@pytest.fixture()
def write_trades(tmp_path: Path) -> Callable[..., Path]:
    """Write a trade dump (optionally gzipped) and return its path."""

    def _write(name: str, rows: list[str], *, header: str = TRADE_HEADER) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        content = "\n".join([header, *rows]) + "\n"
        if name.endswith(".gz"):
            with gzip.open(path, "wt", encoding="utf-8") as handle:
                handle.write(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    return _write
