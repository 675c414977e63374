"""Utility helpers shared across CLI commands."""

from __future__ import annotations

import json
import sys
from collections.abc import AsyncIterator
from contextlib import ExitStack, asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, NoReturn, Sequence, TextIO

import typer

from deltaticks.core.config import DeltaTicksConfig, StorageConfig, resolve_config
from deltaticks.core.data.storage import DuckDBFactory, DuckDBFactoryConfig
from deltaticks.core.data.stores import DuckDBCandleStore, DuckDBTickStore
from deltaticks.core.exceptions import (
    CandleBuildError,
    ConfigError,
    DeltaTicksError,
    InvalidRangeError,
    NoTicksFoundError,
    RowRejectedError,
    StoreWriteError,
    TimestampParseError,
)
from deltaticks.core.logging import configure_logging

from .constants import FAILURE_EXIT_CODE, SYSTEM_EXIT_CODE, VALIDATION_EXIT_CODE
from .formatters import OutputFormatter, create_formatter


@dataclass(slots=True)
class CLIOptions:
    """Resolved options derived from the Typer context."""

    format: str = "table"
    output_path: Path | None = None
    no_color: bool = False
    config_path: Path | None = None
    database: str | None = None
    log_level: str | None = None


def get_cli_options(ctx: typer.Context) -> CLIOptions:
    """Extract :class:`CLIOptions` from the Typer context object."""

    ctx.ensure_object(dict)
    data = ctx.obj or {}
    return CLIOptions(
        format=str(data.get("format", "table")),
        output_path=data.get("output_path"),
        no_color=bool(data.get("no_color", False)),
        config_path=data.get("config_path"),
        database=data.get("database"),
        log_level=data.get("log_level"),
    )


def load_settings(ctx: typer.Context, overrides: dict[str, Any] | None = None) -> DeltaTicksConfig:
    """Resolve configuration for a command and apply its logging section.

    Precedence: defaults, config file, ``DELTATICKS_*`` variables, global
    options, then command options in ``overrides``.
    """

    options = get_cli_options(ctx)
    layered: dict[str, Any] = {
        "storage": {"database": options.database},
        "logging": {"level": options.log_level},
    }
    for section, values in (overrides or {}).items():
        layered.setdefault(section, {}).update(values)
    try:
        settings = resolve_config(options.config_path, overrides=layered)
    except DeltaTicksError as exc:
        fail(exc)
    try:
        configure_logging(
            settings.logging.level,
            file_output=settings.logging.file is not None,
            file_path=settings.logging.file,
        )
    except ValueError as exc:
        fail(ConfigError(f"invalid logging configuration: {exc}"))
    return settings


def prepare_output(ctx: typer.Context) -> tuple[OutputFormatter, TextIO, ExitStack, CLIOptions]:
    """Resolve formatter and writable stream for the current command."""

    options = get_cli_options(ctx)
    try:
        formatter = create_formatter(options.format, no_color=options.no_color)
    except ValueError as exc:  # pragma: no cover - validated at callback, safeguard for manual use
        emit_error(str(exc), "INVALID_FORMAT")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc

    stack = ExitStack()
    stream: TextIO
    if options.output_path is not None:
        try:
            stream = stack.enter_context(open(options.output_path, "w", encoding="utf-8"))
        except OSError as exc:
            stack.close()
            emit_error(f"Unable to open '{options.output_path}': {exc}", "OUTPUT_WRITE_ERROR")
            raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    else:
        stream = sys.stdout

    return formatter, stream, stack, options


def emit_error(message: str, code: str, *, details: Mapping[str, object] | None = None) -> None:
    """Print a structured error payload to stderr."""

    payload: dict[str, object] = {"code": code, "message": message}
    if details:
        payload["details"] = _sanitize_details(details)
    typer.echo(json.dumps(payload, ensure_ascii=False, default=str), err=True)


def exit_code_for(error: BaseException) -> int:
    """Map an exception to the process exit code."""

    if isinstance(error, (ConfigError, InvalidRangeError, RowRejectedError)):
        return VALIDATION_EXIT_CODE
    if isinstance(error, (CandleBuildError, NoTicksFoundError, StoreWriteError, TimestampParseError)):
        return FAILURE_EXIT_CODE
    return SYSTEM_EXIT_CODE


def fail(error: BaseException) -> NoReturn:
    """Report ``error`` on stderr and exit with its mapped code."""

    if isinstance(error, DeltaTicksError):
        emit_error(error.message, error.error_code, details=error.details)
    else:
        emit_error(f"{type(error).__name__}: {error}", "UNEXPECTED_ERROR")
    raise typer.Exit(code=exit_code_for(error)) from error


@asynccontextmanager
async def open_stores(storage: StorageConfig) -> AsyncIterator[tuple[DuckDBTickStore, DuckDBCandleStore]]:
    """Open tick and candle stores sharing one DuckDB connection."""

    factory = DuckDBFactory(DuckDBFactoryConfig(database=storage.database))
    connection = factory.create_connection()
    try:
        ticks = DuckDBTickStore(
            futures_table=storage.futures_table,
            options_table=storage.options_table,
            connection=connection,
        )
        candles = DuckDBCandleStore(table=storage.candles_table, connection=connection)
        yield ticks, candles
    finally:
        connection.close()


def _sanitize_details(details: Mapping[str, object]) -> Mapping[str, object]:
    sanitized: dict[str, object] = {}
    for key, value in details.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            sanitized[key] = value
        elif isinstance(value, Mapping):
            sanitized[key] = {str(k): v if isinstance(v, (str, int, float, bool)) else str(v) for k, v in value.items()}
        elif isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
            sanitized[key] = [str(item) for item in value]
        else:
            sanitized[key] = str(value)
    return sanitized


__all__ = [
    "CLIOptions",
    "emit_error",
    "exit_code_for",
    "fail",
    "get_cli_options",
    "load_settings",
    "open_stores",
    "prepare_output",
]
