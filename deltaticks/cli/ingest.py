"""Tick import command."""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Any

import typer

from deltaticks.core.config import DeltaTicksConfig
from deltaticks.core.data.ingestion import FileImportReport, TickImporter

from .constants import FAILURE_EXIT_CODE
from .utils import emit_error, fail, load_settings, open_stores, prepare_output

REPORT_COLUMNS = [
    "path",
    "status",
    "rows_read",
    "rows_invalid",
    "rows_unrecognized",
    "inserted",
    "duplicates",
    "lost",
    "peak_unflushed",
    "error",
]


def register(app: typer.Typer) -> None:
    """Register the import command on the provided application."""

    app.command("import")(import_command)


def import_command(
    ctx: typer.Context,
    patterns: list[str] = typer.Argument(..., help="Files or glob patterns (** allowed), .csv or .csv.gz."),
    batch_size: int | None = typer.Option(None, "--batch-size", min=1, help="Rows per write batch."),
    max_concurrent_files: int | None = typer.Option(
        None, "--max-concurrent-files", min=1, help="Files imported in parallel."
    ),
    start_date: str | None = typer.Option(
        None, "--start-date", help="First trading day (YYYY-MM-DD) for time-only timestamps."
    ),
    fail_on_write_error: bool = typer.Option(
        False, "--fail-on-write-error", help="Fail a file on any non-duplicate write error."
    ),
) -> None:
    """Import Delta Exchange trade dumps into the tick store."""

    overrides: dict[str, Any] = {
        "import": {
            "batch_size": batch_size,
            "max_concurrent_files": max_concurrent_files,
            "start_date": _parse_date(start_date),
            "fail_on_write_error": fail_on_write_error or None,
        }
    }
    settings = load_settings(ctx, overrides)
    formatter, stream, stack, _ = prepare_output(ctx)

    try:
        reports = asyncio.run(_run_import(settings, patterns))
    except Exception as error:
        stack.close()
        fail(error)

    try:
        formatter.render([report.to_dict() for report in reports], stream=stream, columns=REPORT_COLUMNS)
    finally:
        stack.close()

    failed = [report for report in reports if report.status == "failed"]
    if not reports:
        emit_error("No files matched the given pattern(s).", "NO_FILES_MATCHED", details={"patterns": patterns})
        raise typer.Exit(code=FAILURE_EXIT_CODE)
    if failed:
        emit_error(
            f"{len(failed)} of {len(reports)} file(s) failed to import.",
            "IMPORT_FAILED",
            details={"files": [report.path for report in failed]},
        )
        raise typer.Exit(code=FAILURE_EXIT_CODE)


async def _run_import(settings: DeltaTicksConfig, patterns: list[str]) -> list[FileImportReport]:
    async with open_stores(settings.storage) as (ticks, _):
        importer = TickImporter(ticks, settings.importer)
        return await importer.import_patterns(patterns)


def _parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid date '{value}', expected YYYY-MM-DD.", param_hint="--start-date") from exc


__all__ = ["import_command", "register"]
