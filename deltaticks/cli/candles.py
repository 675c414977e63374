"""Candle build and inspection commands."""

from __future__ import annotations

import asyncio
from typing import Any

import typer

from deltaticks.core.config import DeltaTicksConfig
from deltaticks.core.data.candles import CandleBuilder, IntervalBuildReport, parse_instant, parse_interval
from deltaticks.core.exceptions import DeltaTicksError
from deltaticks.core.models import Candle

from .utils import fail, load_settings, open_stores, prepare_output

candles_app = typer.Typer(help="Candle operations.")

BUILD_COLUMNS = [
    "instrument",
    "interval",
    "start",
    "end",
    "chunks",
    "candles",
    "inserted",
    "duplicates",
    "lost",
    "cancelled",
]

CANDLE_COLUMNS = [
    "instrument",
    "interval",
    "bucket_start",
    "local_datetime",
    "open",
    "high",
    "low",
    "close",
    "volume",
    "trade_count",
]


def register(app: typer.Typer) -> None:
    """Register the candles command group on the provided application."""

    app.add_typer(candles_app, name="candles", help="Build and inspect OHLCV candles")


@candles_app.command("build")
def build_command(
    ctx: typer.Context,
    instrument: str | None = typer.Option(None, "--instrument", help="Instrument symbol, e.g. BTCUSD."),
    timezone: str | None = typer.Option(None, "--timezone", help="IANA timezone buckets align to."),
    intervals: str | None = typer.Option(None, "--intervals", help="Comma separated intervals, e.g. M1,M5,H1."),
    from_ts: str | None = typer.Option(None, "--from", help="Range start (ISO-8601, inclusive)."),
    to_ts: str | None = typer.Option(None, "--to", help="Range end (ISO-8601, exclusive)."),
    chunk_days: int | None = typer.Option(None, "--chunk-days", min=1, help="Local days per chunk."),
    max_concurrent_builds: int | None = typer.Option(
        None, "--max-concurrent-builds", min=1, help="Intervals built in parallel."
    ),
) -> None:
    """Aggregate stored ticks into candles."""

    overrides: dict[str, Any] = {
        "candles": {
            "instrument": instrument,
            "timezone": timezone,
            "intervals": tuple(intervals.split(",")) if intervals else None,
            "from_ts": from_ts,
            "to_ts": to_ts,
            "chunk_days": chunk_days,
            "max_concurrent_builds": max_concurrent_builds,
        }
    }
    settings = load_settings(ctx, overrides)
    formatter, stream, stack, _ = prepare_output(ctx)

    try:
        reports = asyncio.run(_run_build(settings))
    except Exception as error:
        stack.close()
        fail(error)

    try:
        formatter.render([report.to_dict() for report in reports], stream=stream, columns=BUILD_COLUMNS)
    finally:
        stack.close()


@candles_app.command("show")
def show_command(
    ctx: typer.Context,
    instrument: str = typer.Option("BTCUSD", "--instrument", help="Instrument symbol."),
    interval: str = typer.Option("M1", "--interval", help="Interval label."),
    from_ts: str | None = typer.Option(None, "--from", help="First bucket start (ISO-8601)."),
    to_ts: str | None = typer.Option(None, "--to", help="Exclusive bucket start bound (ISO-8601)."),
    limit: int | None = typer.Option(None, "--limit", min=1, help="Show at most this many candles."),
) -> None:
    """Print stored candles."""

    settings = load_settings(ctx)
    try:
        label = parse_interval(interval).label
        start = parse_instant(from_ts) if from_ts else None
        end = parse_instant(to_ts) if to_ts else None
    except DeltaTicksError as error:
        fail(error)

    formatter, stream, stack, _ = prepare_output(ctx)
    try:
        candles = asyncio.run(_run_show(settings, instrument.strip(), label, start, end))
    except Exception as error:
        stack.close()
        fail(error)

    if limit is not None:
        candles = candles[:limit]
    try:
        formatter.render([candle.to_dict() for candle in candles], stream=stream, columns=CANDLE_COLUMNS)
    finally:
        stack.close()


async def _run_build(settings: DeltaTicksConfig) -> list[IntervalBuildReport]:
    async with open_stores(settings.storage) as (ticks, candles):
        await ticks.ensure_schema()
        builder = CandleBuilder(ticks, candles, settings.candles)
        return await builder.build()


async def _run_show(settings: DeltaTicksConfig, instrument: str, interval: str, start: Any, end: Any) -> list[Candle]:
    async with open_stores(settings.storage) as (_, candles):
        await candles.ensure_schema()
        return await candles.query(instrument, interval, start, end)


__all__ = ["build_command", "candles_app", "register", "show_command"]
