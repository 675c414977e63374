"""Chunked, idempotent candle builds from stored ticks."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, tzinfo
from time import perf_counter
from typing import Any

from deltaticks.core.data.candles.aggregation import aggregate_ticks
from deltaticks.core.data.candles.chunks import align_chunks, day_chunks
from deltaticks.core.data.candles.config import CandleBuildConfig
from deltaticks.core.data.stores.base import CandleStore, InsertResult, TickStore
from deltaticks.core.exceptions import (
    CandleBuildError,
    DeltaTicksError,
    DuplicateKeyWriteError,
    InvalidRangeError,
    NoTicksFoundError,
    StoreWriteError,
)
from deltaticks.core.logging import get_logger, log_context
from deltaticks.core.models import Candle, TimeRange
from deltaticks.core.services.intervals import IntervalSpec, parse_interval
from deltaticks.core.services.symbols import require_instrument

# Derived range ends are exclusive; one millisecond past the latest tick keeps it in range.
RANGE_END_PADDING = timedelta(milliseconds=1)

log = get_logger("candles.builder")


@dataclass(slots=True)
class IntervalBuildReport:
    """Outcome of building one interval over one range."""

    instrument: str
    interval: str
    start: datetime
    end: datetime
    chunks: int = 0
    candles: int = 0
    inserted: int = 0
    duplicates: int = 0
    lost: int = 0
    other_errors: list[str] = field(default_factory=list)
    cancelled: bool = False
    duration_ms: float = 0.0

    def record(self, result: InsertResult) -> None:
        self.inserted += result.inserted
        self.duplicates += result.duplicates
        self.lost += result.lost
        self.other_errors.extend(result.other_errors)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["start"] = self.start.isoformat()
        payload["end"] = self.end.isoformat()
        return payload


class CandleBuilder:
    """Aggregate ticks of one instrument into candles for several intervals.

    Each interval is processed sequentially in local-day chunks; only one
    chunk of ticks is held in memory at a time.
    """

    def __init__(
        self,
        tick_store: TickStore,
        candle_store: CandleStore,
        config: CandleBuildConfig | None = None,
    ) -> None:
        self._ticks = tick_store
        self._candles = candle_store
        self._config = config or CandleBuildConfig()

    @property
    def config(self) -> CandleBuildConfig:
        return self._config

    async def resolve_range(self) -> TimeRange:
        """Explicit ``from_ts``/``to_ts`` bounds, falling back to the stored tick extent."""

        instrument = self._config.instrument
        start = self._config.from_ts
        end = self._config.to_ts
        if start is None:
            start = await self._ticks.find_earliest(instrument)
        if end is None:
            latest = await self._ticks.find_latest(instrument)
            end = latest + RANGE_END_PADDING if latest is not None else None
        if start is None or end is None:
            raise NoTicksFoundError(f"no ticks found for {instrument}", instrument)
        if start >= end:
            raise InvalidRangeError(
                f"invalid range: {start.isoformat()} >= {end.isoformat()}",
                {"start": start.isoformat(), "end": end.isoformat()},
            )
        return TimeRange(start, end)

    def plan_chunks(self, spec: IntervalSpec, time_range: TimeRange) -> list[TimeRange]:
        tz = self._config.tz
        return align_chunks(day_chunks(time_range, tz, self._config.chunk_days), spec, tz)

    async def build_interval(
        self,
        interval: str | IntervalSpec,
        time_range: TimeRange,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> IntervalBuildReport:
        """Build and store candles of ``interval`` for every chunk of ``time_range``."""

        spec = interval if isinstance(interval, IntervalSpec) else parse_interval(interval)
        instrument = self._config.instrument
        asset = require_instrument(instrument).asset
        tz = self._config.tz
        report = IntervalBuildReport(instrument, spec.label, time_range.start, time_range.end)
        started = perf_counter()

        with log_context(instrument=instrument, interval=spec.label):
            log.info(
                "[{} {}] building candles tz={} range={} -> {} chunk_days={}",
                instrument,
                spec.label,
                self._config.timezone,
                time_range.start.isoformat(),
                time_range.end.isoformat(),
                self._config.chunk_days,
            )
            for chunk in self.plan_chunks(spec, time_range):
                if cancel_event is not None and cancel_event.is_set():
                    report.cancelled = True
                    log.warning("[{} {}] cancelled before chunk {}", instrument, spec.label, chunk.start.isoformat())
                    break

                candles = await self._aggregate_chunk(chunk, spec, tz, asset)
                await self._write(candles, report)
                report.chunks += 1
                report.candles += len(candles)
                log.bind(candles=len(candles), inserted=report.inserted, duplicates=report.duplicates).info(
                    "[{} {}] chunk done: {} -> {}",
                    instrument,
                    spec.label,
                    chunk.start.isoformat(),
                    chunk.end.isoformat(),
                )

            report.duration_ms = (perf_counter() - started) * 1000
            log.bind(inserted=report.inserted, duplicates=report.duplicates, lost=report.lost).info(
                "[{} {}] done", instrument, spec.label
            )
        return report

    async def build(self, *, cancel_event: asyncio.Event | None = None) -> list[IntervalBuildReport]:
        """Build every configured interval over the resolved range.

        Sibling intervals run to completion even when one fails; failures are
        then raised together as a :class:`CandleBuildError`.
        """

        require_instrument(self._config.instrument)
        specs = self._config.interval_specs
        time_range = await self.resolve_range()
        await self._candles.ensure_schema()

        semaphore = asyncio.Semaphore(self._config.max_concurrent_builds)

        async def run(spec: IntervalSpec) -> IntervalBuildReport:
            async with semaphore:
                return await self.build_interval(spec, time_range, cancel_event=cancel_event)

        results = await asyncio.gather(*(run(spec) for spec in specs), return_exceptions=True)

        reports: list[IntervalBuildReport] = []
        failures: dict[str, BaseException] = {}
        for spec, result in zip(specs, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                failures[spec.label] = result
            else:
                reports.append(result)

        if failures:
            first = next(iter(failures.values()))
            raise CandleBuildError(
                f"candle build failed for interval(s) {', '.join(failures)}",
                {
                    "failures": {label: str(exc) for label, exc in failures.items()},
                    "reports": [report.to_dict() for report in reports],
                },
            ) from first
        return reports

    async def _aggregate_chunk(self, chunk: TimeRange, spec: IntervalSpec, tz: tzinfo, asset: str) -> list[Candle]:
        instrument = self._config.instrument
        try:
            ticks = [tick async for tick in self._ticks.query_range(instrument, chunk.start, chunk.end)]
            return aggregate_ticks(ticks, spec, tz, instrument, asset)
        except DeltaTicksError as exc:
            raise CandleBuildError(
                f"[{instrument} {spec.label}] chunk {chunk.start.isoformat()} -> {chunk.end.isoformat()} failed: "
                f"{exc.message}",
                {"chunk_start": chunk.start.isoformat(), "chunk_end": chunk.end.isoformat()},
            ) from exc
        except Exception as exc:
            raise CandleBuildError(
                f"[{instrument} {spec.label}] chunk {chunk.start.isoformat()} -> {chunk.end.isoformat()} failed: "
                f"{type(exc).__name__}: {exc}",
                {"chunk_start": chunk.start.isoformat(), "chunk_end": chunk.end.isoformat()},
            ) from exc

    async def _write(self, candles: Sequence[Candle], report: IntervalBuildReport) -> None:
        size = self._config.insert_batch_size
        for offset in range(0, len(candles), size):
            batch = candles[offset : offset + size]
            try:
                result = await self._candles.insert_batch(batch)
            except DuplicateKeyWriteError:
                result = InsertResult(duplicates=len(batch))
            except StoreWriteError as exc:
                result = InsertResult(lost=len(batch), other_errors=(exc.message,))
            except Exception as exc:
                result = InsertResult(lost=len(batch), other_errors=(f"{type(exc).__name__}: {exc}",))
            report.record(result)
            if not result.lost:
                continue
            log.bind(lost=result.lost, error_code="STORE_WRITE_ERROR").error(
                "[{} {}] insert error: {}", report.instrument, report.interval, "; ".join(result.other_errors)
            )
            if self._config.fail_on_write_error:
                raise CandleBuildError(
                    f"[{report.instrument} {report.interval}] {result.lost} candle(s) could not be written",
                    {"errors": list(result.other_errors)},
                )


__all__ = ["CandleBuilder", "IntervalBuildReport", "RANGE_END_PADDING"]
