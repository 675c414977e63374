"""Idempotent streaming import of trade dumps into a tick store."""

from __future__ import annotations

import asyncio
import csv
import glob
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import date
from pathlib import Path
from time import perf_counter
from typing import Any

from deltaticks.core.data.ingestion.channel import FlushChannel
from deltaticks.core.data.ingestion.config import ImportConfig
from deltaticks.core.data.ingestion.reader import iter_records, parse_trade_row
from deltaticks.core.data.stores.base import InsertResult, TickStore
from deltaticks.core.exceptions import (
    DeltaTicksError,
    DuplicateKeyWriteError,
    RowValidationError,
    StoreWriteError,
    UnrecognizedSymbolError,
)
from deltaticks.core.logging import get_logger, log_context
from deltaticks.core.models import ContractType, Tick
from deltaticks.core.services.identifiers import tick_id
from deltaticks.core.services.symbols import require_instrument
from deltaticks.core.services.timestamps import TimestampResolver

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"

# Rows parsed between forced yields so the flusher can honour flush_interval.
YIELD_EVERY_ROWS = 512

log = get_logger("ingestion.importer")


@dataclass(slots=True)
class FileImportReport:
    """Per-file import outcome."""

    path: str
    status: str = STATUS_OK
    rows_read: int = 0
    rows_invalid: int = 0
    rows_unrecognized: int = 0
    accepted: int = 0
    inserted: int = 0
    duplicates: int = 0
    lost: int = 0
    other_errors: list[str] = field(default_factory=list)
    peak_unflushed: int = 0
    duration_ms: float = 0.0
    error: str | None = None
    error_code: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def record(self, result: InsertResult) -> None:
        self.inserted += result.inserted
        self.duplicates += result.duplicates
        self.lost += result.lost
        self.other_errors.extend(result.other_errors)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TickImporter:
    """Stream trade files into a :class:`TickStore`.

    Every tick carries a content-derived id, so re-importing a file only
    produces duplicates. Rows are handed to a background flusher through a
    :class:`FlushChannel`; the producer stalls whenever ``batch_size`` rows
    are unwritten.
    """

    def __init__(self, store: TickStore, config: ImportConfig | None = None) -> None:
        self._store = store
        self._config = config or ImportConfig()

    @property
    def config(self) -> ImportConfig:
        return self._config

    @staticmethod
    def resolve_sources(patterns: str | Path | Iterable[str | Path]) -> list[Path]:
        """Expand glob patterns (``**`` allowed) into a sorted list of files."""

        if isinstance(patterns, (str, Path)):
            patterns = [patterns]
        found: dict[Path, Path] = {}
        for pattern in patterns:
            text = str(Path(pattern).expanduser())
            matches = glob.glob(text, recursive=True) or ([text] if Path(text).is_file() else [])
            for match in matches:
                candidate = Path(match)
                if candidate.is_file():
                    found.setdefault(candidate.resolve(), candidate)
        return sorted(found.values())

    async def import_file(self, path: str | Path, *, start_date: date | None = None) -> FileImportReport:
        """Import a single file; fatal errors propagate to the caller."""

        report = FileImportReport(path=str(path))
        await self._run_file(Path(path), report, start_date)
        return report

    async def import_files(
        self,
        paths: Sequence[str | Path],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[FileImportReport]:
        """Import files concurrently, isolating failures per file.

        Files not yet started when ``cancel_event`` is set are reported as
        cancelled.
        """

        semaphore = asyncio.Semaphore(self._config.max_concurrent_files)

        async def run(path: Path) -> FileImportReport:
            report = FileImportReport(path=str(path))
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    report.status = STATUS_CANCELLED
                    return report
                try:
                    await self._run_file(path, report, None)
                except DeltaTicksError as exc:
                    self._mark_failed(report, str(exc), exc.error_code)
                except (OSError, csv.Error, UnicodeDecodeError, EOFError) as exc:
                    self._mark_failed(report, f"{type(exc).__name__}: {exc}", "IO_ERROR")
            return report

        return list(await asyncio.gather(*(run(Path(path)) for path in paths)))

    async def import_patterns(
        self,
        patterns: str | Path | Iterable[str | Path],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[FileImportReport]:
        """Resolve ``patterns``, prepare the store, and import every match."""

        files = self.resolve_sources(patterns)
        if not files:
            log.warning("no files matched {}", patterns)
            return []
        await self._store.ensure_schema()
        log.bind(files=len(files)).info("importing {} file(s)", len(files))
        return await self.import_files(files, cancel_event=cancel_event)

    @staticmethod
    def _mark_failed(report: FileImportReport, message: str, error_code: str) -> None:
        report.status = STATUS_FAILED
        report.error = message
        report.error_code = error_code
        log.bind(file=report.path, error_code=error_code).error("import failed: {}", message)

    async def _run_file(self, path: Path, report: FileImportReport, start_date: date | None) -> None:
        base = path.name
        resolver = TimestampResolver(path, start_date or self._config.start_date)
        channel: FlushChannel[Tick] = FlushChannel(self._config.batch_size)
        started = perf_counter()

        with log_context(file=base):
            flusher = asyncio.create_task(self._flush_loop(channel, report, base))
            try:
                await self._produce(path, base, resolver, channel, report)
            finally:
                channel.close()
                try:
                    await flusher
                finally:
                    report.peak_unflushed = channel.peak_unflushed
                    report.duration_ms = (perf_counter() - started) * 1000
                    log.bind(
                        rows_read=report.rows_read,
                        rows_invalid=report.rows_invalid,
                        rows_unrecognized=report.rows_unrecognized,
                    ).debug("row summary for {}", base)

            log.bind(inserted=report.inserted, duplicates=report.duplicates, lost=report.lost).info(
                "{} done: inserted={} duplicates={} lost={}", base, report.inserted, report.duplicates, report.lost
            )

    async def _produce(
        self,
        path: Path,
        base: str,
        resolver: TimestampResolver,
        channel: FlushChannel[Tick],
        report: FileImportReport,
    ) -> None:
        for row_number, record in iter_records(path):
            report.rows_read += 1
            if report.rows_read % YIELD_EVERY_ROWS == 0:
                await asyncio.sleep(0)
            try:
                row = parse_trade_row(record, row_number)
                meta = require_instrument(row.symbol, row_number=row_number)
            except RowValidationError:
                report.rows_invalid += 1
                continue
            except UnrecognizedSymbolError:
                report.rows_unrecognized += 1
                continue

            timestamp = resolver.resolve(row.timestamp_raw)
            tick = Tick(
                id=tick_id(meta.instrument, timestamp, row.price, row.size, row.role),
                timestamp=timestamp,
                price=row.price,
                size=row.size,
                role=row.role,
                meta=meta,
                source_file=base,
                row_number=row_number,
            )
            await channel.put(tick)
            report.accepted += 1

    async def _flush_loop(self, channel: FlushChannel[Tick], report: FileImportReport, base: str) -> None:
        while True:
            batch = await channel.take(self._config.flush_interval)
            if batch is None:
                return
            if not batch:
                continue
            try:
                await self._write(batch, report, base)
            except BaseException as exc:
                channel.abort(exc)
                raise
            finally:
                channel.release(len(batch))

    async def _write(self, batch: list[Tick], report: FileImportReport, base: str) -> None:
        buckets: dict[ContractType, list[Tick]] = {ContractType.FUTURES: [], ContractType.OPTIONS: []}
        for tick in batch:
            buckets[tick.contract_type].append(tick)

        for family, ticks in buckets.items():
            if not ticks:
                continue
            try:
                result = await self._store.insert_batch(family, ticks)
            except DuplicateKeyWriteError:
                result = InsertResult(duplicates=len(ticks))
            except StoreWriteError as exc:
                result = InsertResult(lost=len(ticks), other_errors=(exc.message,))
            except Exception as exc:
                result = InsertResult(lost=len(ticks), other_errors=(f"{type(exc).__name__}: {exc}",))
            report.record(result)
            if result.lost:
                log.bind(family=family.value, lost=result.lost, error_code="STORE_WRITE_ERROR").error(
                    "[{} {}] insert error: {}", base, family.value, "; ".join(result.other_errors)
                )

            if result.lost and self._config.fail_on_write_error:
                raise StoreWriteError(
                    f"{result.lost} {family.value} tick(s) from {base} could not be written",
                    family.value,
                    details={"errors": list(result.other_errors)},
                )


__all__ = [
    "FileImportReport",
    "STATUS_CANCELLED",
    "STATUS_FAILED",
    "STATUS_OK",
    "TickImporter",
]
