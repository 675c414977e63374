"""In-memory stores used by tests and embedded runs."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from datetime import datetime
from threading import Lock

from deltaticks.core.data.stores.base import CandleStore, InsertResult, TickStore, family_of
from deltaticks.core.models import Candle, ContractType, Tick


class InMemoryTickStore(TickStore):
    """Ticks held in per-family dictionaries keyed by id."""

    def __init__(self) -> None:
        self._ticks: dict[ContractType, dict[str, Tick]] = {family: {} for family in ContractType}
        self._lock = Lock()

    async def ensure_schema(self) -> None:
        return None

    async def insert_batch(self, family: ContractType, ticks: Sequence[Tick]) -> InsertResult:
        inserted = duplicates = 0
        with self._lock:
            partition = self._ticks[family]
            for tick in ticks:
                if tick.id in partition:
                    duplicates += 1
                    continue
                partition[tick.id] = tick
                inserted += 1
        return InsertResult(inserted=inserted, duplicates=duplicates)

    def _instrument_ticks(self, instrument: str) -> list[Tick]:
        with self._lock:
            partition = self._ticks[family_of(instrument)]
            return [tick for tick in partition.values() if tick.instrument == instrument]

    async def find_earliest(self, instrument: str) -> datetime | None:
        ticks = self._instrument_ticks(instrument)
        return min((tick.timestamp for tick in ticks), default=None)

    async def find_latest(self, instrument: str) -> datetime | None:
        ticks = self._instrument_ticks(instrument)
        return max((tick.timestamp for tick in ticks), default=None)

    async def query_range(self, instrument: str, start: datetime, end: datetime) -> AsyncIterator[Tick]:
        selected = [tick for tick in self._instrument_ticks(instrument) if start <= tick.timestamp < end]
        selected.sort(key=Tick.sort_key)
        for tick in selected:
            yield tick

    async def count(self, family: ContractType | None = None) -> int:
        with self._lock:
            if family is not None:
                return len(self._ticks[family])
            return sum(len(partition) for partition in self._ticks.values())


class InMemoryCandleStore(CandleStore):
    """Candles held in a dictionary keyed by id."""

    def __init__(self) -> None:
        self._candles: dict[str, Candle] = {}
        self._lock = Lock()

    async def ensure_schema(self) -> None:
        return None

    async def insert_batch(self, candles: Sequence[Candle]) -> InsertResult:
        inserted = duplicates = 0
        with self._lock:
            for candle in candles:
                if candle.id in self._candles:
                    duplicates += 1
                    continue
                self._candles[candle.id] = candle
                inserted += 1
        return InsertResult(inserted=inserted, duplicates=duplicates)

    async def query(
        self,
        instrument: str,
        interval: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Candle]:
        with self._lock:
            candles = [
                candle
                for candle in self._candles.values()
                if candle.instrument == instrument
                and candle.interval == interval
                and (start is None or candle.bucket_start >= start)
                and (end is None or candle.bucket_start < end)
            ]
        candles.sort(key=lambda candle: candle.bucket_start)
        return candles

    async def count(self) -> int:
        with self._lock:
            return len(self._candles)


__all__ = ["InMemoryCandleStore", "InMemoryTickStore"]
