"""Store contracts shared by the importer and the candle builder."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from datetime import datetime

from deltaticks.core.models import Candle, ContractType, Tick
from deltaticks.core.services.symbols import classify_symbol


@dataclass(frozen=True, slots=True)
class InsertResult:
    """Outcome of one batch write."""

    inserted: int = 0
    duplicates: int = 0
    lost: int = 0
    other_errors: tuple[str, ...] = ()

    def __add__(self, other: InsertResult) -> InsertResult:
        return InsertResult(
            inserted=self.inserted + other.inserted,
            duplicates=self.duplicates + other.duplicates,
            lost=self.lost + other.lost,
            other_errors=self.other_errors + other.other_errors,
        )

    @property
    def attempted(self) -> int:
        return self.inserted + self.duplicates + self.lost


def family_of(instrument: str) -> ContractType:
    """Partition holding ``instrument``; unknown symbols default to futures."""

    meta = classify_symbol(instrument)
    return meta.contract_type if meta is not None else ContractType.FUTURES


class TickStore(ABC):
    """Durable, id-unique tick storage partitioned by contract family."""

    @abstractmethod
    async def ensure_schema(self) -> None:
        """Create tables and indexes if missing."""

    @abstractmethod
    async def insert_batch(self, family: ContractType, ticks: Sequence[Tick]) -> InsertResult:
        """Insert ``ticks`` into the ``family`` partition, counting duplicate ids."""

    @abstractmethod
    async def find_earliest(self, instrument: str) -> datetime | None:
        """Timestamp of the earliest stored tick for ``instrument``."""

    @abstractmethod
    async def find_latest(self, instrument: str) -> datetime | None:
        """Timestamp of the latest stored tick for ``instrument``."""

    @abstractmethod
    def query_range(self, instrument: str, start: datetime, end: datetime) -> AsyncIterator[Tick]:
        """Yield ticks with ``start <= ts < end`` ordered by ``Tick.sort_key``."""

    @abstractmethod
    async def count(self, family: ContractType | None = None) -> int:
        """Number of stored ticks, optionally for one family."""

    async def close(self) -> None:
        """Release resources held by the store."""


class CandleStore(ABC):
    """Durable, id-unique candle storage."""

    @abstractmethod
    async def ensure_schema(self) -> None:
        """Create tables and indexes if missing."""

    @abstractmethod
    async def insert_batch(self, candles: Sequence[Candle]) -> InsertResult:
        """Insert ``candles``, counting duplicate ids."""

    @abstractmethod
    async def query(
        self,
        instrument: str,
        interval: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Candle]:
        """Stored candles ordered by bucket start, ``start <= bucket_start < end``."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored candles."""

    async def close(self) -> None:
        """Release resources held by the store."""


__all__ = ["CandleStore", "InsertResult", "TickStore", "family_of"]
