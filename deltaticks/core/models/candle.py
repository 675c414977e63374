"""Candle records produced by the candle builder."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class Candle:
    """OHLCV summary of every tick inside one timezone-aligned bucket."""

    id: str
    instrument: str
    asset: str
    interval: str
    bucket_start: datetime
    local_datetime: str
    open: float
    high: float
    low: float
    close: float
    volume: float
    trade_count: int
    first_tick_time: datetime
    last_tick_time: datetime

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = ["Candle"]
