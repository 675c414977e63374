"""Pure OHLCV aggregation of ticks into timezone-aligned buckets."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, tzinfo

from deltaticks.core.models import Candle, Tick
from deltaticks.core.services.identifiers import candle_id
from deltaticks.core.services.intervals import IntervalSpec, bucket_start, format_local


@dataclass(slots=True)
class _Bucket:
    open: float
    high: float
    low: float
    close: float
    volume: float
    trade_count: int
    first_tick_time: datetime
    last_tick_time: datetime

    @classmethod
    def start(cls, tick: Tick) -> _Bucket:
        return cls(
            open=tick.price,
            high=tick.price,
            low=tick.price,
            close=tick.price,
            volume=tick.size,
            trade_count=1,
            first_tick_time=tick.timestamp,
            last_tick_time=tick.timestamp,
        )

    def add(self, tick: Tick) -> None:
        self.high = max(self.high, tick.price)
        self.low = min(self.low, tick.price)
        self.close = tick.price
        self.volume += tick.size
        self.trade_count += 1
        self.last_tick_time = tick.timestamp


def aggregate_ticks(
    ticks: Iterable[Tick],
    spec: IntervalSpec,
    tz: tzinfo,
    instrument: str,
    asset: str,
) -> list[Candle]:
    """Group ``ticks`` by bucket and return candles ordered by bucket start.

    Open and close follow ``Tick.sort_key`` order, so the result does not
    depend on the order of the input.
    """

    buckets: dict[datetime, _Bucket] = {}
    for tick in sorted(ticks, key=Tick.sort_key):
        key = bucket_start(tick.timestamp, spec, tz)
        bucket = buckets.get(key)
        if bucket is None:
            buckets[key] = _Bucket.start(tick)
        else:
            bucket.add(tick)

    return [
        Candle(
            id=candle_id(instrument, spec.label, start),
            instrument=instrument,
            asset=asset,
            interval=spec.label,
            bucket_start=start,
            local_datetime=format_local(start, tz),
            open=bucket.open,
            high=bucket.high,
            low=bucket.low,
            close=bucket.close,
            volume=bucket.volume,
            trade_count=bucket.trade_count,
            first_tick_time=bucket.first_tick_time,
            last_tick_time=bucket.last_tick_time,
        )
        for start, bucket in sorted(buckets.items())
    ]


__all__ = ["aggregate_ticks"]
