"""Candle building from stored ticks."""

from deltaticks.core.data.candles.aggregation import aggregate_ticks
from deltaticks.core.data.candles.builder import CandleBuilder, IntervalBuildReport
from deltaticks.core.data.candles.chunks import align_chunks, day_chunks
from deltaticks.core.data.candles.config import CandleBuildConfig, parse_instant
from deltaticks.core.services.intervals import IntervalSpec, bucket_start, parse_interval

__all__ = [
    "CandleBuildConfig",
    "CandleBuilder",
    "IntervalBuildReport",
    "IntervalSpec",
    "aggregate_ticks",
    "align_chunks",
    "bucket_start",
    "day_chunks",
    "parse_instant",
    "parse_interval",
]
