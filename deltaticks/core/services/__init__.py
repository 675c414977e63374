"""Stateless domain services: symbols, timestamps, identifiers and intervals."""

from deltaticks.core.services.identifiers import candle_id, format_instant, format_number, tick_id
from deltaticks.core.services.intervals import IntervalSpec, IntervalUnit, bucket_start, parse_interval
from deltaticks.core.services.symbols import classify_symbol, require_instrument
from deltaticks.core.services.timestamps import TimestampResolver, infer_start_date

__all__ = [
    "IntervalSpec",
    "IntervalUnit",
    "TimestampResolver",
    "bucket_start",
    "candle_id",
    "classify_symbol",
    "format_instant",
    "format_number",
    "infer_start_date",
    "parse_interval",
    "require_instrument",
    "tick_id",
]
