"""Partitioning of build ranges into local-day chunks."""

from __future__ import annotations

from datetime import timedelta, tzinfo

from deltaticks.core.models import TimeRange
from deltaticks.core.services.intervals import IntervalSpec, bucket_start, local_midnight


def day_chunks(time_range: TimeRange, tz: tzinfo, chunk_days: int = 1) -> list[TimeRange]:
    """Split ``time_range`` into spans of ``chunk_days`` local days.

    The first chunk starts at the local midnight on or before
    ``time_range.start``; the last chunk ends exactly at ``time_range.end``.
    """

    if chunk_days <= 0:
        raise ValueError("chunk_days must be positive")
    if time_range.is_empty:
        return []

    chunks: list[TimeRange] = []
    day = time_range.start.astimezone(tz).date()
    while True:
        start = local_midnight(day, tz)
        if start >= time_range.end:
            break
        day += timedelta(days=chunk_days)
        chunks.append(TimeRange(start, min(local_midnight(day, tz), time_range.end)))
    return chunks


def align_chunks(chunks: list[TimeRange], spec: IntervalSpec, tz: tzinfo) -> list[TimeRange]:
    """Move chunk boundaries back to bucket starts so no bucket spans two chunks.

    The final end is kept as is. Chunks that become empty are dropped.
    """

    if not chunks:
        return []
    bounds = [bucket_start(chunk.start, spec, tz) for chunk in chunks]
    bounds.append(chunks[-1].end)
    aligned: list[TimeRange] = []
    for start, end in zip(bounds, bounds[1:]):
        if start < end:
            aligned.append(TimeRange(start, end))
    return aligned


__all__ = ["align_chunks", "day_chunks"]
