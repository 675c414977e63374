"""Candle interval specifications and timezone-aware bucket alignment."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from deltaticks.core.exceptions import ConfigError, IntervalSpecError

_INTERVAL_PATTERN = re.compile(r"^([MHD])(\d+)$")

# Buckets count whole units elapsed since this local wall-clock instant.
REFERENCE_LOCAL = datetime(2000, 1, 1)
REFERENCE_DATE = date(2000, 1, 1)


class IntervalUnit(str, Enum):
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"


_UNIT_BY_PREFIX = {"M": IntervalUnit.MINUTE, "H": IntervalUnit.HOUR, "D": IntervalUnit.DAY}
_UNIT_DELTA = {IntervalUnit.MINUTE: timedelta(minutes=1), IntervalUnit.HOUR: timedelta(hours=1)}


@dataclass(frozen=True, slots=True)
class IntervalSpec:
    """Parsed ``M<n>`` / ``H<n>`` / ``D<n>`` interval."""

    label: str
    unit: IntervalUnit
    bin_size: int


def parse_interval(interval: str) -> IntervalSpec:
    """Parse an interval label such as ``M1``, ``m30``, ``H4`` or ``D1``."""

    label = str(interval).strip().upper()
    match = _INTERVAL_PATTERN.match(label)
    if match is None:
        raise IntervalSpecError(
            f'Unsupported interval "{interval}". Supported: M<n> (minutes), H<n> (hours), '
            "D<n> (days). Examples: M1, M30, H1, D1.",
            str(interval),
        )
    prefix, digits = match.groups()
    bin_size = int(digits)
    if bin_size <= 0:
        raise IntervalSpecError(f'Invalid interval "{interval}"', str(interval))
    return IntervalSpec(label=f"{prefix}{bin_size}", unit=_UNIT_BY_PREFIX[prefix], bin_size=bin_size)


def parse_intervals(intervals: str | list[str] | tuple[str, ...]) -> tuple[IntervalSpec, ...]:
    """Parse a comma separated string or a sequence of labels, keeping order and dropping repeats."""

    labels = intervals.split(",") if isinstance(intervals, str) else list(intervals)
    specs: dict[str, IntervalSpec] = {}
    for raw in labels:
        if not str(raw).strip():
            continue
        spec = parse_interval(raw)
        specs.setdefault(spec.label, spec)
    return tuple(specs.values())


def load_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name."""

    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"unknown timezone {name!r}", details={"timezone": name}) from exc


def local_midnight(day: date, tz: tzinfo) -> datetime:
    """Start of ``day`` in ``tz`` expressed in UTC."""

    return datetime.combine(day, time(0), tzinfo=tz).astimezone(UTC)


def bucket_start(moment: datetime, spec: IntervalSpec, tz: tzinfo) -> datetime:
    """Truncate ``moment`` to its bucket relative to the local clock of ``tz``.

    The local wall-clock time is floored to a multiple of ``bin_size`` units
    counted from 2000-01-01T00:00 local time; the bucket start is returned as
    a UTC instant.
    """

    local = moment.astimezone(tz)
    if spec.unit is IntervalUnit.DAY:
        elapsed_days = (local.date() - REFERENCE_DATE).days
        floored = elapsed_days - elapsed_days % spec.bin_size
        return local_midnight(REFERENCE_DATE + timedelta(days=floored), tz)

    unit = _UNIT_DELTA[spec.unit]
    wall_clock = local.replace(tzinfo=None)
    elapsed_units = (wall_clock - REFERENCE_LOCAL) // unit
    floored = elapsed_units - elapsed_units % spec.bin_size
    bucket_local = REFERENCE_LOCAL + floored * unit
    return bucket_local.replace(tzinfo=tz, fold=local.fold).astimezone(UTC)


def format_local(moment: datetime, tz: tzinfo) -> str:
    """ISO-8601 local time with offset, seconds precision (``2025-08-01T05:30:00+05:30``)."""

    return moment.astimezone(tz).isoformat(timespec="seconds")


__all__ = [
    "IntervalSpec",
    "IntervalUnit",
    "bucket_start",
    "format_local",
    "load_timezone",
    "local_midnight",
    "parse_interval",
    "parse_intervals",
]
