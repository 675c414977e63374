"""Resolution of raw trade timestamps into UTC instants."""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from pathlib import Path

from deltaticks.core.exceptions import TimestampParseError

FULL_FORMATS: tuple[str, ...] = (
    "%d/%m/%Y %H:%M:%S.%f",
    "%d/%m/%Y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
)
TIME_ONLY_FORMATS: tuple[str, ...] = ("%H:%M:%S.%f", "%H:%M:%S", "%H:%M")

# A time-only row this many seconds earlier than the previous one starts a new day.
ROLLOVER_TOLERANCE_SECONDS = 2.0

_EXCESS_FRACTION = re.compile(r"(\.\d{3})\d+")
_PATH_DAY = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")
_PATH_MONTH = re.compile(r"(?<!\d)(\d{4})-(\d{2})(?!\d)")


def trim_fraction_to_millis(raw: str) -> str:
    """Drop fractional-second digits beyond milliseconds (``.533193`` -> ``.533``)."""

    return _EXCESS_FRACTION.sub(r"\1", raw)


def infer_start_date(source: str | Path) -> date | None:
    """Infer the first trading day from a ``YYYY-MM-DD`` or ``YYYY-MM`` path fragment."""

    text = str(source)
    for match in _PATH_DAY.finditer(text):
        year, month, day = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            continue
    for match in _PATH_MONTH.finditer(text):
        year, month = (int(part) for part in match.groups())
        if 1 <= month <= 12:
            return date(year, month, 1)
    return None


def _parse_with(formats: tuple[str, ...], value: str) -> tuple[datetime, str] | None:
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt), fmt
        except ValueError:
            continue
    return None


def _millis(moment: datetime) -> datetime:
    return moment.replace(microsecond=(moment.microsecond // 1000) * 1000)


class TimestampResolver:
    """Stateful timestamp parser scoped to a single source file.

    Full date-time strings are parsed as UTC. Time-only strings are combined
    with the resolver's current day, which advances by one whenever the clock
    jumps backwards by more than :data:`ROLLOVER_TOLERANCE_SECONDS` (midnight
    rollover). Create one resolver per file; instances must not be shared
    between concurrent imports.
    """

    def __init__(
        self,
        source: str | Path = "",
        start_date: date | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.source = str(source)
        now = clock or (lambda: datetime.now(UTC))
        initial = start_date or infer_start_date(self.source) or now().astimezone(UTC).date()
        self._current_day: date = initial
        self._last_seconds: float | None = None
        self._full_formats = FULL_FORMATS
        self._time_formats = TIME_ONLY_FORMATS

    @property
    def current_day(self) -> date:
        return self._current_day

    def resolve(self, raw: str) -> datetime:
        """Return the UTC instant for ``raw`` or raise :class:`TimestampParseError`."""

        value = trim_fraction_to_millis(raw.strip())
        if value.endswith("Z"):
            value = value[:-1]

        resolved = self._parse_full(value)
        if resolved is None:
            resolved = self._parse_time_only(value)
        if resolved is None:
            raise TimestampParseError(
                f"Unparseable timestamp {raw!r} in {self.source or '<stream>'}",
                raw,
                self.source or None,
            )
        return resolved

    __call__ = resolve

    def _parse_full(self, value: str) -> datetime | None:
        parsed = _parse_with(self._full_formats, value)
        if parsed is None:
            return None
        moment, fmt = parsed
        self._promote(fmt, full=True)
        return _millis(moment).replace(tzinfo=UTC)

    def _parse_time_only(self, value: str) -> datetime | None:
        parsed = _parse_with(self._time_formats, value)
        if parsed is None:
            return None
        moment, fmt = parsed
        self._promote(fmt, full=False)
        clock_time = _millis(moment).time()

        seconds = (
            clock_time.hour * 3600
            + clock_time.minute * 60
            + clock_time.second
            + clock_time.microsecond / 1_000_000
        )
        if self._last_seconds is not None and seconds + ROLLOVER_TOLERANCE_SECONDS < self._last_seconds:
            self._current_day += timedelta(days=1)
        self._last_seconds = seconds

        return datetime.combine(self._current_day, clock_time, tzinfo=UTC)

    def _promote(self, fmt: str, *, full: bool) -> None:
        # Rows in one file share a layout; try the last match first.
        formats = self._full_formats if full else self._time_formats
        if formats[0] == fmt:
            return
        reordered = (fmt, *(f for f in formats if f != fmt))
        if full:
            self._full_formats = reordered
        else:
            self._time_formats = reordered


__all__ = [
    "FULL_FORMATS",
    "ROLLOVER_TOLERANCE_SECONDS",
    "TIME_ONLY_FORMATS",
    "TimestampResolver",
    "infer_start_date",
    "trim_fraction_to_millis",
]
