"""Configuration primitives for the candle builder."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from deltaticks.core.exceptions import ConfigError
from deltaticks.core.services.intervals import IntervalSpec, load_timezone, parse_intervals

DEFAULT_INTERVALS: tuple[str, ...] = ("M1", "M2", "M3", "M4", "M5")


def parse_instant(value: str | datetime) -> datetime:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""

    if isinstance(value, datetime):
        moment = value
    else:
        text = str(value).strip()
        try:
            moment = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ConfigError(f"invalid ISO-8601 timestamp {value!r}", details={"value": text}) from exc
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


@dataclass(slots=True, frozen=True)
class CandleBuildConfig:
    """Runtime configuration controlling candle builds."""

    instrument: str = "BTCUSD"
    timezone: str = "Asia/Kolkata"
    intervals: tuple[str, ...] = DEFAULT_INTERVALS
    from_ts: datetime | None = None
    to_ts: datetime | None = None
    chunk_days: int = 1
    insert_batch_size: int = 2000
    max_concurrent_builds: int = 1
    fail_on_write_error: bool = False

    def __post_init__(self) -> None:
        if not self.instrument.strip():
            raise ConfigError("instrument must not be empty")
        for name in ("chunk_days", "insert_batch_size", "max_concurrent_builds"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive", details={name: getattr(self, name)})
        if isinstance(self.intervals, str):
            object.__setattr__(self, "intervals", tuple(self.intervals.split(",")))
        specs = parse_intervals(self.intervals)
        if not specs:
            raise ConfigError("at least one interval is required")
        object.__setattr__(self, "intervals", tuple(spec.label for spec in specs))
        load_timezone(self.timezone)
        for name in ("from_ts", "to_ts"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, parse_instant(value))

    @property
    def tz(self) -> ZoneInfo:
        return load_timezone(self.timezone)

    @property
    def interval_specs(self) -> tuple[IntervalSpec, ...]:
        return parse_intervals(self.intervals)


__all__ = ["CandleBuildConfig", "DEFAULT_INTERVALS", "parse_instant"]
