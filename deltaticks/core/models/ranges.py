"""Half-open time ranges used to partition import and build work."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from deltaticks.core.exceptions import InvalidRangeError


@dataclass(frozen=True, slots=True)
class TimeRange:
    """``[start, end)`` with timezone-aware bounds."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidRangeError("time range bounds must be timezone aware")
        if self.start > self.end:
            raise InvalidRangeError(
                f"invalid range: {self.start.isoformat()} > {self.end.isoformat()}",
                {"start": self.start.isoformat(), "end": self.end.isoformat()},
            )

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


__all__ = ["TimeRange"]
