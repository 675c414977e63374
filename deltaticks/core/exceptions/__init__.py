"""Exception handling module."""

from deltaticks.core.exceptions.base import (
    CandleBuildError,
    ConfigError,
    DeltaTicksError,
    DuplicateKeyWriteError,
    IntervalSpecError,
    InvalidRangeError,
    NoTicksFoundError,
    RowRejectedError,
    RowValidationError,
    StoreWriteError,
    TimestampParseError,
    UnrecognizedSymbolError,
)

__all__ = [
    "DeltaTicksError",
    "ConfigError",
    "IntervalSpecError",
    "RowRejectedError",
    "RowValidationError",
    "UnrecognizedSymbolError",
    "TimestampParseError",
    "StoreWriteError",
    "DuplicateKeyWriteError",
    "InvalidRangeError",
    "NoTicksFoundError",
    "CandleBuildError",
]
