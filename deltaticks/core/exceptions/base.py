"""Core exception types for deltaticks."""

from typing import Any


class DeltaTicksError(Exception):
    """Base class for every error raised by deltaticks."""

    def __init__(
        self,
        message: str,
        error_code: str = "GENERAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        """Initialise the error.

        Args:
            message: Human readable description.
            error_code: Stable machine readable code.
            details: Extra structured context.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ConfigError(DeltaTicksError):
    """Invalid or inconsistent configuration."""

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)


class IntervalSpecError(ConfigError):
    """Unsupported candle interval label."""

    def __init__(self, message: str, interval: str, details: dict[str, Any] | None = None):
        super_details = details or {}
        super_details["interval"] = interval
        super().__init__(message, "INTERVAL_SPEC_ERROR", super_details)
        self.interval = interval


class RowRejectedError(DeltaTicksError):
    """A source row was dropped. Recovered locally by the importer."""

    def __init__(
        self,
        message: str,
        row_number: int | None = None,
        error_code: str = "ROW_REJECTED",
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if row_number is not None:
            super_details["row_number"] = row_number
        super().__init__(message, error_code, super_details)
        self.row_number = row_number


class RowValidationError(RowRejectedError):
    """A required field is missing, non-finite or non-positive."""

    def __init__(
        self,
        message: str,
        field: str,
        row_number: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details["field"] = field
        super().__init__(message, row_number, "ROW_VALIDATION_ERROR", super_details)
        self.field = field


class UnrecognizedSymbolError(RowRejectedError):
    """Instrument symbol matches neither the futures nor the options shape."""

    def __init__(
        self,
        message: str,
        symbol: str,
        row_number: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details["symbol"] = symbol
        super().__init__(message, row_number, "UNRECOGNIZED_SYMBOL", super_details)
        self.symbol = symbol


class TimestampParseError(DeltaTicksError):
    """A timestamp could not be parsed. Aborts the import of its file."""

    def __init__(
        self,
        message: str,
        raw: str,
        source: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details["raw"] = raw
        if source:
            super_details["source"] = source
        super().__init__(message, "TIMESTAMP_PARSE_ERROR", super_details)
        self.raw = raw
        self.source = source


class StoreWriteError(DeltaTicksError):
    """A store rejected a write for a reason other than a duplicate key."""

    def __init__(
        self,
        message: str,
        target: str | None = None,
        error_code: str = "STORE_WRITE_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if target:
            super_details["target"] = target
        super().__init__(message, error_code, super_details)
        self.target = target


class DuplicateKeyWriteError(StoreWriteError):
    """A record with the same deterministic id already exists."""

    def __init__(self, message: str, record_id: str, target: str | None = None):
        super().__init__(message, target, "DUPLICATE_KEY", {"record_id": record_id})
        self.record_id = record_id


class InvalidRangeError(DeltaTicksError):
    """A time range whose start is not before its end."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, "INVALID_RANGE", details)


class NoTicksFoundError(DeltaTicksError):
    """No ticks are stored for the requested instrument."""

    def __init__(self, message: str, instrument: str):
        super().__init__(message, "NO_TICKS_FOUND", {"instrument": instrument})
        self.instrument = instrument


class CandleBuildError(DeltaTicksError):
    """A candle build run failed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, "CANDLE_BUILD_ERROR", details)
