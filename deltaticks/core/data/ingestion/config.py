"""Configuration primitives for the tick importer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from deltaticks.core.exceptions import ConfigError


@dataclass(slots=True, frozen=True)
class ImportConfig:
    """Runtime configuration controlling tick imports."""

    batch_size: int = 1000
    max_concurrent_files: int = 2
    flush_interval: float = 1.5
    start_date: date | None = None
    fail_on_write_error: bool = False

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ConfigError("batch_size must be positive", details={"batch_size": self.batch_size})
        if self.max_concurrent_files <= 0:
            raise ConfigError(
                "max_concurrent_files must be positive",
                details={"max_concurrent_files": self.max_concurrent_files},
            )
        if self.flush_interval <= 0:
            raise ConfigError("flush_interval must be positive", details={"flush_interval": self.flush_interval})
