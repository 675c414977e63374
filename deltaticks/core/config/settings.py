"""Configuration management for imports, candle builds and storage."""

from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime
from pathlib import Path
from typing import Any

from deltaticks.core.data.candles.config import CandleBuildConfig
from deltaticks.core.data.ingestion.config import ImportConfig
from deltaticks.core.data.schema import CANDLES_TABLE, FUTURES_TICKS_TABLE, OPTIONS_TICKS_TABLE
from deltaticks.core.exceptions import ConfigError
from deltaticks.core.logging import get_logger

DEFAULT_HOME = Path.home() / ".deltaticks"
DEFAULT_CONFIG_PATH = DEFAULT_HOME / "config.toml"

log = get_logger("config")


@dataclass
class StorageConfig:
    """Where ticks and candles are stored."""

    database: str = str(DEFAULT_HOME / "deltaticks.duckdb")
    futures_table: str = FUTURES_TICKS_TABLE.name
    options_table: str = OPTIONS_TICKS_TABLE.name
    candles_table: str = CANDLES_TABLE.name


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: str | None = None


def _build(cls: type, values: dict[str, Any], section: str) -> Any:
    known = {item.name for item in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"unknown option(s) in [{section}]: {', '.join(unknown)}", details={"section": section})
    try:
        return cls(**values)
    except TypeError as exc:
        raise ConfigError(f"invalid [{section}] configuration: {exc}", details={"section": section}) from exc


def _import_config(values: dict[str, Any]) -> ImportConfig:
    values = dict(values)
    start_date = values.get("start_date")
    if isinstance(start_date, datetime):
        values["start_date"] = start_date.date()
    elif isinstance(start_date, str):
        try:
            values["start_date"] = date.fromisoformat(start_date.strip())
        except ValueError as exc:
            raise ConfigError(f"invalid start_date {start_date!r}", details={"start_date": start_date}) from exc
    return _build(ImportConfig, values, "import")


def _candle_config(values: dict[str, Any]) -> CandleBuildConfig:
    values = dict(values)
    if isinstance(values.get("intervals"), list):
        values["intervals"] = tuple(values["intervals"])
    return _build(CandleBuildConfig, values, "candles")


def _plain(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, tuple):
        return list(value)
    return value


@dataclass
class DeltaTicksConfig:
    """Top level configuration."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    importer: ImportConfig = field(default_factory=ImportConfig)
    candles: CandleBuildConfig = field(default_factory=CandleBuildConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> DeltaTicksConfig:
        """Build a configuration from ``[storage]``, ``[import]``, ``[candles]`` and ``[logging]`` sections."""

        return cls(
            storage=_build(StorageConfig, config_dict.get("storage", {}), "storage"),
            importer=_import_config(config_dict.get("import", {})),
            candles=_candle_config(config_dict.get("candles", {})),
            logging=_build(LoggingConfig, config_dict.get("logging", {}), "logging"),
        )

    def to_dict(self) -> dict[str, Any]:
        def section(obj: Any) -> dict[str, Any]:
            return {key: _plain(value) for key, value in asdict(obj).items()}

        return {
            "storage": section(self.storage),
            "import": section(self.importer),
            "candles": section(self.candles),
            "logging": section(self.logging),
        }


def deep_update(target: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``updates`` into ``target``; ``None`` values are ignored."""

    for key, value in updates.items():
        if value is None:
            continue
        if isinstance(value, dict):
            target[key] = deep_update(dict(target.get(key, {})), value)
        else:
            target[key] = value
    return target


class ConfigManager:
    """Loads configuration from a TOML file."""

    def __init__(self, config_path: Path | None = None):
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self.raw = self._load_raw()
        self.config = self._load_config()

    def _load_raw(self) -> dict[str, Any]:
        if not self.config_path.exists():
            return {}
        try:
            with open(self.config_path, "rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            log.warning("failed to load config from {}: {}", self.config_path, exc)
            return {}

    def _load_config(self) -> DeltaTicksConfig:
        try:
            return DeltaTicksConfig.from_dict(self.raw)
        except ConfigError as exc:
            log.warning("invalid config in {}, using defaults: {}", self.config_path, exc.message)
            self.raw = {}
            return DeltaTicksConfig()


_ENV_OPTIONS: dict[str, tuple[str, str, type]] = {
    "DELTATICKS_DATABASE": ("storage", "database", str),
    "DELTATICKS_FUTURES_TABLE": ("storage", "futures_table", str),
    "DELTATICKS_OPTIONS_TABLE": ("storage", "options_table", str),
    "DELTATICKS_CANDLES_TABLE": ("storage", "candles_table", str),
    "DELTATICKS_BATCH_SIZE": ("import", "batch_size", int),
    "DELTATICKS_MAX_CONCURRENT_FILES": ("import", "max_concurrent_files", int),
    "DELTATICKS_START_DATE": ("import", "start_date", str),
    "DELTATICKS_INSTRUMENT": ("candles", "instrument", str),
    "DELTATICKS_TIMEZONE": ("candles", "timezone", str),
    "DELTATICKS_INTERVALS": ("candles", "intervals", str),
    "DELTATICKS_FROM_TS": ("candles", "from_ts", str),
    "DELTATICKS_TO_TS": ("candles", "to_ts", str),
    "DELTATICKS_CHUNK_DAYS": ("candles", "chunk_days", int),
    "DELTATICKS_CANDLE_BATCH_SIZE": ("candles", "insert_batch_size", int),
    "DELTATICKS_LOG_LEVEL": ("logging", "level", str),
}


def load_config_from_env(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Read ``DELTATICKS_*`` variables into a sectioned dictionary."""

    env = os.environ if environ is None else environ
    config: dict[str, Any] = {}
    for name, (section, key, kind) in _ENV_OPTIONS.items():
        raw = env.get(name)
        if raw is None or not raw.strip():
            continue
        value: Any = raw.strip()
        if kind is int:
            try:
                value = int(value)
            except ValueError as exc:
                raise ConfigError(f"{name} must be an integer, got {raw!r}", details={"variable": name}) from exc
        if key == "intervals":
            value = tuple(part.strip() for part in value.split(",") if part.strip())
        config.setdefault(section, {})[key] = value
    return config


def resolve_config(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> DeltaTicksConfig:
    """Layer defaults, the TOML file, environment variables and ``overrides``."""

    manager = ConfigManager(config_path)
    merged = deep_update({}, manager.raw)
    deep_update(merged, load_config_from_env(environ))
    if overrides:
        deep_update(merged, overrides)
    return DeltaTicksConfig.from_dict(merged)


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "DeltaTicksConfig",
    "LoggingConfig",
    "StorageConfig",
    "deep_update",
    "load_config_from_env",
    "resolve_config",
]
