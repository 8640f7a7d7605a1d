"""Configuration loading and validation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .watcher import DEFAULT_INFO_DELAY

LOGGER = logging.getLogger(__name__)

CONFIG_ENV_VAR = "MAILPULSE_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/mailpulse/config.yaml")
DEFAULT_ROOT_DIR = Path("~/.local/state/mailpulse")
DEFAULT_LOG_LEVEL = "info"


class ConfigError(ValueError):
    """Raised when configuration is invalid or missing."""


@dataclass(frozen=True)
class LoggingConfig:
    """Logging-related configuration."""

    level: str = DEFAULT_LOG_LEVEL
    debug_file: bool = False


@dataclass(frozen=True)
class Config:
    """Fully parsed configuration."""

    root_dir: Path = field(default_factory=DEFAULT_ROOT_DIR.expanduser)
    profiles_ini: Path | None = None
    roots: list[Path] = field(default_factory=list)
    info_delay: float = DEFAULT_INFO_DELAY
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: Path | str | None = None) -> Config:
    """Load and validate configuration from YAML.

    Only the default location may be absent; an explicitly named file must
    exist.
    """

    config_path, explicit = resolve_config_path(path)
    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_path}")
        LOGGER.debug("No config file at %s; using defaults", config_path)
        return Config()

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError("Configuration root must be a mapping.")

    return _parse_config(raw)


def resolve_config_path(explicit: Path | str | None = None) -> tuple[Path, bool]:
    """Return the config location and whether it was named explicitly."""

    if explicit:
        return Path(explicit).expanduser(), True
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser(), True
    return DEFAULT_CONFIG_PATH.expanduser(), False


def _parse_config(raw: dict[str, Any]) -> Config:
    root_dir = Path(raw.get("rootdir") or raw.get("root_dir") or DEFAULT_ROOT_DIR).expanduser()
    return Config(
        root_dir=root_dir,
        profiles_ini=_parse_optional_path(raw.get("profiles_ini"), "profiles_ini"),
        roots=_parse_roots(raw.get("roots")),
        info_delay=_parse_info_delay(raw.get("info_delay")),
        logging=_parse_logging(raw.get("logging")),
    )


def _parse_optional_path(value: Any, field_name: str) -> Path | None:
    if value is None:
        return None
    if not isinstance(value, (str, Path)) or not str(value).strip():
        raise ConfigError(f"{field_name} must be a non-empty path.")
    return Path(value).expanduser()


def _parse_roots(value: Any) -> list[Path]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError("roots must be a list.")

    roots: list[Path] = []
    for idx, entry in enumerate(value, start=1):
        if not isinstance(entry, (str, Path)) or not str(entry).strip():
            raise ConfigError(f"roots[{idx}] must be a string path.")
        roots.append(Path(entry).expanduser())
    return roots


def _parse_info_delay(value: Any) -> float:
    if value is None:
        return DEFAULT_INFO_DELAY
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError("info_delay must be a number of seconds.")
    if value < 0:
        raise ConfigError("info_delay cannot be negative.")
    return float(value)


def _parse_logging(value: Any) -> LoggingConfig:
    if value is None:
        return LoggingConfig()
    if not isinstance(value, dict):
        raise ConfigError("logging must be a mapping.")
    level = str(value.get("level", DEFAULT_LOG_LEVEL)).lower()
    debug_file = bool(value.get("debug_file", False))
    return LoggingConfig(level=level, debug_file=debug_file)


__all__ = [
    "CONFIG_ENV_VAR",
    "Config",
    "ConfigError",
    "LoggingConfig",
    "load_config",
    "resolve_config_path",
]
