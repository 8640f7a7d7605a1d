"""Logging setup for mailpulse."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import ConfigError, LoggingConfig

FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
MAIN_LOG_NAME = "mailpulse.log"
DEBUG_LOG_NAME = "debug.log"
LOG_DIR_NAME = "logs"
NOISY_LOGGERS = ("watchdog",)

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class ConsoleFormatter(logging.Formatter):
    """Prefix console lines with a one-letter, optionally coloured, level tag."""

    TAGS: dict[int, tuple[str, str]] = {
        logging.DEBUG: ("D", "\x1b[36m"),
        logging.INFO: ("I", "\x1b[32m"),
        logging.WARNING: ("!", "\x1b[33m"),
        logging.ERROR: ("X", "\x1b[31m"),
        logging.CRITICAL: ("X", "\x1b[35m"),
    }
    RESET = "\x1b[0m"

    def __init__(self, use_color: bool) -> None:
        super().__init__("%(message)s")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        tag, color = self.TAGS.get(record.levelno, ("?", "\x1b[37m"))
        text = super().format(record)
        if self.use_color:
            tag = f"{color}{tag}{self.RESET}"
        return f"{tag} {text}"


def log_dir(root_dir: Path) -> Path:
    """Return the directory log files are written to."""

    return Path(root_dir).expanduser() / LOG_DIR_NAME


def configure_logging(logging_config: LoggingConfig, root_dir: Path) -> Path:
    """Install file and console handlers; return the main log file path."""

    level = level_from_string(logging_config.level)
    directory = log_dir(root_dir)
    directory.mkdir(parents=True, exist_ok=True)
    main_log = directory / MAIN_LOG_NAME

    handlers: list[logging.Handler] = [
        _file_handler(main_log, logging.INFO),
        _console_handler(),
    ]
    if logging_config.debug_file:
        handlers.append(_file_handler(directory / DEBUG_LOG_NAME, logging.DEBUG))

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # watchdog's per-event debug output drowns ours.
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))
    return main_log


def level_from_string(level: str) -> int:
    try:
        return LEVELS[level.strip().upper()]
    except KeyError as exc:
        raise ConfigError(f"Unknown log level: {level}") from exc


def _file_handler(path: Path, level: int) -> logging.Handler:
    handler = RotatingFileHandler(path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ConsoleFormatter(bool(getattr(sys.stderr, "isatty", lambda: False)())))
    return handler


__all__ = ["ConsoleFormatter", "configure_logging", "level_from_string", "log_dir"]
