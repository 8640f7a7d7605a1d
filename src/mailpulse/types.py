"""Core immutable data structures used throughout mailpulse."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any


class ErrorKind(str, Enum):
    """Symbolic failure kinds attached to every boundary error."""

    NO_PROFILE = "NoProfile"
    NO_MAIL_DIRECTORIES = "NoMailDirectories"
    WATCH_FAILED = "WatchFailed"


class SessionState(str, Enum):
    """Lifecycle state of a watch session."""

    IDLE = "idle"
    WATCHING = "watching"


@dataclass(frozen=True)
class ProfileRecord:
    """One ``[Profile*]`` or ``[Install*]`` section of profiles.ini."""

    section: str
    values: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        folded = {key.strip().lower(): value for key, value in self.values.items()}
        object.__setattr__(self, "values", MappingProxyType(folded))

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.values.get(key.lower(), default)


@dataclass(frozen=True)
class ProfilesIni:
    """Parsed profiles.ini content in parse order."""

    profiles: tuple[ProfileRecord, ...] = ()
    installs: tuple[ProfileRecord, ...] = ()


@dataclass(frozen=True)
class ResolvedProfile:
    """Profile directory picked from profiles.ini (existence not verified)."""

    path: Path
    record: ProfileRecord


@dataclass(frozen=True)
class MailRoot:
    """A directory watched as one unit."""

    path: Path
    category: str
    is_account_directory: bool


@dataclass(frozen=True)
class MailRootInfo:
    """Mail root description handed to presentation layers."""

    path: Path
    relative_path: str
    display_name: str
    is_account_directory: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "relativePath": self.relative_path,
            "displayName": self.display_name,
            "isAccountDirectory": self.is_account_directory,
        }


@dataclass(frozen=True)
class ActivityEvent:
    """Semantic activity derived from a filesystem notification."""

    event_kind: str
    file_path: Path
    watched_root: Path
    timestamp: float
    is_mail_related: bool
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "eventKind": self.event_kind,
            "filePath": str(self.file_path),
            "watchedRoot": str(self.watched_root),
            "timestamp": self.timestamp,
            "isMailRelated": self.is_mail_related,
        }
        if self.message is not None:
            payload["message"] = self.message
        return payload


@dataclass(frozen=True)
class WatchNotice:
    """Non-fatal watch problem pushed to consumers."""

    message: str
    directory: Path

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "directory": str(self.directory)}


__all__ = [
    "ActivityEvent",
    "ErrorKind",
    "MailRoot",
    "MailRootInfo",
    "ProfileRecord",
    "ProfilesIni",
    "ResolvedProfile",
    "SessionState",
    "WatchNotice",
]
