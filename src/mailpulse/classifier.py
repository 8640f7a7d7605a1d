"""Turn raw filesystem notifications into mail activity."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
)

from .types import ActivityEvent

MAIL_INDEX_EXTENSIONS = (".msf",)
MAIL_DATA_EXTENSIONS = (".dat",)

RECEIVED = "received"
UPDATED = "updated"
INFO = "info"

RECEIVED_KINDS = frozenset({EVENT_TYPE_CREATED, EVENT_TYPE_MOVED})
UPDATED_KINDS = frozenset({EVENT_TYPE_MODIFIED})


@dataclass(frozen=True)
class RawEvent:
    """Native notification scoped to the directory whose watch reported it."""

    kind: str
    filename: str | None
    directory: Path
    root: Path
    timestamp: float = field(default_factory=time.time)


def is_mail_file(name: str) -> bool:
    """Return True for mailbox index, data, or extensionless store files."""

    base = os.path.basename(name.rstrip("/\\"))
    if base.endswith(MAIL_INDEX_EXTENSIONS) or base.endswith(MAIL_DATA_EXTENSIONS):
        return True
    return "." not in base


def classify_event(raw: RawEvent) -> ActivityEvent | None:
    """Classify ``raw``; events without a filename are suppressed."""

    if not raw.filename:
        return None
    mail_related = is_mail_file(raw.filename)
    kind = raw.kind
    if mail_related:
        if kind in RECEIVED_KINDS:
            kind = RECEIVED
        elif kind in UPDATED_KINDS:
            kind = UPDATED
    return ActivityEvent(
        event_kind=kind,
        file_path=raw.directory / raw.filename,
        watched_root=raw.root,
        timestamp=raw.timestamp,
        is_mail_related=mail_related,
    )


def raw_event_from_watchdog(event: FileSystemEvent, directory: Path, root: Path) -> RawEvent:
    """Translate a watchdog event into a :class:`RawEvent` for ``directory``.

    Moves report their destination when it stays inside ``directory``. Paths
    equal to or outside ``directory`` carry no filename.
    """

    filename = None
    if event.event_type == EVENT_TYPE_MOVED and getattr(event, "dest_path", None):
        filename = _relative_name(event.dest_path, directory)
    if filename is None:
        filename = _relative_name(event.src_path, directory)
    return RawEvent(
        kind=event.event_type,
        filename=filename,
        directory=directory,
        root=root,
    )


def _relative_name(value: str | bytes, directory: Path) -> str | None:
    path = os.fsdecode(value)
    try:
        relative = os.path.relpath(path, directory)
    except ValueError:
        return None
    if relative in (os.curdir, "") or relative == os.pardir or relative.startswith(os.pardir + os.sep):
        return None
    return relative


__all__ = [
    "INFO",
    "RECEIVED",
    "UPDATED",
    "RawEvent",
    "classify_event",
    "is_mail_file",
    "raw_event_from_watchdog",
]
