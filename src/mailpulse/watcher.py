"""Filesystem watcher for mail storage roots."""

from __future__ import annotations

import logging
import os
import sys
import threading
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

from .classifier import INFO, classify_event, raw_event_from_watchdog
from .types import ActivityEvent, WatchNotice

LOGGER = logging.getLogger(__name__)

DEFAULT_INFO_DELAY = 1.0
NATIVE_RECURSIVE_PLATFORMS = frozenset({"win32", "darwin"})
# Access notifications, not changes.
IGNORED_EVENT_TYPES = frozenset({"opened", "closed", "closed_no_write"})

ActivityCallback = Callable[[ActivityEvent], None]
NoticeCallback = Callable[[WatchNotice], None]


def supports_native_recursive(platform: str) -> bool:
    """Return True if a single recursive watch covers a subtree on ``platform``."""

    return platform in NATIVE_RECURSIVE_PLATFORMS


def walk_directories(root: Path) -> list[Path]:
    """Return ``root`` and every directory below it, depth-first.

    Siblings are visited in name order and symlinks are not followed. Raises
    ``OSError`` when any directory in the tree cannot be listed.
    """

    ordered: list[Path] = []
    pending = [Path(root)]
    while pending:
        directory = pending.pop()
        ordered.append(directory)
        with os.scandir(directory) as entries:
            children = sorted(
                entry.name for entry in entries if entry.is_dir(follow_symlinks=False)
            )
        pending.extend(directory / name for name in reversed(children))
    return ordered


class DirectoryWatcher:
    """Attach watchdog watches to mail roots and forward classified activity."""

    def __init__(
        self,
        roots: Iterable[Path],
        on_activity: ActivityCallback,
        on_error: NoticeCallback,
        *,
        observer_factory: Callable[[], BaseObserver] | None = None,
        platform: str | None = None,
        info_delay: float = DEFAULT_INFO_DELAY,
    ) -> None:
        self._roots = _unique_paths(roots)
        self._on_activity = on_activity
        self._on_error = on_error
        self._observer_factory = observer_factory or Observer
        self._platform = platform or sys.platform
        self._info_delay = max(0.0, info_delay)
        self._observer: BaseObserver | None = None
        self._handles: list[ObservedWatch] = []
        self._watched_roots: list[Path] = []
        self._token: object | None = None
        self._lock = threading.Lock()

    def start(self) -> int:
        """Attach watches to every root; return the number of handles held."""

        with self._lock:
            if self._observer is not None:
                return len(self._handles)
            observer = self._observer_factory()
            observer.start()
            token = object()
            self._token = token
            handles: list[ObservedWatch] = []
            watched: list[Path] = []
            for root in self._roots:
                attached = self._attach_root(observer, root, token)
                if not attached:
                    continue
                watched.append(root)
                handles.extend(watch for watch in attached if watch not in handles)
            if not handles:
                self._token = None
                _shutdown(observer)
                LOGGER.error("Could not watch any of %s mail root(s)", len(self._roots))
                return 0
            self._observer = observer
            self._handles = handles
            self._watched_roots = watched

        LOGGER.info(
            "Watching %s mail root(s) with %s handle(s)",
            len(watched),
            len(handles),
        )
        self._schedule_summary(token, watched)
        return len(handles)

    def stop(self) -> int:
        """Release every held handle once; return how many were released."""

        with self._lock:
            observer = self._observer
            if observer is None:
                return 0
            self._token = None
            handles, self._handles = self._handles, []
            self._watched_roots = []
            self._observer = None

        for watch in handles:
            try:
                observer.unschedule(watch)
            except KeyError:  # pragma: no cover - watchdog already dropped it
                LOGGER.debug("Watch on %s was already released", watch.path)
        _shutdown(observer)
        LOGGER.info("Released %s watch handle(s)", len(handles))
        return len(handles)

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    @property
    def handle_count(self) -> int:
        return len(self._handles)

    @property
    def roots(self) -> tuple[Path, ...]:
        return self._roots

    @property
    def watched_roots(self) -> list[Path]:
        return list(self._watched_roots)

    def _attach_root(
        self,
        observer: BaseObserver,
        root: Path,
        token: object,
    ) -> list[ObservedWatch]:
        native_attempted = supports_native_recursive(self._platform)
        if native_attempted:
            try:
                return [self._schedule(observer, root, root, token, recursive=True)]
            except Exception as exc:
                self._emit_notice(WatchNotice(f"Failed to watch directory: {root} ({exc})", root))

        try:
            directories = walk_directories(root)
        except OSError as exc:
            if native_attempted:
                message = f"Recursive watch fallback also failed: {root} ({exc})"
            else:
                message = f"Failed to enumerate directories under {root} ({exc})"
            self._emit_notice(WatchNotice(message, root))
            return []

        handles: list[ObservedWatch] = []
        for directory in directories:
            try:
                handles.append(self._schedule(observer, directory, root, token, recursive=False))
            except Exception as exc:
                self._emit_notice(
                    WatchNotice(f"Failed to watch directory: {directory} ({exc})", directory)
                )
        LOGGER.debug("Fallback watch on %s covers %s directories", root, len(handles))
        return handles

    def _schedule(
        self,
        observer: BaseObserver,
        directory: Path,
        root: Path,
        token: object,
        *,
        recursive: bool,
    ) -> ObservedWatch:
        handler = _ActivityHandler(
            directory=directory,
            root=root,
            callback=self._emit_activity,
            is_active=lambda: self._token is token,
        )
        return observer.schedule(handler, str(directory), recursive=recursive)

    def _schedule_summary(self, token: object, watched: list[Path]) -> None:
        timer = threading.Timer(self._info_delay, self._emit_summary, args=(token, watched))
        timer.daemon = True
        timer.start()

    def _emit_summary(self, token: object, watched: list[Path]) -> None:
        if self._token is not token:
            LOGGER.debug("Watcher stopped before the start summary was due")
            return
        count = len(watched)
        noun = "directory" if count == 1 else "directories"
        self._emit_activity(
            ActivityEvent(
                event_kind=INFO,
                file_path=watched[0],
                watched_root=watched[0],
                timestamp=time.time(),
                is_mail_related=False,
                message=f"Watching {count} mail {noun}",
            )
        )

    def _emit_activity(self, event: ActivityEvent) -> None:
        try:
            self._on_activity(event)
        except Exception:  # pragma: no cover - consumer bug
            LOGGER.exception("Activity callback failed for %s", event.file_path)

    def _emit_notice(self, notice: WatchNotice) -> None:
        LOGGER.warning(notice.message)
        try:
            self._on_error(notice)
        except Exception:  # pragma: no cover - consumer bug
            LOGGER.exception("Error callback failed for %s", notice.directory)


class _ActivityHandler(FileSystemEventHandler):
    """Classify watchdog events for one watched directory."""

    def __init__(
        self,
        *,
        directory: Path,
        root: Path,
        callback: ActivityCallback,
        is_active: Callable[[], bool],
    ) -> None:
        super().__init__()
        self._directory = directory
        self._root = root
        self._callback = callback
        self._is_active = is_active

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in IGNORED_EVENT_TYPES or not self._is_active():
            return
        activity = classify_event(raw_event_from_watchdog(event, self._directory, self._root))
        if activity is not None:
            self._callback(activity)


def _shutdown(observer: BaseObserver) -> None:
    observer.stop()
    try:
        observer.join(timeout=5)
    except RuntimeError:  # pragma: no cover - watchdog internals
        LOGGER.warning("Failed to join watch observer thread")


def _unique_paths(paths: Iterable[Path]) -> tuple[Path, ...]:
    unique: list[Path] = []
    for path in paths:
        candidate = Path(path)
        if candidate not in unique:
            unique.append(candidate)
    return tuple(unique)


__all__ = [
    "DEFAULT_INFO_DELAY",
    "DirectoryWatcher",
    "supports_native_recursive",
    "walk_directories",
]
