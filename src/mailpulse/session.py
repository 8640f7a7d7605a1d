"""Watch session orchestration and the boundary results it returns."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from watchdog.observers.api import BaseObserver

from .discovery import describe_mail_roots, discover_mail_roots
from .profiles import profiles_ini_path, resolve_default_profile
from .types import ActivityEvent, ErrorKind, MailRootInfo, SessionState, WatchNotice
from .watcher import DEFAULT_INFO_DELAY, ActivityCallback, DirectoryWatcher, NoticeCallback

LOGGER = logging.getLogger(__name__)

ALREADY_WATCHING = "already watching"
NOT_WATCHING = "not watching"


class MailWatchError(RuntimeError):
    """Raised internally when a session cannot start; carries an ErrorKind."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


@dataclass(frozen=True)
class StartResult:
    ok: bool
    watched_roots: list[Path] = field(default_factory=list)
    message: str | None = None
    error_kind: ErrorKind | None = None
    dropped_roots: list[Path] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": self.ok}
        if self.watched_roots:
            payload["watchedRoots"] = [str(root) for root in self.watched_roots]
        if self.message is not None:
            payload["message"] = self.message
        if self.error_kind is not None:
            payload["errorKind"] = self.error_kind.value
        if self.dropped_roots:
            payload["droppedRoots"] = [str(root) for root in self.dropped_roots]
        return payload


@dataclass(frozen=True)
class StopResult:
    ok: bool
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": self.ok}
        if self.message is not None:
            payload["message"] = self.message
        return payload


@dataclass(frozen=True)
class RootListing:
    ok: bool
    roots: list[MailRootInfo] = field(default_factory=list)
    message: str | None = None
    error_kind: ErrorKind | None = None
    profile_dir: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": self.ok}
        if self.ok:
            payload["roots"] = [root.to_dict() for root in self.roots]
        if self.message is not None:
            payload["message"] = self.message
        if self.error_kind is not None:
            payload["errorKind"] = self.error_kind.value
        return payload


class WatchSession:
    """Single start/stop-able unit tying profile discovery to the watcher.

    ``start`` and ``stop`` are expected to be called from one control thread;
    activity and notices arrive on watchdog threads.
    """

    def __init__(
        self,
        *,
        profiles_ini: Path | None = None,
        info_delay: float = DEFAULT_INFO_DELAY,
        observer_factory: Callable[[], BaseObserver] | None = None,
        platform: str | None = None,
    ) -> None:
        self._profiles_ini = Path(profiles_ini).expanduser() if profiles_ini else None
        self._info_delay = info_delay
        self._observer_factory = observer_factory
        self._platform = platform or sys.platform
        self._state = SessionState.IDLE
        self._watcher: DirectoryWatcher | None = None
        self._activity_callbacks: list[ActivityCallback] = []
        self._error_callbacks: list[NoticeCallback] = []

    def on_activity(self, callback: ActivityCallback) -> None:
        """Register a consumer for classified activity."""

        self._activity_callbacks.append(callback)

    def on_error(self, callback: NoticeCallback) -> None:
        """Register a consumer for per-directory watch problems."""

        self._error_callbacks.append(callback)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def watched_roots(self) -> list[Path]:
        if self._watcher is None:
            return []
        return self._watcher.watched_roots

    def start(self, selected_roots: Iterable[Path | str] | None = None) -> StartResult:
        if self._state is SessionState.WATCHING:
            return StartResult(ok=True, watched_roots=self.watched_roots, message=ALREADY_WATCHING)

        dropped: list[Path] = []
        try:
            roots, dropped = self._select_roots(selected_roots)
            watcher = DirectoryWatcher(
                roots,
                self._forward_activity,
                self._forward_error,
                observer_factory=self._observer_factory,
                platform=self._platform,
                info_delay=self._info_delay,
            )
            if watcher.start() == 0:
                raise MailWatchError(
                    ErrorKind.WATCH_FAILED,
                    "Failed to watch every mail directory; no watch could be started.",
                )
        except MailWatchError as exc:
            LOGGER.error("Watch session failed to start (%s): %s", exc.kind.value, exc)
            return StartResult(
                ok=False,
                message=str(exc),
                error_kind=exc.kind,
                dropped_roots=dropped,
            )

        self._watcher = watcher
        self._state = SessionState.WATCHING
        watched = watcher.watched_roots
        LOGGER.info("Watch session started on %s mail root(s)", len(watched))
        return StartResult(ok=True, watched_roots=watched, dropped_roots=dropped)

    def stop(self) -> StopResult:
        if self._state is SessionState.IDLE:
            return StopResult(ok=True, message=NOT_WATCHING)
        watcher, self._watcher = self._watcher, None
        self._state = SessionState.IDLE
        if watcher is not None:
            watcher.stop()
        LOGGER.info("Watch session stopped")
        return StopResult(ok=True)

    def list_mail_roots(self) -> RootListing:
        return list_mail_roots(self._profiles_ini)

    def _select_roots(
        self,
        selected_roots: Iterable[Path | str] | None,
    ) -> tuple[list[Path], list[Path]]:
        selection = [Path(root).expanduser() for root in selected_roots or ()]
        if selection:
            return _existing_selection(selection)

        ini_path = self._profiles_ini or profiles_ini_path(self._platform)
        profile = resolve_default_profile(ini_path)
        if profile is None:
            raise MailWatchError(ErrorKind.NO_PROFILE, _no_profile_message(ini_path))
        roots = discover_mail_roots(profile.path)
        if not roots:
            raise MailWatchError(
                ErrorKind.NO_MAIL_DIRECTORIES,
                f"No mail directories found in profile {profile.path} "
                "(expected Mail/ or ImapMail/ with configured accounts).",
            )
        return [root.path for root in roots], []

    def _forward_activity(self, event: ActivityEvent) -> None:
        for callback in list(self._activity_callbacks):
            try:
                callback(event)
            except Exception:  # pragma: no cover - consumer bug
                LOGGER.exception("Activity consumer failed for %s", event.file_path)

    def _forward_error(self, notice: WatchNotice) -> None:
        for callback in list(self._error_callbacks):
            try:
                callback(notice)
            except Exception:  # pragma: no cover - consumer bug
                LOGGER.exception("Error consumer failed for %s", notice.directory)


def list_mail_roots(profiles_ini: Path | None = None) -> RootListing:
    """Resolve the profile and describe its mail roots for selection."""

    ini_path = Path(profiles_ini).expanduser() if profiles_ini else profiles_ini_path()
    profile = resolve_default_profile(ini_path)
    if profile is None:
        return RootListing(
            ok=False,
            message=_no_profile_message(ini_path),
            error_kind=ErrorKind.NO_PROFILE,
        )
    roots = discover_mail_roots(profile.path)
    if not roots:
        return RootListing(
            ok=False,
            message=f"No mail directories found in profile {profile.path}.",
            error_kind=ErrorKind.NO_MAIL_DIRECTORIES,
            profile_dir=profile.path,
        )
    return RootListing(
        ok=True,
        roots=describe_mail_roots(profile.path, roots),
        profile_dir=profile.path,
    )


def _existing_selection(selection: list[Path]) -> tuple[list[Path], list[Path]]:
    roots: list[Path] = []
    dropped: list[Path] = []
    for path in selection:
        if path.is_dir():
            roots.append(path)
        else:
            dropped.append(path)
            LOGGER.warning("Ignoring selected mail directory that does not exist: %s", path)
    if not roots:
        joined = ", ".join(str(path) for path in selection)
        raise MailWatchError(
            ErrorKind.NO_MAIL_DIRECTORIES,
            f"None of the selected mail directories exist: {joined}",
        )
    return roots, dropped


def _no_profile_message(ini_path: Path) -> str:
    return (
        f"No mail client profile found (profiles.ini: {ini_path}). "
        "Check that the client is installed and a profile has been created."
    )


__all__ = [
    "ALREADY_WATCHING",
    "NOT_WATCHING",
    "MailWatchError",
    "RootListing",
    "StartResult",
    "StopResult",
    "WatchSession",
    "list_mail_roots",
]
