from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path

from watchdog.events import FileClosedEvent, FileCreatedEvent, FileModifiedEvent

from mailpulse.types import ActivityEvent, WatchNotice
from mailpulse.watcher import DirectoryWatcher, supports_native_recursive, walk_directories


@dataclass(frozen=True)
class FakeWatch:
    path: str
    recursive: bool


class DummyObserver:
    """Observer stand-in recording schedule/unschedule calls."""

    def __init__(self, failing: set[tuple[str, bool]] | None = None) -> None:
        self.failing = failing or set()
        self.scheduled: list[FakeWatch] = []
        self.unscheduled: list[FakeWatch] = []
        self.handlers: dict[str, object] = {}
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def schedule(self, handler, path, recursive=False):
        if (path, recursive) in self.failing:
            raise OSError(f"cannot watch {path}")
        watch = FakeWatch(path, recursive)
        self.scheduled.append(watch)
        self.handlers[path] = handler
        return watch

    def unschedule(self, watch) -> None:
        self.unscheduled.append(watch)

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout=None) -> None:
        return None


class Recorder:
    def __init__(self) -> None:
        self.activity: list[ActivityEvent] = []
        self.notices: list[WatchNotice] = []
        self._info = threading.Event()

    def on_activity(self, event: ActivityEvent) -> None:
        self.activity.append(event)
        if event.event_kind == "info":
            self._info.set()

    def on_error(self, notice: WatchNotice) -> None:
        self.notices.append(notice)

    def wait_for_info(self, timeout: float = 5.0) -> bool:
        return self._info.wait(timeout)


def _mail_tree(tmp_path: Path) -> Path:
    root = tmp_path / "imap.example.com"
    (root / "INBOX.sbd" / "Work").mkdir(parents=True)
    (root / "Archives.sbd").mkdir()
    (root / "INBOX").write_text("", encoding="utf-8")
    return root


def _watcher(roots, recorder, observer, platform="linux", info_delay=60.0) -> DirectoryWatcher:
    return DirectoryWatcher(
        roots,
        recorder.on_activity,
        recorder.on_error,
        observer_factory=lambda: observer,
        platform=platform,
        info_delay=info_delay,
    )


def test_supports_native_recursive() -> None:
    assert supports_native_recursive("darwin") is True
    assert supports_native_recursive("win32") is True
    assert supports_native_recursive("linux") is False


def test_walk_directories_is_depth_first_from_root(tmp_path: Path) -> None:
    root = _mail_tree(tmp_path)

    assert walk_directories(root) == [
        root,
        root / "Archives.sbd",
        root / "INBOX.sbd",
        root / "INBOX.sbd" / "Work",
    ]


def test_linux_uses_one_watch_per_directory(tmp_path: Path) -> None:
    root = _mail_tree(tmp_path)
    recorder = Recorder()
    observer = DummyObserver()
    watcher = _watcher([root], recorder, observer)

    assert watcher.start() == 4
    assert observer.started is True
    assert [watch.path for watch in observer.scheduled] == [
        str(path) for path in walk_directories(root)
    ]
    assert not any(watch.recursive for watch in observer.scheduled)
    assert recorder.notices == []
    assert watcher.watched_roots == [root]

    watcher.stop()


def test_native_recursive_watch_on_darwin(tmp_path: Path) -> None:
    first = _mail_tree(tmp_path / "a")
    second = _mail_tree(tmp_path / "b")
    observer = DummyObserver()
    watcher = _watcher([first, second], Recorder(), observer, platform="darwin")

    assert watcher.start() == 2
    assert observer.scheduled == [FakeWatch(str(first), True), FakeWatch(str(second), True)]

    watcher.stop()


def test_native_failure_falls_back_to_walk(tmp_path: Path) -> None:
    root = _mail_tree(tmp_path)
    recorder = Recorder()
    observer = DummyObserver(failing={(str(root), True)})
    watcher = _watcher([root], recorder, observer, platform="win32")

    assert watcher.start() == 4
    assert len(recorder.notices) == 1
    assert recorder.notices[0].directory == root
    assert "Failed to watch directory" in recorder.notices[0].message

    watcher.stop()


def test_fallback_after_fallback_reports_twice(tmp_path: Path) -> None:
    missing = tmp_path / "gone"
    good = _mail_tree(tmp_path)
    recorder = Recorder()
    observer = DummyObserver(failing={(str(missing), True)})
    watcher = _watcher([missing, good], recorder, observer, platform="darwin")

    assert watcher.start() == 1
    assert [notice.directory for notice in recorder.notices] == [missing, missing]
    assert "also failed" in recorder.notices[1].message
    assert watcher.watched_roots == [good]

    watcher.stop()


def test_per_directory_failures_do_not_abort(tmp_path: Path) -> None:
    root = _mail_tree(tmp_path)
    bad = root / "Archives.sbd"
    recorder = Recorder()
    observer = DummyObserver(failing={(str(bad), False)})
    watcher = _watcher([root], recorder, observer)

    assert watcher.start() == 3
    assert [notice.directory for notice in recorder.notices] == [bad]

    watcher.stop()


def test_zero_handles_means_failure(tmp_path: Path) -> None:
    recorder = Recorder()
    observer = DummyObserver()
    watcher = _watcher([tmp_path / "missing"], recorder, observer, info_delay=0.0)

    assert watcher.start() == 0
    assert watcher.is_running is False
    assert observer.stopped is True
    assert len(recorder.notices) == 1
    assert not recorder.wait_for_info(timeout=0.2)


def test_stop_releases_each_handle_once(tmp_path: Path) -> None:
    root = _mail_tree(tmp_path)
    observer = DummyObserver()
    watcher = _watcher([root, root], Recorder(), observer)

    watcher.start()
    assert watcher.start() == 4

    assert watcher.stop() == 4
    assert watcher.stop() == 0
    assert sorted(observer.unscheduled, key=str) == sorted(observer.scheduled, key=str)
    assert observer.stopped is True
    assert watcher.is_running is False


def test_handlers_forward_classified_events_until_stopped(tmp_path: Path) -> None:
    root = _mail_tree(tmp_path)
    recorder = Recorder()
    observer = DummyObserver()
    watcher = _watcher([root], recorder, observer)
    watcher.start()
    handler = observer.handlers[str(root)]

    handler.dispatch(FileCreatedEvent(str(root / "INBOX.msf")))
    handler.dispatch(FileClosedEvent(str(root / "INBOX.msf")))
    watcher.stop()
    handler.dispatch(FileModifiedEvent(str(root / "INBOX")))

    assert [(event.event_kind, event.file_path) for event in recorder.activity] == [
        ("received", root / "INBOX.msf")
    ]


def test_summary_is_emitted_after_start(tmp_path: Path) -> None:
    root = _mail_tree(tmp_path)
    recorder = Recorder()
    watcher = _watcher([root], recorder, DummyObserver(), info_delay=0.0)

    watcher.start()
    try:
        assert recorder.wait_for_info()
    finally:
        watcher.stop()

    info = recorder.activity[-1]
    assert info.message == "Watching 1 mail directory"
    assert info.is_mail_related is False
    assert info.watched_root == root


def test_summary_is_suppressed_after_stop(tmp_path: Path) -> None:
    root = _mail_tree(tmp_path)
    recorder = Recorder()
    watcher = _watcher([root], recorder, DummyObserver(), info_delay=0.2)

    watcher.start()
    watcher.stop()
    time.sleep(0.4)

    assert recorder.activity == []
