from __future__ import annotations

import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest


class EventCollector:
    """Thread-safe helper for waiting on asynchronous events."""

    def __init__(self) -> None:
        self.events: list[Any] = []
        self._condition = threading.Condition()

    def add(self, event: Any) -> None:
        with self._condition:
            self.events.append(event)
            self._condition.notify_all()

    def wait_until(self, predicate: Callable[[list[Any]], bool], timeout: float = 10.0) -> bool:
        """Wait until ``predicate`` holds for the collected events."""

        deadline = time.monotonic() + timeout
        with self._condition:
            while not predicate(self.events):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._condition.wait(timeout=remaining)
            return True

    def matching(self, predicate: Callable[[Any], bool]) -> list[Any]:
        with self._condition:
            return [event for event in self.events if predicate(event)]


@pytest.fixture
def collector() -> EventCollector:
    return EventCollector()


@pytest.fixture
def profile_home(tmp_path: Path) -> Path:
    """Directory holding profiles.ini and a profile with one IMAP account."""

    home = tmp_path / "thunderbird"
    account = home / "Profiles" / "abc.default-release" / "ImapMail" / "imap.example.com"
    account.mkdir(parents=True)
    (home / "profiles.ini").write_text(
        "[Install308046B0AF4A39CB]\n"
        "Default=Profiles/abc.default-release\n"
        "\n"
        "[Profile0]\n"
        "Name=default-release\n"
        "IsRelative=1\n"
        "Path=Profiles/abc.default-release\n",
        encoding="utf-8",
    )
    return home


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Automatically mark tests in this package as integration."""

    package_root = Path(__file__).resolve().parent
    integration_mark = pytest.mark.integration
    for item in items:
        try:
            path = Path(item.fspath).resolve()
        except OSError:
            continue
        if package_root in path.parents:
            item.add_marker(integration_mark)
