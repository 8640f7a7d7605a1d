"""Foreground runtime that keeps a watch session alive until signalled."""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from types import FrameType
from typing import Any

from .session import StartResult, WatchSession

SignalHandler = Callable[[int, FrameType | None], Any] | int | signal.Handlers | None

LOGGER = logging.getLogger(__name__)
SIG_HUP = getattr(signal, "SIGHUP", None)
SIG_USR1 = getattr(signal, "SIGUSR1", None)
POLL_INTERVAL = 0.5


class WatchRuntime:
    """Run a :class:`WatchSession` in the foreground.

    SIGTERM/SIGINT stop, SIGHUP restarts the session (re-running discovery),
    SIGUSR1 logs a status snapshot.
    """

    def __init__(
        self,
        session: WatchSession,
        selected_roots: Sequence[Path] | None = None,
        *,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self._session = session
        self._selected_roots = list(selected_roots or [])
        self._poll_interval = poll_interval
        self._stop_event = threading.Event()
        self._restart_event = threading.Event()
        self._status_event = threading.Event()
        self._installed_signals: dict[int, SignalHandler] = {}

    def run(self) -> StartResult:
        """Start the session and block until stopped; return the start result."""

        result = self._session.start(self._selected_roots or None)
        if not result.ok:
            return result
        self._install_signal_handlers()
        try:
            self._wait_for_stop()
        finally:
            self._session.stop()
            self._restore_signal_handlers()
        return result

    def stop(self) -> None:
        self._stop_event.set()

    def restart_now(self) -> StartResult:
        """Stop and start the session again; used for SIGHUP and tests."""

        self._session.stop()
        result = self._session.start(self._selected_roots or None)
        if result.ok:
            LOGGER.info("Watch session restarted on %s root(s)", len(result.watched_roots))
        else:
            LOGGER.error("Watch session restart failed: %s", result.message)
        return result

    def status_snapshot(self) -> dict[str, Any]:
        return {
            "state": self._session.state.value,
            "watched_roots": [str(root) for root in self._session.watched_roots],
        }

    def _wait_for_stop(self) -> None:
        while not self._stop_event.is_set():
            try:
                if self._restart_event.is_set():
                    self._restart_event.clear()
                    self.restart_now()
                if self._status_event.is_set():
                    self._status_event.clear()
                    self._dump_status()
                time.sleep(self._poll_interval)
            except KeyboardInterrupt:
                LOGGER.info("Interrupt received; stopping watch session.")
                self._stop_event.set()

    def _dump_status(self) -> None:
        snapshot = self.status_snapshot()
        lines = [f"Watch session {snapshot['state']}:"]
        lines.extend(f"  - {root}" for root in snapshot["watched_roots"])
        LOGGER.info("\n".join(lines))

    def _install_signal_handlers(self) -> None:
        interested = tuple(
            sig for sig in (signal.SIGTERM, signal.SIGINT, SIG_HUP, SIG_USR1) if sig is not None
        )
        for sig in interested:
            try:
                previous = signal.getsignal(sig)
                signal.signal(sig, self._handle_signal)
            except ValueError:
                # Not on the main thread.
                continue
            self._installed_signals[sig] = previous

    def _restore_signal_handlers(self) -> None:
        for sig, handler in self._installed_signals.items():
            try:
                signal.signal(sig, handler)
            except ValueError:  # pragma: no cover - not on the main thread
                continue
        self._installed_signals.clear()

    def _handle_signal(self, signum: int, _frame: FrameType | None) -> None:
        if signum in (signal.SIGTERM, signal.SIGINT):
            LOGGER.info("Signal %s received; stopping.", signum)
            self._stop_event.set()
        elif SIG_HUP is not None and signum == SIG_HUP:
            LOGGER.info("SIGHUP received; restarting watch session.")
            self._restart_event.set()
        elif SIG_USR1 is not None and signum == SIG_USR1:
            self._status_event.set()


__all__ = ["SIG_HUP", "SIG_USR1", "WatchRuntime"]
