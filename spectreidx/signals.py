"""Graceful shutdown on SIGINT and SIGTERM."""

from __future__ import annotations

import logging
import signal
import threading
from types import FrameType
from typing import Any, Optional

log = logging.getLogger(__name__)


class ShutdownHandler:
    """Clears ``run`` on the first signal and exits the process on the second."""

    def __init__(self, run: Optional[threading.Event] = None) -> None:
        if run is None:
            run = threading.Event()
            run.set()
        self.run = run

    def request_stop(self, signal_name: str) -> None:
        """Ask running tasks to stop; if already stopping, exit with status 1."""
        if not self.run.is_set():
            log.warning("%s received, terminating...", signal_name)
            raise SystemExit(1)
        log.warning("%s received, stopping... (repeat for forced close)", signal_name)
        self.run.clear()

    def _handle(self, signum: int, frame: Optional[FrameType]) -> None:
        self.request_stop(signal.Signals(signum).name)

    def install(self) -> dict[int, Any]:
        """Register for SIGINT and SIGTERM; return the handlers that were replaced."""
        previous: dict[int, Any] = {}
        for name in ("SIGINT", "SIGTERM"):
            signum = getattr(signal, name, None)
            if signum is not None:
                previous[signum] = signal.signal(signum, self._handle)
        return previous