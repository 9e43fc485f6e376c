"""Background connectivity heartbeat."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class HeartbeatRunner:
    """Calls ``tick`` every ``period_sec`` on a daemon thread until stopped."""

    def __init__(self, tick: Callable[[], object], period_sec: float) -> None:
        self._tick = tick
        self._period_sec = period_sec
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            raise ValueError("Heartbeat already running")
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="connectivity-heartbeat", daemon=True
        )
        self._thread.start()

    def stop(self, timeout_sec: float = 2.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout_sec)
        self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._period_sec):
            try:
                self._tick()
            except Exception:
                logger.exception("Heartbeat tick failed")
