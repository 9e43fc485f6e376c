"""Timer-thread scheduler for escalation and cooldown callbacks."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class TimerCall:
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler:
    """Runs each callback on its own daemon ``threading.Timer``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._timers: set[threading.Timer] = set()

    def call_later(self, delay_sec: float, callback: Callable[[], None]) -> TimerCall:
        timer: threading.Timer

        def run() -> None:
            try:
                callback()
            except Exception:
                logger.exception("Scheduled callback failed")
            finally:
                with self._lock:
                    self._timers.discard(timer)

        timer = threading.Timer(max(delay_sec, 0.0), run)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()
        return TimerCall(timer)

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()
