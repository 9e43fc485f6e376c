from __future__ import annotations

import threading

STALENESS_THRESHOLD_SEC = 10.0
HEARTBEAT_PERIOD_SEC = 1.0


def is_connected(
    now: float,
    last_reading_ts: float | None,
    staleness_threshold_sec: float = STALENESS_THRESHOLD_SEC,
) -> bool:
    if last_reading_ts is None:
        return False
    return (now - last_reading_ts) < staleness_threshold_sec


class ConnectivityTracker:
    """Last-reading timestamp of one stream plus the last reported state.

    ``mark_reading`` runs on the ingestion path and ``tick`` on the heartbeat;
    both are guarded by the same lock.
    """

    def __init__(self, staleness_threshold_sec: float = STALENESS_THRESHOLD_SEC) -> None:
        self._threshold = staleness_threshold_sec
        self._lock = threading.Lock()
        self._last_reading_ts: float | None = None
        self._connected = False

    @property
    def connected(self) -> bool:
        with self._lock:
            return self._connected

    @property
    def last_reading_ts(self) -> float | None:
        with self._lock:
            return self._last_reading_ts

    def mark_reading(self, ts: float) -> None:
        with self._lock:
            if self._last_reading_ts is None or ts > self._last_reading_ts:
                self._last_reading_ts = ts

    def tick(self, now: float) -> bool | None:
        """Recompute connectivity; return the new state only if it changed."""
        with self._lock:
            connected = is_connected(
                now=now,
                last_reading_ts=self._last_reading_ts,
                staleness_threshold_sec=self._threshold,
            )
            if connected == self._connected:
                return None
            self._connected = connected
            return connected
