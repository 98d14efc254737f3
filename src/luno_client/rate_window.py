from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque

logger = logging.getLogger(__name__)


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class RateWindow:
    """
    Rolling record of request timestamps over the trailing window.

    Timestamps (ms since epoch) are appended in send order, so the deque is
    chronological and pruning only ever pops from the left. Every read
    prunes first; the background timer only exists to drop stale entries
    (and itself) when nobody is reading.

    Requests are recorded from executor threads, so the clock is read and
    the deque mutated under one lock.
    """

    def __init__(
        self,
        window_ms: int = 60_000,
        *,
        clock: Callable[[], int] | None = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.window_ms = window_ms
        self._clock = clock or _wall_clock_ms
        self._timer_factory = timer_factory
        self._timestamps: Deque[int] = deque()
        self._timer: threading.Timer | None = None
        self._closed = False
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._timestamps)

    def now_ms(self) -> int:
        return self._clock()

    def record(self, timestamp: int | None = None) -> int:
        """Append a timestamp (now, read under the lock, by default) and return it."""
        with self._lock:
            if timestamp is None:
                timestamp = self._clock()
            self._timestamps.append(timestamp)
            if self._timer is None:
                self._arm()
            return timestamp

    def retract(self, timestamp: int) -> bool:
        """Remove the newest occurrence of ``timestamp``; False if absent."""
        with self._lock:
            for i in range(len(self._timestamps) - 1, -1, -1):
                if self._timestamps[i] == timestamp:
                    del self._timestamps[i]
                    return True
        return False

    def count(self) -> int:
        with self._lock:
            oldest_allowed = self._clock() - self.window_ms
            while self._timestamps and self._timestamps[0] < oldest_allowed:
                self._timestamps.popleft()

            if not self._timestamps:
                self._disarm()
            elif self._timer is None:
                self._arm()

            return len(self._timestamps)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._disarm()

    # ---------- background refresh ----------
    def _refresh(self) -> None:
        with self._lock:
            # this timer has fired; count() arms a fresh one if still needed
            self._timer = None
        remaining = self.count()
        logger.debug("rate window refreshed: %d call(s) in window", remaining)

    def _arm(self) -> None:
        # caller holds the lock
        if self._closed:
            return
        timer = self._timer_factory(self.window_ms / 1000, self._refresh)
        timer.daemon = True
        timer.start()
        self._timer = timer

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
