from __future__ import annotations

import logging
import threading
import time

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Minimum spacing between requests, shared by every request of one client.

    - throttle(): wait until `current_delay` has passed since the previous request
    - escalate(): double `current_delay` (capped) after a server throttle signal

    The delay only ever grows: once the server has throttled us, the client
    stays conservative for the rest of the session.
    Callers queue on the lock, so concurrent threads are spaced one after another.
    """

    def __init__(self, delay_sec: float, max_delay_sec: float):
        self._initial_delay = float(delay_sec)
        self._max_delay = float(max_delay_sec)
        self._current_delay = float(delay_sec)
        self._last_request_time = 0.0
        self._lock = threading.Lock()

    @property
    def initial_delay(self) -> float:
        return self._initial_delay

    @property
    def current_delay(self) -> float:
        with self._lock:
            return self._current_delay

    def throttle(self) -> None:
        with self._lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self._current_delay:
                time.sleep(self._current_delay - elapsed)
            self._last_request_time = time.monotonic()

    def escalate(self) -> float:
        """Double the current delay up to the ceiling and return the new value."""
        with self._lock:
            self._current_delay = min(self._current_delay * 2, self._max_delay)
            new_delay = self._current_delay
        logger.warning("Rate limit escalated: delay=%.2fs", new_delay)
        return new_delay
