"""Per-identity rate limiting using fixed-window counters."""

import threading
import time

UNKNOWN_IDENTITY = "unknown"


def resolve_identity(remote_addr) -> str:
    """Map a transport peer address to a rate-limit key."""
    if not remote_addr:
        return UNKNOWN_IDENTITY
    identity = str(remote_addr).strip()
    return identity or UNKNOWN_IDENTITY


class WindowCounter:
    """Fixed-window admission counter for a single identity."""

    def __init__(self, max_requests: int, window_seconds: int, time_func=None):
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._time_func = time_func or time.monotonic
        self._lock = threading.Lock()
        self.count = 1
        self.window_start = self._time_func()

    def admit(self) -> bool:
        """Return True if the request is admitted, False if the ceiling is reached."""
        with self._lock:
            now = self._time_func()
            if now - self.window_start > self._window_seconds:
                self.window_start = now
                self.count = 1
                return True

            if self.count < self._max_requests:
                self.count += 1
                return True
            return False


class RateLimiter:
    """Keyed store of window counters; the map lock only guards counter creation."""

    def __init__(self, enabled: bool, max_requests: int, window_seconds: int,
                 time_func=None):
        self._enabled = enabled
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._time_func = time_func
        self._counters: dict[str, WindowCounter] = {}
        self._lock = threading.Lock()

    @property
    def tracked_identities(self) -> int:
        with self._lock:
            return len(self._counters)

    def counter_for(self, identity: str):
        """Return the counter for identity, or None if it has never been seen."""
        with self._lock:
            return self._counters.get(identity)

    def admit(self, identity: str) -> bool:
        """Check if a request from identity is admitted."""
        if not self._enabled:
            return True

        identity = resolve_identity(identity)
        with self._lock:
            counter = self._counters.get(identity)
            if counter is None:
                self._counters[identity] = WindowCounter(
                    self._max_requests,
                    self._window_seconds,
                    self._time_func,
                )
                return self._max_requests > 0
        return counter.admit()
