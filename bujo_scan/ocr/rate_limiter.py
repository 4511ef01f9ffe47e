"""
Client-side sliding-window rate limiter.
"""

import time
from collections import deque
from typing import Any, Callable, Deque, Dict

DEFAULT_KEY = "default"


class RateLimiter:
    """
    Allows at most ``max_requests`` per key within a sliding window.

    ``is_allowed`` consumes a slot when it returns True. ``status`` only
    inspects state.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError(f"max_requests must be positive, got {max_requests}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._requests: Dict[str, Deque[float]] = {}

    def _prune(self, key: str) -> Deque[float]:
        window_start = self.clock() - self.window_seconds
        requests = self._requests.setdefault(key, deque())
        while requests and requests[0] <= window_start:
            requests.popleft()
        return requests

    def is_allowed(self, key: str = DEFAULT_KEY) -> bool:
        """Record a request for key if there is room in the window."""
        requests = self._prune(key)
        if len(requests) >= self.max_requests:
            return False
        requests.append(self.clock())
        return True

    def remaining(self, key: str = DEFAULT_KEY) -> int:
        return max(0, self.max_requests - len(self._prune(key)))

    def time_until_reset(self, key: str = DEFAULT_KEY) -> float:
        """Seconds until the next request for key would be allowed."""
        requests = self._prune(key)
        if len(requests) < self.max_requests:
            return 0.0
        return max(0.0, requests[0] + self.window_seconds - self.clock())

    def reset(self, key: str = DEFAULT_KEY) -> None:
        self._requests.pop(key, None)

    def reset_all(self) -> None:
        self._requests.clear()

    def status(self, key: str = DEFAULT_KEY) -> Dict[str, Any]:
        remaining = self.remaining(key)
        return {
            "allowed": remaining > 0,
            "remaining": remaining,
            "time_until_reset": self.time_until_reset(key),
            "requests_in_window": self.max_requests - remaining,
        }
