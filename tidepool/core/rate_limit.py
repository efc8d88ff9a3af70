"""
In-process limiter on click attempts per identity.

This is the load-shedding layer in front of the click gate: it counts
attempts, accepted or not, in a fixed window per identity and is not
persisted.
"""

import threading
import time
from typing import Dict, Tuple


class ClickAttemptLimiter:
    """Allow at most max_attempts per identity per window."""

    def __init__(self, window_sec: float, max_attempts: int = 1, clock=time.monotonic):
        if window_sec <= 0:
            raise ValueError(f"Window must be > 0 seconds: {window_sec}")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1: {max_attempts}")

        self.window_sec = window_sec
        self.max_attempts = max_attempts
        self._clock = clock
        self._hits: Dict[str, Tuple[float, int]] = {}  # identity -> (window_start, hits)
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def hit(self, identity: str) -> bool:
        """Record an attempt. Returns False when the identity is over its limit."""
        now = self._clock()
        with self._lock:
            self._maybe_sweep(now)
            window_start, hits = self._hits.get(identity, (now, 0))
            if now - window_start >= self.window_sec:
                window_start, hits = now, 0
            hits += 1
            self._hits[identity] = (window_start, hits)
            return hits <= self.max_attempts

    def release(self, identity: str) -> None:
        """Take back one attempt that was not decided (e.g. the store failed)."""
        with self._lock:
            entry = self._hits.get(identity)
            if entry is None:
                return
            window_start, hits = entry
            if hits <= 1:
                del self._hits[identity]
            else:
                self._hits[identity] = (window_start, hits - 1)

    def reset(self, identity: str = None) -> None:
        with self._lock:
            if identity is None:
                self._hits.clear()
            else:
                self._hits.pop(identity, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def _maybe_sweep(self, now: float) -> None:
        # Full scan at most once per window; lookups expire their own entry
        if now - self._last_sweep < self.window_sec:
            return
        self._last_sweep = now
        expired = [key for key, (start, _) in self._hits.items() if now - start >= self.window_sec]
        for key in expired:
            del self._hits[key]
