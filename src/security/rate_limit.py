"""Windowed rate limiting and progressive slow-down, keyed by client key.

Two limiters run side by side: a tight one for the chat route (the expensive
LLM call) and a loose one for everything else. Each keeps one ``RateWindow``
per client key that resets once its window has elapsed.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from src.security.store import ShardedMemoryStore, StateStore

logger = logging.getLogger(__name__)


@dataclass
class RateWindow:
    """Request count for one key within the current window."""

    window_start: float
    count: int = 0


@dataclass(frozen=True)
class RateDecision:
    """Outcome of a single ``admit`` call."""

    allowed: bool
    count: int
    limit: int
    retry_after: int


class SlidingWindowRateLimiter:
    """Per-key request counter over a fixed window length.

    ``max_requests`` is the documented limit; ``multiplier`` widens the
    enforced ceiling to ``max_requests * multiplier`` so several people behind
    one address are not rejected as a single client.
    """

    def __init__(
        self,
        name: str,
        max_requests: int,
        window_seconds: float,
        multiplier: int = 1,
        store: StateStore | None = None,
        log_store: StateStore | None = None,
        log_suppress_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1 or multiplier < 1:
            raise ValueError("max_requests and multiplier must be >= 1")
        self.name = name
        self.max_requests = max_requests
        self.multiplier = multiplier
        self.window = window_seconds
        self.log_suppress_seconds = log_suppress_seconds
        self._windows = store if store is not None else ShardedMemoryStore()
        self._log_markers = log_store if log_store is not None else ShardedMemoryStore()
        self._clock = clock

    @property
    def limit(self) -> int:
        """Effective ceiling per window."""
        return self.max_requests * self.multiplier

    def admit(self, key: str) -> RateDecision:
        """Count one request for ``key`` and decide whether it may proceed."""
        now = self._clock()
        limit = self.limit
        window_length = self.window

        def _step(window: RateWindow | None):
            if window is None:
                window = RateWindow(window_start=now)
            elif now - window.window_start >= window_length:
                window.window_start = max(window.window_start, now)
                window.count = 0

            retry_after = int(window_length - (now - window.window_start)) + 1
            if window.count >= limit:
                return window, RateDecision(False, window.count, limit, retry_after)

            window.count += 1
            return window, RateDecision(True, window.count, limit, retry_after)

        return self._windows.update(key, _step)

    def current_count(self, key: str) -> int:
        """Hits recorded for ``key`` in its live window (0 if expired or absent)."""
        window = self._windows.get(key)
        if window is None or self._clock() - window.window_start >= self.window:
            return 0
        return window.count

    def should_log(self, key: str) -> bool:
        """True at most once per ``log_suppress_seconds`` for a given key."""
        now = self._clock()
        suppress = self.log_suppress_seconds

        def _step(last_logged: float | None):
            if last_logged is not None and now - last_logged < suppress:
                return last_logged, False
            return now, True

        return self._log_markers.update(key, _step)

    def sweep(self, now: float | None = None) -> int:
        """Drop windows that have already elapsed."""
        now = self._clock() if now is None else now
        return self._windows.sweep(lambda w: now - w.window_start >= self.window)

    def sweep_log_markers(self, max_age: float, now: float | None = None) -> int:
        """Drop log-suppression markers older than ``max_age`` seconds."""
        now = self._clock() if now is None else now
        return self._log_markers.sweep(lambda last: now - last > max_age)

    def __len__(self) -> int:
        return len(self._windows)


class ProgressiveSlowDown:
    """Adds a growing delay once a key's chat-window hits pass a soft threshold."""

    def __init__(
        self,
        threshold: int,
        delay_per_hit_ms: int = 200,
        max_delay_ms: int = 2000,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.threshold = threshold
        self.delay_per_hit = delay_per_hit_ms / 1000.0
        self.max_delay = max_delay_ms / 1000.0
        self._sleep = sleep

    def delay_for(self, hits: int) -> float:
        """Seconds to wait for a request that is the ``hits``-th in its window."""
        beyond = hits - self.threshold
        if beyond <= 0:
            return 0.0
        return min(beyond * self.delay_per_hit, self.max_delay)

    def apply(self, hits: int) -> float:
        """Sleep for the computed delay. Callers must not hold any store lock."""
        delay = self.delay_for(hits)
        if delay > 0:
            logger.debug("Slowing down request by %.2fs (hits=%d)", delay, hits)
            self._sleep(delay)
        return delay
