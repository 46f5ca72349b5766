"""Brute-force protection for the login endpoint.

Failed attempts are counted per key (email + client IP) in a sliding
window; once the limit is reached the key is blocked for a fixed time.
State is in-memory and per-process, so each worker keeps its own counters.
Keys whose failures have aged out of the window and whose block has ended
are swept at most once per window, so the map only holds live keys.
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Dict, List

from loan_tracker.errors import RateLimited

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Rate limit configuration."""

    max_attempts: int = 5  # Failed attempts allowed in window
    window_seconds: int = 60
    block_seconds: int = 300


@dataclass
class RateLimitState:
    failures: List[float] = field(default_factory=list)
    blocked_until: float = 0.0

    def is_expired(self, now: float, window_start: float) -> bool:
        return self.blocked_until <= now and all(ts < window_start for ts in self.failures)


class LoginThrottle:
    """Sliding-window failure counter. Thread-safe."""

    def __init__(self, config: RateLimitConfig, clock: Callable[[], float] = time.monotonic) -> None:
        self.config = config
        self._clock = clock
        self._state: Dict[str, RateLimitState] = defaultdict(RateLimitState)
        self._lock = Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._state)

    @staticmethod
    def key_for(email: str, client_ip: str) -> str:
        return f"{email}|{client_ip}"

    def _sweep(self, now: float) -> None:
        # Caller holds the lock
        if now - self._last_sweep < self.config.window_seconds:
            return
        self._last_sweep = now
        window_start = now - self.config.window_seconds
        expired = [key for key, state in self._state.items() if state.is_expired(now, window_start)]
        for key in expired:
            del self._state[key]
        if expired:
            logger.debug(f"Dropped {len(expired)} expired login throttle entries")

    def check(self, key: str) -> None:
        """Raise RateLimited while the key is blocked."""
        now = self._clock()
        with self._lock:
            self._sweep(now)
            state = self._state.get(key)
            if state is None:
                return
            if state.blocked_until > now:
                raise RateLimited(retry_after=max(1, int(state.blocked_until - now)))
            if state.is_expired(now, now - self.config.window_seconds):
                del self._state[key]

    def record_failure(self, key: str) -> None:
        now = self._clock()
        with self._lock:
            self._sweep(now)
            state = self._state[key]
            window_start = now - self.config.window_seconds
            state.failures = [ts for ts in state.failures if ts >= window_start]
            state.failures.append(now)
            if len(state.failures) >= self.config.max_attempts:
                state.blocked_until = now + self.config.block_seconds
                state.failures = []
                logger.warning(f"Login blocked for {self.config.block_seconds}s after repeated failures")

    def reset(self, key: str) -> None:
        with self._lock:
            self._state.pop(key, None)
