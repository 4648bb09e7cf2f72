"""
Adaptive rate limiting with jitter and cooldown.
Spaces requests to the source site and backs off after failures.
Shared by all fetch workers, so every state change happens under a lock.
"""

import random
import threading
import time
from typing import Callable, Optional

from ..config import RateLimitConfig


class RateLimiter:
    """Implements adaptive rate limiting with exponential backoff and jitter."""

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize rate limiter with configuration.

        Args:
            config: RateLimitConfig instance, uses defaults if None
            sleep: Sleep function, replaced in tests
            clock: Monotonic clock, replaced in tests
        """
        self.config = config or RateLimitConfig()
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.Lock()
        self._current_delay = self.config.initial_delay
        self._consecutive_failures = 0
        self._next_slot: Optional[float] = None
        self._cooldown_until: Optional[float] = None

    def wait(self):
        """
        Reserve the next request slot and sleep until it arrives.

        Slots are handed out under the lock, sleeping happens outside it, so
        concurrent workers queue up one delay apart instead of all at once.
        """
        with self._lock:
            now = self._clock()
            start = now
            if self._cooldown_until is not None:
                start = max(start, self._cooldown_until)
                self._cooldown_until = None

            jitter_range = self._current_delay * self.config.jitter_percent
            delay = max(self.config.min_delay,
                        self._current_delay + random.uniform(-jitter_range, jitter_range))

            if self._next_slot is not None:
                start = max(start, self._next_slot)
            self._next_slot = start + delay
            pause = start - now

        if pause > 0:
            self._sleep(pause)

    def record_success(self):
        """Record successful request, gradually decrease delay."""
        with self._lock:
            self._consecutive_failures = 0
            self._current_delay = max(self.config.min_delay, self._current_delay * 0.9)

    def record_failure(self):
        """Record failed request, increase delay and cool down after a streak."""
        with self._lock:
            self._consecutive_failures += 1
            self._current_delay = min(self.config.max_delay,
                                      self._current_delay * self.config.backoff_factor)
            if self._consecutive_failures >= self.config.cooldown_threshold:
                self._cooldown_until = self._clock() + self.config.cooldown_duration
                print(f"⚠️  Entering cooldown for {self.config.cooldown_duration}s due to "
                      f"{self._consecutive_failures} consecutive failures")
                self._consecutive_failures = 0

    def get_current_delay(self) -> float:
        return self._current_delay

    def get_stats(self) -> dict:
        with self._lock:
            return {
                'current_delay': self._current_delay,
                'consecutive_failures': self._consecutive_failures,
                'in_cooldown': self._cooldown_until is not None,
                'min_delay': self.config.min_delay,
                'max_delay': self.config.max_delay
            }
