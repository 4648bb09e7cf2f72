"""
Retry handling with configurable backoff.
One policy object serves both profile fetches and batch uploads.
"""

import time
from datetime import datetime
from typing import Callable, Tuple, Any, Optional, TYPE_CHECKING

from ..config import RetryConfig
from ..errors import FetchError
from ..models import FailureRecord

if TYPE_CHECKING:
    from .failure_queue import FailureQueue


class RetryHandler:
    """Manages retry logic with backoff and permanent-failure recording."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize retry handler.

        Args:
            config: RetryConfig instance, uses defaults if None
            sleep: Sleep function, replaced in tests
        """
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._failure_queue: Optional["FailureQueue"] = None

    def set_failure_queue(self, queue: "FailureQueue"):
        """Set the queue that permanent failures are written to."""
        self._failure_queue = queue

    def execute_with_retry(
        self,
        func: Callable,
        *args,
        **kwargs
    ) -> Tuple[bool, Any]:
        """
        Execute function, retrying transient FetchErrors.

        Any other exception propagates; a non-transient FetchError ends the
        loop immediately.

        Returns:
            Tuple of (success, result or last FetchError)
        """
        last_error: Optional[FetchError] = None

        for attempt in range(1, self.config.max_attempts + 1):
            try:
                return True, func(*args, **kwargs)
            except FetchError as e:
                last_error = e
                if not e.transient:
                    return False, e
                print(f"  Attempt {attempt}/{self.config.max_attempts} failed: {e}")

            # Don't sleep after last attempt
            if attempt < self.config.max_attempts:
                delay = self.config.delay_for(attempt)
                print(f"  Retrying in {delay:.1f}s...")
                self._sleep(delay)

        return False, last_error

    def record_permanent_failure(self, record_id: str, secondary_key: str,
                                 context: str, reason: str):
        """
        Record a player that failed all retries in the failure queue.
        """
        if self._failure_queue is None:
            print(f"Warning: Cannot record failure for {record_id} - no failure queue set")
            return
        self._failure_queue.append(FailureRecord(
            record_id=record_id,
            secondary_key=secondary_key,
            context=context,
            timestamp=datetime.now().isoformat(),
            reason=reason,
        ))

    def get_stats(self) -> dict:
        return {
            'max_attempts': self.config.max_attempts,
            'base_delay': self.config.base_delay,
            'backoff': self.config.backoff,
        }
