"""
Resilience components for the player extraction pipeline.
"""

from .status_store import StatusStore, SearchStatusStore
from .deduplicator import Deduplicator
from .rate_limiter import RateLimiter
from .retry_handler import RetryHandler
from .failure_queue import FailureQueue
from .run_lock import RunLock

__all__ = [
    'StatusStore',
    'SearchStatusStore',
    'Deduplicator',
    'RateLimiter',
    'RetryHandler',
    'FailureQueue',
    'RunLock'
]
