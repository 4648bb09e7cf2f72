"""
In-run deduplication layered on the durable status sets.
"""

import threading
from typing import Iterable, Optional, Set

from .status_store import StatusStore


class Deduplicator:
    """
    Answers "has this id already been handled?".

    An id is seen when the StatusStore already marked it done, or when it was
    submitted earlier in this run (e.g., the same player listed on two teams).
    Not persisted; the StatusStore is the durable source of truth.
    """

    def __init__(self, status: Optional[StatusStore] = None, preseeded: Iterable[str] = ()):
        self.status = status
        self._seen: Set[str] = set(preseeded)
        self._lock = threading.Lock()

    def seen(self, record_id: str) -> bool:
        with self._lock:
            if record_id in self._seen:
                return True
        return self.status is not None and self.status.is_record_done(record_id)

    def mark_seen(self, record_id: str):
        with self._lock:
            self._seen.add(record_id)

    def claim(self, record_id: str) -> bool:
        """
        Atomically check and mark an id.

        Returns:
            True if the caller is the first to claim it in this run
        """
        if self.status is not None and self.status.is_record_done(record_id):
            return False
        with self._lock:
            if record_id in self._seen:
                return False
            self._seen.add(record_id)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)
