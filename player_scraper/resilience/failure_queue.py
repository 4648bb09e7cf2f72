"""
Failure queue file: one comma-joined line per record that needs a retry.
Format: id,secondaryKey,context,timestamp,message
"""

import threading
from pathlib import Path
from typing import List, Optional, Tuple

from ..models import FailureRecord
from .status_store import StatusStore


class FailureQueue:
    """Append-only during a run; rewritten with survivors by a retry pass."""

    def __init__(self, path: Path, status: Optional[StatusStore] = None):
        self.path = Path(path)
        self.status = status
        self._lock = threading.Lock()

    def append(self, failure: FailureRecord) -> bool:
        """Queue a failure unless that record is already done."""
        if self.status is not None and self.status.is_record_done(failure.record_id):
            return False
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, 'a', encoding='utf-8') as f:
                    f.write(failure.to_line() + '\n')
                    f.flush()
            except OSError as e:
                print(f"Failed to log failed player {failure.record_id} to file: {e}")
                return False
        return True

    def read(self) -> Tuple[List[FailureRecord], List[str]]:
        """
        Parse the queue.

        Returns:
            (parsed records, raw lines that could not be parsed)
        """
        if not self.path.exists():
            return [], []
        records, malformed = [], []
        with self._lock:
            with open(self.path, 'r', encoding='utf-8') as f:
                lines = f.read().splitlines()
        for line in lines:
            if not line.strip():
                continue
            record = FailureRecord.from_line(line)
            if record is None:
                malformed.append(line)
            else:
                records.append(record)
        return records, malformed

    def rewrite(self, survivors: List[str]):
        """Replace the queue with the given lines; delete it when empty."""
        with self._lock:
            if not survivors:
                if self.path.exists():
                    self.path.unlink()
                return
            temp_file = self.path.with_name(self.path.name + ".tmp")
            with open(temp_file, 'w', encoding='utf-8') as f:
                f.write('\n'.join(survivors) + '\n')
            temp_file.replace(self.path)
