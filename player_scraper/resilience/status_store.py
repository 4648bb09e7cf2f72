"""
Progress tracking for resumable extractions.
Persists state to disk for recovery after interruptions.
"""

import json
import os
import shutil
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..models import ExtractionStatus, SearchStatus, now_millis


def _write_atomic(path: Path, data: dict):
    """Write JSON to a temp file beside path, fsync, then rename over it."""
    temp_file = path.with_name(path.name + ".tmp")
    try:
        with open(temp_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_file, path)
    finally:
        if temp_file.exists():
            temp_file.unlink()


class StatusStore:
    """
    Owns the ExtractionStatus document.

    Every mutation goes through this class. Container and page transitions are
    saved immediately; record marks are saved every save_interval records, so a
    crash replays at most that many fetches. save() never raises.
    """

    def __init__(self, status_file: Path, save_interval: int = 10):
        """
        Initialize store for a status document.

        Args:
            status_file: Path of the status JSON document
            save_interval: Number of record marks between saves
        """
        self.status_file = Path(status_file)
        self.save_interval = max(1, save_interval)
        self._state = ExtractionStatus()
        self._unsaved_records = 0
        self._lock = threading.RLock()

    @property
    def state(self) -> ExtractionStatus:
        return self._state

    def load(self) -> ExtractionStatus:
        """
        Load existing state from disk.

        Returns:
            Loaded ExtractionStatus, or a fresh one when the file is missing
            or unreadable
        """
        with self._lock:
            if not self.status_file.exists():
                print("🆕 Starting fresh extraction (no previous status found)")
                self._state = ExtractionStatus()
                return self._state

            try:
                with open(self.status_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                self._state = ExtractionStatus.from_dict(data)
            except (OSError, ValueError, TypeError) as e:
                print(f"⚠️  Failed to load status file, starting fresh: {e}")
                self._backup_corrupted()
                self._state = ExtractionStatus()
                return self._state

            print("📂 Resuming from previous run:")
            print(f"   - Processed teams: {len(self._state.processed_containers)}")
            print(f"   - Scraped players: {len(self._state.processed_record_ids)}")
            print(f"   - Current page: {self._state.current_page}")
            if self._state.current_container:
                print(f"   - Current team: {self._state.current_container}")
            return self._state

    def _backup_corrupted(self):
        """Create backup of corrupted state file."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = self.status_file.with_name(f"{self.status_file.stem}.corrupted.{timestamp}.json")
        try:
            shutil.copy2(self.status_file, backup_path)
            print(f"Backed up corrupted state to {backup_path}")
        except OSError as e:
            print(f"Failed to backup corrupted state: {e}")

    def save(self) -> bool:
        """
        Atomically save state to disk.

        Returns:
            True if written; failures are printed and swallowed
        """
        with self._lock:
            self._state.last_updated = now_millis()
            try:
                self.status_file.parent.mkdir(parents=True, exist_ok=True)
                _write_atomic(self.status_file, self._state.to_dict())
            except (OSError, TypeError, ValueError) as e:
                print(f"⚠️  Failed to save status: {e}")
                return False
            self._unsaved_records = 0
            return True

    def flush(self):
        """Save if any record marks are pending."""
        with self._lock:
            if self._unsaved_records:
                self.save()

    def mark_container_done(self, key: str):
        """Mark a team as fully processed and clear the in-progress marker."""
        with self._lock:
            self._state.processed_containers.add(key)
            if self._state.current_container == key:
                self._state.current_container = None
            self.save()

    def set_current_container(self, key: Optional[str]):
        """Record the team being processed (mid-team resume marker)."""
        with self._lock:
            self._state.current_container = key
            self.save()

    def mark_record_done(self, record_id: str):
        """Mark a player as scraped; saved every save_interval marks."""
        with self._lock:
            if record_id in self._state.processed_record_ids:
                return
            self._state.processed_record_ids.add(record_id)
            self._unsaved_records += 1
            if self._unsaved_records >= self.save_interval:
                self.save()

    def set_current_page(self, page: int):
        """Update current page number."""
        with self._lock:
            self._state.current_page = max(1, int(page))
            self.save()

    def is_container_done(self, key: str) -> bool:
        with self._lock:
            return key in self._state.processed_containers

    def is_record_done(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._state.processed_record_ids

    def reset(self):
        """Clear all progress state (with backup)."""
        with self._lock:
            if self.status_file.exists():
                timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
                backup_path = self.status_file.with_name(f"{self.status_file.stem}.reset.{timestamp}.json")
                try:
                    shutil.copy2(self.status_file, backup_path)
                    print(f"Backed up state before reset to {backup_path}")
                except OSError as e:
                    print(f"Failed to backup before reset: {e}")
                self.status_file.unlink()
                print("[INFO] Status file deleted, will start fresh")
            self._state = ExtractionStatus()
            self._unsaved_records = 0

    def get_stats(self) -> dict:
        with self._lock:
            return {
                'processed_teams': len(self._state.processed_containers),
                'scraped_players': len(self._state.processed_record_ids),
                'current_page': self._state.current_page,
                'current_team': self._state.current_container,
            }


class SearchStatusStore:
    """Single active search context {currentSearch, currentPage}."""

    def __init__(self, status_file: Path):
        self.status_file = Path(status_file)

    def read(self) -> Optional[SearchStatus]:
        if not self.status_file.exists():
            return None
        try:
            with open(self.status_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return SearchStatus(
                current_search=str(data['currentSearch']),
                current_page=max(1, int(data['currentPage'])),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            print(f"⚠️  Could not read search status {self.status_file}: {e}")
            return None

    def start_page(self, search_key: str, default_page: int = 1) -> int:
        """Page to resume from when search_key is the active search."""
        status = self.read()
        if status and status.current_search == search_key:
            return status.current_page
        return default_page

    def update(self, search_key: str, page: int) -> bool:
        try:
            self.status_file.parent.mkdir(parents=True, exist_ok=True)
            _write_atomic(self.status_file, {'currentSearch': search_key, 'currentPage': page})
            return True
        except OSError as e:
            print(f"⚠️  Failed to save search status: {e}")
            return False
