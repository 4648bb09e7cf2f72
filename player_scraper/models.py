"""
Data models for the player scraper.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set


def now_millis() -> int:
    return int(datetime.now().timestamp() * 1000)


@dataclass
class ExtractionStatus:
    """Persistent state for resumable extractions."""
    processed_containers: Set[str] = field(default_factory=set)
    processed_record_ids: Set[str] = field(default_factory=set)
    current_page: int = 1
    current_container: Optional[str] = None
    last_updated: int = field(default_factory=now_millis)

    def to_dict(self) -> dict:
        return {
            'processedTeams': sorted(self.processed_containers),
            'scrapedPlayerIds': sorted(self.processed_record_ids),
            'currentPage': self.current_page,
            'currentTeam': self.current_container,
            'lastUpdate': self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExtractionStatus":
        if not isinstance(data, dict):
            raise TypeError(f"status document must be an object, got {type(data).__name__}")
        teams = data.get('processedTeams') or []
        ids = data.get('scrapedPlayerIds') or []
        for key, value in (('processedTeams', teams), ('scrapedPlayerIds', ids)):
            if not isinstance(value, list):
                raise TypeError(f"{key} must be a list, got {type(value).__name__}")
        page = int(data.get('currentPage') or 1)
        return cls(
            processed_containers={str(t) for t in teams},
            processed_record_ids={str(i) for i in ids},
            current_page=max(1, page),
            current_container=data.get('currentTeam'),
            last_updated=int(data.get('lastUpdate') or now_millis()),
        )


@dataclass
class SearchStatus:
    """Resume point of the position/birth-year search sweep."""
    current_search: str
    current_page: int = 1


@dataclass
class PendingRecord:
    """A discovered player waiting to be fetched."""
    id: str
    source_url: str
    slug: str = ""
    discovered_at: str = field(default_factory=lambda: datetime.now().isoformat())


class FetchOutcome(Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


@dataclass
class FetchResult:
    """Outcome of fetching one record; inspected instead of raising."""
    outcome: FetchOutcome
    pending: PendingRecord
    record: Optional[Dict[str, Any]] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is FetchOutcome.SUCCESS

    @classmethod
    def success(cls, pending: PendingRecord, record: Dict[str, Any]) -> "FetchResult":
        return cls(FetchOutcome.SUCCESS, pending, record=record)

    @classmethod
    def retryable(cls, pending: PendingRecord, reason: str) -> "FetchResult":
        return cls(FetchOutcome.RETRYABLE, pending, reason=reason)

    @classmethod
    def terminal(cls, pending: PendingRecord, reason: str) -> "FetchResult":
        return cls(FetchOutcome.TERMINAL, pending, reason=reason)


@dataclass
class FailureRecord:
    """One line of the failure queue file."""
    record_id: str
    secondary_key: str
    context: str
    timestamp: str
    reason: str

    def to_line(self) -> str:
        message = self.reason.replace(',', ';').replace('\r', ' ').replace('\n', ' ')
        return ','.join([self.record_id, self.secondary_key, self.context, self.timestamp, message])

    @classmethod
    def from_line(cls, line: str) -> Optional["FailureRecord"]:
        parts = line.rstrip('\r\n').split(',', 4)
        if len(parts) < 2 or not parts[0].strip():
            return None
        parts += [''] * (5 - len(parts))
        return cls(
            record_id=parts[0].strip(),
            secondary_key=parts[1].strip(),
            context=parts[2].strip(),
            timestamp=parts[3].strip(),
            reason=parts[4].strip(),
        )


@dataclass
class UploadBatch:
    """A window of records submitted in one request."""
    batch_index: int
    records: List[Dict[str, Any]]


@dataclass
class UploadResult:
    """Summary of an upload run."""
    total_records: int = 0
    total_batches: int = 0
    successful_batches: int = 0
    failed_batches: int = 0
    skipped_records: int = 0
    uploaded_ids: Set[str] = field(default_factory=set)
    failed_items: List[str] = field(default_factory=list)
    failed_batch_numbers: List[int] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed_batches == 0


@dataclass
class ExtractionResult:
    """Result of an extraction run."""
    success: bool
    mode: str
    started_at: str
    completed_at: str
    total_discovered: int
    total_completed: int
    total_skipped: int
    total_failed: int
    pages_walked: int = 0
    containers_visited: int = 0
    failed_records: List[dict] = field(default_factory=list)
    duration_seconds: float = 0.0
