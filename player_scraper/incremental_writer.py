"""
Append-safe persistence of fetched records.

Each successful fetch goes to up to three sinks, in order: the JSON-lines
log, the wrapped-array document the uploader reads, and output.csv.
Sinks are best-effort: one failing does not undo the others.
"""

import csv
import json
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import COLLECTION_KEY, OutputPaths
from .profile_scraper import CSV_COLUMNS, to_csv_row
from .resilience.status_store import StatusStore


class JsonLinesSink:
    """
    One complete JSON object per line; open-append-close per record.

    With stamp set, each line carries a retrieved_at timestamp. Only this log
    gets it: the wrapped document and the CSV keep the upload schema as is.
    """

    name = "jsonl"

    def __init__(self, path: Path, stamp: bool = True):
        self.path = Path(path)
        self.stamp = stamp

    def append(self, record: Dict[str, Any]):
        line = dict(record)
        if self.stamp:
            line['retrieved_at'] = datetime.now().isoformat()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(json.dumps(line, ensure_ascii=False) + '\n')


class RewriteDocumentStore:
    """
    Wrapped-array document {"<key>": [...]}, rewritten in full per append.

    The rewrite goes to a temp file that replaces the document, so readers
    always see valid JSON. A missing or malformed document starts empty.
    """

    def __init__(self, path: Path, collection_key: str = COLLECTION_KEY):
        self.path = Path(path)
        self.collection_key = collection_key

    def load(self) -> List[Any]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            print(f"⚠️  {self.path} is unreadable, starting a new document: {e}")
            return []
        if isinstance(data, dict) and isinstance(data.get(self.collection_key), list):
            return data[self.collection_key]
        if isinstance(data, list):
            return data
        print(f"⚠️  {self.path} has an unexpected shape, starting a new document")
        return []

    def append(self, item: Any):
        items = self.load()
        items.append(item)
        self._write(items)

    def _write(self, items: List[Any]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self.path.with_name(self.path.name + ".tmp")
        with open(temp_file, 'w', encoding='utf-8') as f:
            json.dump({self.collection_key: items}, f, ensure_ascii=False, separators=(',', ':'))
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_file, self.path)


class WrappedDocumentSink:
    """Adapts a document store to the sink interface."""

    name = "document"

    def __init__(self, store: RewriteDocumentStore):
        self.store = store

    def append(self, record: Dict[str, Any]):
        self.store.append(record)


class CsvSink:
    """Row-oriented file: header once, then one quoted row per record."""

    name = "csv"

    def __init__(
        self,
        path: Path,
        header: List[str] = CSV_COLUMNS,
        to_row: Callable[[Dict[str, Any]], List[str]] = to_csv_row
    ):
        self.path = Path(path)
        self.header = header
        self.to_row = to_row

    def append(self, record: Dict[str, Any]):
        row = self.to_row(record)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        write_header = not self.path.exists() or self.path.stat().st_size == 0
        with open(self.path, 'a', encoding='utf-8', newline='') as f:
            writer = csv.writer(f, lineterminator='\n')
            if write_header:
                writer.writerow(self.header)
            writer.writerow(row)


def read_csv_ids(path: Path) -> List[str]:
    """First-column values of an existing output.csv, header skipped."""
    path = Path(path)
    if not path.exists():
        return []
    with open(path, 'r', encoding='utf-8', newline='') as f:
        reader = csv.reader(f)
        next(reader, None)
        return [row[0].strip() for row in reader if row and row[0].strip()]


class IncrementalWriter:
    """
    Persists each successful fetch to every sink under one lock.

    The record is marked done in the StatusStore when at least one sink
    accepted it.
    """

    def __init__(self, sinks: List[Any], status: Optional[StatusStore] = None):
        self.sinks = sinks
        self.status = status
        self._lock = threading.Lock()
        self.records_written = 0

    @classmethod
    def for_extraction(cls, paths: OutputPaths, status: Optional[StatusStore] = None,
                       collection_key: str = COLLECTION_KEY) -> "IncrementalWriter":
        return cls([
            JsonLinesSink(paths.profiles_jsonl),
            WrappedDocumentSink(RewriteDocumentStore(paths.players_data_json, collection_key)),
            CsvSink(paths.output_csv),
        ], status=status)

    @classmethod
    def for_search(cls, paths: OutputPaths) -> "IncrementalWriter":
        return cls([CsvSink(paths.output_csv)])

    def append_record(self, record: Dict[str, Any], record_id: Optional[str] = None) -> bool:
        """
        Write record to all sinks.

        Returns:
            True if at least one sink succeeded
        """
        written = 0
        with self._lock:
            for sink in self.sinks:
                try:
                    sink.append(record)
                    written += 1
                except (OSError, TypeError, ValueError) as e:
                    print(f"  ✗ Failed to write {sink.name} for {record.get('profile_link', record_id)}: {e}")
            if written:
                self.records_written += 1
                if self.status is not None and record_id is not None:
                    self.status.mark_record_done(record_id)
        return written > 0
