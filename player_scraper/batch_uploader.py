"""
Batch upload of extracted players to the remote API.

Records are sanitised once, split into fixed-size windows and POSTed in
order. Per-record validation failures (HTTP 422) are isolated to the
offending records; everything that did not make it is appended to the
failed-uploads file.
"""

import json
import math
import re
import time
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .config import UploadConfig
from .errors import ConfigurationError, FetchError
from .models import UploadBatch, UploadResult
from .resilience.retry_handler import RetryHandler


NULLABLE_TEXT_FIELDS = ("shoots", "nation", "place_of_birth", "position")
BIRTHDATE_FORMAT = "%b %d, %Y"
MAX_AGE = 90

STATUS_HINTS = {
    400: "Bad Request - Check JSON format",
    401: "Unauthorized - API authentication required",
    403: "Forbidden - Check API permissions",
    404: "Not Found - Check API endpoint URL",
    500: "Server Error - Server-side issue",
}


def load_records(path: Path, collection_key: str) -> List[Dict[str, Any]]:
    """
    Read the players document.

    Accepts the wrapped object {"<key>": [...]} or a bare array. Nulls in
    the text fields the API requires are replaced with "".

    Raises:
        ConfigurationError: if the file is missing, empty or not JSON
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"{path} not found!")
    content = path.read_text(encoding='utf-8')
    if not content.strip():
        raise ConfigurationError(f"{path} is empty, nothing to upload")
    try:
        data = json.loads(content)
    except ValueError as e:
        raise ConfigurationError(f"{path} is not valid JSON: {e}") from e

    if isinstance(data, dict):
        records = data.get(collection_key)
        if not isinstance(records, list):
            raise ConfigurationError(f"{path} has no '{collection_key}' array")
    elif isinstance(data, list):
        records = data
    else:
        raise ConfigurationError(f"{path} must hold an object or an array")

    records = [r for r in records if isinstance(r, dict)]
    for record in records:
        for key in NULLABLE_TEXT_FIELDS:
            if key in record and record[key] is None:
                record[key] = ""
    return records


def record_reference(record: Dict[str, Any]) -> str:
    """External reference used in failure lists: the profile link, else the id."""
    link = record.get('profile_link')
    if isinstance(link, str) and link.strip():
        return link.strip()
    user_id = record.get('user_id')
    return "" if user_id is None else str(user_id)


def derive_age(birthdate: Any, today: Optional[date] = None) -> Optional[int]:
    """Age in years from a birthdate like 'Feb 02, 2004'; None if implausible."""
    if not isinstance(birthdate, str):
        return None
    text = birthdate.strip()
    if not text or text in ('-', '?'):
        return None
    try:
        dob = datetime.strptime(text, BIRTHDATE_FORMAT).date()
    except ValueError:
        return None
    age = (today or date.today()).year - dob.year
    if age < 0 or age > MAX_AGE:
        return None
    return age


def sanitize_age(record: Dict[str, Any], today: Optional[date] = None) -> bool:
    """
    Normalise the age field in place.

    Returns:
        False when the record has an age that is neither numeric nor
        derivable from its birthdate
    """
    raw = record.get('age')
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        derived = derive_age(record.get('birthdate'), today)
        if derived is not None:
            record['age'] = derived
        return True

    digits = re.sub(r'[^0-9]', '', str(raw))
    if digits and int(digits) <= MAX_AGE:
        record['age'] = int(digits)
        return True

    derived = derive_age(record.get('birthdate'), today)
    if derived is None:
        return False
    record['age'] = derived
    return True


def partition(records: List[Dict[str, Any]], batch_size: int) -> List[UploadBatch]:
    """Ordered windows of batch_size; the last one may be shorter."""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    count = math.ceil(len(records) / batch_size)
    return [
        UploadBatch(batch_index=i, records=records[i * batch_size:(i + 1) * batch_size])
        for i in range(count)
    ]


def parse_validation_errors(body: str, records: List[Dict[str, Any]],
                            collection_key: str) -> List[str]:
    """
    References of the records a 422 body blames.

    Error keys look like "<collection_key>.<index>.<field>"; indices are
    local to the window. An unparseable body yields an empty list.
    """
    try:
        data = json.loads(body or "")
    except ValueError as e:
        print(f"   ⚠️  Could not parse validation error response: {e}")
        return []
    if not isinstance(data, dict):
        return []

    errors = data.get('errors')
    pattern = re.compile(rf'^{re.escape(collection_key)}\.(\d+)(?:\.|$)')
    failed = []
    if isinstance(errors, dict):
        for key in errors:
            match = pattern.match(str(key))
            if not match:
                continue
            index = int(match.group(1))
            if index < len(records):
                ref = record_reference(records[index])
                if ref and ref not in failed:
                    failed.append(ref)

    if not failed and data.get('message'):
        print(f"   API Error message: {data['message']}")
    return failed


class BatchUploader:
    """Uploads records window by window and reports what failed."""

    def __init__(
        self,
        config: Optional[UploadConfig] = None,
        session: Optional[requests.Session] = None,
        failed_file: Optional[Path] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            config: Endpoint, batch size, timeout and retry policy
            session: HTTP session, replaced in tests
            failed_file: Append-mode file for failed record references
            sleep: Sleep function, replaced in tests
        """
        self.config = config or UploadConfig()
        self.session = session or requests.Session()
        self.failed_file = Path(failed_file) if failed_file else None
        self._sleep = sleep
        self.retry = RetryHandler(self.config.retry, sleep=sleep)

    def sanitize(self, records: List[Dict[str, Any]],
                 today: Optional[date] = None) -> Tuple[List[Dict[str, Any]], List[str]]:
        """
        Validate records before batching.

        Returns:
            (records to upload, references of excluded records)
        """
        kept, excluded = [], []
        for record in records:
            if sanitize_age(record, today):
                kept.append(record)
                continue
            ref = record_reference(record)
            print(f"   ⚠️  Skipping player due to invalid age value: "
                  f"user_id={record.get('user_id')}, age={record.get('age')}")
            if ref and ref not in excluded:
                excluded.append(ref)
        return kept, excluded

    def _post(self, body: bytes) -> requests.Response:
        """
        POST one window.

        Raises:
            FetchError: transient for transport failures and retryable
                statuses, so the retry handler can back off and resend
        """
        try:
            response = self.session.post(
                self.config.endpoint,
                data=body,
                headers={'Content-Type': 'application/json', 'Accept': 'application/json'},
                timeout=self.config.request_timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            raise FetchError(f"network error: {e}", transient=True, url=self.config.endpoint) from e
        except requests.RequestException as e:
            raise FetchError(f"request error: {e}", url=self.config.endpoint) from e

        if self.config.retry.is_retryable_status(response.status_code):
            raise FetchError(
                f"HTTP {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
                transient=True,
                url=self.config.endpoint,
            )
        return response

    def upload_batch(self, batch: UploadBatch, total_batches: int, result: UploadResult) -> bool:
        number = batch.batch_index + 1
        refs = [record_reference(r) for r in batch.records]
        body = json.dumps({self.config.collection_key: batch.records}, ensure_ascii=False).encode('utf-8')

        print(f"\n📦 BATCH {number}/{total_batches} ({len(batch.records)} players, {len(body) // 1024} KB)")

        ok, outcome = self.retry.execute_with_retry(self._post, body)

        if ok and 200 <= outcome.status_code < 300:
            print(f"   ✓ Batch {number} SUCCESS")
            result.successful_batches += 1
            result.uploaded_ids.update(
                str(r['user_id']) for r in batch.records if r.get('user_id') is not None
            )
            return True

        result.failed_batches += 1
        result.failed_batch_numbers.append(number)

        if ok and outcome.status_code == 422:
            print(f"   ✗ Batch {number} VALIDATION ERROR (HTTP 422)")
            invalid = parse_validation_errors(outcome.text, batch.records, self.config.collection_key)
            if invalid:
                print(f"   Identified {len(invalid)} invalid players")
                result.failed_items.extend(invalid)
            else:
                print("   No per-player errors found, logging the whole batch")
                result.failed_items.extend(r for r in refs if r)
            return False

        status_code = outcome.status_code
        print(f"   ✗ Batch {number} FAILED ({f'HTTP {status_code}' if status_code else outcome})")
        if ok and outcome.text.strip():
            print(f"   Error response: {outcome.text[:500]}")
        if status_code in STATUS_HINTS:
            print(f"   💡 {STATUS_HINTS[status_code]}")
        result.failed_items.extend(r for r in refs if r)
        return False

    def upload(self, records: List[Dict[str, Any]], batch_size: Optional[int] = None,
               today: Optional[date] = None) -> UploadResult:
        """
        Sanitise, partition and upload records.

        Returns:
            UploadResult; .success is True when no window failed
        """
        batch_size = batch_size or self.config.batch_size
        result = UploadResult()

        kept, excluded = self.sanitize(records, today)
        result.skipped_records = len(records) - len(kept)
        result.failed_items.extend(excluded)
        result.total_records = len(kept)

        batches = partition(kept, batch_size)
        result.total_batches = len(batches)

        print("\n" + "=" * 60)
        print("STARTING BATCH UPLOAD")
        print("=" * 60)
        print(f"Players selected for upload: {len(kept)}")
        print(f"Skipped invalid players: {result.skipped_records}")
        print(f"Batch size: {batch_size} players/batch")
        print(f"Total batches: {len(batches)}")
        print(f"Target URL: {self.config.endpoint}")

        for batch in batches:
            self.upload_batch(batch, len(batches), result)
            if batch.batch_index < len(batches) - 1:
                self._sleep(self.config.inter_batch_delay)

        self.write_failures(result)
        self._print_summary(result)
        return result

    def write_failures(self, result: UploadResult):
        """Deduplicate failed references and append them to the failure file."""
        unique = list(dict.fromkeys(ref for ref in result.failed_items if ref))
        result.failed_items = unique
        if not unique or self.failed_file is None:
            return
        try:
            self.failed_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.failed_file, 'a', encoding='utf-8') as f:
                for ref in unique:
                    f.write(ref + '\n')
            print(f"\nFailed player URLs appended to: {self.failed_file}")
            print(f"   Total failed players (this run): {len(unique)}")
        except OSError as e:
            print(f"⚠️  Could not write to {self.failed_file}: {e}")

    def _print_summary(self, result: UploadResult):
        print("\n" + "=" * 60)
        print("UPLOAD SUMMARY")
        print("=" * 60)
        print(f"Total players: {result.total_records}")
        print(f"Total batches: {result.total_batches}")
        print(f"✓ Successful: {result.successful_batches} batches")
        print(f"✗ Failed: {result.failed_batches} batches")
        if result.failed_batches:
            print(f"Failed batch numbers: {', '.join(str(n) for n in result.failed_batch_numbers)}")
        if result.success:
            print("\n✓ ALL BATCHES UPLOADED SUCCESSFULLY!")
        else:
            print(f"\n⚠️  Upload completed with {result.failed_batches} failed batch(es)")
        print("=" * 60)
