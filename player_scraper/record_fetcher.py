"""
Per-record profile fetching with bounded retry, plus the per-page worker pool.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, List

from bs4 import BeautifulSoup

from .errors import FetchError
from .models import FetchResult, PendingRecord
from .profile_scraper import ProfileScraper
from .resilience.retry_handler import RetryHandler
from .utils import alternate_player_url


class RecordFetcher:
    """
    Turns a PendingRecord into an export record or an explicit failure.

    Never raises for a single record: every failure becomes a FetchResult
    that the caller inspects.
    """

    def __init__(
        self,
        fetch_document: Callable[[str], BeautifulSoup],
        scraper: ProfileScraper,
        retry: RetryHandler
    ):
        self.fetch_document = fetch_document
        self.scraper = scraper
        self.retry = retry

    def _load(self, pending: PendingRecord):
        """Fetch the page, with the one-shot alternate URL on a bare-URL 404."""
        ok, result = self.retry.execute_with_retry(self.fetch_document, pending.source_url)
        if ok:
            return True, result

        error: FetchError = result
        alternate = alternate_player_url(pending.source_url, pending.id) if error.not_found else None
        if alternate is None:
            return False, error

        print(f"  Attempting fallback URL: {alternate}")
        try:
            return True, self.fetch_document(alternate)
        except FetchError as e:
            print(f"  Fallback URL failed: {e}")
            return False, e

    def fetch(self, pending: PendingRecord) -> FetchResult:
        ok, result = self._load(pending)
        if not ok:
            if result.transient:
                return FetchResult.retryable(pending, str(result))
            return FetchResult.terminal(pending, str(result))

        try:
            record = self.scraper.scrape(result, pending.id, pending.source_url)
        except Exception as e:
            return FetchResult.terminal(pending, f"Failed to parse profile: {e}")
        return FetchResult.success(pending, record)


def fetch_all(
    fetcher: RecordFetcher,
    pending: Iterable[PendingRecord],
    workers: int,
    on_result: Callable[[FetchResult], None]
) -> List[FetchResult]:
    """
    Fetch records on a bounded pool and wait for all of them.

    on_result runs in the calling thread as each fetch completes, so result
    handling (persisting, status marks) is never concurrent.

    Returns:
        All results, in completion order
    """
    pending = list(pending)
    if not pending:
        return []

    results = []
    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        futures = {executor.submit(fetcher.fetch, record): record for record in pending}
        for future in as_completed(futures):
            record = futures[future]
            try:
                result = future.result()
            except Exception as e:
                result = FetchResult.terminal(record, f"Unexpected error: {e}")
            results.append(result)
            on_result(result)
    return results
