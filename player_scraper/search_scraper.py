"""
Position x birth-year sweep over the player search pages.
Writes every found profile to output.csv; resumes from the search status.
"""

import time
from typing import Callable, List, Optional

from .config import ScraperConfig
from .incremental_writer import IncrementalWriter, read_csv_ids
from .models import FetchResult, PendingRecord
from .profile_scraper import ProfileScraper
from .record_fetcher import RecordFetcher, fetch_all
from .resilience.deduplicator import Deduplicator
from .resilience.failure_queue import FailureQueue
from .resilience.retry_handler import RetryHandler
from .resilience.status_store import SearchStatusStore
from .site_client import SiteClient
from .stats_api import StatsApiClient
from .utils import absolute_url, extract_player_id, extract_player_slug, player_url

SEARCH_PATH = "/search/player?position={position}&dob={year}&nation=swe&page={page}"
MAX_CONSECUTIVE_PAGE_ERRORS = 3


def search_url(base_url: str, position: str, year: int, page: int) -> str:
    return base_url.rstrip('/') + SEARCH_PATH.format(position=position, year=year, page=page)


def parse_search_results(document, base_url: str) -> List[PendingRecord]:
    """Player links of a search results page; other links in the name cells are ignored."""
    records = []
    for link in document.select("td.name a"):
        href = link.get('href')
        if not href:
            continue
        url = absolute_url(href, base_url)
        player_id = extract_player_id(url)
        if player_id is None:
            continue
        slug = extract_player_slug(url) or ""
        records.append(PendingRecord(id=player_id, source_url=player_url(player_id, slug, base_url),
                                     slug=slug))
    return records


class SearchScraper:
    """Sweeps search pages for each configured position and birth year."""

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        client: Optional[SiteClient] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config or ScraperConfig()
        self.paths = self.config.paths
        self.client = client or SiteClient(self.config)
        self.search_status = SearchStatusStore(self.paths.search_status_file)
        self.failures = FailureQueue(self.paths.failed_players_file)
        self.retry_handler = RetryHandler(config=self.config.retry, sleep=sleep)
        self.retry_handler.set_failure_queue(self.failures)

        stats = StatsApiClient(self.client, self.config.stats_api_url, self.config.image_base_url)
        self.fetcher = RecordFetcher(self.client.fetch_document, ProfileScraper(stats), self.retry_handler)
        self.writer = IncrementalWriter.for_search(self.paths)
        self._stopped = False
        self.saved = 0
        self.failed = 0

    def stop(self):
        print("\nStopping search sweep gracefully...")
        self._stopped = True

    def run(self) -> bool:
        """
        Sweep every position and year.

        Raises:
            ConfigurationError: if the credential pair is missing

        Returns:
            True if the sweep finished without aborting
        """
        self.config.credentials.require_login()
        self.client.authenticate()

        known = read_csv_ids(self.paths.output_csv)
        if known:
            print(f"  [INFO] Loaded {len(known)} already scraped player IDs from {self.paths.output_csv}")
        dedup = Deduplicator(preseeded=known)

        try:
            for position in self.config.positions:
                for year in range(self.config.year_from, self.config.year_to + 1):
                    if self._stopped:
                        return False
                    if not self.sweep(position, year, dedup):
                        return False
        finally:
            self.client.close()

        print("\n" + "=" * 60)
        print("SEARCH SWEEP COMPLETE")
        print("=" * 60)
        print(f"Saved: {self.saved}, failed: {self.failed}")
        return True

    def sweep(self, position: str, year: int, dedup: Deduplicator) -> bool:
        """Walk the search pages of one position/year until a page lists nobody."""
        key = f"{position}_{year}"
        page = self.search_status.start_page(key)
        if page > 1:
            print(f"  🔄 Resuming from page {page} for {position.upper()} - {year}")
        else:
            print(f"  🆕 Starting scraping for position: {position.upper()} (year: {year}) from page: 1")
        self.search_status.update(key, page)

        page_errors = 0
        while not self._stopped:
            url = search_url(self.config.base_url, position, year, page)
            print(f"  📄 Page {page} | Position: {position.upper()} | Year: {year}")

            ok, result = self.retry_handler.execute_with_retry(self.client.fetch_document, url)
            if not ok:
                page_errors += 1
                print(f"  ✗ Error fetching page {page} for {key}: {result}")
                if page_errors >= MAX_CONSECUTIVE_PAGE_ERRORS:
                    print(f"  ✗ {page_errors} consecutive page errors, aborting sweep")
                    return False
                page += 1
                continue
            page_errors = 0

            found = parse_search_results(result, self.config.base_url)
            if not found:
                print(f"  [OK] No more players on page {page}. Year {year} completed!")
                return True

            print(f"  👥 Found {len(found)} players on page {page}")
            pending = []
            for record in found:
                if dedup.claim(record.id):
                    pending.append(record)
                else:
                    print(f"    [SKIP] Skipping already scraped player: {record.id}")

            fetch_all(self.fetcher, pending, self.config.workers,
                      lambda r: self._handle_result(r, position))

            page += 1
            self.search_status.update(key, page)
            print(f"  💾 Progress saved: Page {page} (Position: {position.upper()}, Year: {year})")
        return False

    def _handle_result(self, result: FetchResult, position: str):
        pending = result.pending
        if result.ok and self.writer.append_record(result.record, pending.id):
            self.saved += 1
            print(f"    [OK] Included: {pending.id} | {result.record.get('name', '')} "
                  f"| DOB: {result.record.get('birthdate', '')}")
            return
        self.failed += 1
        reason = result.reason or "failed to write output.csv"
        print(f"    ✗ Failed to scrape player {pending.id}: {reason}")
        self.retry_handler.record_permanent_failure(pending.id, pending.slug, position, reason)
