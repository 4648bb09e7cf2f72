"""
Main orchestrator for player extraction.
Coordinates the games walker, team visits, profile fetches and persistence.
"""

import time
from datetime import date, datetime
from pathlib import Path
from typing import Callable, List, Optional

from .config import ScraperConfig
from .errors import FetchError
from .incremental_writer import IncrementalWriter
from .models import ExtractionResult, FetchResult, PendingRecord
from .page_walker import ListingPage, PageWalker
from .profile_scraper import ProfileScraper
from .record_fetcher import RecordFetcher, fetch_all
from .resilience.deduplicator import Deduplicator
from .resilience.failure_queue import FailureQueue
from .resilience.retry_handler import RetryHandler
from .resilience.status_store import StatusStore
from .site_client import SiteClient
from .stats_api import StatsApiClient
from .team_roster import TeamRoster
from .utils import player_url, target_date


def append_line(path: Path, line: str):
    """Append one line to a discovery file; failures are reported, not raised."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'a', encoding='utf-8') as f:
            f.write(line + '\n')
    except OSError as e:
        print(f"  ✗ Failed to append to {path}: {e}")


class ExtractionController:
    """Main orchestrator that coordinates all extraction components."""

    VALID_MODES = ['extract', 'retry-failed']

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        client: Optional[SiteClient] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize controller with configuration.

        Args:
            config: ScraperConfig instance, uses defaults if None
            client: Session context, built from config if None
            sleep: Sleep function, replaced in tests
        """
        self.config = config or ScraperConfig()
        self.paths = self.config.paths
        self._sleep = sleep
        self._stopped = False
        self._started_at: Optional[str] = None

        self.client = client or SiteClient(self.config)
        self.status = StatusStore(self.paths.status_file, self.config.status_save_interval)
        self.failures = FailureQueue(self.paths.failed_players_file, self.status)

        self.retry_handler = RetryHandler(config=self.config.retry, sleep=sleep)
        self.retry_handler.set_failure_queue(self.failures)

        stats = StatsApiClient(self.client, self.config.stats_api_url, self.config.image_base_url)
        self.fetcher = RecordFetcher(self.client.fetch_document, ProfileScraper(stats), self.retry_handler)
        self.roster = TeamRoster(self.client.fetch_document, self.config.nation_flag, self.config.base_url)
        self.writer = IncrementalWriter.for_extraction(
            self.paths, self.status, self.config.upload.collection_key
        )

        self._completed = 0
        self._failed = 0
        self._skipped = 0
        self._discovered = 0
        self._containers = 0
        self._failed_containers: List[str] = []
        self._failed_records: List[dict] = []

    def run(self, mode: str = "extract", resume: bool = True,
            today: Optional[date] = None) -> ExtractionResult:
        """
        Run extraction in specified mode.

        Args:
            mode: "extract" (games walk + retry pass) or "retry-failed"
            resume: Whether to resume from the saved status document
            today: Reference date, yesterday's games are collected

        Returns:
            ExtractionResult with statistics and status
        """
        if mode not in self.VALID_MODES:
            raise ValueError(f"Invalid mode: {mode}. Must be one of {self.VALID_MODES}")

        self._stopped = False
        self._started_at = datetime.now().isoformat()
        self._failed_containers = []
        print(f"Starting extraction in '{mode}' mode...")

        if not resume:
            self.status.reset()
        self.status.load()

        try:
            if mode == "extract":
                return self._run_extraction(today)
            return self._run_retry_failed()
        except FetchError as e:
            print(f"✗ Extraction failed: {e}")
            return self._create_result(success=False, mode=mode)
        finally:
            self.status.save()
            self.client.close()

    def _run_extraction(self, today: Optional[date]) -> ExtractionResult:
        self._clear_marker()
        self.client.authenticate()

        target = target_date(today)
        print("\n" + "=" * 60)
        print(f"EXTRACTING PLAYERS FROM GAMES ON {target.isoformat()}")
        print("=" * 60)

        dedup = Deduplicator(self.status)
        walker = PageWalker(
            self._fetch_listing,
            self.config.games_url,
            target,
            base_url=self.config.base_url,
            max_pages=self.config.max_pages,
        )

        for page in walker.walk():
            self._process_page(page, dedup)
            if self._stopped:
                print("Extraction stopped by user")
                return self._create_result(success=False, mode="extract", pages=walker.pages_walked)

        self._retry_queued()
        self.status.save()
        if self._failed_containers:
            print(f"✗ {len(self._failed_containers)} team page(s) could not be fetched, "
                  f"extraction marker withheld:")
            for team_url in self._failed_containers:
                print(f"  - {team_url}")
            return self._create_result(success=False, mode="extract", pages=walker.pages_walked)
        self._write_marker()

        print("\n" + "=" * 60)
        print("EXTRACTION COMPLETE")
        print("=" * 60)
        stats = self.status.get_stats()
        print(f"Total teams processed: {stats['processed_teams']}")
        print(f"Total players scraped: {stats['scraped_players']}")
        print(f"This run: {self._completed} saved, {self._failed} failed, {self._skipped} skipped")
        return self._create_result(success=True, mode="extract", pages=walker.pages_walked)

    def _fetch_listing(self, url: str):
        """
        Fetch a games listing page, retrying transient failures.

        Raises:
            FetchError: once the retries are exhausted
        """
        ok, result = self.retry_handler.execute_with_retry(self.client.fetch_document, url)
        if not ok:
            raise result
        return result

    def _process_page(self, page: ListingPage, dedup: Deduplicator):
        """
        Visit the page's teams, fetch their new players, then move the
        resume marker. Teams are marked done only after their fetches ended.
        """
        visited: List[str] = []
        pending: List[PendingRecord] = []

        for team_url in page.team_urls:
            if self._stopped:
                break
            if self.status.is_container_done(team_url):
                print(f"  ⏭️  Skipping already processed team: {team_url}")
                continue

            self.status.set_current_container(team_url)
            append_line(self.paths.teams_file, team_url)
            ok, found = self.retry_handler.execute_with_retry(self.roster.visit, team_url)
            if not ok:
                print(f"  ✗ Error visiting team page {team_url}: {found}")
                self._failed_containers.append(team_url)
                self.status.set_current_container(None)
                continue
            visited.append(team_url)

            for record in found:
                if not dedup.claim(record.id):
                    self._skipped += 1
                    continue
                pending.append(record)
                self._discovered += 1
                append_line(self.paths.urls_file, record.source_url)
                append_line(self.paths.ids_file, f"{record.id},{record.slug},{record.source_url}")

        if pending:
            print(f"\nFetching {len(pending)} profiles with {self.config.workers} workers...")
        fetch_all(self.fetcher, pending, self.config.workers,
                  lambda result: self._handle_result(result, context="games"))

        for team_url in visited:
            self.status.mark_container_done(team_url)
            self._containers += 1
        self.status.set_current_page(page.number)

    def _handle_result(self, result: FetchResult, context: str):
        pending = result.pending
        if result.ok and self.writer.append_record(result.record, pending.id):
            self._completed += 1
            print(f"  ✓ Saved: {pending.id} ({result.record.get('name', '')})")
            return

        reason = result.reason or "all output sinks failed"
        self._failed += 1
        self._failed_records.append({'id': pending.id, 'url': pending.source_url, 'reason': reason})
        self.retry_handler.record_permanent_failure(pending.id, pending.slug, context, reason)
        print(f"  ✗ Failed: {pending.id} ({result.outcome.value}): {reason}")

    def _run_retry_failed(self) -> ExtractionResult:
        self.client.authenticate()
        self._retry_queued()
        self.status.save()
        return self._create_result(success=True, mode="retry-failed")

    def _retry_queued(self):
        """
        Refetch every queued failure once, keeping only those that fail again.
        """
        records, malformed = self.failures.read()
        if not records and not malformed:
            print(f"\n[INFO] No {self.failures.path.name} found, skipping retry.")
            return

        print("\n" + "=" * 60)
        print("RETRYING FAILED PLAYERS")
        print("=" * 60)
        print(f"Found {len(records)} failed player(s) to retry...")

        survivors = list(malformed)
        for line in malformed:
            print(f"⚠️  Keeping malformed line: {line}")

        retried_ok = 0
        for failure in records:
            if self._stopped:
                survivors.append(failure.to_line())
                continue
            if self.status.is_record_done(failure.record_id):
                print(f"  ⏭️  Player {failure.record_id} already scraped, skipping retry.")
                retried_ok += 1
                continue

            url = player_url(failure.record_id, failure.secondary_key, self.config.base_url)
            print(f"  🔄 Retrying player: {failure.record_id} ({failure.secondary_key})")
            self._sleep(1.0)
            result = self.fetcher.fetch(
                PendingRecord(id=failure.record_id, source_url=url, slug=failure.secondary_key)
            )
            if result.ok and self.writer.append_record(result.record, failure.record_id):
                retried_ok += 1
                self._completed += 1
                print(f"    ✓ Retry successful for player {failure.record_id}")
            else:
                print(f"    ✗ Retry failed for {failure.record_id}: {result.reason}")
                survivors.append(failure.to_line())

        self.failures.rewrite(survivors)
        print("\n[RETRY SUMMARY]")
        print(f"  ✓ Successful retries: {retried_ok}")
        print(f"  ✗ Still failing: {len(survivors)}")
        if not survivors:
            print(f"  All failures resolved! Deleted {self.failures.path.name}")

    def _clear_marker(self):
        marker = self.paths.extraction_marker
        if marker.exists():
            marker.unlink()

    def _write_marker(self):
        try:
            self.paths.extraction_marker.write_text(datetime.now().isoformat(), encoding='utf-8')
            print(f"✓ Extraction marker written: {self.paths.extraction_marker}")
        except OSError as e:
            print(f"⚠️  Could not write extraction marker: {e}")

    def stop(self):
        """Gracefully stop extraction, preserving state."""
        print("\nStopping extraction gracefully...")
        self._stopped = True
        print("Saving progress state...")
        if self.status.save():
            print("✓ Progress state saved")

    def get_status(self) -> dict:
        return {
            'progress': self.status.get_stats(),
            'rate_limiter': self.client.rate_limiter.get_stats(),
            'retry': self.retry_handler.get_stats(),
            'stopped': self._stopped
        }

    def _create_result(self, success: bool, mode: str, pages: int = 0) -> ExtractionResult:
        """Create ExtractionResult with calculated fields."""
        completed_at = datetime.now().isoformat()
        duration = 0.0
        if self._started_at:
            start = datetime.fromisoformat(self._started_at)
            duration = (datetime.fromisoformat(completed_at) - start).total_seconds()

        return ExtractionResult(
            success=success,
            mode=mode,
            started_at=self._started_at or completed_at,
            completed_at=completed_at,
            total_discovered=self._discovered,
            total_completed=self._completed,
            total_skipped=self._skipped,
            total_failed=self._failed,
            pages_walked=pages,
            containers_visited=self._containers,
            failed_records=list(self._failed_records),
            duration_seconds=duration
        )
