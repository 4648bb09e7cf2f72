from concurrent.futures import ThreadPoolExecutor

from player_scraper.resilience.deduplicator import Deduplicator
from player_scraper.resilience.status_store import StatusStore


def test_ids_done_in_status_are_seen(tmp_path):
    status = StatusStore(tmp_path / "status.json")
    status.load()
    status.mark_record_done("100")

    dedup = Deduplicator(status)
    assert dedup.seen("100")
    assert not dedup.claim("100")
    assert dedup.claim("101")
    assert dedup.seen("101")


def test_same_player_on_two_teams_is_claimed_once():
    dedup = Deduplicator()
    assert dedup.claim("7")
    assert not dedup.claim("7")
    assert len(dedup) == 1


def test_mark_seen_and_preseeded():
    dedup = Deduplicator(preseeded=["1", "2"])
    dedup.mark_seen("3")
    assert all(dedup.seen(i) for i in ("1", "2", "3"))
    assert not dedup.seen("4")


def test_concurrent_claims_have_one_winner():
    dedup = Deduplicator()
    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(lambda _: dedup.claim("same"), range(50)))
    assert results.count(True) == 1
