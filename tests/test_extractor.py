import json
from datetime import date

import pytest

from conftest import FakeSiteClient
from player_scraper.errors import FetchError
from player_scraper.extractor import ExtractionController

BASE = "https://site.test"
TODAY = date(2026, 2, 3)


def team_cell(slug):
    return (f'<td class="team"><a href="/team/{slug}/logo"><img alt="logo"></a>'
            f'<a href="/team/{slug}/roster">{slug}</a></td>')


GAMES = (
    '<table class="table"><tbody>'
    '<tr class="title"><td data-action="transform-to-local-date" data-date="2026-02-02T18:00:00Z">'
    'Monday, February 2</td></tr>'
    f'<tr>{team_cell("t1")}<td class="result">4 - 1</td>{team_cell("t2")}</tr>'
    '</tbody></table>'
)


def roster(*players):
    rows = "".join(
        f'<tr><td><img alt="{flag}"></td><td><a href="/player/{pid}/p{pid}">P{pid}</a></td></tr>'
        for pid, flag in players
    )
    return f"<table>{rows}</table>"


def site_pages():
    return {
        f"{BASE}/games": GAMES,
        f"{BASE}/team/t1/roster": roster(("1", "Sweden flag"), ("2", "Sweden flag"), ("3", "Finland flag")),
        f"{BASE}/team/t2/roster": roster(("2", "Sweden flag"), ("4", "Sweden flag")),
        f"{BASE}/player/1/p1": "<h1>Player One</h1>",
        f"{BASE}/player/2/p2": "<h1>Player Two</h1>",
    }


@pytest.fixture
def client():
    return FakeSiteClient(site_pages())


def test_extraction_persists_players_and_queues_failures(config, client, sleeps):
    controller = ExtractionController(config, client, sleep=sleeps.append)
    result = controller.run("extract", today=TODAY)
    paths = config.paths

    assert result.success
    assert result.total_completed == 2
    assert result.total_failed == 1
    assert result.total_skipped == 1
    assert result.pages_walked == 1
    assert result.containers_visited == 2

    document = json.loads(paths.players_data_json.read_text())
    assert sorted(r['user_id'] for r in document['recentlyUpdatedPlayers']) == [1, 2]
    assert len(paths.profiles_jsonl.read_text().splitlines()) == 2

    status = json.loads(paths.status_file.read_text())
    assert status['processedTeams'] == [f"{BASE}/team/t1/roster", f"{BASE}/team/t2/roster"]
    assert status['scrapedPlayerIds'] == ["1", "2"]
    assert status['currentTeam'] is None

    assert paths.failed_players_file.read_text().startswith("4,p4,games,")
    assert paths.extraction_marker.exists()
    assert paths.teams_file.read_text().splitlines() == [f"{BASE}/team/t1/roster", f"{BASE}/team/t2/roster"]
    assert len(paths.ids_file.read_text().splitlines()) == 3


def test_second_run_skips_done_work_and_resolves_queue(config, client, sleeps):
    ExtractionController(config, client, sleep=sleeps.append).run("extract", today=TODAY)
    client.pages[f"{BASE}/player/4/p4"] = "<h1>Player Four</h1>"
    client.requested.clear()

    result = ExtractionController(config, client, sleep=sleeps.append).run("extract", today=TODAY)

    assert result.success
    assert f"{BASE}/team/t1/roster" not in client.requested
    assert f"{BASE}/player/1/p1" not in client.requested
    assert f"{BASE}/player/4/p4" in client.requested
    assert not config.paths.failed_players_file.exists()
    document = json.loads(config.paths.players_data_json.read_text())
    assert sorted(r['user_id'] for r in document['recentlyUpdatedPlayers']) == [1, 2, 4]


def test_retry_failed_mode_keeps_entries_that_fail_again(config, client, sleeps):
    config.paths.failed_players_file.write_text(
        "1,p1,games,2026-02-02T10:00:00,timeout\n"
        "9,p9,games,2026-02-02T10:00:00,timeout\n"
        ",\n"
    )
    result = ExtractionController(config, client, sleep=sleeps.append).run("retry-failed")

    assert result.success
    assert result.total_completed == 1
    lines = config.paths.failed_players_file.read_text().splitlines()
    assert lines == [",", "9,p9,games,2026-02-02T10:00:00,timeout"]
    assert sleeps.count(1.0) == 2


def test_listing_fetch_error_fails_run_without_marker(config, sleeps):
    client = FakeSiteClient({})
    result = ExtractionController(config, client, sleep=sleeps.append).run("extract", today=TODAY)
    assert not result.success
    assert not config.paths.extraction_marker.exists()
    assert client.closed


def test_no_resume_clears_previous_status(config, client, sleeps):
    ExtractionController(config, client, sleep=sleeps.append).run("extract", today=TODAY)
    client.requested.clear()
    ExtractionController(config, client, sleep=sleeps.append).run("extract", resume=False, today=TODAY)
    assert f"{BASE}/team/t1/roster" in client.requested


def test_invalid_mode(config, client):
    with pytest.raises(ValueError):
        ExtractionController(config, client).run("random")


class FlakyClient(FakeSiteClient):
    """Times out on the first N requests for a URL, then serves it."""

    def __init__(self, pages, timeouts):
        super().__init__(pages)
        self.timeouts = dict(timeouts)

    def fetch_document(self, url):
        if self.timeouts.get(url, 0) > 0:
            self.timeouts[url] -= 1
            self.requested.append(url)
            raise FetchError(f"Timeout for {url}", transient=True, url=url)
        return super().fetch_document(url)


def test_team_page_timeout_is_retried(config, sleeps):
    team = f"{BASE}/team/t2/roster"
    client = FlakyClient(site_pages(), {team: 1})
    result = ExtractionController(config, client, sleep=sleeps.append).run("extract", today=TODAY)

    assert result.success
    assert client.requested.count(team) == 2
    assert f"{BASE}/player/4/p4" in client.requested
    assert team in json.loads(config.paths.status_file.read_text())['processedTeams']
    assert config.paths.extraction_marker.exists()


def test_team_page_that_keeps_failing_withholds_marker(config, sleeps):
    team = f"{BASE}/team/t2/roster"
    client = FlakyClient(site_pages(), {team: 10})
    result = ExtractionController(config, client, sleep=sleeps.append).run("extract", today=TODAY)

    assert not result.success
    assert client.requested.count(team) == config.retry.max_attempts
    assert not config.paths.extraction_marker.exists()
    status = json.loads(config.paths.status_file.read_text())
    assert team not in status['processedTeams']
    assert status['currentTeam'] is None

    client.timeouts.clear()
    client.requested.clear()
    result = ExtractionController(config, client, sleep=sleeps.append).run("extract", today=TODAY)
    assert result.success
    assert team in client.requested
    assert f"{BASE}/team/t1/roster" not in client.requested
    assert config.paths.extraction_marker.exists()


def test_listing_page_timeout_is_retried(config, sleeps):
    client = FlakyClient(site_pages(), {f"{BASE}/games": 1})
    result = ExtractionController(config, client, sleep=sleeps.append).run("extract", today=TODAY)

    assert result.success
    assert result.pages_walked == 1
    assert client.requested.count(f"{BASE}/games") == 2
    assert config.paths.extraction_marker.exists()
