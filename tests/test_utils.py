from datetime import date

import pytest

from player_scraper.utils import (
    absolute_url,
    alternate_player_url,
    display_date,
    extract_player_id,
    extract_player_slug,
    parse_header_date,
    player_url,
    target_date,
)


@pytest.mark.parametrize("url, expected", [
    ("https://www.eliteprospects.com/player/4230/alexander-ovechkin", "4230"),
    ("/player/77", "77"),
    ("https://www.eliteprospects.com/player.php?player=123", "123"),
    ("https://x.test/stats?foo=1&player=99", "99"),
    ("https://www.eliteprospects.com/team/1/x", None),
    ("", None),
])
def test_extract_player_id(url, expected):
    assert extract_player_id(url) == expected


def test_extract_player_slug():
    assert extract_player_slug("/player/4230/alexander-ovechkin?sort=season") == "alexander-ovechkin"
    assert extract_player_slug("/player/4230") is None


def test_urls():
    assert absolute_url("/team/1", "https://site.test/") == "https://site.test/team/1"
    assert absolute_url("team/1", "https://site.test") == "https://site.test/team/1"
    assert absolute_url("https://other.test/a") == "https://other.test/a"
    assert player_url("5", "slug", "https://site.test") == "https://site.test/player/5/slug"
    assert player_url("5", "", "https://site.test") == "https://site.test/player/5"


def test_alternate_url_only_for_bare_player_urls():
    assert alternate_player_url("https://site.test/player/5", "5") == "https://site.test/player/5/5"
    assert alternate_player_url("https://site.test/player/5/slug", "5") is None


def test_dates():
    assert target_date(date(2026, 3, 1)) == date(2026, 2, 28)
    assert display_date(date(2026, 2, 2)) == "February 2"
    assert parse_header_date("2026-02-02T19:00:00Z") == date(2026, 2, 2)
    assert parse_header_date("yesterday") is None
