from datetime import date

import pytest

from conftest import soup
from player_scraper.page_walker import PageWalker, WalkState, match_target_header, HEADER_SELECTOR

BASE = "https://site.test"
TARGET = date(2026, 2, 2)


def header(iso, text):
    iso_attr = f' data-date="{iso}"' if iso else ""
    return (f'<tr class="title"><td colspan="3" data-action="transform-to-local-date"{iso_attr}>'
            f'{text}</td></tr>')


def game(home, away):
    def team(slug):
        return (f'<td class="team"><a href="/team/{slug}/logo"><img alt="logo"></a>'
                f'<a href="/team/{slug}/roster">{slug}</a></td>')
    return f'<tr>{team(home)}<td class="result">3 - 2</td>{team(away)}</tr>'


def listing(*rows, next_href=None):
    pagination = ""
    if next_href:
        pagination = f'<div class="table-pagination"><a href="/games/x">1</a><a href="{next_href}">Next</a></div>'
    return f'<table class="table"><tbody>{"".join(rows)}</tbody></table>{pagination}'


def walker_over(pages, max_pages=20):
    requested = []

    def fetch(url):
        requested.append(url)
        return soup(pages[url])

    walker = PageWalker(fetch, f"{BASE}/games", TARGET, base_url=BASE, max_pages=max_pages)
    return walker, requested


def test_collects_only_rows_of_the_target_date():
    pages = {f"{BASE}/games": listing(
        header("2026-02-03T00:00:00Z", "Tuesday, February 3"),
        game("10", "11"),
        header("2026-02-02T00:00:00Z", "Monday, February 2"),
        game("1", "2"),
        game("3", "4"),
        header("2026-02-01T00:00:00Z", "Sunday, February 1"),
        game("20", "21"),
        next_href="/games?page=2",
    )}
    walker, requested = walker_over(pages)
    result = list(walker.walk())

    assert len(result) == 1
    assert result[0].team_urls == [f"{BASE}/team/{n}/roster" for n in ("1", "2", "3", "4")]
    assert requested == [f"{BASE}/games"]
    assert walker.state is WalkState.DONE


def test_window_continues_onto_next_page():
    pages = {
        f"{BASE}/games": listing(
            header("2026-02-03T00:00:00Z", "February 3"),
            game("10", "11"),
            header("2026-02-02T00:00:00Z", "February 2"),
            game("1", "2"),
            next_href="/games?page=2",
        ),
        f"{BASE}/games?page=2": listing(
            game("3", "4"),
            game("5", "6"),
            header("2026-02-01T00:00:00Z", "February 1"),
            game("20", "21"),
            next_href="/games?page=3",
        ),
    }
    walker, requested = walker_over(pages)
    result = list(walker.walk())

    assert [p.number for p in result] == [1, 2]
    assert result[1].continuation is True
    assert result[1].url == f"{BASE}/games?page=2"
    assert result[1].team_urls == [f"{BASE}/team/{n}/roster" for n in ("3", "4", "5", "6")]
    assert f"{BASE}/games?page=3" not in requested


def test_falls_back_to_last_header_without_exact_match():
    pages = {f"{BASE}/games": listing(
        header("2026-02-05T00:00:00Z", "February 5"),
        game("50", "51"),
        header("2026-02-04T00:00:00Z", "February 4"),
        game("40", "41"),
    )}
    walker, _ = walker_over(pages)
    result = list(walker.walk())
    assert result[0].team_urls == [f"{BASE}/team/40/roster", f"{BASE}/team/41/roster"]


def test_display_text_matches_when_structured_date_is_missing():
    document = soup(listing(
        header(None, "Sunday, February 1"),
        game("1", "2"),
        header(None, "Monday, February 2"),
        game("3", "4"),
    ))
    headers = document.select(HEADER_SELECTOR)
    assert match_target_header(headers, TARGET) is headers[1]


def test_page_cap_stops_pagination():
    pages = {f"{BASE}/games": listing(
        header("2026-02-02T00:00:00Z", "February 2"),
        game("0", "1"),
        next_href="/games?page=2",
    )}
    for n in range(2, 10):
        pages[f"{BASE}/games?page={n}"] = listing(game(f"{n}a", f"{n}b"),
                                                  next_href=f"/games?page={n + 1}")
    walker, requested = walker_over(pages, max_pages=3)
    result = list(walker.walk())

    assert len(result) == 3
    assert len(requested) == 3
    assert walker.pages_walked == 3


def test_no_header_rows_ends_walk():
    walker, _ = walker_over({f"{BASE}/games": listing(game("1", "2"))})
    assert list(walker.walk()) == []
    assert walker.state is WalkState.DONE


@pytest.mark.parametrize("rows", [
    [header("2026-02-02T00:00:00Z", "February 2")],
    [header("2026-02-02T00:00:00Z", "February 2"), header("2026-02-01T00:00:00Z", "February 1")],
])
def test_target_header_without_games_yields_nothing(rows):
    walker, _ = walker_over({f"{BASE}/games": listing(*rows)})
    assert list(walker.walk()) == []
