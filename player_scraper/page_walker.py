"""
Games listing walker.
Finds the block of games played on the target date and follows pagination
while that block continues onto the next page.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Iterator, List, Optional

from bs4 import BeautifulSoup, Tag

from .config import SITE_BASE_URL
from .utils import absolute_url, display_date, parse_header_date


HEADER_SELECTOR = "tr.title:has(td[data-action=transform-to-local-date])"


class WalkState(Enum):
    SEEKING_WINDOW_START = "seeking_window_start"
    COLLECTING = "collecting"
    DONE = "done"


@dataclass
class ListingPage:
    """Game rows of the target date found on one listing page."""
    number: int
    url: str
    rows: List[Tag] = field(default_factory=list)
    continuation: bool = False
    team_urls: List[str] = field(default_factory=list)


def is_header_row(row: Tag) -> bool:
    """A date header: title row or a row carrying a date cell."""
    return ('title' in (row.get('class') or [])
            or row.select_one("td[data-date-type]") is not None
            or row.has_attr('data-date'))


def is_game_row(row: Tag) -> bool:
    return len(row.select("td.team")) >= 2 and row.select_one("td.result") is not None


def match_target_header(headers: List[Tag], target: date) -> Optional[Tag]:
    """
    First header for the target date.

    The ISO data-date attribute is compared first; the visible text
    (e.g. "February 2") is the fallback when it is missing or unparsable.
    """
    display = display_date(target)
    for header in headers:
        cell = header.select_one("td[data-date]")
        if cell is not None:
            if parse_header_date(cell.get('data-date', '')) == target:
                return header
            if display in cell.get_text(' ', strip=True):
                return header
        elif display in header.get_text(' ', strip=True):
            return header
    return None


def rows_after_header(header: Tag) -> List[Tag]:
    """Game rows following header, up to the next date header."""
    rows = []
    for sibling in header.find_next_siblings():
        if is_header_row(sibling):
            break
        if is_game_row(sibling):
            rows.append(sibling)
    return rows


def rows_from_top(document: BeautifulSoup) -> List[Tag]:
    """Game rows from the top of the listing table, up to the first date header."""
    table = document.select_one("table.table")
    if table is None:
        return []
    rows = []
    for tr in table.select("tbody > tr"):
        if is_header_row(tr):
            break
        if is_game_row(tr):
            rows.append(tr)
    return rows


def next_page_url(document: BeautifulSoup, base_url: str = SITE_BASE_URL) -> Optional[str]:
    for link in document.select(".table-pagination a"):
        if 'next' in link.get_text().lower():
            href = link.get('href')
            return absolute_url(href, base_url) if href else None
    return None


def team_urls_for_rows(rows: List[Tag], base_url: str = SITE_BASE_URL) -> List[str]:
    """Home and away team URLs of each game row, first-seen order, no repeats."""
    urls = []
    for row in rows:
        for cell in row.select("td.team")[:2]:
            link = cell.select_one("a:nth-of-type(2)")
            href = link.get('href') if link is not None else None
            if not href:
                continue
            url = absolute_url(href, base_url)
            if url not in urls:
                urls.append(url)
    return urls


class PageWalker:
    """
    State machine over the paginated games listing.

    walk() is a generator: the caller finishes a page (team visits, profile
    fetches, resume marker) before the next page is requested.
    """

    def __init__(
        self,
        fetch_document: Callable[[str], BeautifulSoup],
        start_url: str,
        target: date,
        base_url: str = SITE_BASE_URL,
        max_pages: int = 20
    ):
        """
        Args:
            fetch_document: Returns the parsed page for a URL
            start_url: First listing page
            target: Date whose games are collected
            base_url: Site base for relative links
            max_pages: Hard cap on pages fetched
        """
        self.fetch_document = fetch_document
        self.start_url = start_url
        self.target = target
        self.base_url = base_url
        self.max_pages = max_pages
        self.state = WalkState.SEEKING_WINDOW_START
        self.pages_walked = 0

    def walk(self) -> Iterator[ListingPage]:
        url: Optional[str] = self.start_url
        window_seen = False
        display = display_date(self.target)

        while url and self.state is not WalkState.DONE:
            if self.pages_walked >= self.max_pages:
                print(f"⚠️  Page cap of {self.max_pages} reached, stopping pagination")
                break
            self.pages_walked += 1
            number = self.pages_walked
            page_url = url
            document = self.fetch_document(page_url)
            headers = document.select(HEADER_SELECTOR)

            continuation = False
            if self.state is WalkState.SEEKING_WINDOW_START:
                if not headers:
                    print(f"No date header rows found on games page: {url}")
                    self.state = WalkState.DONE
                    break
                header = match_target_header(headers, self.target)
                if header is None:
                    header = headers[-1]
                    print(f"No exact match for {display}; falling back to last date header on page: "
                          f"{header.get_text(' ', strip=True)}")
                rows = rows_after_header(header)
            else:
                header = match_target_header(headers, self.target) if headers else None
                if header is not None:
                    rows = rows_after_header(header)
                else:
                    continuation = True
                    rows = rows_from_top(document)

            if not rows:
                if window_seen:
                    print(f"No continuation game rows found on page {number}. Ending search.")
                else:
                    print(f"No game rows for {display} on page {number}.")
                self.state = WalkState.DONE
                break

            window_seen = True
            self.state = WalkState.COLLECTING
            label = "continuation game rows" if continuation else "game rows"
            print(f"Page {number} ({url}) found {len(rows)} {label} for {display}.")

            url = self._next_url(document, rows[-1], display)
            if url is None:
                self.state = WalkState.DONE

            yield ListingPage(
                number=number,
                url=page_url,
                rows=rows,
                continuation=continuation,
                team_urls=team_urls_for_rows(rows, self.base_url),
            )

        self.state = WalkState.DONE

    def _next_url(self, document: BeautifulSoup, last_row: Tag, display: str) -> Optional[str]:
        """Next listing URL when the window may continue there, else None."""
        sibling = last_row.find_next_sibling()
        if sibling is not None:
            if is_header_row(sibling):
                print(f"Detected next date header after {display} games. Stopping pagination.")
            else:
                print(f"Completed collecting all {display} games.")
            return None
        next_url = next_page_url(document, self.base_url)
        if next_url:
            print(f"Continuing to next page ({display} games may continue): {next_url}")
        else:
            print(f"Completed collecting all {display} games.")
        return next_url
