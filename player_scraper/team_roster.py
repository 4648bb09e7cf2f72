"""
Team roster visiting: finds players of one nationality on a team page.
"""

from typing import Callable, List

from bs4 import BeautifulSoup

from .config import SITE_BASE_URL
from .models import PendingRecord
from .utils import absolute_url, extract_player_id, extract_player_slug


class TeamRoster:
    """Collects PendingRecords for roster rows that carry the nation flag."""

    def __init__(
        self,
        fetch_document: Callable[[str], BeautifulSoup],
        nation_flag: str = "Sweden flag",
        base_url: str = SITE_BASE_URL
    ):
        self.fetch_document = fetch_document
        self.nation_flag = nation_flag
        self.base_url = base_url

    def players_in(self, document: BeautifulSoup) -> List[PendingRecord]:
        """Players on a parsed team page, first occurrence of each id only."""
        records = []
        ids = set()
        rows = document.select(f'tr:has(img[alt="{self.nation_flag}"])')
        for row in rows:
            link = (row.select_one("a.TextLink_link__RhSiC[href^='/player/']")
                    or row.select_one("a[href^='/player/']"))
            if link is None:
                continue
            url = absolute_url(link['href'], self.base_url)
            player_id = extract_player_id(url)
            if player_id is None:
                print(f"    Player link without id: {link.get_text(strip=True)} -> {url}")
                continue
            if player_id in ids:
                continue
            ids.add(player_id)
            slug = extract_player_slug(url) or link.get_text(strip=True)
            records.append(PendingRecord(id=player_id, source_url=url, slug=slug))
        return records

    def visit(self, team_url: str) -> List[PendingRecord]:
        """
        Fetch a team page and return its matching players.

        Raises:
            FetchError: if the team page cannot be fetched
        """
        print(f"Visiting team: {team_url}")
        document = self.fetch_document(team_url)
        records = self.players_in(document)
        print(f"  {self.nation_flag} rows found: {len(records)}")
        return records
