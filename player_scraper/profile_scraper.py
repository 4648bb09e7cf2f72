"""
Player profile extraction for eliteprospects.com.
Parses a profile page into PlayerProfile and maps it to the upload schema.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from .errors import FetchError
from .stats_api import Skill, StatsApiClient
from .utils import PLAYER_ID_PATTERN, extract_player_slug


CSV_COLUMNS = [
    "User ID", "Username", "Name", "Date of Birth", "Age", "Place of Birth",
    "Nation", "Youth Team", "latest_team_position", "latest_team", "seasone",
    "Position", "Height", "Weight", "Shoots", "Contract", "Player Type",
    "Cap Hit", "Cap Hit Image", "NHL Rights", "Drafted", "Highlights",
    "Agency", "Relation", "Image URL", "Skills", "Status",
]

# Family relations kept from the relations block; profile links are ignored
FAMILY_RELATIONS = {
    "Father", "Mother", "Brother", "Sister", "Son", "Daughter",
    "Brothers", "Sisters", "Sons", "Daughters",
    "Grandfather", "Grandmother", "Grandparents",
    "Uncle", "Aunt", "Nephew", "Niece", "Uncles", "Aunts", "Nephews", "Nieces",
    "Cousin", "Cousins", "Kusin",
    "Second Cousin", "Second Cousins", "Second cousin", "Second cousins",
    "Third Cousin", "Third Cousins", "Third cousin", "Third cousins",
    "Twin-brother", "Twin-sister", "Twin brother", "Twin sister", "Twin", "Twins",
    "Great Uncle", "Great Aunt", "Great-Uncle", "Great-Aunt",
    "Great Grandfather", "Great Grandmother", "Great-Grandfather", "Great-Grandmother",
    "Stepfather", "Stepmother", "Stepbrother", "Stepsister",
    "Half-brother", "Half-sister", "Half brother", "Half sister",
    "Father-in-law", "Mother-in-law", "Brother-in-law", "Sister-in-law",
    "Husband", "Wife", "Spouse", "Partner",
}

SEASON_PATTERN = re.compile(r'(\d{2}/\d{2,4}|\d{4}[-/]\d{2,4})')
BR_SPLIT = re.compile(r'<br\s*/?>', re.IGNORECASE)
TAG_PATTERN = re.compile(r'<[^>]*>')


@dataclass
class PlayerProfile:
    """Facts scraped from one player page."""
    user_id: str
    user_name: str = ""
    name: str = ""
    date_of_birth: str = ""
    age: str = ""
    place_of_birth: str = ""
    nation: str = ""
    youth_team: str = ""
    latest_team_position: str = ""
    latest_team: str = ""
    season: str = ""
    position: str = ""
    height: str = ""
    weight: str = ""
    shoots: str = ""
    contract: str = ""
    player_type: List[str] = field(default_factory=list)
    cap_hit: str = ""
    cap_hit_image: str = ""
    nhl_rights: str = ""
    drafted: str = ""
    highlights: List[str] = field(default_factory=list)
    agency: str = ""
    image_url: str = ""
    relation: str = ""
    skills: List[Skill] = field(default_factory=list)
    status: str = ""

    def skills_formatted(self) -> str:
        return "; ".join(skill.formatted() for skill in self.skills)


def _clean(text: Optional[str]) -> str:
    return re.sub(r'\s+', ' ', text or '').strip()


class FactsList:
    """Label -> value lookup over the #player-facts dt/dd list."""

    def __init__(self, document: BeautifulSoup):
        self._elements: Dict[str, Tag] = {}
        for dt in document.select("#player-facts dt"):
            label = _clean(dt.get_text(' '))
            if not label:
                continue
            dd = dt.find_next_sibling()
            if dd is None or dd.name != 'dd':
                dd = dt.parent.find('dd') if dt.parent else None
            self._elements[label] = dd if dd is not None else dt

    def element(self, label: str) -> Optional[Tag]:
        return self._elements.get(label)

    def value(self, *labels: str) -> str:
        """Text of the first label present; labels are tried in order."""
        for label in labels:
            el = self._elements.get(label)
            if el is None:
                continue
            if el.name == 'dd':
                text = _clean(el.get_text(' '))
            else:
                text = _clean(el.get_text(' ')).replace(label, '', 1).replace(':', '', 1).strip()
            if text:
                return text
        return ""


def _parse_subtitle(document: BeautifulSoup):
    """Jersey number, latest team and season from the profile subtitle."""
    h2 = document.select_one("h2.Profile_subTitle__MJ_YS") or document.select_one("h2")
    if h2 is None:
        return "", "", ""

    own_text = ''.join(h2.find_all(string=True, recursive=False))
    number = re.search(r'#\d+', own_text)
    jersey = number.group(0) if number else ""

    links = h2.select("a.TextLink_link__RhSiC")
    team = " / ".join(_clean(a.get_text()) for a in links)

    full_text = _clean(h2.get_text(' '))
    season = ""
    if '-' in full_text:
        season = full_text[full_text.rfind('-') + 1:].strip()
    else:
        match = SEASON_PATTERN.search(full_text)
        if match:
            season = match.group(1)
    return jersey, team, season


def _parse_relations(document: BeautifulSoup) -> str:
    block = document.select_one("div.PlayerFacts_description__ujmxU, div.Relations")
    if block is None:
        return ""

    parts = []
    for line in BR_SPLIT.split(block.decode_contents()):
        if 'href="/player' not in line:
            continue
        text = TAG_PATTERN.sub('', line).strip()
        relation_type, sep, _ = text.partition(':')
        relation_type = relation_type.strip()
        if not sep or relation_type not in FAMILY_RELATIONS:
            continue
        for relative_id in PLAYER_ID_PATTERN.findall(line):
            parts.append(f"{relation_type}: {relative_id}")
    return " ; ".join(parts).replace('"', '').strip()


def _parse_tags(facts: FactsList, label: str) -> List[str]:
    el = facts.element(label)
    if el is None:
        return []
    tags = []
    for tag in el.select("div[class*='Tag'], span[class*='Tag'], a[class*='Tag']"):
        text = _clean(tag.get_text())
        if text and text not in tags:
            tags.append(text)
    if not tags:
        value = facts.value(label)
        if value:
            tags = [t for t in re.split(r'\s*[;,]\s*', value) if t]
    return tags


def _parse_highlights(facts: FactsList) -> List[str]:
    el = facts.element("Highlights")
    if el is None:
        return []
    highlights = [
        tip['data-tooltip-content'].strip()
        for tip in el.select("[data-tooltip-content]")
        if tip['data-tooltip-content'].strip()
    ]
    if not highlights:
        # Badge counters render as leading digits ("1 1 2 ...")
        value = re.sub(r'^[0-9](?:\s+[0-9])*\s*', '', facts.value("Highlights")).strip()
        if value:
            highlights.append(value)
    return highlights


def _attr(document: BeautifulSoup, selector: str, attr: str = 'src') -> str:
    el = document.select_one(selector)
    return el.get(attr, '') if el is not None else ''


def parse_profile(document: BeautifulSoup, player_id: str, url: str = "") -> PlayerProfile:
    """
    Extract every fact from a profile page. Makes no network calls.

    Args:
        document: Parsed profile page
        player_id: Numeric player id
        url: Page URL, used for the username slug

    Returns:
        PlayerProfile with empty strings for missing facts
    """
    facts = FactsList(document)
    h1 = document.select_one("h1")
    jersey, team, season = _parse_subtitle(document)

    image_url = (_attr(document, "figure img, .Player_profileImage img, img.player-image")
                 or _attr(document, "img[src*='/player/']"))

    return PlayerProfile(
        user_id=player_id,
        user_name=extract_player_slug(url) or "",
        name=_clean(h1.get_text()) if h1 else "",
        date_of_birth=facts.value("Date of Birth", "Born"),
        age=facts.value("Age"),
        place_of_birth=facts.value("Place of Birth", "Born in"),
        nation=facts.value("Nation"),
        youth_team=facts.value("Youth Team"),
        latest_team_position=jersey,
        latest_team=team,
        season=season,
        position=facts.value("Position"),
        height=facts.value("Height"),
        weight=facts.value("Weight"),
        shoots=facts.value("Shoots", "Catches"),
        contract=facts.value("Contract"),
        player_type=_parse_tags(facts, "Player Type"),
        cap_hit=facts.value("Cap Hit"),
        cap_hit_image=_attr(document, "#player-facts img, .PlayerFacts_factsList__Xw_ID img, img[src*='cap']"),
        nhl_rights=facts.value("NHL Rights"),
        drafted=facts.value("Drafted"),
        highlights=_parse_highlights(facts),
        agency=facts.value("Agency"),
        image_url=image_url,
        relation=_parse_relations(document),
        status=facts.value("Status"),
    )


def build_export_record(profile: PlayerProfile, profile_link: str,
                        position: Optional[str] = None) -> Dict[str, Any]:
    """
    Map a profile to the upload schema.

    Args:
        profile: Parsed profile
        profile_link: Canonical URL the profile was fetched from
        position: Stats JSON string for the position field; raw position if None

    Returns:
        Ordered dict with the keys the upload endpoint expects
    """
    user_id: Any = profile.user_id.strip()
    if user_id.isdigit():
        user_id = int(user_id)

    nation_profile = profile.nation.split('/')[0].strip() if '/' in profile.nation else profile.nation
    shoots = profile.shoots.strip()
    if shoots == '-':
        shoots = ""
    highlights = "; ".join(profile.highlights)

    return {
        'user_id': user_id,
        'nation': profile.nation,
        'name': profile.name,
        'birthdate': profile.date_of_birth,
        'latest_team': profile.latest_team,
        'profile_link': profile_link,
        'player_username': profile.user_name,
        'dob_profile': profile.date_of_birth,
        'age': profile.age,
        'place_of_birth': "" if profile.place_of_birth == '-' else profile.place_of_birth,
        'nation_profile': nation_profile,
        'youth_team': profile.youth_team,
        'position': position if position is not None else profile.position,
        'height': profile.height,
        'weight': profile.weight,
        'shoots': shoots,
        'contract': profile.contract,
        'player_type': "; ".join(profile.player_type),
        'cap_hit': profile.cap_hit,
        'cap_hit_image': profile.cap_hit_image,
        'nhl_rights': profile.nhl_rights,
        'drafted': profile.drafted,
        'agency': profile.agency,
        'profile_picture': profile.image_url,
        'relation': profile.relation,
        'skills': profile.skills_formatted(),
        'highlights': highlights,
        'status': profile.status,
        'award': highlights,
        'latest_team_position': profile.latest_team_position,
        'season': profile.season,
    }


def _jersey_column(value: str) -> str:
    value = re.sub(r'/.*$', '', value or '').strip()
    if value and not value.startswith('#'):
        value = '#' + value
    return value


def to_csv_row(record: Dict[str, Any]) -> List[str]:
    """One output.csv row (in CSV_COLUMNS order) for an export record."""
    def text(key: str) -> str:
        value = record.get(key)
        return "" if value is None else str(value)

    return [
        text('user_id'), text('player_username'), text('name'), text('birthdate'),
        text('age'), text('place_of_birth'), text('nation'), text('youth_team'),
        _jersey_column(text('latest_team_position')), text('latest_team'), text('season'),
        text('position'), text('height'), text('weight'), text('shoots'), text('contract'),
        text('player_type'), text('cap_hit'), text('cap_hit_image'), text('nhl_rights'),
        text('drafted'), text('highlights'), text('agency'), text('relation'),
        text('profile_picture'), text('skills'), text('status'),
    ]


class ProfileScraper:
    """Turns a fetched profile page into an export record."""

    def __init__(self, stats: Optional[StatsApiClient] = None):
        self.stats = stats

    def scrape(self, document: BeautifulSoup, player_id: str, url: str) -> Dict[str, Any]:
        """
        Parse the page, enrich it through the stats API and map it.

        Stats and skills are optional enrichments; their failures leave the
        raw position and an empty skill list.
        """
        profile = parse_profile(document, player_id, url)
        position = None
        if self.stats is not None:
            try:
                profile.skills = self.stats.fetch_skills(player_id)
            except FetchError as e:
                print(f"  ⚠️  Skills unavailable for {player_id}: {e}")
            position = self.stats.position_with_stats(player_id, profile.position)

        empty = sum(1 for v in (profile.date_of_birth, profile.position, profile.height,
                                profile.weight, profile.shoots, profile.agency) if not v)
        if empty >= 4:
            print(f"  ⚠️  Player {player_id}: {empty} of 6 core facts missing, page layout may have changed")

        return build_export_record(profile, url, position)
