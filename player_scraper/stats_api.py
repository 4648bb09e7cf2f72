"""
GraphQL client for player statistics and endorsement skills.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import FetchError
from .site_client import SiteClient


STAT_KEYS = [
    "GP", "G", "A", "PTS", "PIM", "PM", "GAA", "SVP",
    "SVS", "SO", "W", "L", "T", "GD", "GA", "TOI",
]

STATS_QUERY = """
query PlayerStatisticsDefault($player: ID, $statsType: String, $leagueType: LeagueType, $sort: String, $seasonFrom: String) {
  playerStats(player: $player, statsType: $statsType, leagueType: $leagueType, sort: $sort, seasonFrom: $seasonFrom) {
    edges {
      season { slug }
      team { country { flagUrl { small } } }
      teamName
      leagueName
      regularStats { %(keys)s }
      postseasonStats { %(keys)s }
    }
  }
}
""" % {'keys': ' '.join(STAT_KEYS)}

ENDORSEMENTS_QUERY = (
    "query Endorsements($profileId: ID!, $type: String!) {"
    " endorsements(id: $profileId, type: $type) {"
    "   id upvotes userUpvoted"
    "   type { id name __typename }"
    "   members { id displayName url avatarUrl hockeyRelations { id name __typename } __typename }"
    "   __typename"
    " }"
    "}"
)


@dataclass
class Skill:
    """An endorsement skill with its icon URL."""
    name: str
    image: str

    @classmethod
    def from_name(cls, name: str, image_base_url: str = "") -> "Skill":
        slug = name.lower().replace(' ', '-')
        return cls(name=name, image=f"{image_base_url}{slug}.svg")

    def formatted(self) -> str:
        return f"{self.name} : {self.image}"


def _pick(obj: Any, *path: str) -> Any:
    """Walk nested dicts, returning None on the first missing step."""
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _complete_stats(raw: Any) -> Dict[str, Any]:
    """Every stat key present, null when the response omits it."""
    raw = raw if isinstance(raw, dict) else {}
    return {key: raw.get(key) for key in STAT_KEYS}


def parse_player_stats(position: Optional[str], body: Any) -> str:
    """
    Normalise a playerStats response.

    Args:
        position: Raw position text from the profile page
        body: Decoded GraphQL response (or its JSON text)

    Returns:
        JSON string {"position": ..., "stats": [...]}, or the bare position
        when the response has no usable edges
    """
    try:
        if isinstance(body, str):
            body = json.loads(body)
        edges = _pick(body, 'data', 'playerStats', 'edges')
        if not isinstance(edges, list):
            raise ValueError("response has no playerStats.edges")
    except ValueError as e:
        print(f"  ✗ Error parsing player stats JSON: {e}")
        return position or ""

    stats = []
    for edge in edges:
        if not isinstance(edge, dict):
            continue
        stats.append({
            'seasonSlug': _pick(edge, 'season', 'slug'),
            'flagUrl': _pick(edge, 'team', 'country', 'flagUrl', 'small'),
            'teamName': edge.get('teamName'),
            'leagueName': edge.get('leagueName'),
            'regularStats': _complete_stats(edge.get('regularStats')),
            'postseasonStats': _complete_stats(edge.get('postseasonStats')),
        })
    return json.dumps({'position': position, 'stats': stats}, ensure_ascii=False)


class StatsApiClient:
    """Posts GraphQL queries through the run's SiteClient."""

    def __init__(self, client: SiteClient, api_url: str, image_base_url: str = ""):
        self.client = client
        self.api_url = api_url
        self.image_base_url = image_base_url

    def fetch_player_stats(self, player_id: str) -> Any:
        """Raw playerStats response for one player."""
        payload = {'query': STATS_QUERY, 'variables': {'player': player_id}}
        return self.client.post_json(self.api_url, payload)

    def position_with_stats(self, player_id: str, position: Optional[str]) -> str:
        """Stats JSON string for the position field, raw position on failure."""
        try:
            body = self.fetch_player_stats(player_id)
        except FetchError as e:
            print(f"  ⚠️  Stats unavailable for {player_id}: {e}")
            return position or ""
        return parse_player_stats(position, body)

    def fetch_skills(self, player_id: str) -> List[Skill]:
        """
        Endorsement skills for a player.

        Raises:
            FetchError: if the API call fails
        """
        payload = {
            'query': ENDORSEMENTS_QUERY,
            'variables': {'profileId': player_id, 'type': 'player'},
        }
        body = self.client.post_json(self.api_url, payload)
        endorsements = _pick(body, 'data', 'endorsements') or []
        skills = []
        for item in endorsements:
            name = _pick(item, 'type', 'name')
            if name:
                skills.append(Skill.from_name(name, self.image_base_url))
        return skills
