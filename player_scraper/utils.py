"""
Shared utility functions for the scraper.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from .config import SITE_BASE_URL


PLAYER_ID_PATTERN = re.compile(r'/player(?:\.php\?player=|/)(\d+)')
PLAYER_SLUG_PATTERN = re.compile(r'/player(?:\.php\?player=|/)(?:\d+)/([^?#]*)')
BARE_PLAYER_URL = re.compile(r'.*/player/\d+$')


def extract_player_id(url: str) -> Optional[str]:
    """
    Extract the numeric player id from a profile URL.

    Args:
        url: Profile URL (e.g., https://www.eliteprospects.com/player/4230/alexander-ovechkin)

    Returns:
        Player id (e.g., "4230") or None if not found
    """
    if not url:
        return None
    match = PLAYER_ID_PATTERN.search(url)
    if match:
        return match.group(1)

    # Fallback: a player= query parameter anywhere in the URL
    idx = url.find('player=')
    if idx >= 0:
        digits = re.match(r'\d+', url[idx + len('player='):])
        if digits:
            return digits.group(0)
    return None


def extract_player_slug(url: str) -> Optional[str]:
    """Return the username segment of /player/{id}/{slug}, without query."""
    if not url:
        return None
    match = PLAYER_SLUG_PATTERN.search(url)
    if match:
        return match.group(1)
    return None


def absolute_url(href: str, base_url: str = SITE_BASE_URL) -> str:
    """Turn a site-relative href into an absolute URL."""
    if href.startswith('http'):
        return href
    if not href.startswith('/'):
        href = '/' + href
    return base_url.rstrip('/') + href


def player_url(player_id: str, slug: str = "", base_url: str = SITE_BASE_URL) -> str:
    """Build a profile URL from id and optional slug."""
    url = f"{base_url.rstrip('/')}/player/{player_id}"
    return f"{url}/{slug}" if slug else url


def alternate_player_url(url: str, player_id: str) -> Optional[str]:
    """
    Alternate URL shape for a bare /player/{id} URL that returned 404.

    The site resolves /player/{id}/{id} when the slug is unknown.
    """
    if url and BARE_PLAYER_URL.match(url):
        return f"{url}/{player_id}"
    return None


def target_date(today: Optional[date] = None) -> date:
    """Yesterday in UTC, the date window the games walker looks for."""
    if today is None:
        today = datetime.now(timezone.utc).date()
    return today - timedelta(days=1)


def display_date(day: date) -> str:
    """Visible header text for a date, e.g. 'February 2'."""
    return f"{day:%B} {day.day}"


def parse_header_date(value: str) -> Optional[date]:
    """Parse an ISO-8601 data-date attribute (e.g., 2026-02-02T12:00:00+00:00)."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace('Z', '+00:00')).date()
    except ValueError:
        return None
