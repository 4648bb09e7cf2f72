"""
Shared fixtures: parsed HTML, a scripted HTTP session and temp output paths.
"""

import json

import pytest
from bs4 import BeautifulSoup

from player_scraper.config import OutputPaths, RateLimitConfig, RetryConfig, ScraperConfig
from player_scraper.errors import FetchError


def soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, 'html.parser')


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text

    def json(self):
        return json.loads(self.text)


class ScriptedSession:
    """requests.Session stand-in that replays responses or raises exceptions in order."""

    def __init__(self, script):
        self.script = list(script)
        self.posts = []

    def post(self, url, data=None, headers=None, timeout=None, json=None):
        self.posts.append({'url': url, 'data': data, 'timeout': timeout})
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step

    def close(self):
        pass


class FakeSiteClient:
    """
    Serves pre-built pages by URL.

    Unknown URLs raise a 404 FetchError; API posts raise unless a body is given.
    """

    def __init__(self, pages=None, api_body=None):
        self.pages = dict(pages or {})
        self.api_body = api_body
        self.requested = []
        self.closed = False
        self.rate_limiter = None

    def authenticate(self):
        return "anonymous"

    def fetch_document(self, url):
        self.requested.append(url)
        page = self.pages.get(url)
        if page is None:
            raise FetchError(f"HTTP 404 for {url}", status_code=404, url=url)
        if isinstance(page, Exception):
            raise page
        return soup(page)

    def post_json(self, url, payload):
        if self.api_body is None:
            raise FetchError("API unavailable", status_code=503, transient=True, url=url)
        return self.api_body

    def close(self):
        self.closed = True


@pytest.fixture
def sleeps():
    """Records requested sleeps instead of sleeping."""
    calls = []
    return calls


@pytest.fixture
def paths(tmp_path) -> OutputPaths:
    defaults = OutputPaths()
    return OutputPaths(**{
        name: tmp_path / getattr(defaults, name).name
        for name in defaults.__dataclass_fields__
    })


@pytest.fixture
def config(paths) -> ScraperConfig:
    return ScraperConfig(
        base_url="https://site.test",
        games_url="https://site.test/games",
        stats_api_url="https://api.site.test/",
        paths=paths,
        rate_limit=RateLimitConfig(min_delay=0.0, initial_delay=0.0),
        retry=RetryConfig(max_attempts=3, base_delay=0.0),
        workers=2,
    )
