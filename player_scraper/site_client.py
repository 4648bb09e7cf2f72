"""
HTTP session context for eliteprospects.com.
Owns the cookies of one run; every page and API request goes through it.
"""

import json
from typing import Any, Dict, Optional

import requests
from bs4 import BeautifulSoup

from .config import ScraperConfig
from .errors import FetchError
from .resilience.rate_limiter import RateLimiter


USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/117.0.0.0 Safari/537.36"
)
LOGIN_PATH = "/api/next/auth/login"

# Login response key -> cookie name the site expects
TOKEN_COOKIES = {
    'token': 'ep_next_token',
    'streamToken': 'streamToken',
}


def parse_cookie_header(header: str) -> Dict[str, str]:
    """Split a 'a=1; b=2' cookie header into a dict."""
    cookies = {}
    for pair in (header or "").split(';'):
        name, sep, value = pair.partition('=')
        if sep and name.strip():
            cookies[name.strip()] = value.strip()
    return cookies


def is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class SiteClient:
    """
    Explicit session context for the source site.

    Constructed once per run and handed to every component that fetches.
    requests.Session keeps cookies set by responses, so the cookie jar
    follows the site the way a browser would.
    """

    def __init__(
        self,
        config: ScraperConfig,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None
    ):
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': USER_AGENT,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
        })
        self.rate_limiter = rate_limiter or RateLimiter(config.rate_limit)
        self.auth_mode = "none"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self):
        self.session.close()

    def login(self) -> bool:
        """
        Log in through the site API and store the returned tokens as cookies.

        Returns:
            True if at least one token was stored
        """
        creds = self.config.credentials
        if not creds.has_login:
            return False

        url = self.config.base_url.rstrip('/') + LOGIN_PATH
        payload = {'email': creds.email, 'password': creds.password, 'originSite': 'web'}
        try:
            response = self.session.post(
                url,
                json=payload,
                headers={'Accept': 'application/json, text/plain, */*'},
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            print(f"⚠️  Login request failed: {e}")
            return False

        if response.status_code != 200:
            print(f"⚠️  Login failed: HTTP {response.status_code}")
            return False

        try:
            body = response.json()
        except ValueError:
            print("⚠️  Login response was not JSON")
            return False

        stored = 0
        for key, cookie_name in TOKEN_COOKIES.items():
            value = body.get(key) if isinstance(body, dict) else None
            if value:
                self.session.cookies.set(cookie_name, str(value))
                stored += 1
        return stored > 0

    def authenticate(self) -> str:
        """
        Establish session cookies.

        Tries API login, then the EP_COOKIE_HEADER override, then an anonymous
        fetch of the site root. Returns the mode that worked.
        """
        print("Authenticating with EliteProspects...")
        if self.login():
            print("✓ Logged in, fresh tokens stored")
            self.auth_mode = "login"
            return self.auth_mode

        cookie_header = self.config.credentials.cookie_header
        if cookie_header:
            for name, value in parse_cookie_header(cookie_header).items():
                self.session.cookies.set(name, value)
            print("✓ Cookies loaded from EP_COOKIE_HEADER")
            self.auth_mode = "cookie_header"
            return self.auth_mode

        print("Note: No credentials available, collecting anonymous session cookies")
        try:
            self.session.get(self.config.base_url, timeout=self.config.request_timeout)
        except requests.RequestException as e:
            print(f"⚠️  Anonymous fetch failed: {e}")
        self.auth_mode = "anonymous"
        return self.auth_mode

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Send a request and translate failures into FetchError."""
        kwargs.setdefault('timeout', self.config.request_timeout)
        self.rate_limiter.wait()
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.Timeout as e:
            self.rate_limiter.record_failure()
            raise FetchError(f"Timeout fetching {url}: {e}", transient=True, url=url) from e
        except requests.ConnectionError as e:
            self.rate_limiter.record_failure()
            raise FetchError(f"Connection failed for {url}: {e}", transient=True, url=url) from e
        except requests.RequestException as e:
            raise FetchError(f"Request failed for {url}: {e}", url=url) from e

        if response.status_code >= 400:
            transient = is_transient_status(response.status_code)
            if transient:
                self.rate_limiter.record_failure()
            raise FetchError(
                f"HTTP {response.status_code} for {url}",
                status_code=response.status_code,
                transient=transient,
                url=url,
            )

        self.rate_limiter.record_success()
        return response

    def fetch_document(self, url: str) -> BeautifulSoup:
        """
        GET a page and parse it.

        Raises:
            FetchError: on transport failure or a 4xx/5xx status
        """
        response = self._request('GET', url)
        return BeautifulSoup(response.text, 'html.parser')

    def post_json(self, url: str, payload: Dict[str, Any]) -> Any:
        """
        POST a JSON body and decode the JSON answer.

        Raises:
            FetchError: on transport failure, error status or a non-JSON body
        """
        response = self._request(
            'POST', url,
            data=json.dumps(payload),
            headers={'Content-Type': 'application/json', 'Accept': 'application/json'},
        )
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON from {url}: {e}", url=url) from e
