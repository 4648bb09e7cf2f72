"""
Configuration dataclasses for the player scraper and uploader.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, FrozenSet

from .errors import ConfigurationError


SITE_BASE_URL = "https://www.eliteprospects.com"
DEFAULT_GAMES_URL = f"{SITE_BASE_URL}/games/2025-2026/all-leagues/all-teams"
DEFAULT_STATS_API_URL = "https://gql.eliteprospects.com/"
DEFAULT_UPLOAD_URL = (
    "https://webdev11.mydevfactory.com/nabaruna-sinha/awinwin/public/api/"
    "update-scrap-player-details"
)
COLLECTION_KEY = "recentlyUpdatedPlayers"


@dataclass
class RateLimitConfig:
    """Configuration for request pacing against the source site."""
    min_delay: float = 0.5
    max_delay: float = 30.0
    initial_delay: float = 0.5
    backoff_factor: float = 1.5
    jitter_percent: float = 0.2
    cooldown_threshold: int = 5
    cooldown_duration: float = 60.0


@dataclass
class RetryConfig:
    """
    Retry policy shared by profile fetches and batch uploads.

    backoff is either "exponential" (base_delay * factor ** (attempt - 1))
    or "linear" (base_delay * attempt).
    """
    max_attempts: int = 3
    base_delay: float = 2.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0
    backoff: str = "exponential"
    retryable_statuses: FrozenSet[int] = frozenset({429, 500, 502, 503, 504})

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after a failed attempt (1-based)."""
        if self.backoff == "linear":
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay * (self.backoff_factor ** (attempt - 1))
        return min(delay, self.max_delay)

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in self.retryable_statuses or status_code >= 500


@dataclass
class UploadConfig:
    """Configuration for the batch uploader."""
    endpoint: str = DEFAULT_UPLOAD_URL
    batch_size: int = 50
    request_timeout: float = 120.0
    inter_batch_delay: float = 0.5
    collection_key: str = COLLECTION_KEY
    retry: RetryConfig = field(
        default_factory=lambda: RetryConfig(base_delay=2.0, backoff="linear")
    )


@dataclass
class OutputPaths:
    """Locations of every file the pipeline reads or writes."""
    status_file: Path = Path("swedish_extractor_status.json")
    search_status_file: Path = Path("status.json")
    profiles_jsonl: Path = Path("recent_swedish_players_profiles.jsonl")
    players_data_json: Path = Path("recent_swedish_players_data.json")
    output_csv: Path = Path("output.csv")
    urls_file: Path = Path("recent_swedish_players_urls.txt")
    ids_file: Path = Path("recent_swedish_players_ids.txt")
    teams_file: Path = Path("team.txt")
    failed_players_file: Path = Path("failed_players.txt")
    failed_uploads_file: Path = Path("failed_player_urls.txt")
    extraction_marker: Path = Path(".extraction_success")
    uploader_lock: Path = Path("api_uploader.lock")
    uploader_pid: Path = Path("api_uploader.pid")

    @classmethod
    def from_env(cls) -> "OutputPaths":
        """Build paths from OUTPUT_DIR and the per-file overrides."""
        base = Path(os.getenv("OUTPUT_DIR", "."))
        defaults = cls()

        def pick(env_name: str, default: Path) -> Path:
            value = os.getenv(env_name)
            return Path(value) if value else base / default

        return cls(
            status_file=pick("STATUS_FILE", defaults.status_file),
            search_status_file=pick("SEARCH_STATUS_FILE", defaults.search_status_file),
            profiles_jsonl=pick("PROFILES_JSONL", defaults.profiles_jsonl),
            players_data_json=pick("PLAYERS_DATA_JSON", defaults.players_data_json),
            output_csv=pick("OUTPUT_CSV", defaults.output_csv),
            urls_file=base / defaults.urls_file,
            ids_file=base / defaults.ids_file,
            teams_file=base / defaults.teams_file,
            failed_players_file=pick("FAILED_PLAYERS_FILE", defaults.failed_players_file),
            failed_uploads_file=pick("FAILED_UPLOADS_FILE", defaults.failed_uploads_file),
            extraction_marker=base / defaults.extraction_marker,
            uploader_lock=base / defaults.uploader_lock,
            uploader_pid=base / defaults.uploader_pid,
        )


@dataclass
class Credentials:
    """Opaque credential pair plus optional cookie override."""
    email: Optional[str] = None
    password: Optional[str] = None
    cookie_header: Optional[str] = None

    @property
    def has_login(self) -> bool:
        return bool(self.email and self.password)

    def require_login(self):
        """Raise if the credential pair is missing."""
        if not self.has_login:
            raise ConfigurationError(
                "EliteProspects credentials not set in environment variables "
                "EP_EMAIL and EP_PASSWORD"
            )


@dataclass
class ScraperConfig:
    """Main configuration for the scraper system."""
    base_url: str = SITE_BASE_URL
    games_url: str = DEFAULT_GAMES_URL
    stats_api_url: str = DEFAULT_STATS_API_URL
    image_base_url: str = ""
    request_timeout: float = 60.0

    credentials: Credentials = field(default_factory=Credentials)
    paths: OutputPaths = field(default_factory=OutputPaths)

    # Rate limiting
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)

    # Retry settings
    retry: RetryConfig = field(default_factory=RetryConfig)

    # Upload settings
    upload: UploadConfig = field(default_factory=UploadConfig)

    # Extraction
    workers: int = 8
    max_pages: int = 20
    status_save_interval: int = 10
    nation_flag: str = "Sweden flag"

    # Search-sweep mode
    positions: List[str] = field(default_factory=lambda: ["f"])
    year_from: int = 1992
    year_to: int = 2026

    @classmethod
    def from_env(cls) -> "ScraperConfig":
        """Read every environment-provided setting once."""
        base_url = os.getenv("EP_BASE_URL", SITE_BASE_URL).rstrip("/")
        upload = UploadConfig(endpoint=os.getenv("UPLOAD_API_URL", DEFAULT_UPLOAD_URL))
        return cls(
            base_url=base_url,
            games_url=os.getenv("GAMES_URL", DEFAULT_GAMES_URL),
            stats_api_url=os.getenv("API_BASE_URL", DEFAULT_STATS_API_URL),
            image_base_url=os.getenv("IMAGE_BASE_URL", ""),
            credentials=Credentials(
                email=os.getenv("EP_EMAIL"),
                password=os.getenv("EP_PASSWORD"),
                cookie_header=os.getenv("EP_COOKIE_HEADER"),
            ),
            paths=OutputPaths.from_env(),
            upload=upload,
        )
