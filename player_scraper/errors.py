"""
Exception types for the player scraper.
"""

from typing import Optional


class ScraperError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(ScraperError):
    """Missing credentials, missing input file or other fatal setup problem."""


class LockHeldError(ConfigurationError):
    """Another uploader run holds the lock file."""

    def __init__(self, lock_path, pid: Optional[str] = None):
        self.lock_path = lock_path
        self.pid = pid
        owner = f" (PID: {pid})" if pid else ""
        super().__init__(f"Uploader is already running{owner}, lock file: {lock_path}")


class FetchError(ScraperError):
    """
    A page or API request failed.

    transient is True for timeouts, connection failures, 429 and 5xx; those
    are the only failures worth retrying.
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 transient: bool = False, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient
        self.url = url

    @property
    def not_found(self) -> bool:
        return self.status_code == 404
