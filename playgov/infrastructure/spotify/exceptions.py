"""
Spotify module exceptions.

Provides a clean exception hierarchy for Spotify API operations. The
rate-limit error also carries the governor's ``RateLimitedError`` tag so
that it is retried, while every other error fails fast.
"""

from typing import Optional

from playgov.domain.models.errors import RateLimitedError


class SpotifyError(Exception):
    """Base exception for all Spotify-related errors."""
    pass


class SpotifyApiError(SpotifyError):
    """Raised when a Spotify API call fails.

    Attributes:
        status_code: HTTP status, or None for transport failures.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SpotifyAuthError(SpotifyApiError):
    """Raised when the access token is missing, expired or invalid (401)."""
    pass


class SpotifyNotFoundError(SpotifyApiError):
    """Raised when a requested resource is not found (404)."""
    pass


class SpotifyRateLimitError(RateLimitedError, SpotifyApiError):
    """Raised when rate limited by the Spotify API (429)."""

    def __init__(self, message: str, retry_after_seconds: Optional[float] = None):
        SpotifyApiError.__init__(self, message, status_code=429)
        self.retry_after_seconds = retry_after_seconds
