"""
Async HTTP client for the Spotify Web API.

Wraps httpx.AsyncClient and turns HTTP responses into domain errors:
429 becomes ``SpotifyRateLimitError`` (carrying the Retry-After delay),
everything else that is not 2xx becomes a ``SpotifyApiError`` subclass.
This client performs a single attempt per call; retries and spacing are
the call governor's job.
"""

import logging
import math
from typing import Any, Dict, List, Optional

import httpx

from playgov.domain.interfaces.music_api import MusicApi
from playgov.domain.models.common import AccessToken, PagingObject, PlaylistId, TrackUri, UserId
from .exceptions import (
    SpotifyApiError,
    SpotifyAuthError,
    SpotifyNotFoundError,
    SpotifyRateLimitError,
)

logger = logging.getLogger(__name__)

BASE_URL = "https://api.spotify.com/v1"
DEFAULT_TIMEOUT_S = 30.0
MAX_TRACKS_PER_ADD = 100


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds.

    Returns None when the header is missing or not a non-negative number.
    """
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


def _error_message(response: httpx.Response) -> str:
    """Extract Spotify's ``error.message`` from a response, falling back to the body."""
    try:
        body = response.json()
    except ValueError:
        return response.text
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    if isinstance(error, str):
        return error
    return response.text


class SpotifyApiClient(MusicApi):
    """
    Client for Spotify Web API requests.

    The access token is supplied by the caller on every call; this client
    neither stores nor refreshes credentials.
    """

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, without trailing slash.
            timeout_s: Per-request transport timeout.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport
        # Created lazily so it binds to the running event loop.
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # -----------------------------------------------------------------
    # Request handling
    # -----------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        access_token: AccessToken,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """
        Execute one HTTP request and classify the outcome.

        Returns:
            Decoded JSON, or None for 204 / empty bodies.

        Raises:
            SpotifyRateLimitError: On 429.
            SpotifyAuthError: On 401.
            SpotifyNotFoundError: On 404.
            SpotifyApiError: On any other error status or transport failure.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        client = await self._get_client()

        try:
            response = await client.request(method, url, headers=headers, params=params, json=json)
        except httpx.HTTPError as e:
            raise SpotifyApiError(f"Network error calling {method} {path}: {e}") from e

        status = response.status_code
        logger.debug("%s %s -> %d", method, path, status)

        if status == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            raise SpotifyRateLimitError(
                f"Rate limited on {method} {path}",
                retry_after_seconds=retry_after,
            )
        if status == 401:
            raise SpotifyAuthError(
                f"Token expired or invalid: {_error_message(response)}", status_code=status,
            )
        if status == 404:
            raise SpotifyNotFoundError(f"Resource not found: {path}", status_code=status)
        if status >= 400:
            raise SpotifyApiError(
                f"API error {status}: {_error_message(response)}", status_code=status,
            )

        if status == 204 or not response.content:
            return None
        return response.json()

    # -----------------------------------------------------------------
    # Endpoints
    # -----------------------------------------------------------------

    async def get_current_user(self, access_token: AccessToken) -> Dict[str, Any]:
        return await self.request("GET", "/me", access_token)

    async def get_user_playlists(
        self,
        access_token: AccessToken,
        limit: int = 50,
        offset: int = 0,
    ) -> PagingObject:
        return await self.request(
            "GET", "/me/playlists", access_token,
            params={"limit": limit, "offset": offset},
        )

    async def get_playlist_tracks(
        self,
        access_token: AccessToken,
        playlist_id: PlaylistId,
        limit: int = 100,
        offset: int = 0,
    ) -> PagingObject:
        return await self.request(
            "GET", f"/playlists/{playlist_id}/tracks", access_token,
            params={"limit": limit, "offset": offset},
        )

    async def create_playlist(
        self,
        access_token: AccessToken,
        user_id: UserId,
        name: str,
        description: Optional[str] = None,
        public: bool = False,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": name, "public": public}
        if description:
            payload["description"] = description
        return await self.request("POST", f"/users/{user_id}/playlists", access_token, json=payload)

    async def add_tracks_to_playlist(
        self,
        access_token: AccessToken,
        playlist_id: PlaylistId,
        uris: List[TrackUri],
    ) -> Dict[str, Any]:
        if len(uris) > MAX_TRACKS_PER_ADD:
            raise ValueError(f"At most {MAX_TRACKS_PER_ADD} tracks can be added per request, got {len(uris)}.")
        return await self.request(
            "POST", f"/playlists/{playlist_id}/tracks", access_token,
            json={"uris": list(uris)},
        )
