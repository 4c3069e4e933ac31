"""Interface for the remote music library API.

Defines the calls the application services make against the remote
library. Implementations translate transport responses into domain
errors (``RateLimitedError`` for HTTP 429) and never retry on their own.
"""

import abc
from typing import Any, Dict, List, Optional

from playgov.domain.models.common import AccessToken, PagingObject, PlaylistId, TrackUri, UserId


class MusicApi(abc.ABC):
    """Abstract Base Class for the remote music library API."""

    @abc.abstractmethod
    async def get_current_user(self, access_token: AccessToken) -> Dict[str, Any]:
        """Returns the profile of the user owning the token."""
        pass

    @abc.abstractmethod
    async def get_user_playlists(
        self,
        access_token: AccessToken,
        limit: int = 50,
        offset: int = 0,
    ) -> PagingObject:
        """Returns one page of the current user's playlists."""
        pass

    @abc.abstractmethod
    async def get_playlist_tracks(
        self,
        access_token: AccessToken,
        playlist_id: PlaylistId,
        limit: int = 100,
        offset: int = 0,
    ) -> PagingObject:
        """Returns one page of playlist items."""
        pass

    @abc.abstractmethod
    async def create_playlist(
        self,
        access_token: AccessToken,
        user_id: UserId,
        name: str,
        description: Optional[str] = None,
        public: bool = False,
    ) -> Dict[str, Any]:
        """Creates a playlist and returns it."""
        pass

    @abc.abstractmethod
    async def add_tracks_to_playlist(
        self,
        access_token: AccessToken,
        playlist_id: PlaylistId,
        uris: List[TrackUri],
    ) -> Dict[str, Any]:
        """Appends tracks to a playlist.

        Args:
            access_token: Caller-supplied bearer token.
            playlist_id: Target playlist.
            uris: Track URIs, at most 100 per call.

        Returns:
            The response payload (contains the new ``snapshot_id``).
        """
        pass
