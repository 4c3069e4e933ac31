"""Library Service: playlist operations on the user's Spotify library.

Every remote call goes through the shared CallGovernor, so concurrent
callers never exceed the API's pace and rate-limited calls are retried.
"""

import functools
import logging
from typing import Any, Dict, List, Optional, Sequence

from playgov.domain.interfaces.music_api import MusicApi
from playgov.domain.models.common import AccessToken, PlaylistId, TrackUri, UserId
from playgov.infrastructure.resilience.call_governor import CallGovernor
from playgov.infrastructure.spotify.api_client import MAX_TRACKS_PER_ADD

logger = logging.getLogger(__name__)


class LibraryService:
    """Reads and writes playlists through the call governor."""

    def __init__(self, music_api: MusicApi, governor: CallGovernor):
        self.music_api = music_api
        self.governor = governor

    async def get_current_user(self, access_token: AccessToken) -> Dict[str, Any]:
        return await self.governor.submit(
            functools.partial(self.music_api.get_current_user, access_token),
            label="GET /me",
        )

    async def get_all_playlists(self, access_token: AccessToken, page_size: int = 50) -> List[Dict[str, Any]]:
        """Fetches every playlist of the current user, one governed call per page."""
        playlists: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = await self.governor.submit(
                functools.partial(self.music_api.get_user_playlists, access_token, limit=page_size, offset=offset),
                label=f"GET /me/playlists offset={offset}",
            )
            items = (page or {}).get("items") or []
            playlists.extend(items)
            if not page or not page.get("next") or not items:
                break
            offset += len(items)
        logger.info(f"Fetched {len(playlists)} playlists.")
        return playlists

    async def get_all_playlist_tracks(
        self,
        access_token: AccessToken,
        playlist_id: PlaylistId,
        page_size: int = 100,
    ) -> List[Dict[str, Any]]:
        """Fetches every item of a playlist, one governed call per page."""
        tracks: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = await self.governor.submit(
                functools.partial(
                    self.music_api.get_playlist_tracks, access_token, playlist_id,
                    limit=page_size, offset=offset,
                ),
                label=f"GET /playlists/{playlist_id}/tracks offset={offset}",
            )
            items = (page or {}).get("items") or []
            tracks.extend(items)
            if not page or not page.get("next") or not items:
                break
            offset += len(items)
        logger.info(f"Fetched {len(tracks)} items from playlist {playlist_id}.")
        return tracks

    async def create_playlist_with_tracks(
        self,
        access_token: AccessToken,
        name: str,
        uris: Sequence[TrackUri],
        description: Optional[str] = "",
        public: bool = False,
    ) -> Dict[str, Any]:
        """Creates a playlist for the current user and fills it with ``uris`` in order.

        Tracks are added in slices of 100, each slice its own governed call.
        """
        user = await self.get_current_user(access_token)
        user_id = UserId(user["id"])

        playlist = await self.governor.submit(
            functools.partial(
                self.music_api.create_playlist, access_token, user_id, name,
                description=description, public=public,
            ),
            label=f"POST /users/{user_id}/playlists",
        )
        playlist_id = PlaylistId(playlist["id"])
        logger.info(f"Created playlist '{name}' ({playlist_id}).")

        for start in range(0, len(uris), MAX_TRACKS_PER_ADD):
            chunk = list(uris[start:start + MAX_TRACKS_PER_ADD])
            await self.governor.submit(
                functools.partial(self.music_api.add_tracks_to_playlist, access_token, playlist_id, chunk),
                label=f"POST /playlists/{playlist_id}/tracks [{start}:{start + len(chunk)}]",
            )
        logger.info(f"Added {len(uris)} tracks to playlist {playlist_id}.")
        return playlist
