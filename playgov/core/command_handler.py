"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the
work to the LibraryService and SimulationService. This is the single
place where failures are caught and shown to the user.
"""

import logging
from typing import List, Optional

from playgov.core.services.library_service import LibraryService
from playgov.core.services.simulation_service import SimulationService
from playgov.domain.interfaces.user_interface import UserInterface
from playgov.domain.models.common import AccessToken, PlaylistId, TrackUri
from playgov.infrastructure.spotify.exceptions import SpotifyAuthError

logger = logging.getLogger(__name__)

MISSING_TOKEN_MESSAGE = "No Spotify access token. Pass --token or set SPOTIFY_ACCESS_TOKEN."


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        library_service: LibraryService,
        simulation_service: SimulationService,
        ui: UserInterface,
    ):
        self.library_service = library_service
        self.simulation_service = simulation_service
        self.ui = ui

    def _require_token(self, access_token: Optional[str]) -> Optional[AccessToken]:
        if not access_token:
            self.ui.display_error(MISSING_TOKEN_MESSAGE)
            return None
        return AccessToken(access_token)

    def _report_failure(self, action: str, error: Exception) -> None:
        logger.error(f"Failed to {action}: {error}", exc_info=True)
        if isinstance(error, SpotifyAuthError):
            self.ui.display_error(f"Failed to {action}: access token rejected. Obtain a fresh token and try again.")
        else:
            self.ui.display_error(f"Failed to {action}: {error}")

    async def handle_whoami(self, access_token: Optional[str]) -> None:
        """Handles the 'whoami' command."""
        token = self._require_token(access_token)
        if token is None:
            return
        try:
            user = await self.library_service.get_current_user(token)
        except Exception as e:
            self._report_failure("fetch the current user", e)
            return
        name = user.get("display_name") or user.get("id")
        self.ui.display_output(f"{name} ({user.get('id')})", title="Current user")

    async def handle_playlists(self, access_token: Optional[str]) -> None:
        """Handles the 'playlists' command."""
        token = self._require_token(access_token)
        if token is None:
            return
        try:
            playlists = await self.library_service.get_all_playlists(token)
        except Exception as e:
            self._report_failure("list playlists", e)
            return
        if not playlists:
            self.ui.display_info("No playlists found.")
            return
        rows = [
            (p.get("id"), p.get("name"), (p.get("tracks") or {}).get("total"), (p.get("owner") or {}).get("id"))
            for p in playlists
        ]
        self.ui.display_table("Playlists", ["ID", "Name", "Tracks", "Owner"], rows)

    async def handle_tracks(self, access_token: Optional[str], playlist_id: str) -> None:
        """Handles the 'tracks' command."""
        token = self._require_token(access_token)
        if token is None:
            return
        try:
            items = await self.library_service.get_all_playlist_tracks(token, PlaylistId(playlist_id))
        except Exception as e:
            self._report_failure(f"list tracks of playlist {playlist_id}", e)
            return
        rows = []
        for position, item in enumerate(items, start=1):
            track = item.get("track") or {}
            artists = ", ".join(a.get("name", "") for a in track.get("artists") or [])
            rows.append((position, track.get("name"), artists, track.get("uri")))
        self.ui.display_table(f"Tracks in {playlist_id}", ["#", "Title", "Artists", "URI"], rows)

    async def handle_create_playlist(
        self,
        access_token: Optional[str],
        name: str,
        uris: List[str],
        description: str = "",
        public: bool = False,
    ) -> None:
        """Handles the 'create-playlist' command."""
        token = self._require_token(access_token)
        if token is None:
            return
        try:
            playlist = await self.library_service.create_playlist_with_tracks(
                token, name, [TrackUri(u) for u in uris], description=description, public=public,
            )
        except Exception as e:
            self._report_failure(f"create playlist '{name}'", e)
            return
        self.ui.display_output(
            f"Created '{playlist.get('name', name)}' ({playlist.get('id')}) with {len(uris)} tracks.",
            title="Playlist created",
        )

    async def handle_simulate(
        self,
        task_count: int,
        rate_limit_every: int = 0,
        retry_after_s: Optional[float] = None,
    ) -> None:
        """Handles the 'simulate' command."""
        try:
            records = await self.simulation_service.run(task_count, rate_limit_every, retry_after_s)
        except Exception as e:
            self._report_failure("run the simulation", e)
            return
        rows = [
            (
                r.index, r.attempts,
                f"{r.first_start_offset_ms:.0f}" if r.first_start_offset_ms is not None else None,
                f"{r.finished_offset_ms:.0f}" if r.finished_offset_ms is not None else None,
                r.outcome,
            )
            for r in records
        ]
        self.ui.display_table(
            f"Simulated {task_count} tasks",
            ["Task", "Attempts", "First start (ms)", "Finished (ms)", "Outcome"],
            rows,
        )
