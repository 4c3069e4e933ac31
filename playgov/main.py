"""Main entry point for the playgov application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import sys
from typing import Annotated, Any, Coroutine, Dict, List, Optional

import typer

# --- Core Layer ---
from playgov.core.command_handler import CommandHandler
from playgov.core.services.library_service import LibraryService
from playgov.core.services.simulation_service import SimulationService

# --- Infrastructure Layer ---
# Config
from playgov.infrastructure.config.settings import (
    load_configuration, get_config, get_governor_policy, get_spotify_access_token,
)
# UI
from playgov.infrastructure.cli.display import ConsoleDisplay
# Spotify adapter
from playgov.infrastructure.spotify.api_client import BASE_URL, DEFAULT_TIMEOUT_S, SpotifyApiClient
# Resilience
from playgov.infrastructure.resilience.call_governor import CallGovernor
# Monitoring
from playgov.infrastructure.monitoring.logger_setup import (
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_FORMAT,
    DEFAULT_LOG_MAX_BYTES,
    GOVERNOR_LOGGER,
    HTTP_LOGGERS,
    resolve_level,
    setup_logging,
)

logger = logging.getLogger(__name__)

# --- Dependency Injection Container (Manual) ---

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root. One CallGovernor is shared by every
    service so all outbound calls are paced together.
    """
    dependencies: Dict[str, Any] = {}
    try:
        # 1. Load Configuration First
        load_configuration()
        log_level = resolve_level(get_config('logging.level', 'INFO'))
        logger_levels = {GOVERNOR_LOGGER: get_config('logging.governor_level', log_level)}
        for name in HTTP_LOGGERS:
            logger_levels[name] = get_config('logging.http_level', 'WARNING')
        setup_logging(
            log_level=log_level,
            log_format=get_config('logging.format', DEFAULT_LOG_FORMAT),
            log_file=get_config('logging.file'),
            logger_levels=logger_levels,
            max_bytes=int(get_config('logging.max_bytes', DEFAULT_LOG_MAX_BYTES)),
            backup_count=int(get_config('logging.backup_count', DEFAULT_LOG_BACKUP_COUNT)),
        )
        logger.info("Configuration and logging initialized.")

        # 2. Instantiate Infrastructure Adapters & Services
        dependencies['ui'] = ConsoleDisplay()
        policy = get_governor_policy()
        dependencies['governor'] = CallGovernor(
            min_interval_ms=policy['min_interval_ms'],
            max_retries=policy['max_retries'],
            default_retry_after_s=policy['default_retry_after_s'],
            call_timeout_s=policy['call_timeout_s'],
        )
        dependencies['music_api'] = SpotifyApiClient(
            base_url=str(get_config('spotify.base_url', BASE_URL)),
            timeout_s=float(get_config('spotify.timeout_s', DEFAULT_TIMEOUT_S)),
        )

        # 3. Instantiate Core Services (injecting dependencies)
        dependencies['library_service'] = LibraryService(
            music_api=dependencies['music_api'],
            governor=dependencies['governor'],
        )
        dependencies['simulation_service'] = SimulationService(governor=dependencies['governor'])

        # 4. Instantiate Command Handler
        dependencies['command_handler'] = CommandHandler(
            library_service=dependencies['library_service'],
            simulation_service=dependencies['simulation_service'],
            ui=dependencies['ui'],
        )
        logger.debug("All dependencies initialized successfully.")
        return dependencies

    except (ValueError, TypeError) as e:
        logger.error(f"Fatal Error during application initialization: {e}", exc_info=True)
        print(f"FATAL ERROR during initialization: {e}", file=sys.stderr)
        sys.exit(1)


_dependencies: Optional[Dict[str, Any]] = None


def get_dependencies() -> Dict[str, Any]:
    """Returns the wired-up dependencies, creating them on first use."""
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies


def reset_dependencies() -> None:
    """Forgets the wired-up dependencies (used by tests)."""
    global _dependencies
    _dependencies = None


# --- Typer App Definition ---
app = typer.Typer(
    name="playgov",
    help="playgov: browse and build Spotify playlists through a rate-limit aware call governor.",
    add_completion=False,
)

# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, None]) -> None:
    """Runs an async command to completion, then releases the HTTP client."""
    async def runner() -> None:
        try:
            await coro
        finally:
            await get_dependencies()['music_api'].aclose()

    asyncio.run(runner())


def _handler() -> CommandHandler:
    return get_dependencies()['command_handler']


# --- CLI Commands ---

# Shared token option
TokenOption = Annotated[
    Optional[str],
    typer.Option("--token", "-t", help="Spotify access token. Defaults to the SPOTIFY_ACCESS_TOKEN setting.")
]


def _resolve_token(token: Optional[str]) -> Optional[str]:
    return token or get_spotify_access_token()


@app.command()
def whoami(token: TokenOption = None):
    """Show the user owning the access token."""
    handler = _handler()
    run_async(handler.handle_whoami(_resolve_token(token)))


@app.command()
def playlists(token: TokenOption = None):
    """List all playlists of the current user."""
    handler = _handler()
    run_async(handler.handle_playlists(_resolve_token(token)))


@app.command()
def tracks(
    playlist_id: Annotated[str, typer.Argument(help="Spotify playlist id.")],
    token: TokenOption = None,
):
    """List all tracks of a playlist."""
    handler = _handler()
    run_async(handler.handle_tracks(_resolve_token(token), playlist_id))


@app.command(name="create-playlist")
def create_playlist_command(
    name: Annotated[str, typer.Argument(help="Name of the new playlist.")],
    uri: Annotated[Optional[List[str]], typer.Option("--uri", "-u", help="Track URI to add (repeatable).")] = None,
    description: Annotated[str, typer.Option(help="Playlist description.")] = "",
    public: Annotated[bool, typer.Option("--public/--private", help="Playlist visibility.")] = False,
    token: TokenOption = None,
):
    """Create a playlist and add tracks to it in order."""
    handler = _handler()
    run_async(handler.handle_create_playlist(_resolve_token(token), name, uri or [], description=description, public=public))


@app.command()
def simulate(
    tasks: Annotated[int, typer.Option("--tasks", "-n", min=0, help="Number of synthetic tasks.")] = 10,
    rate_limit_every: Annotated[int, typer.Option(min=0, help="Rate limit every n-th task once (0 = never).")] = 0,
    retry_after: Annotated[Optional[float], typer.Option(min=0, help="Retry-After carried by synthetic 429s, in seconds.")] = None,
):
    """Run synthetic tasks through the governor and show their timing."""
    handler = _handler()
    run_async(handler.handle_simulate(tasks, rate_limit_every, retry_after))


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
