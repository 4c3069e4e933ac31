import pytest
from typer.testing import CliRunner
from unittest.mock import AsyncMock, MagicMock

import playgov.main as main_module
from playgov.domain.interfaces.music_api import MusicApi
from playgov.infrastructure.cli.display import ConsoleDisplay
from playgov.infrastructure.config.settings import clear_test_config, set_config_for_testing


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def fast_governor_config():
    """Keeps CLI flows quick: tiny spacing and backoff."""
    set_config_for_testing({
        "governor.min_interval_ms": 1,
        "governor.default_retry_after_s": 0.01,
    })
    yield
    clear_test_config()


@pytest.fixture
def fresh_dependencies(mocker, fast_governor_config):
    """Rebuilds the composition root for each test and forgets it afterwards."""
    # Root handlers would bind to the stdout CliRunner swaps in and closes.
    mocker.patch('playgov.main.setup_logging')
    main_module.reset_dependencies()
    yield
    main_module.reset_dependencies()


@pytest.fixture
def mock_music_api(mocker, fresh_dependencies):
    """Replaces the Spotify adapter built by the composition root with a mock."""
    mock = MagicMock(spec=MusicApi)
    mock.get_current_user = AsyncMock(return_value={"id": "alice", "display_name": "Alice"})
    mock.get_user_playlists = AsyncMock(return_value={"items": [], "next": None})
    mock.get_playlist_tracks = AsyncMock(return_value={"items": [], "next": None})
    mock.create_playlist = AsyncMock(return_value={"id": "pl1", "name": "Mix"})
    mock.add_tracks_to_playlist = AsyncMock(return_value={"snapshot_id": "s"})
    mock.aclose = AsyncMock()
    mocker.patch('playgov.main.SpotifyApiClient', return_value=mock)
    return mock


@pytest.fixture
def mock_console_display(mocker, fresh_dependencies):
    """Mocks the ConsoleDisplay to capture output easily."""
    mock = mocker.MagicMock(spec=ConsoleDisplay)
    mocker.patch('playgov.main.ConsoleDisplay', return_value=mock)
    return mock


@pytest.fixture(autouse=True)
def no_ambient_token(monkeypatch):
    """Tests decide explicitly whether a token is configured."""
    monkeypatch.delenv("SPOTIFY_ACCESS_TOKEN", raising=False)
