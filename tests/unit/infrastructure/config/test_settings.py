from pathlib import Path

import pytest

from playgov.infrastructure.config import settings
from playgov.infrastructure.config.settings import (
    DEFAULT_GOVERNOR_POLICY,
    clear_test_config,
    get_config,
    get_governor_policy,
    get_spotify_access_token,
    load_configuration,
    set_config_for_testing,
)
from playgov.infrastructure.resilience.call_governor import CallGovernor


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch):
    """Loads configuration from a temporary YAML file and an empty cwd."""
    for key in ("GOVERNOR_MIN_INTERVAL_MS", "GOVERNOR_MAX_RETRIES", "GOVERNOR_DEFAULT_RETRY_AFTER_S",
                "GOVERNOR_CALL_TIMEOUT_S", "SPOTIFY_ACCESS_TOKEN"):
        # set then delete so the variable is removed again on teardown, even if .env sets it
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    config_file = tmp_path / "config.yaml"

    def load(yaml_text: str = "") -> None:
        config_file.write_text(yaml_text)
        load_configuration(config_file=config_file, force=True)

    yield load
    clear_test_config()
    load_configuration(config_file=tmp_path / "missing.yaml", force=True)


def test_defaults_when_nothing_is_configured(isolated_config):
    isolated_config()
    assert get_governor_policy() == DEFAULT_GOVERNOR_POLICY
    assert get_spotify_access_token() is None


def test_nested_yaml_keys_are_addressable(isolated_config):
    isolated_config("governor:\n  min_interval_ms: 250\n  max_retries: 5\nspotify:\n  access_token: yaml-token\n")

    assert get_config("governor.min_interval_ms") == 250
    policy = get_governor_policy()
    assert policy["min_interval_ms"] == 250.0
    assert policy["max_retries"] == 5
    assert get_spotify_access_token() == "yaml-token"


def test_environment_overrides_yaml(isolated_config, monkeypatch):
    isolated_config("governor:\n  max_retries: 5\n")
    monkeypatch.setenv("GOVERNOR_MAX_RETRIES", "1")
    monkeypatch.setenv("GOVERNOR_CALL_TIMEOUT_S", "2.5")
    monkeypatch.setenv("SPOTIFY_ACCESS_TOKEN", "env-token")

    policy = get_governor_policy()
    assert policy["max_retries"] == 1
    assert policy["call_timeout_s"] == 2.5
    assert get_spotify_access_token() == "env-token"


def test_env_values_are_coerced(isolated_config, monkeypatch):
    isolated_config()
    monkeypatch.setenv("FEATURE_FLAG", "true")
    monkeypatch.setenv("SOME_NAME", "abc")
    assert get_config("feature.flag") is True
    assert get_config("some_name") == "abc"


def test_test_config_has_highest_priority(isolated_config, monkeypatch):
    isolated_config()
    monkeypatch.setenv("GOVERNOR_MAX_RETRIES", "1")
    set_config_for_testing({"governor.max_retries": 9})
    assert get_governor_policy()["max_retries"] == 9


def test_dotenv_file_is_loaded_without_overriding_env(isolated_config, tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("SPOTIFY_ACCESS_TOKEN=dotenv-token\n")
    isolated_config()
    assert get_spotify_access_token() == "dotenv-token"
    monkeypatch.setenv("SPOTIFY_ACCESS_TOKEN", "real-env")
    assert get_spotify_access_token() == "real-env"


def test_non_mapping_yaml_is_ignored(isolated_config):
    isolated_config("- just\n- a list\n")
    assert settings._config == {}


def test_zero_call_timeout_is_passed_through_and_rejected(isolated_config):
    isolated_config("governor:\n  call_timeout_s: 0\n")
    policy = get_governor_policy()
    assert policy["call_timeout_s"] == 0.0

    with pytest.raises(ValueError, match="call_timeout_s"):
        CallGovernor(**policy)


def test_blank_call_timeout_means_no_timeout(isolated_config, monkeypatch):
    isolated_config()
    monkeypatch.setenv("GOVERNOR_CALL_TIMEOUT_S", "")
    assert get_governor_policy()["call_timeout_s"] is None
