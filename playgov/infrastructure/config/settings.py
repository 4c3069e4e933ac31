"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.playgov/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from playgov.domain.models.common import AccessToken, GovernorPolicy

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".playgov"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_GOVERNOR_POLICY: GovernorPolicy = {
    "min_interval_ms": 100,
    "max_retries": 3,
    "default_retry_after_s": 1.0,
    "call_timeout_s": None,
}

# --- Global Configuration Store (Simple Approach) ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}  # For testing purposes
_loaded = False


def _flatten(mapping: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML mappings into dotted keys ('governor.max_retries')."""
    flat: Dict[str, Any] = {}
    for key, value in mapping.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None, force: bool = False) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no .env found).")

    # 3. Environment Variables (Highest priority) are handled in get_config

    _loaded = True
    logger.info("Configuration loading process completed.")


def _coerce(value: str) -> Any:
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (upper-cased, dots replaced by underscores)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, e.g. 'governor.min_interval_ms'
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace('.', '_')
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def get_spotify_access_token() -> Optional[AccessToken]:
    """Returns the caller-provided Spotify access token, if any."""
    # Checks ENV SPOTIFY_ACCESS_TOKEN first, then yaml spotify.access_token
    token = get_config('spotify_access_token') or get_config('spotify.access_token')
    return AccessToken(str(token)) if token else None


def get_governor_policy() -> GovernorPolicy:
    """Collects the call governor settings, applying defaults."""
    timeout = get_config('governor.call_timeout_s', DEFAULT_GOVERNOR_POLICY['call_timeout_s'])
    return GovernorPolicy(
        min_interval_ms=float(get_config('governor.min_interval_ms', DEFAULT_GOVERNOR_POLICY['min_interval_ms'])),
        max_retries=int(get_config('governor.max_retries', DEFAULT_GOVERNOR_POLICY['max_retries'])),
        default_retry_after_s=float(get_config('governor.default_retry_after_s', DEFAULT_GOVERNOR_POLICY['default_retry_after_s'])),
        call_timeout_s=float(timeout) if timeout not in (None, '') else None,
    )


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


# Load configuration when the module is imported
load_configuration()
