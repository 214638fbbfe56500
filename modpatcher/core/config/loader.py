"""
Configuration loader — reads modpatcher.yml into AppConfig.

The file is optional. Without one every setting takes its default and
the state directory lives under the current working directory.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from modpatcher.core.models.config import AppConfig

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "modpatcher.yml"

# State directory (relative to the config file's directory)
STATE_DIR = ".state"


class ConfigError(Exception):
    """Raised when the configuration file is unreadable or invalid."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for modpatcher.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to modpatcher.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None) -> AppConfig:
    """Load and validate the configuration.

    Args:
        path: Explicit path to modpatcher.yml. If None, searches upward
            and falls back to defaults when nothing is found.

    Returns:
        Validated AppConfig.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return AppConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return AppConfig()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = AppConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    logger.info("Loaded config for '%s' from %s", config.app_id, path)
    return config


def state_root(config_path: Path | None) -> Path:
    """Directory that holds the .state folder."""
    return config_path.parent.resolve() if config_path else Path.cwd()


def state_dir(config_path: Path | None) -> Path:
    """The .state directory for a config file (or the cwd)."""
    return state_root(config_path) / STATE_DIR
