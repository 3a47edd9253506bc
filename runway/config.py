"""Configuration file management for runway."""

import os
import tomllib
from pathlib import Path
from typing import Any

import tomli_w

DEFAULT_SETTINGS: dict[str, Any] = {
    "timezone": "UTC",
    "warning_threshold": 500.0,
    "currency_symbol": "£",
    "projection_months": 1,
    "show_projected": True,
}


def get_xdg_config_home() -> Path:
    """Get XDG config directory, with fallback to ~/.config."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config)
    return Path.home() / ".config"


def get_config_path() -> Path:
    """Get the config file path (XDG compliant).

    Returns:
        Path to the config file.
    """
    return get_xdg_config_home() / "runway" / "config.toml"


def create_default_config(config_path: Path | None = None) -> None:
    """Create default config file with secure permissions.

    Args:
        config_path: Path to config file. If None, uses default location.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "wb") as f:
        tomli_w.dump(dict(DEFAULT_SETTINGS), f)

    os.chmod(config_path, 0o600)


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load configuration from TOML file.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        Configuration dictionary.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        tomllib.TOMLDecodeError: If the file is not valid TOML.
    """
    if config_path is None:
        config_path = get_config_path()

    with open(config_path, "rb") as f:
        return tomllib.load(f)


def save_config(config: dict[str, Any], config_path: Path | None = None) -> None:
    """Save configuration to TOML file.

    Args:
        config: Configuration dictionary.
        config_path: Path to config file. If None, uses default location.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "wb") as f:
        tomli_w.dump(config, f)

    os.chmod(config_path, 0o600)


def load_settings(config_path: Path | None = None) -> dict[str, Any]:
    """Load settings merged over the defaults.

    A missing config file yields the defaults.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        Settings dictionary containing every key in DEFAULT_SETTINGS.

    Raises:
        ValueError: If a setting has the wrong type.
    """
    try:
        config = load_config(config_path)
    except FileNotFoundError:
        config = {}

    settings = {**DEFAULT_SETTINGS, **config}
    validate_settings(settings)
    return settings


def validate_settings(settings: dict[str, Any]) -> None:
    """Check that every known setting has a usable type.

    Raises:
        ValueError: If a setting has the wrong type.
    """
    if not isinstance(settings["timezone"], str):
        raise ValueError("timezone must be a string")
    if not isinstance(settings["warning_threshold"], int | float):
        raise ValueError("warning_threshold must be a number")
    if not isinstance(settings["projection_months"], int) or settings["projection_months"] < 1:
        raise ValueError("projection_months must be a positive integer")
    if not isinstance(settings["show_projected"], bool):
        raise ValueError("show_projected must be true or false")


def set_setting(key: str, value: Any, config_path: Path | None = None) -> None:
    """Update a single setting, creating the config file if needed.

    Raises:
        KeyError: If the setting is unknown.
        ValueError: If the value has the wrong type.
    """
    if key not in DEFAULT_SETTINGS:
        raise KeyError(f"Unknown setting '{key}'")

    try:
        config = load_config(config_path)
    except FileNotFoundError:
        config = dict(DEFAULT_SETTINGS)

    config[key] = value
    validate_settings({**DEFAULT_SETTINGS, **config})
    save_config(config, config_path)
