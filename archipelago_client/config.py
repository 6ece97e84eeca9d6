"""Settings file for the archipelago-client command.

The file is a JSON object. Keys it leaves out take the values from
``get_default_config``; keys it does not know are kept but ignored.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .constants import TAG_TEXT_ONLY, ItemsHandlingFlags, normalize_items_handling
from .utils import DEFAULT_PORT, normalize_address

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "AP_CLIENT_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".archipelago-client" / "config.json"
MAX_CONFIG_FILE_SIZE = 64 * 1024


def get_default_config() -> dict[str, Any]:
    """Get default settings.

    Returns:
        A new dictionary, safe to modify
    """
    return {
        "server": f"localhost:{DEFAULT_PORT}",
        "game": "",
        "slot": "",
        "password": None,
        "tags": [TAG_TEXT_ONLY],
        "items_handling": int(ItemsHandlingFlags.ALL),
        "uuid": "",
        "fetch_data_package": True,
        "max_message_size": 0,
        "heartbeat_s": None,
    }


def expand_path(path: str) -> str:
    """Expand ~ and $VARS in path and make it absolute."""
    return str(Path(os.path.expandvars(path)).expanduser().resolve())


def get_config_path() -> Path:
    """Return the settings file location.

    AP_CLIENT_CONFIG overrides the default ~/.archipelago-client/config.json.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(expand_path(override)) if override else DEFAULT_CONFIG_PATH


def validate_config(config: Mapping[str, Any]) -> dict[str, Any]:
    """Check types and normalize values of merged settings.

    Args:
        config: Settings with every default key present

    Returns:
        A validated copy

    Raises:
        ValueError: If a setting has an unusable value
    """
    checked = dict(config)
    checked["server"] = normalize_address(checked["server"])

    for key in ("game", "slot", "uuid"):
        if not isinstance(checked[key], str):
            raise ValueError(f"Setting '{key}' must be a string")
    if checked["password"] is not None and not isinstance(checked["password"], str):
        raise ValueError("Setting 'password' must be a string or null")

    tags = checked["tags"]
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise ValueError("Setting 'tags' must be a list of strings")

    items_handling = checked["items_handling"]
    if isinstance(items_handling, bool) or not isinstance(items_handling, int):
        raise ValueError("Setting 'items_handling' must be an integer between 0 and 7")
    checked["items_handling"] = normalize_items_handling(items_handling)

    size = checked["max_message_size"]
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise ValueError("Setting 'max_message_size' must be a non-negative integer")
    heartbeat = checked["heartbeat_s"]
    if heartbeat is not None and (
        isinstance(heartbeat, bool) or not isinstance(heartbeat, (int, float)) or heartbeat <= 0
    ):
        raise ValueError("Setting 'heartbeat_s' must be a positive number or null")

    checked["fetch_data_package"] = bool(checked["fetch_data_package"])
    return checked


def apply_overrides(config: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Return config with every override that is not None applied."""
    merged = dict(config)
    merged.update({key: value for key, value in overrides.items() if value is not None})
    return merged


def load_config() -> dict[str, Any]:
    """Read the settings file, creating it with defaults when missing.

    An unreadable, oversized or non-object file is logged and the defaults
    are used instead; the file is left untouched in that case.

    Returns:
        Settings with every default key present
    """
    path = get_config_path()
    defaults = get_default_config()

    if not path.is_file():
        logger.info("No settings file at %s, writing defaults", path)
        save_config(defaults)
        return defaults

    try:
        size = path.stat().st_size
        if size > MAX_CONFIG_FILE_SIZE:
            logger.error("Settings file %s is %d bytes (limit %d), ignoring it", path, size, MAX_CONFIG_FILE_SIZE)
            return defaults
        loaded = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error("Could not read settings from %s: %s", path, e)
        return defaults

    if not isinstance(loaded, dict):
        logger.error("Settings file %s must hold a JSON object, ignoring it", path)
        return defaults

    logger.debug("Loaded settings from %s", path)
    return {**defaults, **loaded}


def save_config(config: Mapping[str, Any]) -> None:
    """Write settings as indented JSON, logging (not raising) on failure."""
    path = get_config_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(dict(config), indent=2) + "\n", encoding="utf-8")
        logger.info("Saved settings to %s", path)
    except OSError as e:
        logger.error("Could not save settings to %s: %s", path, e)
