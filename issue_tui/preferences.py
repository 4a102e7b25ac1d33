"""User preferences persistence.

Stores user preferences to ~/.issue-tui/preferences.json.
Currently used to remember the list filter between sessions.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _get_preferences_path() -> Path:
    """Get the path to the user preferences file."""
    return Path.home() / ".issue-tui" / "preferences.json"


def _load_all_preferences(path: Optional[Path] = None) -> dict:
    """Load all preferences from file.

    Returns:
        Dictionary of all preferences, empty dict if file doesn't exist.
    """
    prefs_path = path or _get_preferences_path()
    try:
        if prefs_path.exists():
            with open(prefs_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                return data
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        logger.warning(f"Failed to load preferences: {e}")
    return {}


def save_preference(key: str, value: Any, path: Optional[Path] = None) -> bool:
    """Save a single preference value.

    Args:
        key: Preference key (e.g., "filter").
        value: Value to save (must be JSON-serializable).
        path: Preferences file (default: ~/.issue-tui/preferences.json).

    Returns:
        True if saved successfully, False otherwise.
    """
    prefs_path = path or _get_preferences_path()
    prefs = _load_all_preferences(prefs_path)
    prefs[key] = value
    try:
        prefs_path.parent.mkdir(parents=True, exist_ok=True)
        with open(prefs_path, "w", encoding="utf-8") as f:
            json.dump(prefs, f, indent=2)
    except (OSError, TypeError) as e:
        logger.warning(f"Failed to save preferences: {e}")
        return False
    logger.debug(f"Saved preference: {key}={value}")
    return True


def load_preference(key: str, default: Any = None, path: Optional[Path] = None) -> Any:
    """Load a single preference value, or default if not found."""
    return _load_all_preferences(path).get(key, default)
