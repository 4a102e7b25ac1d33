"""Keybinding configuration for the issue manager.

Allows users to customize keybindings via:
1. JSON config file: .issue-tui/keybindings.json (project-level)
                     ~/.issue-tui/keybindings.json (user-level fallback)
2. Environment variables: IM_KEY_<ACTION>=<key>[,<key>...]

Each action maps to one or more alternative keys. Key syntax follows
prompt_toolkit conventions, after normalization by the application:
- Simple keys: "enter", "escape", "backspace", "q", "R"
- Control: "c-c", "c-u", "c-d" (Ctrl+C, Ctrl+U, Ctrl+D)
- Special: "pageup", "pagedown", "home", "end", "up", "down", "left", "right"

The same key may be bound to different actions as long as those actions
are used in different modes (e.g. "n" is "new" in the list and "no" in a
confirmation).
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

# A keybinding value: a single key or a list of alternatives
KeyBinding = Union[str, List[str]]


def normalize_key(key: KeyBinding) -> List[str]:
    """Normalize a keybinding to a list of alternative keys.

    Handles string parsing like "up,k" -> ["up", "k"]. A lone "," is kept
    as a key.
    """
    if isinstance(key, list):
        return [str(k) for k in key if str(k)]
    key = str(key)
    if "," in key and key != ",":
        return [part.strip() for part in key.split(",") if part.strip()]
    return [key] if key else []


def format_key_for_display(key: KeyBinding) -> str:
    """Format a keybinding for human-readable display.

    Converts prompt_toolkit key syntax to user-friendly format:
    - "c-u" -> "Ctrl+U"
    - "escape" -> "Esc"
    - ["up", "k"] -> "↑/k"

    Args:
        key: The keybinding in prompt_toolkit format.

    Returns:
        Human-readable string representation.
    """
    if isinstance(key, list):
        return "/".join(format_key_for_display(k) for k in key)

    key_str = str(key)

    # Control keys: c-x -> Ctrl+X
    if key_str.lower().startswith("c-") and len(key_str) > 2:
        return f"Ctrl+{key_str[2:].upper()}"

    special_keys = {
        "escape": "Esc",
        "enter": "↵",
        "backspace": "Bksp",
        "space": "Space",
        "tab": "Tab",
        "pageup": "PgUp",
        "pagedown": "PgDn",
        "home": "Home",
        "end": "End",
        "up": "↑",
        "down": "↓",
        "left": "←",
        "right": "→",
    }
    if key_str.lower() in special_keys:
        return special_keys[key_str.lower()]

    # Single character keys keep their case ("R" and "r" differ)
    return key_str


DEFAULT_KEYBINDINGS: Dict[str, List[str]] = {
    # List navigation
    "nav_up": ["up", "k"],
    "nav_down": ["down", "j"],
    "scroll_left": ["left", "h"],
    "scroll_right": ["right", "l"],

    # Issue actions
    "new": ["n"],
    "edit": ["e", "enter"],
    "close": ["c"],
    "discard": ["d"],
    "analyze": ["a"],
    "plan": ["p"],
    "review": ["R"],
    "plan_review": ["P"],
    "implement": ["i"],
    "refresh": ["r"],
    "filter": ["f"],
    "quit": ["q"],
    "force_quit": ["c-c"],

    # Content preview
    "page_up": ["pageup", "c-u"],
    "page_down": ["pagedown", "c-d"],
    "scroll_top": ["home", "g"],
    "scroll_bottom": ["end", "G"],
    "preview_edit": ["e"],
    "preview_feedback": ["f"],
    "preview_close": ["c", "escape"],

    # Confirmation
    "confirm_yes": ["y", "Y"],
    "confirm_no": ["n", "N", "escape"],
    "commit_accept": ["y", "enter"],
    "commit_cancel": ["n", "escape"],

    # Type selection
    "type_feature": ["f", "1"],
    "type_bug": ["b", "2"],
    "type_refactor": ["r", "3"],

    # Text input
    "submit": ["enter"],
    "cancel": ["escape"],
    "delete_char": ["backspace"],
}


@dataclass
class KeybindingConfig:
    """Action -> keys mapping used by the session engine.

    Values loaded from JSON or the environment are normalized to lists,
    and comma-separated strings become alternatives: "up,k" -> ["up", "k"].
    """
    bindings: Dict[str, List[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_KEYBINDINGS.items()}
    )
    source: str = "default"

    def resolve(self, key: str, actions: Iterable[str]) -> Optional[str]:
        """First action among ``actions`` that key is bound to, if any."""
        for action in actions:
            if key in self.bindings.get(action, ()):
                return action
        return None

    def merged(self, data: Dict[str, KeyBinding], source: str) -> "KeybindingConfig":
        """New config with overrides from data applied.

        Unknown keys are ignored. Values are normalized.
        """
        bindings = {k: list(v) for k, v in self.bindings.items()}
        for action, value in data.items():
            if action in DEFAULT_KEYBINDINGS:
                keys = normalize_key(value)
                if keys:
                    bindings[action] = keys
            else:
                logger.warning(f"Unknown keybinding action '{action}' - ignoring")
        return KeybindingConfig(bindings=bindings, source=source)

    @staticmethod
    def env_overrides() -> Dict[str, KeyBinding]:
        """Overrides from environment variables.

        Environment variables use the format IM_KEY_<ACTION>=<key>[,<key>]
        Examples:
            IM_KEY_ANALYZE=a
            IM_KEY_NAV_UP=up,k,c-p
        """
        prefix = "IM_KEY_"
        data: Dict[str, KeyBinding] = {}
        for env_key, value in os.environ.items():
            if env_key.startswith(prefix):
                action = env_key[len(prefix):].lower()
                data[action] = value
        return data

    @staticmethod
    def read_file(path: Path) -> Optional[Dict[str, KeyBinding]]:
        """Load overrides from a JSON file, or None if missing or invalid."""
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Invalid JSON in keybindings file {path}: {e}")
            return None
        except OSError as e:
            logger.warning(f"Error reading keybindings file {path}: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Keybindings file {path} must contain a JSON object")
            return None
        return data


def load_keybindings(
    project_dir: Optional[Path] = None,
    user_dir: Optional[Path] = None,
) -> KeybindingConfig:
    """Load keybinding configuration.

    Priority (highest to lowest):
    1. Environment variables (IM_KEY_*)
    2. Project config file (<project>/.issue-tui/keybindings.json)
    3. User config file (~/.issue-tui/keybindings.json)
    4. Defaults

    Args:
        project_dir: Project root (default: current directory).
        user_dir: Directory holding the user-level file (default: ~/.issue-tui).

    Returns:
        KeybindingConfig with the merged bindings.
    """
    project_dir = Path(project_dir) if project_dir else Path.cwd()
    user_dir = Path(user_dir) if user_dir else Path.home() / ".issue-tui"

    config = KeybindingConfig()

    # Project file wins over the user file: pick the first one that loads
    for path in (project_dir / ".issue-tui" / "keybindings.json", user_dir / "keybindings.json"):
        data = KeybindingConfig.read_file(path)
        if data is not None:
            logger.info(f"Loaded keybindings from {path}")
            config = config.merged(data, source=str(path))
            break

    env_data = KeybindingConfig.env_overrides()
    if env_data:
        config = config.merged(env_data, source=f"{config.source}+env")

    return config


def build_help_line(config: KeybindingConfig, items: Iterable[Tuple[str, str]],
                    separator: str = "  ") -> str:
    """Footer text such as "[n] new  [a] analyze" from (action, label) pairs.

    Only the first key of each action is shown.
    """
    parts = []
    for action, label in items:
        keys = config.bindings.get(action)
        if keys:
            parts.append(f"[{format_key_for_display(keys[0])}] {label}")
    return separator.join(parts)
