"""Runtime configuration resolved from the environment.

Environment Variables:
    IM_CLAUDE_BIN: Task runner executable (default: claude)
    IM_COMMIT_MODEL: Model hint for commit-message generation (default: haiku)
    IM_TRACE_LOG: Write debug logs to this file; unset suppresses logging
    IM_AMBIGUOUS_WIDTH: Width of East Asian Ambiguous glyphs, 1 or 2
    IM_TICK_INTERVAL: Spinner timer period in seconds (default: 0.1)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def _env_float(name: str, default: float) -> float:
    try:
        value = float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


@dataclass
class AppConfig:
    """Settings for one session."""
    root: Path = field(default_factory=Path.cwd)
    claude_bin: str = field(default_factory=lambda: os.environ.get("IM_CLAUDE_BIN", "claude"))
    commit_model: str = field(default_factory=lambda: os.environ.get("IM_COMMIT_MODEL", "haiku"))
    trace_log: Optional[str] = field(default_factory=lambda: os.environ.get("IM_TRACE_LOG") or None)
    tick_interval: float = field(default_factory=lambda: _env_float("IM_TICK_INTERVAL", 0.1))

    @property
    def issues_dir(self) -> Path:
        return self.root / "issues"


def load_config(root: Optional[str] = None) -> AppConfig:
    """Build the configuration for a project root (default: cwd)."""
    path = Path(root).expanduser().resolve() if root else Path.cwd()
    return AppConfig(root=path)
