"""Utilities for handing the terminal to an external process.

The editor and the interactive implement flow both block until the child
exits. The application runs them inside prompt_toolkit's run_in_terminal
so the screen is released first and redrawn afterwards.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)


def get_editor() -> str:
    """Get the user's preferred editor.

    Checks $EDITOR, then $VISUAL, then falls back to 'vi'.
    """
    return os.environ.get("EDITOR") or os.environ.get("VISUAL") or "vi"


def editor_command(path: Union[str, Path]) -> List[str]:
    """Argv that opens path in the user's editor.

    The editor value may carry its own arguments ("code -w").
    """
    return [*get_editor().split(), str(path)]


def run_foreground(argv: List[str], cwd: Optional[Union[str, Path]] = None) -> int:
    """Run a command attached to the terminal and wait for it.

    Args:
        argv: Command and arguments.
        cwd: Working directory (default: inherit).

    Returns:
        The exit status, or 127 if the command could not be started.
    """
    try:
        result = subprocess.run(argv, cwd=cwd, check=False)
    except OSError as e:
        logger.warning(f"Could not launch {argv[0] if argv else '?'}: {e}")
        return 127
    if result.returncode != 0:
        logger.info(f"{argv[0]} exited with code {result.returncode}")
    return result.returncode
