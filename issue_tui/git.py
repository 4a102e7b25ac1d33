"""Version-control operations backed by the git command line."""

import logging
import subprocess
from pathlib import Path
from typing import Tuple, Union

from .interfaces import VersionControl

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class GitRepository(VersionControl):
    """Thin wrapper over git for staging and committing issue files."""

    def __init__(self, root: PathLike):
        self.root = Path(root)

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            ["git", *args],
            cwd=self.root,
            capture_output=True,
            text=True,
            check=False,
        )

    def is_repository(self) -> bool:
        try:
            return self._run("rev-parse", "--git-dir").returncode == 0
        except OSError as e:
            logger.debug(f"git unavailable: {e}")
            return False

    def has_staged_changes(self) -> bool:
        try:
            result = self._run("diff", "--cached", "--stat")
        except OSError as e:
            logger.debug(f"git unavailable: {e}")
            return False
        return result.returncode == 0 and bool(result.stdout.strip())

    def commit(self, message: str) -> Tuple[bool, str]:
        """Commit staged changes.

        Returns:
            (success, combined output).
        """
        try:
            result = self._run("commit", "-m", message)
        except OSError as e:
            return False, str(e)
        output = (result.stdout or "") + (result.stderr or "")
        if result.returncode != 0:
            logger.warning(f"git commit failed: {output.strip()}")
            return False, output
        return True, output

    def add(self, *paths: PathLike) -> None:
        """Stage the given paths. Missing paths and git errors are ignored."""
        existing = [str(p) for p in paths if Path(p).exists()]
        if not existing:
            return
        try:
            result = self._run("add", "--", *existing)
        except OSError as e:
            logger.debug(f"git add skipped: {e}")
            return
        if result.returncode != 0:
            logger.debug(f"git add failed: {result.stderr.strip()}")
