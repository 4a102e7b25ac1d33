"""Task runner that shells out to the claude command line tool."""

import json
import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .prompts import implement_prompt

logger = logging.getLogger(__name__)


def parse_response(output: str) -> Tuple[bool, str, str]:
    """Unpack JSON output into (success, result, session_id).

    Output that is not a JSON object is returned as plain text and still
    counts as success.
    """
    try:
        data = json.loads(output)
    except (json.JSONDecodeError, TypeError):
        return True, (output or "").strip(), ""
    if not isinstance(data, dict):
        return True, (output or "").strip(), ""
    return True, str(data.get("result") or ""), str(data.get("session_id") or "")


class ClaudeRunner:
    """Runs one prompt synchronously per call. Never raises."""

    def __init__(self, working_dir: Union[str, Path], binary: str = "claude"):
        self.working_dir = Path(working_dir)
        self.binary = binary

    def build_command(self, prompt: str, model: Optional[str] = None,
                      session: Optional[str] = None) -> List[str]:
        argv = [self.binary, "--output-format", "json"]
        if model:
            argv += ["--model", model]
        if session:
            argv += ["--resume", session]
        argv += ["-p", prompt]
        return argv

    def run(self, prompt: str, model: Optional[str] = None,
            session: Optional[str] = None) -> Tuple[bool, str, str]:
        """Execute the prompt.

        Returns:
            (success, text, session_id). On failure text holds stderr or
            the launch error.
        """
        argv = self.build_command(prompt, model, session)
        logger.debug(f"Running {self.binary} (model={model}, resume={session})")
        try:
            proc = subprocess.run(
                argv,
                cwd=self.working_dir,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            logger.warning(f"Failed to launch {self.binary}: {e}")
            return False, str(e), ""

        if proc.returncode != 0:
            logger.warning(f"{self.binary} exited with code {proc.returncode}")
            return False, proc.stderr or f"exit status {proc.returncode}", ""
        return parse_response(proc.stdout)

    def is_available(self) -> bool:
        try:
            proc = subprocess.run(
                [self.binary, "--version"],
                capture_output=True,
                check=False,
            )
        except OSError:
            return False
        return proc.returncode == 0

    def build_implement_command(self, session: str, plan_path: Union[str, Path]) -> List[str]:
        """Argv for the interactive implement session resumed from an analysis."""
        return [self.binary, "--resume", session, implement_prompt(str(plan_path))]
