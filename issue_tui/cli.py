"""Command line entry point: ``im``."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .app import IssueApp
from .claude_runner import ClaudeRunner
from .config import AppConfig, load_config
from .git import GitRepository
from .interfaces import StorageError
from .keybindings import load_keybindings
from .models import FilterMode
from .orchestrator import TaskOrchestrator
from .preferences import load_preference, save_preference
from .state_machine import SessionMachine
from .storage import FileIssueStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(trace_log: Optional[str]) -> None:
    """Send logs to the trace file, or silence them entirely.

    Console output would corrupt the full-screen display, so without a
    trace file every record is dropped.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if trace_log:
        handler = logging.FileHandler(trace_log, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.setLevel(logging.DEBUG)
    else:
        root.addHandler(logging.NullHandler())
        root.setLevel(logging.CRITICAL + 1)


def build_machine(config: AppConfig) -> SessionMachine:
    """Wire storage, version control, task runner and engine for a project."""
    vcs = GitRepository(config.root)
    store = FileIssueStore(config.root, vcs=vcs)
    store.ensure_issues_dir()
    runner = ClaudeRunner(config.root, config.claude_bin)
    if not runner.is_available():
        logger.warning(f"{config.claude_bin} is not available; background tasks will fail")

    filter_mode = FilterMode.from_name(load_preference("filter", FilterMode.ACTIVE.value))
    return SessionMachine(
        store,
        vcs,
        TaskOrchestrator(runner),
        keys=load_keybindings(project_dir=config.root),
        config=config,
        filter_mode=filter_mode,
        implement_command=runner.build_implement_command,
        on_filter_change=lambda mode: save_preference("filter", mode.value),
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="im",
        description="Terminal issue manager with background analysis tasks",
    )
    parser.add_argument(
        "--path", "-p",
        default=None,
        help="Project root holding the issues/ directory (default: current directory)",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: .env)",
    )
    args = parser.parse_args(argv)

    load_dotenv(args.env_file)

    root = Path(args.path).expanduser() if args.path else Path.cwd()
    if not root.is_dir():
        print(f"Error: {root} is not a directory", file=sys.stderr)
        return 1

    config = load_config(str(root))
    configure_logging(config.trace_log)

    if not sys.stdout.isatty():
        print("Error: im requires an interactive terminal.", file=sys.stderr)
        return 1

    try:
        machine = build_machine(config)
    except StorageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger.info(f"Starting issue manager in {config.root}")
    return IssueApp(machine, tick_interval=config.tick_interval).run()


if __name__ == "__main__":
    sys.exit(main())
