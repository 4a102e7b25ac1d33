"""Shared fixtures: in-memory collaborators for the session engine.

Run tests with: pytest issue_tui/tests/
"""

import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from issue_tui.config import AppConfig
from issue_tui.interfaces import IssueStore, StorageError, VersionControl
from issue_tui.models import FilterMode, Issue, IssueStatus, IssueType, filter_issues
from issue_tui.orchestrator import TaskOrchestrator
from issue_tui.state_machine import Refresh, SessionMachine


class FakeStore(IssueStore):
    """Issue store kept entirely in memory."""

    def __init__(self, root: Path = Path("/project")):
        self.root = root
        self.briefs: Dict[str, Issue] = {}
        self.order: List[str] = []
        self.analyses: Dict[str, str] = {}
        self.plans: Dict[str, str] = {}
        self.sessions: Dict[str, str] = {}
        self.status_updates: List[Tuple[str, IssueStatus, str]] = []
        self.synced: List[str] = []
        self.fail_writes = False
        self.fail_loads = False

    def add(self, issue_id: str, title: str = "Issue", status: IssueStatus = IssueStatus.OPEN,
            issue_type: IssueType = IssueType.FEATURE, body: str = "Body text",
            analysis: Optional[str] = None, plan: Optional[str] = None,
            session: Optional[str] = None) -> Issue:
        issue = Issue(id=issue_id, title=title, type=issue_type, status=status, content=body)
        self.briefs[issue_id] = issue
        self.order.append(issue_id)
        if analysis is not None:
            self.analyses[issue_id] = analysis
        if plan is not None:
            self.plans[issue_id] = plan
        if session is not None:
            self.sessions[issue_id] = session
        return issue

    def _check_write(self) -> None:
        if self.fail_writes:
            raise StorageError("disk full")

    def load_issues(self, mode: FilterMode) -> List[Issue]:
        if self.fail_loads:
            raise StorageError("index unreadable")
        issues = [replace(self.briefs[i], content="") for i in self.order]
        return filter_issues(issues, mode)

    def create_issue(self, title: str, issue_type: IssueType, content: str = "") -> Issue:
        self._check_write()
        issue_id = f"{len(self.order) + 1:04d}"
        return self.add(issue_id, title=title, issue_type=issue_type, body=content)

    def update_status(self, issue_id: str, status: IssueStatus, reason: str = "") -> None:
        self._check_write()
        self.status_updates.append((issue_id, status, reason))
        self.briefs[issue_id].status = status
        if reason:
            self.briefs[issue_id].discard_reason = reason

    def sync_brief_to_index(self, issue_id: str) -> bool:
        self.synced.append(issue_id)
        return False

    def load_brief(self, issue_id: str) -> Optional[Issue]:
        issue = self.briefs.get(issue_id)
        return replace(issue) if issue else None

    def save_body(self, issue_id: str, body: str) -> None:
        self._check_write()
        self.briefs[issue_id].content = body

    def analysis_exists(self, issue_id: str) -> bool:
        return issue_id in self.analyses

    def plan_exists(self, issue_id: str) -> bool:
        return issue_id in self.plans

    def load_analysis(self, issue_id: str) -> str:
        if self.fail_loads:
            raise StorageError("analysis unreadable")
        return self.analyses.get(issue_id, "")

    def save_analysis(self, issue_id: str, content: str) -> None:
        self._check_write()
        self.analyses[issue_id] = content

    def load_plan(self, issue_id: str) -> str:
        if self.fail_loads:
            raise StorageError("plan unreadable")
        return self.plans.get(issue_id, "")

    def save_plan(self, issue_id: str, content: str) -> None:
        self._check_write()
        self.plans[issue_id] = content

    def load_session(self, issue_id: str) -> str:
        return self.sessions.get(issue_id, "")

    def save_session(self, issue_id: str, session_id: str) -> None:
        self._check_write()
        self.sessions[issue_id] = session_id

    def brief_path(self, issue_id: str) -> Path:
        return self.root / "issues" / issue_id / "brief.md"

    def analysis_path(self, issue_id: str) -> Path:
        return self.root / "issues" / issue_id / "analysis.md"

    def plan_path(self, issue_id: str) -> Path:
        return self.root / "issues" / issue_id / "plan.md"


class FakeVCS(VersionControl):
    def __init__(self, repository: bool = True, staged: bool = True, commit_ok: bool = True):
        self.repository = repository
        self.staged = staged
        self.commit_ok = commit_ok
        self.commits: List[str] = []

    def is_repository(self) -> bool:
        return self.repository

    def has_staged_changes(self) -> bool:
        return self.staged

    def commit(self, message: str) -> Tuple[bool, str]:
        self.commits.append(message)
        return self.commit_ok, "" if self.commit_ok else "hook rejected"

    def add(self, *paths) -> None:
        pass


class GatedRunner:
    """Task runner that blocks until released, recording every call."""

    def __init__(self, response: Tuple[bool, str, str] = (True, "result text", "sess-1")):
        self.response = response
        self.calls: List[Tuple[str, Optional[str], Optional[str]]] = []
        self.gate = threading.Event()
        self._lock = threading.Lock()

    def run(self, prompt, model=None, session=None):
        with self._lock:
            self.calls.append((prompt, model, session))
        self.gate.wait(timeout=5)
        return self.response

    def release(self) -> None:
        self.gate.set()


def wait_for_results(orchestrator: TaskOrchestrator, count: int = 1, timeout: float = 5.0) -> None:
    """Block until count results are queued on the orchestrator."""
    deadline = time.monotonic() + timeout
    while orchestrator.pending_results < count:
        if time.monotonic() > deadline:
            raise AssertionError(f"expected {count} results, got {orchestrator.pending_results}")
        time.sleep(0.01)


def press(machine: SessionMachine, *keys: str) -> list:
    """Feed keys to the machine, applying Refresh commands like the shell does."""
    commands = []
    for key in keys:
        result = machine.handle_key(key)
        for command in result:
            if isinstance(command, Refresh):
                machine.refresh_issues()
        commands.extend(result)
    return commands


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def vcs():
    return FakeVCS()


@pytest.fixture
def runner():
    runner = GatedRunner()
    yield runner
    runner.release()


@pytest.fixture
def orchestrator(runner):
    return TaskOrchestrator(runner)


@pytest.fixture
def machine(store, vcs, orchestrator):
    """Machine on a 100x30 terminal, built lazily so tests can seed the store first."""
    config = AppConfig(root=Path("/project"), claude_bin="claude", commit_model="haiku",
                       trace_log=None, tick_interval=0.1)
    m = SessionMachine(
        store, vcs, orchestrator,
        config=config,
        implement_command=lambda session, plan: ["claude", "--resume", session, str(plan)],
    )
    m.resize(100, 30)
    return m
