"""Collaborator interfaces used by the session engine.

The engine only talks to storage and version control through these
abstractions, so tests can substitute in-memory fakes and alternate
backends can be dropped in without touching the state machine.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple

from .models import FilterMode, Issue, IssueStatus, IssueType


class StorageError(Exception):
    """Raised when issue files cannot be read, parsed or written."""


class IssueStore(ABC):
    """Persistent storage of issue documents."""

    # =========================================================================
    # Listing and creation
    # =========================================================================

    @abstractmethod
    def load_issues(self, mode: FilterMode) -> List[Issue]:
        """Issues visible under a filter, in stored order."""
        ...

    @abstractmethod
    def create_issue(self, title: str, issue_type: IssueType, content: str = "") -> Issue:
        """Create, persist and stage a new open issue."""
        ...

    @abstractmethod
    def update_status(self, issue_id: str, status: IssueStatus, reason: str = "") -> None:
        ...

    @abstractmethod
    def sync_brief_to_index(self, issue_id: str) -> bool:
        """Re-read title/type from the brief and patch the index if divergent."""
        ...

    # =========================================================================
    # Documents
    # =========================================================================

    @abstractmethod
    def load_brief(self, issue_id: str) -> Optional[Issue]:
        """Issue with its body, or None if the brief does not exist."""
        ...

    @abstractmethod
    def save_body(self, issue_id: str, body: str) -> None:
        ...

    @abstractmethod
    def analysis_exists(self, issue_id: str) -> bool:
        ...

    @abstractmethod
    def plan_exists(self, issue_id: str) -> bool:
        ...

    @abstractmethod
    def load_analysis(self, issue_id: str) -> str:
        ...

    @abstractmethod
    def save_analysis(self, issue_id: str, content: str) -> None:
        ...

    @abstractmethod
    def load_plan(self, issue_id: str) -> str:
        ...

    @abstractmethod
    def save_plan(self, issue_id: str, content: str) -> None:
        ...

    @abstractmethod
    def load_session(self, issue_id: str) -> str:
        """Continuation token, or "" if none was recorded."""
        ...

    @abstractmethod
    def save_session(self, issue_id: str, session_id: str) -> None:
        ...

    # =========================================================================
    # Paths handed to external processes
    # =========================================================================

    @abstractmethod
    def brief_path(self, issue_id: str) -> Path:
        ...

    @abstractmethod
    def analysis_path(self, issue_id: str) -> Path:
        ...

    @abstractmethod
    def plan_path(self, issue_id: str) -> Path:
        ...


class VersionControl(ABC):
    """Staging and commit operations."""

    @abstractmethod
    def is_repository(self) -> bool:
        ...

    @abstractmethod
    def has_staged_changes(self) -> bool:
        ...

    @abstractmethod
    def commit(self, message: str) -> Tuple[bool, str]:
        """Commit staged changes, returning (success, output)."""
        ...

    @abstractmethod
    def add(self, *paths) -> None:
        """Stage paths; errors are ignored."""
        ...
