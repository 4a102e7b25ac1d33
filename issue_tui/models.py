"""Issue data types shared by the session engine and its collaborators."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class IssueStatus(str, Enum):
    """Lifecycle status of an issue."""
    OPEN = "open"
    ANALYZED = "analyzed"
    PLANNED = "planned"
    IMPLEMENTED = "implemented"
    CLOSED = "closed"
    INVALID = "invalid"

    @property
    def icon(self) -> str:
        return STATUS_ICONS.get(self, "?")


class IssueType(str, Enum):
    """Category of an issue."""
    FEATURE = "feature"
    BUG = "bug"
    REFACTOR = "refactor"

    @property
    def icon(self) -> str:
        return TYPE_ICONS.get(self, "❓")


STATUS_ICONS: Dict[IssueStatus, str] = {
    IssueStatus.OPEN: "○",
    IssueStatus.ANALYZED: "◐",
    IssueStatus.PLANNED: "●",
    IssueStatus.IMPLEMENTED: "◉",
    IssueStatus.CLOSED: "✓",
    IssueStatus.INVALID: "✗",
}

TYPE_ICONS: Dict[IssueType, str] = {
    IssueType.FEATURE: "💡",
    IssueType.BUG: "💥",
    IssueType.REFACTOR: "🔧",
}

SPINNER_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]


def parse_status(value: str) -> Optional[IssueStatus]:
    try:
        return IssueStatus(value)
    except ValueError:
        return None


def parse_type(value: str) -> Optional[IssueType]:
    try:
        return IssueType(value)
    except ValueError:
        return None


class FilterMode(Enum):
    """Which lifecycle statuses the issue list shows. Cycles in order."""
    ACTIVE = "Active"
    ALL = "All"
    CLOSED = "Closed"

    def next(self) -> "FilterMode":
        members = list(FilterMode)
        return members[(members.index(self) + 1) % len(members)]

    @property
    def statuses(self) -> Tuple[IssueStatus, ...]:
        if self is FilterMode.ACTIVE:
            return (IssueStatus.OPEN, IssueStatus.ANALYZED, IssueStatus.PLANNED)
        if self is FilterMode.CLOSED:
            return (IssueStatus.CLOSED, IssueStatus.INVALID)
        return tuple(IssueStatus)

    @classmethod
    def from_name(cls, name: str, default: "FilterMode" = None) -> "FilterMode":
        for mode in cls:
            if mode.value.lower() == str(name).lower():
                return mode
        return default if default is not None else cls.ACTIVE


@dataclass
class Issue:
    """A single issue as shown in the list.

    ``status`` and ``type`` keep unknown values from disk as plain strings
    so a hand-edited file never makes the list unloadable.
    """
    id: str
    title: str
    type: object = IssueType.FEATURE
    status: object = IssueStatus.OPEN
    created: Optional[datetime] = None
    content: str = ""
    discard_reason: str = ""

    @property
    def status_icon(self) -> str:
        return self.status.icon if isinstance(self.status, IssueStatus) else "?"

    @property
    def type_icon(self) -> str:
        return self.type.icon if isinstance(self.type, IssueType) else "❓"

    @property
    def status_value(self) -> str:
        return self.status.value if isinstance(self.status, Enum) else str(self.status)

    @property
    def type_value(self) -> str:
        return self.type.value if isinstance(self.type, Enum) else str(self.type)


def filter_issues(issues: List[Issue], mode: FilterMode) -> List[Issue]:
    """Order-preserving subset of issues whose status the mode includes."""
    if mode is FilterMode.ALL:
        return list(issues)
    allowed = set(mode.statuses)
    return [issue for issue in issues if issue.status in allowed]


# Background task kinds
TASK_ANALYZE = "analyze"
TASK_PLAN = "plan"
TASK_REVIEW = "review"
TASK_PLAN_REVIEW = "plan-review"
TASK_COMMIT = "commit"


@dataclass
class TaskResult:
    """Outcome of one background task, delivered exactly once."""
    issue_id: str
    kind: str
    success: bool
    result: str = ""
    session_id: str = ""
