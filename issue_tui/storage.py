"""File-backed issue storage.

Layout under the project root::

    issues/
        index.yaml            # ordered list of {id, title, type, status, created}
        0001/
            brief.md          # YAML frontmatter + markdown body
            analysis.md
            plan.md
            .session          # continuation token for resumable tasks

Every write stages the touched files through the optional version-control
collaborator; staging outside a repository is silently skipped.
"""

import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .interfaces import IssueStore, StorageError
from .models import (
    FilterMode,
    Issue,
    IssueStatus,
    IssueType,
    filter_issues,
    parse_status,
    parse_type,
)

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"

_FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*\n?(.*)", re.DOTALL)


def parse_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """Split markdown into (frontmatter dict, body).

    Content without a frontmatter block yields an empty dict and the
    stripped text as body.

    Raises:
        StorageError: If the frontmatter is not valid YAML.
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}, content.strip()
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        raise StorageError(f"parsing frontmatter: {e}") from e
    if not isinstance(data, dict):
        raise StorageError("frontmatter must be a mapping")
    return data, match.group(2).strip()


def create_frontmatter(data: Dict[str, Any], body: str) -> str:
    """Render frontmatter and body as a markdown document."""
    header = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
    text = f"---\n{header}---\n"
    if body:
        text += f"\n{body}\n"
    return text


def get_string(data: Dict[str, Any], key: str) -> str:
    """String value of a YAML field.

    Integer ids are zero-padded to four digits; dates are ISO formatted.
    """
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        if key == "id":
            return f"{int(value):04d}"
        return str(int(value)) if isinstance(value, float) else str(value)
    if isinstance(value, (datetime, date)):
        return value.strftime(DATE_FORMAT)
    return str(value)


def _parse_date(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        return None


def next_issue_id(issues: List[Issue]) -> str:
    """Next sequential 4-digit id: one past the highest numeric id."""
    highest = 0
    for issue in issues:
        digits = re.match(r"\d+", issue.id)
        if digits:
            highest = max(highest, int(digits.group(0)))
    return f"{highest + 1:04d}"


class FileIssueStore(IssueStore):
    """Reads and writes issues as markdown files under <root>/issues."""

    def __init__(self, root: Union[str, Path], vcs: Optional[Any] = None):
        """Initialize the store.

        Args:
            root: Project root directory.
            vcs: Optional object with ``add(*paths)`` used to stage writes.
        """
        self.root = Path(root)
        self.issues_dir = self.root / "issues"
        self._vcs = vcs

    # Paths

    @property
    def index_path(self) -> Path:
        return self.issues_dir / "index.yaml"

    def issue_dir(self, issue_id: str) -> Path:
        return self.issues_dir / issue_id

    def brief_path(self, issue_id: str) -> Path:
        return self.issue_dir(issue_id) / "brief.md"

    def analysis_path(self, issue_id: str) -> Path:
        return self.issue_dir(issue_id) / "analysis.md"

    def plan_path(self, issue_id: str) -> Path:
        return self.issue_dir(issue_id) / "plan.md"

    def session_path(self, issue_id: str) -> Path:
        return self.issue_dir(issue_id) / ".session"

    def ensure_issues_dir(self) -> None:
        try:
            self.issues_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"creating {self.issues_dir}: {e}") from e

    def _stage(self, *paths: Path) -> None:
        if self._vcs is not None:
            self._vcs.add(*paths)

    # Low-level file helpers

    def _read_text(self, path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"reading {path}: {e}") from e
        except UnicodeDecodeError as e:
            raise StorageError(f"decoding {path}: {e}") from e

    def _write_text(self, path: Path, content: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"writing {path}: {e}") from e

    # Index

    def load_index(self) -> List[Issue]:
        """All issues in index order (empty if the index does not exist)."""
        text = self._read_text(self.index_path)
        if text is None:
            return []
        try:
            raw = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise StorageError(f"parsing index: {e}") from e
        if not isinstance(raw, dict):
            raise StorageError("index must be a mapping with an 'issues' list")

        issues = []
        for entry in raw.get("issues") or []:
            if not isinstance(entry, dict):
                continue
            issues.append(self._issue_from_entry(entry))
        return issues

    def save_index(self, issues: List[Issue]) -> None:
        self.ensure_issues_dir()
        data = {"issues": [self._index_entry(issue) for issue in issues]}
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
        self._write_text(self.index_path, text)

    def load_issues(self, mode: FilterMode) -> List[Issue]:
        """Issues visible under a filter, in index order."""
        return filter_issues(self.load_index(), mode)

    @staticmethod
    def _index_entry(issue: Issue) -> Dict[str, Any]:
        return {
            "id": issue.id,
            "title": issue.title,
            "type": issue.type_value,
            "status": issue.status_value,
            "created": issue.created.strftime(DATE_FORMAT) if issue.created else "",
        }

    @staticmethod
    def _issue_from_entry(entry: Dict[str, Any]) -> Issue:
        type_value = get_string(entry, "type")
        status_value = get_string(entry, "status")
        return Issue(
            id=get_string(entry, "id"),
            title=get_string(entry, "title"),
            type=parse_type(type_value) or type_value,
            status=parse_status(status_value) or status_value,
            created=_parse_date(get_string(entry, "created")),
        )

    # Brief

    def load_brief(self, issue_id: str) -> Optional[Issue]:
        """Issue as described by its brief.md, or None if there is none."""
        text = self._read_text(self.brief_path(issue_id))
        if text is None:
            return None
        data, body = parse_frontmatter(text)
        type_value = get_string(data, "type")
        status_value = get_string(data, "status")
        return Issue(
            id=issue_id,
            title=get_string(data, "title"),
            type=parse_type(type_value) or type_value,
            status=parse_status(status_value) or status_value,
            created=_parse_date(get_string(data, "date")),
            content=body,
            discard_reason=get_string(data, "discard_reason"),
        )

    def load_body(self, issue_id: str) -> Optional[str]:
        brief = self.load_brief(issue_id)
        return brief.content if brief else None

    def save_brief(self, issue: Issue) -> None:
        data: Dict[str, Any] = {
            "title": issue.title,
            "type": issue.type_value,
            "status": issue.status_value,
            "date": issue.created.strftime(DATE_FORMAT) if issue.created else "",
        }
        if issue.discard_reason:
            data["discard_reason"] = issue.discard_reason
        self._write_text(self.brief_path(issue.id), create_frontmatter(data, issue.content))

    def save_body(self, issue_id: str, body: str) -> None:
        issue = self.load_brief(issue_id)
        if issue is None:
            raise StorageError(f"issue not found: {issue_id}")
        issue.content = body
        self.save_brief(issue)
        self._stage(self.brief_path(issue_id))

    def create_issue(self, title: str, issue_type: IssueType, content: str = "") -> Issue:
        """Create a new open issue, write its brief and append it to the index."""
        issues = self.load_index()
        issue = Issue(
            id=next_issue_id(issues),
            title=title,
            type=issue_type,
            status=IssueStatus.OPEN,
            created=datetime.now(),
            content=content,
        )
        self.save_brief(issue)
        issues.append(issue)
        self.save_index(issues)
        self._stage(self.index_path, self.brief_path(issue.id))
        logger.info(f"Created issue {issue.id}: {title}")
        return issue

    def update_status(self, issue_id: str, status: IssueStatus, reason: str = "") -> None:
        """Set the status in both brief.md and index.yaml."""
        issue = self.load_brief(issue_id)
        if issue is None:
            raise StorageError(f"issue not found: {issue_id}")
        issue.status = status
        if reason:
            issue.discard_reason = reason
        self.save_brief(issue)

        issues = self.load_index()
        for entry in issues:
            if entry.id == issue_id:
                entry.status = status
                self.save_index(issues)
                break
        self._stage(self.index_path, self.brief_path(issue_id))

    def sync_brief_to_index(self, issue_id: str) -> bool:
        """Copy title and type from brief.md into the index if they diverged.

        Returns:
            True if the index was rewritten.
        """
        brief = self.load_brief(issue_id)
        if brief is None:
            return False
        issues = self.load_index()
        for entry in issues:
            if entry.id != issue_id:
                continue
            if entry.title == brief.title and entry.type_value == brief.type_value:
                return False
            entry.title = brief.title
            entry.type = brief.type
            self.save_index(issues)
            self._stage(self.index_path)
            return True
        return False

    # Analysis / plan / session

    def analysis_exists(self, issue_id: str) -> bool:
        return self.analysis_path(issue_id).exists()

    def plan_exists(self, issue_id: str) -> bool:
        return self.plan_path(issue_id).exists()

    def load_analysis(self, issue_id: str) -> str:
        return self._read_text(self.analysis_path(issue_id)) or ""

    def save_analysis(self, issue_id: str, content: str) -> None:
        path = self.analysis_path(issue_id)
        self._write_text(path, content)
        self._stage(path, self.index_path)

    def load_plan(self, issue_id: str) -> str:
        return self._read_text(self.plan_path(issue_id)) or ""

    def save_plan(self, issue_id: str, content: str) -> None:
        path = self.plan_path(issue_id)
        self._write_text(path, content)
        self._stage(path, self.index_path)

    def load_session(self, issue_id: str) -> str:
        return (self._read_text(self.session_path(issue_id)) or "").strip()

    def save_session(self, issue_id: str, session_id: str) -> None:
        self._write_text(self.session_path(issue_id), session_id)
