"""Modal session engine for the issue manager.

The engine owns every piece of UI state (issue list, viewports, modal
state, pending context) and is driven by three kinds of events coming
from the application shell: key presses, timer ticks and task results.
Each handler mutates state and returns follow-up commands for the shell
to execute (refresh the list, hand the terminal to an external process,
quit). Nothing here touches the terminal, so the whole machine can be
exercised from tests with fake collaborators.

Key handling is table driven: each state maps action names (resolved
through the keybinding configuration) to handlers.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from .config import AppConfig
from .content_viewport import ContentViewport
from .editor_utils import editor_command
from .interfaces import IssueStore, StorageError, VersionControl
from .keybindings import KeybindingConfig
from .list_viewport import ListViewport
from .models import (
    SPINNER_FRAMES,
    TASK_ANALYZE,
    TASK_COMMIT,
    TASK_PLAN,
    TASK_PLAN_REVIEW,
    TASK_REVIEW,
    FilterMode,
    Issue,
    IssueStatus,
    IssueType,
    TaskResult,
)
from .orchestrator import TaskOrchestrator
from .prompts import (
    analysis_prompt,
    commit_message_prompt,
    plan_prompt,
    plan_review_prompt,
    review_prompt,
)

logger = logging.getLogger(__name__)

# Maximum length of a typed title or feedback line
INPUT_LIMIT = 200

# Rows taken by header, footer and status line
CHROME_ROWS = 3


class SessionState(Enum):
    NORMAL = "normal"
    TEXT_INPUT = "text_input"
    CONFIRM = "confirm"
    TYPE_SELECT = "type_select"
    PREVIEW_ANALYSIS = "preview_analysis"
    PREVIEW_PLAN = "preview_plan"
    COMMIT_CONFIRM = "commit_confirm"
    COMMIT_GENERATING = "commit_generating"


class InputMode(Enum):
    NONE = "none"
    NEW_ISSUE = "new_issue"
    REVIEW = "review"
    PLAN_REVIEW = "plan_review"


class ActionKind(Enum):
    DISCARD = "discard"
    REANALYZE = "reanalyze"
    REPLAN = "replan"
    IMPLEMENT = "implement"


@dataclass(frozen=True)
class PendingAction:
    """Action awaiting a yes/no answer in the Confirm state."""
    kind: ActionKind
    issue_id: str


# Commands returned to the application shell

@dataclass(frozen=True)
class Refresh:
    """Reload the issue list from storage."""


@dataclass(frozen=True)
class Suspend:
    """Hand the terminal to an external process and wait for it.

    After it exits the shell calls ``after_suspension`` so edited briefs
    are synced into the index and the list is reloaded.
    """
    argv: List[str] = field(default_factory=list)
    cwd: Optional[Path] = None
    sync_issue_id: Optional[str] = None


@dataclass(frozen=True)
class Quit:
    """End the session."""


Command = Union[Refresh, Suspend, Quit]

PREVIEW_STATES = (SessionState.PREVIEW_ANALYSIS, SessionState.PREVIEW_PLAN)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


class SessionMachine:
    """Top-level controller: states, transitions and per-state key contracts."""

    def __init__(
        self,
        store: IssueStore,
        vcs: VersionControl,
        orchestrator: TaskOrchestrator,
        keys: Optional[KeybindingConfig] = None,
        config: Optional[AppConfig] = None,
        filter_mode: FilterMode = FilterMode.ACTIVE,
        implement_command: Optional[Callable[[str, Path], List[str]]] = None,
        on_filter_change: Optional[Callable[[FilterMode], None]] = None,
    ):
        """Initialize the engine.

        Args:
            store: Issue storage collaborator.
            vcs: Version-control collaborator.
            orchestrator: Background task dispatcher.
            keys: Keybinding configuration (default bindings if omitted).
            config: Session configuration (root and commit model).
            filter_mode: Initial list filter.
            implement_command: Builds the argv of the interactive implement
                session from (continuation token, plan path).
            on_filter_change: Called after the filter is cycled.
        """
        self.store = store
        self.vcs = vcs
        self.orchestrator = orchestrator
        self.keys = keys or KeybindingConfig()
        self.config = config or AppConfig()
        self._implement_command = implement_command
        self._on_filter_change = on_filter_change

        self.filter_mode = filter_mode
        self.issues: List[Issue] = []
        self.state = SessionState.NORMAL
        self.status_message = ""
        self.spinner_frame = 0

        self.width = 80
        self.height = 24

        self.list_view = ListViewport()
        self.preview = ContentViewport()
        self.commit_view = ContentViewport(wrap=True)

        # Pending context, cleared on transitions away from its state
        self.input_mode = InputMode.NONE
        self.input_prompt = ""
        self.input_text = ""
        self.pending_title = ""
        self.pending_action: Optional[PendingAction] = None
        self.confirm_message = ""
        self.preview_issue_id: Optional[str] = None
        self.pending_close: Optional[Issue] = None
        self.pending_commit_message = ""

        self._brief_cache: Dict[str, str] = {}

        self._tables: Dict[SessionState, Dict[str, Callable[[], List[Command]]]] = {
            SessionState.NORMAL: {
                "force_quit": self._quit,
                "quit": self._quit,
                "nav_up": lambda: self._move(-1),
                "nav_down": lambda: self._move(1),
                "scroll_left": self._list_scroll_left,
                "scroll_right": self._list_scroll_right,
                "new": self._new_issue,
                "edit": self._edit_issue,
                "close": self._close_issue,
                "discard": self._discard_issue,
                "analyze": self._analyze_issue,
                "plan": self._plan_issue,
                "review": self._review_issue,
                "plan_review": self._plan_review_issue,
                "implement": self._implement_issue,
                "refresh": self._refresh,
                "filter": self._cycle_filter,
            },
            SessionState.TEXT_INPUT: {
                "force_quit": self._quit,
                "submit": self._submit_input,
                "cancel": self._cancel_input,
                "delete_char": self._delete_char,
            },
            SessionState.CONFIRM: {
                "force_quit": self._quit,
                "confirm_yes": self._confirm_yes,
                "confirm_no": self._confirm_no,
            },
            SessionState.TYPE_SELECT: {
                "force_quit": self._quit,
                "type_feature": lambda: self._create_issue(IssueType.FEATURE),
                "type_bug": lambda: self._create_issue(IssueType.BUG),
                "type_refactor": lambda: self._create_issue(IssueType.REFACTOR),
                "cancel": self._cancel_type_select,
            },
            SessionState.COMMIT_CONFIRM: {
                "force_quit": self._quit,
                "nav_up": self._viewport_call(lambda: self.commit_view.line_up()),
                "nav_down": self._viewport_call(lambda: self.commit_view.line_down()),
                "page_up": self._viewport_call(lambda: self.commit_view.half_page_up()),
                "page_down": self._viewport_call(lambda: self.commit_view.half_page_down()),
                "commit_accept": self._accept_commit,
                "commit_cancel": self._cancel_commit,
            },
            # Input is ignored until the commit message arrives
            SessionState.COMMIT_GENERATING: {},
        }
        preview_table: Dict[str, Callable[[], List[Command]]] = {
            "force_quit": self._quit,
            "nav_up": self._viewport_call(lambda: self.preview.line_up()),
            "nav_down": self._viewport_call(lambda: self.preview.line_down()),
            "page_up": self._viewport_call(lambda: self.preview.half_page_up()),
            "page_down": self._viewport_call(lambda: self.preview.half_page_down()),
            "scroll_top": self._viewport_call(lambda: self.preview.goto_top()),
            "scroll_bottom": self._viewport_call(lambda: self.preview.goto_bottom()),
            "scroll_left": self._viewport_call(lambda: self.preview.scroll_left()),
            "scroll_right": self._viewport_call(lambda: self.preview.scroll_right()),
            "preview_edit": self._edit_previewed,
            "preview_feedback": self._start_feedback,
            "preview_close": self._close_preview,
        }
        self._tables[SessionState.PREVIEW_ANALYSIS] = preview_table
        self._tables[SessionState.PREVIEW_PLAN] = preview_table

    # =========================================================================
    # Layout
    # =========================================================================

    @property
    def list_height(self) -> int:
        return max(1, self.height - CHROME_ROWS)

    @property
    def list_width(self) -> int:
        return max(1, self.width // 2)

    @property
    def popup_width(self) -> int:
        return min(_clamp(self.width - 10, 60, 100), max(1, self.width))

    def _preview_size(self):
        width = min(_clamp(self.width - 14, 50, 96), max(1, self.popup_width - 4))
        height = min(max(self.height - 10, 10), max(1, self.height - 6))
        return width, height

    def _commit_size(self):
        width = max(1, self.popup_width - 4)
        height = _clamp(self.height - 10, 5, 20)
        return width, height

    def resize(self, width: int, height: int) -> None:
        """Apply a new terminal size and re-clamp every scroll offset."""
        self.width = max(1, width)
        self.height = max(1, height)
        self.list_view.ensure_selected_visible(self.list_height)
        self.list_view.clamp_x_offset(self.list_width)
        self.preview.set_size(*self._preview_size())
        self.commit_view.set_size(*self._commit_size())

    # =========================================================================
    # List state
    # =========================================================================

    def selected_issue(self) -> Optional[Issue]:
        index = self.list_view.selected_index()
        if index is None or index >= len(self.issues):
            return None
        return self.issues[index]

    def format_row(self, issue: Issue) -> str:
        """List row text: type icon, status icon or spinner, id, title."""
        kind = self.orchestrator.task_kind(issue.id)
        if kind:
            icon = SPINNER_FRAMES[self.spinner_frame % len(SPINNER_FRAMES)]
            suffix = f" [{kind}...]"
        else:
            icon = issue.status_icon
            suffix = ""
        return f"{issue.type_icon} {icon} [{issue.id}] {issue.title}{suffix}"

    def sync_list_rows(self) -> None:
        """Re-render list rows after items or processing suffixes changed."""
        self.list_view.set_rows([self.format_row(issue) for issue in self.issues])
        self.list_view.ensure_selected_visible(self.list_height)
        self.list_view.clamp_x_offset(self.list_width)

    def refresh_issues(self) -> None:
        """Replace the issue list wholesale from storage."""
        try:
            issues = self.store.load_issues(self.filter_mode)
        except StorageError as e:
            logger.error(f"Failed to load issues: {e}")
            self.status_message = f"Failed to load issues: {e}"
            return
        self.issues = list(issues)
        self._brief_cache.clear()
        self.sync_list_rows()

    def brief_text(self, issue: Issue) -> str:
        """Body of an issue for the preview panel, cached until the next refresh."""
        if issue.id not in self._brief_cache:
            try:
                brief = self.store.load_brief(issue.id)
            except StorageError as e:
                logger.warning(f"Failed to load brief for {issue.id}: {e}")
                brief = None
            if brief is None:
                text = "brief.md not found"
            else:
                text = brief.content or "(empty)"
            self._brief_cache[issue.id] = text
        return self._brief_cache[issue.id]

    # =========================================================================
    # Event entry points
    # =========================================================================

    def handle_key(self, key: str) -> List[Command]:
        """Dispatch a normalized key name through the current state's table."""
        table = self._tables[self.state]
        action = self.keys.resolve(key, table.keys())
        if action is not None:
            return table[action]()
        if self.state is SessionState.TEXT_INPUT and len(key) == 1 and key.isprintable():
            self.insert_text(key)
        return []

    def insert_text(self, text: str) -> None:
        """Append typed or pasted text to the input line."""
        if self.state is not SessionState.TEXT_INPUT:
            return
        text = "".join(ch for ch in text.replace("\n", " ") if ch.isprintable())
        room = INPUT_LIMIT - len(self.input_text)
        if room > 0:
            self.input_text += text[:room]

    def tick(self) -> None:
        """Advance the spinner; processing rows are re-rendered with the new frame."""
        self.spinner_frame = (self.spinner_frame + 1) % len(SPINNER_FRAMES)
        if self.orchestrator.snapshot():
            self.sync_list_rows()

    def deliver_results(self) -> List[Command]:
        """Consume every queued task result, one at a time."""
        commands: List[Command] = []
        while True:
            result = self.orchestrator.take_result()
            if result is None:
                break
            commands.extend(self.handle_result(result))
        return commands

    def after_suspension(self, command: Suspend, exit_code: int) -> None:
        """Restore state once an external process has returned the terminal."""
        if exit_code == 127 and command.argv:
            self.status_message = f"Could not launch {command.argv[0]}"
        if command.sync_issue_id:
            try:
                self.store.sync_brief_to_index(command.sync_issue_id)
            except StorageError as e:
                logger.warning(f"Failed to sync brief {command.sync_issue_id}: {e}")
        self.refresh_issues()

    # =========================================================================
    # Transitions
    # =========================================================================

    def _to_normal(self) -> None:
        """Return to Normal, dropping all pending context."""
        self.state = SessionState.NORMAL
        self.input_mode = InputMode.NONE
        self.input_prompt = ""
        self.input_text = ""
        self.pending_title = ""
        self.pending_action = None
        self.confirm_message = ""
        self.preview_issue_id = None
        self.preview.clear()
        self.pending_close = None
        self.pending_commit_message = ""
        self.commit_view.clear()

    def _enter_text_input(self, mode: InputMode, prompt: str) -> None:
        self.state = SessionState.TEXT_INPUT
        self.input_mode = mode
        self.input_prompt = prompt
        self.input_text = ""

    def _enter_confirm(self, action: PendingAction, message: str) -> None:
        self.state = SessionState.CONFIRM
        self.pending_action = action
        self.confirm_message = message

    def _busy(self, issue_id: str) -> bool:
        if self.orchestrator.is_processing(issue_id):
            self.status_message = f"{issue_id} is already processing"
            return True
        return False

    def _start(self, issue_id: str, kind: str, prompt: str, model: Optional[str] = None,
               session: Optional[str] = None) -> bool:
        if not self.orchestrator.start(issue_id, kind, prompt, model=model, session=session or None):
            self.status_message = f"{issue_id} is already processing"
            return False
        self.sync_list_rows()
        return True

    def _require_selection(self) -> Optional[Issue]:
        issue = self.selected_issue()
        if issue is None:
            self.status_message = "No issue selected"
        return issue

    # =========================================================================
    # Normal state
    # =========================================================================

    def _quit(self) -> List[Command]:
        return [Quit()]

    def _move(self, delta: int) -> List[Command]:
        self.list_view.move(delta, self.list_height)
        return []

    def _list_scroll_left(self) -> List[Command]:
        self.list_view.scroll_left()
        return []

    def _list_scroll_right(self) -> List[Command]:
        self.list_view.scroll_right(self.list_width)
        return []

    def _refresh(self) -> List[Command]:
        self.status_message = "Refreshed"
        return [Refresh()]

    def _cycle_filter(self) -> List[Command]:
        self.filter_mode = self.filter_mode.next()
        self.status_message = f"Filter: {self.filter_mode.value}"
        if self._on_filter_change:
            self._on_filter_change(self.filter_mode)
        return [Refresh()]

    def _new_issue(self) -> List[Command]:
        self._enter_text_input(InputMode.NEW_ISSUE, "Title: ")
        return []

    def _edit_issue(self) -> List[Command]:
        issue = self._require_selection()
        if issue is None:
            return []
        return [Suspend(editor_command(self.store.brief_path(issue.id)),
                        cwd=self.config.root, sync_issue_id=issue.id)]

    def _discard_issue(self) -> List[Command]:
        issue = self._require_selection()
        if issue is None:
            return []
        self._enter_confirm(PendingAction(ActionKind.DISCARD, issue.id),
                            f"Discard issue {issue.id}?")
        return []

    def _analyze_issue(self) -> List[Command]:
        issue = self._require_selection()
        if issue is None or self._busy(issue.id):
            return []
        if self.store.analysis_exists(issue.id):
            self._enter_confirm(PendingAction(ActionKind.REANALYZE, issue.id),
                                f"Re-analyze {issue.id}? The current analysis will be replaced.")
            return []
        self._start_analyze(issue.id)
        return []

    def _start_analyze(self, issue_id: str) -> None:
        # Prerequisites load before start() so a failure never registers the issue
        try:
            brief = self.store.load_brief(issue_id)
        except StorageError as e:
            logger.warning(f"Failed to load brief for {issue_id}: {e}")
            brief = None
        if brief is None:
            self.status_message = "Cannot load brief"
            return
        prompt = analysis_prompt(brief.content, str(self.store.brief_path(issue_id)))
        if self._start(issue_id, TASK_ANALYZE, prompt):
            self.status_message = f"Analyzing {issue_id}..."

    def _plan_issue(self) -> List[Command]:
        issue = self._require_selection()
        if issue is None:
            return []
        if not self.store.analysis_exists(issue.id):
            self.status_message = "Analyze first"
            return []
        if self._busy(issue.id):
            return []
        if self.store.plan_exists(issue.id):
            self._enter_confirm(PendingAction(ActionKind.REPLAN, issue.id),
                                f"Re-plan {issue.id}? The current plan will be replaced.")
            return []
        self._start_plan(issue.id)
        return []

    def _start_plan(self, issue_id: str) -> None:
        try:
            brief = self.store.load_brief(issue_id)
            analysis = self.store.load_analysis(issue_id)
            session = self.store.load_session(issue_id)
        except StorageError as e:
            logger.warning(f"Failed to load plan inputs for {issue_id}: {e}")
            self.status_message = f"Cannot load analysis for {issue_id}"
            return
        if brief is None:
            self.status_message = "Cannot load brief"
            return
        if self._start(issue_id, TASK_PLAN, plan_prompt(brief.content, analysis), session=session):
            self.status_message = f"Planning {issue_id}..."

    def _review_issue(self) -> List[Command]:
        issue = self._require_selection()
        if issue is None:
            return []
        if not self.store.analysis_exists(issue.id):
            self.status_message = "Analyze first"
            return []
        if self._busy(issue.id):
            return []
        try:
            analysis = self.store.load_analysis(issue.id)
        except StorageError as e:
            logger.warning(f"Failed to load analysis for {issue.id}: {e}")
            self.status_message = "Failed to load analysis"
            return []
        self._open_preview(SessionState.PREVIEW_ANALYSIS, issue.id, analysis)
        return []

    def _plan_review_issue(self) -> List[Command]:
        issue = self._require_selection()
        if issue is None:
            return []
        if not self.store.plan_exists(issue.id):
            self.status_message = "Plan first (press 'p')"
            return []
        if self._busy(issue.id):
            return []
        try:
            plan = self.store.load_plan(issue.id)
        except StorageError as e:
            logger.warning(f"Failed to load plan for {issue.id}: {e}")
            self.status_message = "Failed to load plan"
            return []
        self._open_preview(SessionState.PREVIEW_PLAN, issue.id, plan)
        return []

    def _open_preview(self, state: SessionState, issue_id: str, content: str) -> None:
        self.preview.set_size(*self._preview_size())
        self.preview.set_content(content)
        self.preview_issue_id = issue_id
        self.state = state

    def _implement_issue(self) -> List[Command]:
        issue = self._require_selection()
        if issue is None:
            return []
        if issue.status is not IssueStatus.PLANNED:
            self.status_message = "Only planned issues can be implemented"
            return []
        if not self.store.plan_exists(issue.id):
            self.status_message = "Plan first (press 'p')"
            return []
        if not self._load_session(issue.id):
            self.status_message = "No session found. Re-analyze the issue first"
            return []
        if self._busy(issue.id):
            return []
        self._enter_confirm(PendingAction(ActionKind.IMPLEMENT, issue.id),
                            f"Implement {issue.id}? This will modify files in the project.")
        return []

    def _load_session(self, issue_id: str) -> str:
        try:
            return self.store.load_session(issue_id)
        except StorageError as e:
            logger.warning(f"Failed to load session for {issue_id}: {e}")
            return ""

    def _close_issue(self) -> List[Command]:
        issue = self._require_selection()
        if issue is None:
            return []
        if not self.store.plan_exists(issue.id):
            self.status_message = "Plan first (press 'p')"
            return []
        if not self.vcs.is_repository():
            self.status_message = "Not a git repository"
            return []
        if not self.vcs.has_staged_changes():
            self.status_message = "No staged changes. Run 'git add' first"
            return []
        if self._busy(issue.id):
            return []
        try:
            plan = self.store.load_plan(issue.id)
        except StorageError as e:
            logger.warning(f"Failed to load plan for {issue.id}: {e}")
            self.status_message = "Failed to load plan"
            return []

        prompt = commit_message_prompt(issue.id, plan)
        if not self._start(issue.id, TASK_COMMIT, prompt, model=self.config.commit_model):
            return []
        self.pending_close = issue
        self.state = SessionState.COMMIT_GENERATING
        self.status_message = f"Generating commit message for {issue.id}..."
        return []

    # =========================================================================
    # Text input
    # =========================================================================

    def _delete_char(self) -> List[Command]:
        self.input_text = self.input_text[:-1]
        return []

    def _submit_input(self) -> List[Command]:
        value = self.input_text.strip()
        mode = self.input_mode

        if mode is InputMode.NEW_ISSUE:
            if not value:
                self._to_normal()
                self.status_message = "Cancelled"
                return []
            self.input_mode = InputMode.NONE
            self.input_text = ""
            self.pending_title = value
            self.state = SessionState.TYPE_SELECT
            return []

        if mode in (InputMode.REVIEW, InputMode.PLAN_REVIEW):
            if not value:
                self._back_to_preview()
                return []
            issue_id = self.preview_issue_id
            self._to_normal()
            if issue_id:
                self._execute_feedback(issue_id, mode, value)
            return []

        self._to_normal()
        return []

    def _cancel_input(self) -> List[Command]:
        if self.input_mode in (InputMode.REVIEW, InputMode.PLAN_REVIEW):
            self._back_to_preview()
            return []
        self._to_normal()
        self.status_message = "Cancelled"
        return []

    def _back_to_preview(self) -> None:
        self.state = (SessionState.PREVIEW_ANALYSIS if self.input_mode is InputMode.REVIEW
                      else SessionState.PREVIEW_PLAN)
        self.input_mode = InputMode.NONE
        self.input_prompt = ""
        self.input_text = ""

    def _execute_feedback(self, issue_id: str, mode: InputMode, feedback: str) -> None:
        if self._busy(issue_id):
            return
        try:
            session = self.store.load_session(issue_id)
            if mode is InputMode.REVIEW:
                prompt = review_prompt(self.store.load_analysis(issue_id), feedback)
            else:
                prompt = plan_review_prompt(self.store.load_plan(issue_id), feedback)
        except StorageError as e:
            logger.warning(f"Failed to load review inputs for {issue_id}: {e}")
            self.status_message = f"Cannot load content for {issue_id}"
            return

        if mode is InputMode.REVIEW:
            if self._start(issue_id, TASK_REVIEW, prompt, session=session):
                self.status_message = f"Reviewing {issue_id}..."
        elif self._start(issue_id, TASK_PLAN_REVIEW, prompt, session=session):
            self.status_message = f"Reviewing plan {issue_id}..."

    # =========================================================================
    # Confirm / type select
    # =========================================================================

    def _confirm_yes(self) -> List[Command]:
        action = self.pending_action
        self._to_normal()
        if action is None:
            return [Refresh()]

        if action.kind is ActionKind.DISCARD:
            try:
                self.store.update_status(action.issue_id, IssueStatus.INVALID, "Discarded by user")
                self.status_message = f"Discarded {action.issue_id}"
            except StorageError as e:
                logger.error(f"Failed to discard {action.issue_id}: {e}")
                self.status_message = f"Error: {e}"
        elif action.kind is ActionKind.REANALYZE:
            self._start_analyze(action.issue_id)
        elif action.kind is ActionKind.REPLAN:
            self._start_plan(action.issue_id)
        elif action.kind is ActionKind.IMPLEMENT:
            return self._launch_implement(action.issue_id)
        return [Refresh()]

    def _launch_implement(self, issue_id: str) -> List[Command]:
        session = self._load_session(issue_id)
        if not session:
            self.status_message = "No session found. Re-analyze the issue first"
            return [Refresh()]
        if self._implement_command is None:
            self.status_message = "Implement is not available"
            return [Refresh()]
        argv = self._implement_command(session, self.store.plan_path(issue_id))
        self.status_message = f"Implementing {issue_id}..."
        return [Suspend(argv, cwd=self.config.root)]

    def _confirm_no(self) -> List[Command]:
        self._to_normal()
        self.status_message = "Cancelled"
        return []

    def _create_issue(self, issue_type: IssueType) -> List[Command]:
        title = self.pending_title
        self._to_normal()
        try:
            issue = self.store.create_issue(title, issue_type)
        except StorageError as e:
            logger.error(f"Failed to create issue: {e}")
            self.status_message = f"Error: {e}"
            return []
        self.status_message = f"Created {issue.id} - opening editor"
        return [Suspend(editor_command(self.store.brief_path(issue.id)),
                        cwd=self.config.root, sync_issue_id=issue.id)]

    def _cancel_type_select(self) -> List[Command]:
        self._to_normal()
        self.status_message = "Cancelled"
        return []

    # =========================================================================
    # Content preview
    # =========================================================================

    def _viewport_call(self, fn: Callable[[], None]) -> Callable[[], List[Command]]:
        def handler() -> List[Command]:
            fn()
            return []
        return handler

    def _edit_previewed(self) -> List[Command]:
        issue_id = self.preview_issue_id
        is_plan = self.state is SessionState.PREVIEW_PLAN
        self._to_normal()
        if issue_id is None:
            self.status_message = "No issue selected"
            return []
        path = self.store.plan_path(issue_id) if is_plan else self.store.analysis_path(issue_id)
        return [Suspend(editor_command(path), cwd=self.config.root)]

    def _start_feedback(self) -> List[Command]:
        if self.state is SessionState.PREVIEW_PLAN:
            self._enter_text_input(InputMode.PLAN_REVIEW, "Plan Feedback: ")
        else:
            self._enter_text_input(InputMode.REVIEW, "Feedback: ")
        return []

    def _close_preview(self) -> List[Command]:
        self._to_normal()
        return []

    # =========================================================================
    # Commit confirmation
    # =========================================================================

    def _accept_commit(self) -> List[Command]:
        issue = self.pending_close
        message = self.pending_commit_message
        self._to_normal()
        if issue is None:
            self.status_message = "No pending issue"
            return []

        try:
            self.store.update_status(issue.id, IssueStatus.CLOSED)
        except StorageError as e:
            logger.error(f"Failed to close {issue.id}: {e}")

        if self.vcs.has_staged_changes():
            success, output = self.vcs.commit(message)
            if success:
                self.status_message = f"Closed & committed {issue.id}"
            else:
                logger.warning(f"Commit for {issue.id} failed: {output.strip()}")
                self.status_message = f"Closed {issue.id} (commit failed)"
        else:
            self.status_message = f"Closed {issue.id} (no changes to commit)"
        return [Refresh()]

    def _cancel_commit(self) -> List[Command]:
        self._to_normal()
        self.status_message = "Cancelled"
        return []

    # =========================================================================
    # Task results
    # =========================================================================

    def handle_result(self, result: TaskResult) -> List[Command]:
        """Apply one task result. The orchestrator has already released the issue."""
        issue_id = result.issue_id
        kind = result.kind

        if kind == TASK_COMMIT:
            self._handle_commit_result(result)
            return [Refresh()]

        if kind == TASK_ANALYZE:
            if result.success:
                self._persist(issue_id, lambda: self.store.save_analysis(issue_id, result.result))
                self._save_session(result)
                self._persist(issue_id, lambda: self.store.update_status(issue_id, IssueStatus.ANALYZED))
                self.status_message = f"Analyzed {issue_id}"
            else:
                self.status_message = f"Analyze {issue_id} failed"
        elif kind == TASK_PLAN:
            if result.success:
                self._persist(issue_id, lambda: self.store.save_plan(issue_id, result.result))
                self._persist(issue_id, lambda: self.store.update_status(issue_id, IssueStatus.PLANNED))
                self.status_message = f"Planned {issue_id}"
            else:
                self.status_message = f"Plan {issue_id} failed"
        elif kind == TASK_REVIEW:
            if result.success:
                self._persist(issue_id, lambda: self.store.save_analysis(issue_id, result.result))
                self._save_session(result)
                self.status_message = f"Reviewed {issue_id}"
            else:
                self.status_message = f"Review {issue_id} failed"
        elif kind == TASK_PLAN_REVIEW:
            if result.success:
                self._persist(issue_id, lambda: self.store.save_plan(issue_id, result.result))
                self._save_session(result)
                self.status_message = f"Plan reviewed {issue_id}"
            else:
                self.status_message = f"Plan review {issue_id} failed"
        else:
            logger.warning(f"Ignoring result of unknown task kind {kind!r} for {issue_id}")
            return []

        if not result.success:
            logger.warning(f"{kind} for {issue_id} failed: {result.result.strip()[:200]}")
        return [Refresh()]

    def _handle_commit_result(self, result: TaskResult) -> None:
        waiting = (self.state is SessionState.COMMIT_GENERATING
                   and self.pending_close is not None
                   and self.pending_close.id == result.issue_id)
        if not waiting:
            logger.info(f"Dropping commit message for {result.issue_id}: no close pending")
            return

        if not result.success:
            logger.warning(f"Commit message for {result.issue_id} failed: {result.result.strip()[:200]}")
            self._to_normal()
            self.status_message = f"Commit message generation failed: {result.issue_id}"
            return

        self.pending_commit_message = result.result.strip()
        self.commit_view.set_size(*self._commit_size())
        self.commit_view.set_content(self.pending_commit_message)
        self.state = SessionState.COMMIT_CONFIRM
        self.status_message = "Review commit message"

    def _persist(self, issue_id: str, save: Callable[[], None]) -> None:
        # Best-effort: a failed write is logged and the session carries on
        try:
            save()
        except StorageError as e:
            logger.error(f"Failed to persist result for {issue_id}: {e}")

    def _save_session(self, result: TaskResult) -> None:
        if result.session_id:
            self._persist(result.issue_id,
                          lambda: self.store.save_session(result.issue_id, result.session_id))
