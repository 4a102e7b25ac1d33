"""Frame composition for the issue manager.

A frame is a list of rows, each row a list of prompt_toolkit
(style, text) fragments whose text adds up to exactly the terminal
width. Popups are rendered by rich as plain text boxes and spliced over
a backdrop-styled copy of the background with the overlay compositor.
"""

from io import StringIO
from typing import List, Optional, Tuple

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from .display_width import _display_width, _pad_to_width, cut_columns, truncate, wrap_text
from .keybindings import build_help_line
from .models import SPINNER_FRAMES
from .overlay import composite_parts
from .state_machine import PREVIEW_STATES, InputMode, SessionMachine, SessionState

Fragment = Tuple[str, str]
Row = List[Fragment]

NORMAL_HELP = [
    ("new", "new"),
    ("analyze", "analyze"),
    ("review", "review"),
    ("plan", "plan"),
    ("plan_review", "plan-review"),
    ("implement", "implement"),
    ("close", "close"),
    ("discard", "discard"),
    ("edit", "edit"),
    ("filter", "filter"),
    ("quit", "quit"),
]

PREVIEW_HELP = [
    ("preview_edit", "edit"),
    ("preview_feedback", "feedback"),
    ("preview_close", "close"),
    ("nav_down", "scroll"),
]

COMMIT_HELP = [
    ("commit_accept", "commit"),
    ("commit_cancel", "cancel"),
    ("nav_down", "scroll"),
]


class RichRenderer:
    """Renders rich objects to plain text lines for splicing."""

    def __init__(self, width: int = 80):
        self._width = width

    def render_lines(self, renderable) -> List[str]:
        buffer = StringIO()
        console = Console(
            file=buffer,
            width=max(1, self._width),
            color_system=None,
            force_terminal=False,
            highlight=False,
        )
        console.print(renderable, end="")
        return buffer.getvalue().rstrip("\n").split("\n")


def render_popup(lines: List[str], max_width: int, width: Optional[int] = None) -> List[str]:
    """Draw lines inside a rounded box.

    Args:
        lines: Popup content, one entry per row.
        max_width: Widest the box may be (normally the terminal width).
        width: Fixed box width; the box fits its content when omitted.

    Returns:
        Box rows, each cut to the box width by display columns.
    """
    body = Text("\n".join(lines), no_wrap=True, overflow="crop")
    if width is not None:
        width = max(4, min(width, max_width))
    panel = Panel(body, box=box.ROUNDED, padding=(0, 1), width=width, expand=width is not None)
    rows = RichRenderer(max_width).render_lines(panel)
    box_width = width or min(max_width, max(_display_width(row) for row in rows))
    return [cut_columns(row, 0, box_width) for row in rows]


def _separator_with_percent(width: int, percent: float) -> str:
    info = f" {percent * 100:3.0f}% "
    return "─" * max(0, width - len(info)) + info


def popup_lines(machine: SessionMachine) -> List[str]:
    """Rows of the popup for the current modal state (empty in Normal)."""
    state = machine.state
    keys = machine.keys
    max_width = machine.width

    if state is SessionState.TEXT_INPUT:
        title = "New issue" if machine.input_mode is InputMode.NEW_ISSUE else "Feedback"
        width = min(machine.popup_width, max_width)
        inner = max(1, width - 4)
        text = f"{machine.input_prompt}{machine.input_text}█"
        # Keep the cursor end visible on long input
        visible = text if len(text) <= inner else text[-inner:]
        hint = build_help_line(keys, [("submit", "submit"), ("cancel", "cancel")])
        return render_popup([title, "", visible, "", hint], max_width, width)

    if state is SessionState.CONFIRM:
        hint = build_help_line(keys, [("confirm_yes", "yes"), ("confirm_no", "no")], " / ")
        return render_popup([machine.confirm_message, "", hint], max_width)

    if state is SessionState.TYPE_SELECT:
        choices = build_help_line(
            keys, [("type_feature", "feature"), ("type_bug", "bug"), ("type_refactor", "refactor")])
        cancel = build_help_line(keys, [("cancel", "cancel")])
        return render_popup(
            [f"Select issue type for \"{machine.pending_title}\":", "", choices, "", cancel],
            max_width)

    if state in PREVIEW_STATES:
        label = "Review Analysis" if state is SessionState.PREVIEW_ANALYSIS else "Review Plan"
        view = machine.preview
        lines = [f"{label}: {machine.preview_issue_id}"]
        lines.extend(view.visible_lines())
        lines.append(_separator_with_percent(view.width, view.scroll_percent()))
        lines.append("")
        lines.append(build_help_line(keys, PREVIEW_HELP))
        return render_popup(lines, max_width, machine.popup_width)

    if state is SessionState.COMMIT_CONFIRM:
        issue = machine.pending_close
        info = f" [{issue.id}] {issue.title}" if issue else ""
        view = machine.commit_view
        lines = [f"Commit Message:{info}", "─" * view.width, ""]
        lines.extend(view.visible_lines())
        lines.append("")
        lines.append(build_help_line(keys, COMMIT_HELP))
        return render_popup(lines, max_width, machine.popup_width)

    if state is SessionState.COMMIT_GENERATING:
        issue = machine.pending_close
        info = f" [{issue.id}]" if issue else ""
        spinner = SPINNER_FRAMES[machine.spinner_frame % len(SPINNER_FRAMES)]
        model = machine.config.commit_model or "default model"
        return render_popup(
            [f"Closing Issue{info}", "", f"{spinner} Generating commit message with {model}..."],
            max_width)

    return []


def _fit(text: str, width: int) -> str:
    return _pad_to_width(truncate(text, width), width)


def _preview_panel(machine: SessionMachine, width: int, height: int) -> List[str]:
    issue = machine.selected_issue()
    if issue is None:
        lines = ["No issue selected"]
    else:
        lines = [f"Preview: {issue.id}", "─" * min(width, 40)]
        lines.extend(wrap_text(machine.brief_text(issue), max(1, width - 1)).split("\n"))
    lines = lines[:height]
    while len(lines) < height:
        lines.append("")
    return [_fit(" " + line if line else "", width) for line in lines]


def background_rows(machine: SessionMachine) -> List[Row]:
    """Header, list + preview body, footer and status line."""
    width = machine.width
    list_width = min(machine.list_width, width)
    right_width = width - list_width - 1
    body_height = machine.list_height

    rows: List[Row] = [[("class:header", _fit(f" Issue Manager [{machine.filter_mode.value}]", width))]]

    preview = _preview_panel(machine, right_width, body_height) if right_width > 0 else []
    view = machine.list_view
    visible = list(view.visible_range(body_height))
    selected = view.selected_index()
    processing = machine.orchestrator.snapshot()

    for offset in range(body_height):
        if not machine.issues:
            message = f"No {machine.filter_mode.value} issues" if offset == 0 else ""
            left: Fragment = ("class:list", _fit(message, list_width))
        elif offset < len(visible):
            index = visible[offset]
            text = view.render_row(index, list_width)
            if index == selected:
                style = "class:list.selected"
            elif machine.issues[index].id in processing:
                style = "class:list.processing"
            else:
                style = "class:list"
            left = (style, text)
        else:
            left = ("class:list", " " * list_width)

        row: Row = [left]
        if right_width > 0:
            row.append(("class:separator", "│"))
            row.append(("class:preview", preview[offset]))
        elif width > list_width:
            row.append(("class:list", " " * (width - list_width)))
        rows.append(row)

    rows.append([("class:footer", _fit(" " + build_help_line(machine.keys, NORMAL_HELP), width))])
    rows.append([("class:status", _fit(" " + machine.status_message, width))])
    return rows[:machine.height]


def row_text(row: Row) -> str:
    return "".join(text for _, text in row)


def build_frame(machine: SessionMachine) -> List[Row]:
    """Complete frame: background, plus the current popup when one is active."""
    rows = background_rows(machine)
    popup = popup_lines(machine)
    if not popup:
        return rows

    plain = [row_text(row) for row in rows]
    framed: List[Row] = []
    for text, parts in zip(plain, composite_parts(plain, popup, machine.width)):
        if parts is None:
            framed.append([("class:backdrop", text)])
        else:
            left, middle, right = parts
            framed.append([("class:backdrop", left), ("class:popup", middle),
                           ("class:backdrop", right)])
    return framed


def frame_lines(machine: SessionMachine) -> List[str]:
    """Plain text of the frame, one string per terminal row."""
    return [row_text(row) for row in build_frame(machine)]


def to_formatted_text(rows: List[Row]) -> List[Fragment]:
    """Flatten rows into a single fragment list for FormattedTextControl."""
    fragments: List[Fragment] = []
    for i, row in enumerate(rows):
        if i:
            fragments.append(("", "\n"))
        fragments.extend(row)
    return fragments
