"""Tests for frame composition: geometry, popups and styling."""

import pytest

from issue_tui.display_width import _display_width
from issue_tui.models import IssueStatus, IssueType
from issue_tui.state_machine import SessionState
from issue_tui.tests.conftest import press
from issue_tui.view import (
    build_frame,
    frame_lines,
    popup_lines,
    render_popup,
    row_text,
    to_formatted_text,
)


def assert_geometry(machine):
    lines = frame_lines(machine)
    assert len(lines) == machine.height
    for line in lines:
        assert _display_width(line) == machine.width


@pytest.fixture
def seeded(machine, store):
    store.add("0001", title="Crash when saving 中文 files", issue_type=IssueType.BUG,
              body="Steps:\n1. open\n2. save", analysis="# Analysis\n" + "detail\n" * 40,
              plan="# Plan\n" + "step\n" * 40, session="s-1", status=IssueStatus.PLANNED)
    store.add("0002", title="Add export")
    machine.refresh_issues()
    return machine


class TestBackground:

    def test_normal_frame_geometry(self, seeded):
        assert_geometry(seeded)

    def test_header_and_status(self, seeded):
        seeded.status_message = "Refreshed"
        lines = frame_lines(seeded)
        assert lines[0].startswith(" Issue Manager [Active]")
        assert lines[-1].startswith(" Refreshed")
        assert "[n] new" in lines[-2]

    def test_list_rows_and_preview(self, seeded):
        lines = frame_lines(seeded)
        assert "[0001] Crash when saving" in lines[1]
        assert "│ Preview: 0001" in lines[1]
        assert any("1. open" in line for line in lines)

    def test_selected_row_style(self, seeded):
        rows = build_frame(seeded)
        assert rows[1][0][0] == "class:list.selected"
        assert rows[2][0][0] == "class:list"

    def test_processing_row_style(self, seeded, orchestrator):
        orchestrator.start("0002", "analyze", "prompt")
        seeded.sync_list_rows()
        rows = build_frame(seeded)
        assert rows[2][0][0] == "class:list.processing"
        assert "[analyze...]" in rows[2][0][1]

    def test_empty_list_message(self, machine):
        machine.refresh_issues()
        lines = frame_lines(machine)
        assert lines[1].startswith("No Active issues")
        assert "No issue selected" in lines[1]

    @pytest.mark.parametrize("size", [(20, 5), (40, 12), (200, 60), (1, 1)])
    def test_geometry_at_any_size(self, seeded, size):
        seeded.resize(*size)
        assert_geometry(seeded)

    def test_formatted_text_has_one_newline_per_row_gap(self, seeded):
        fragments = to_formatted_text(build_frame(seeded))
        assert sum(1 for _, text in fragments if text == "\n") == seeded.height - 1


class TestPopups:

    def test_no_popup_in_normal(self, seeded):
        assert popup_lines(seeded) == []

    def test_render_popup_box(self):
        rows = render_popup(["hello"], 80)
        assert rows[0].startswith("╭")
        assert rows[1].startswith("│ hello")
        assert rows[-1].startswith("╰")
        assert len({_display_width(row) for row in rows}) == 1

    def test_fixed_width_popup(self):
        rows = render_popup(["x"], 80, width=30)
        assert all(_display_width(row) == 30 for row in rows)

    def test_text_input_popup(self, seeded):
        press(seeded, "n", *"Title")
        lines = frame_lines(seeded)
        assert any("New issue" in line for line in lines)
        assert any("Title: Title█" in line for line in lines)
        assert_geometry(seeded)

    def test_long_input_keeps_cursor_visible(self, seeded):
        press(seeded, "n")
        seeded.insert_text("y" * 150)
        assert any(line.rstrip().endswith("█ │") for line in popup_lines(seeded))

    def test_confirm_popup(self, seeded):
        press(seeded, "d")
        text = "\n".join(frame_lines(seeded))
        assert "Discard issue 0001?" in text
        assert "[y] yes / [n] no" in text

    def test_type_select_popup(self, seeded):
        press(seeded, "n", *"Bug", "enter")
        assert seeded.state is SessionState.TYPE_SELECT
        text = "\n".join(popup_lines(seeded))
        assert 'Select issue type for "Bug":' in text
        assert "[f] feature  [b] bug  [r] refactor" in text

    def test_preview_popup(self, seeded):
        press(seeded, "R")
        text = "\n".join(frame_lines(seeded))
        assert "Review Analysis: 0001" in text
        assert "# Analysis" in text
        assert "0%" in text
        assert_geometry(seeded)

    def test_preview_popup_backdrop_style(self, seeded):
        press(seeded, "P")
        rows = build_frame(seeded)
        assert rows[0] == [("class:backdrop", row_text(rows[0]))]
        styled = [row for row in rows if len(row) == 3]
        assert styled and all(row[1][0] == "class:popup" for row in styled)

    def test_commit_generating_popup(self, seeded):
        seeded.resize(100, 30)
        press(seeded, "c")
        assert seeded.state is SessionState.COMMIT_GENERATING
        text = "\n".join(frame_lines(seeded))
        assert "Closing Issue [0001]" in text
        assert "Generating commit message with haiku..." in text

    def test_popup_on_tiny_terminal(self, seeded):
        press(seeded, "R")
        seeded.resize(30, 8)
        assert_geometry(seeded)
