"""Tests for the list / content scroll models and popup compositing."""

from issue_tui.content_viewport import ContentViewport
from issue_tui.display_width import _display_width
from issue_tui.list_viewport import ListViewport
from issue_tui.overlay import center_anchor, composite, composite_parts, splice_row


def make_list(count: int) -> ListViewport:
    view = ListViewport()
    view.set_rows([f"row {i}" for i in range(count)])
    return view


# ---------------------------------------------------------------------------
# ListViewport
# ---------------------------------------------------------------------------

class TestListViewport:

    def test_moving_down_scrolls_minimally(self):
        view = make_list(10)
        for _ in range(9):
            view.move(1, 5)
        assert view.selection == 9
        assert view.y_offset == 5

    def test_moving_up_scrolls_back(self):
        view = make_list(10)
        view.move(9, 5)
        view.move(-7, 5)
        assert view.selection == 2
        assert view.y_offset == 2

    def test_selection_clamped(self):
        view = make_list(3)
        view.move(10, 5)
        assert view.selection == 2
        view.move(-10, 5)
        assert view.selection == 0

    def test_offset_bounds_after_shrink(self):
        view = make_list(20)
        view.move(19, 5)
        view.set_rows(["a", "b"])
        view.ensure_selected_visible(5)
        assert view.selection == 1
        assert view.y_offset == 0

    def test_empty_list(self):
        view = ListViewport()
        view.move(1, 5)
        view.ensure_selected_visible(5)
        assert view.selection == 0
        assert view.y_offset == 0
        assert view.selected_index() is None

    def test_visible_range(self):
        view = make_list(10)
        view.move(9, 4)
        assert list(view.visible_range(4)) == [6, 7, 8, 9]

    def test_horizontal_bound_uses_widest_row(self):
        view = ListViewport()
        view.set_rows(["x" * 30, "中" * 20])
        assert view.max_row_width == 40
        for _ in range(10):
            view.scroll_right(25)
        assert view.x_offset == 15
        view.scroll_left()
        assert view.x_offset == 7

    def test_clamp_x_after_rows_shrink(self):
        view = ListViewport()
        view.set_rows(["x" * 100])
        view.scroll_right(20)
        view.set_rows(["short"])
        view.clamp_x_offset(20)
        assert view.x_offset == 0

    def test_render_row_is_padded(self):
        view = make_list(1)
        assert view.render_row(0, 10) == "row 0     "


# ---------------------------------------------------------------------------
# ContentViewport
# ---------------------------------------------------------------------------

class TestContentViewport:

    def _view(self, lines: int = 30, **kwargs) -> ContentViewport:
        view = ContentViewport(width=20, height=10, **kwargs)
        view.set_content("\n".join(f"line {i}" for i in range(lines)))
        return view

    def test_vertical_bounds(self):
        view = self._view()
        view.line_up()
        assert view.y_offset == 0
        view.goto_bottom()
        assert view.y_offset == 20
        view.line_down(5)
        assert view.y_offset == 20

    def test_half_pages(self):
        view = self._view()
        view.half_page_down()
        assert view.y_offset == 5
        view.half_page_up()
        assert view.y_offset == 0

    def test_visible_lines_exact_height_and_width(self):
        view = self._view(lines=3)
        lines = view.visible_lines()
        assert len(lines) == 10
        assert all(_display_width(line) == 20 for line in lines)
        assert lines[0].startswith("line 0")

    def test_scroll_percent(self):
        view = self._view()
        assert view.scroll_percent() == 0.0
        view.goto_bottom()
        assert view.scroll_percent() == 1.0
        assert self._view(lines=3).scroll_percent() == 1.0

    def test_new_content_resets_offsets(self):
        view = ContentViewport(width=10, height=2)
        view.set_content("a" * 50 + "\nb\nc\nd")
        view.line_down(2)
        view.scroll_right()
        view.set_content("x")
        assert (view.y_offset, view.x_offset) == (0, 0)

    def test_horizontal_scroll_keeps_line_position(self):
        view = ContentViewport(width=10, height=2)
        view.set_content("\n".join("0123456789abcdefghij" for _ in range(5)))
        view.line_down(2)
        view.scroll_right()
        assert view.y_offset == 2
        assert view.x_offset == 8
        assert view.visible_lines()[0].startswith("89ab")
        view.scroll_right()
        assert view.x_offset == 10

    def test_wrapping_removes_horizontal_scroll(self):
        view = ContentViewport(width=10, height=5, wrap=True)
        view.set_content("a" * 35)
        assert view.total_lines == 4
        assert view.max_x_offset() == 0
        view.scroll_right()
        assert view.x_offset == 0

    def test_resize_rewraps_and_clamps(self):
        view = ContentViewport(width=10, height=2, wrap=True)
        view.set_content("a" * 40)
        view.goto_bottom()
        view.set_size(40, 2)
        assert view.total_lines == 1
        assert view.y_offset == 0

    def test_clear(self):
        view = self._view()
        view.clear()
        assert view.content == ""
        assert view.total_lines == 0


# ---------------------------------------------------------------------------
# Overlay compositing
# ---------------------------------------------------------------------------

class TestOverlay:

    def test_center_anchor(self):
        assert center_anchor(80, 24, 20, 4) == (30, 10)
        assert center_anchor(10, 5, 20, 10) == (0, 0)

    def test_splice_row_parts_add_up(self):
        left, middle, right = splice_row("abcdefghij", "XY", 4, 10)
        assert (left, middle, right) == ("abcd", "XY", "ghij")

    def test_wide_background_glyph_at_edge(self):
        left, middle, right = splice_row("中中中中中", "XY", 3, 10)
        assert left == "中 "
        assert right == " 中中"
        assert _display_width(left + middle + right) == 10

    def test_untouched_rows_are_none(self):
        background = ["." * 10] * 5
        parts = composite_parts(background, ["ab", "cd"])
        assert parts[0] is None
        assert parts[1] == ("....", "ab", "....")
        assert parts[2] == ("....", "cd", "....")

    def test_composite_keeps_geometry(self):
        background = ["💡 " + "x" * 17] * 6
        result = composite(background, ["+----+", "|  中|", "+----+"], width=20)
        assert len(result) == 6
        assert all(_display_width(row) == 20 for row in result)
        assert "|  中|" in result[2]

    def test_overlay_taller_than_background(self):
        result = composite(["...."] * 2, ["a", "b", "c", "d"])
        assert len(result) == 2
