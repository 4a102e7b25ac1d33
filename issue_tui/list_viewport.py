"""Scroll state for the issue list panel.

Tracks a selection cursor plus vertical and horizontal offsets over an
ordered set of pre-rendered rows. The widest row is cached whenever the
row set changes so horizontal scrolling can be clamped without measuring
every row on each key press.
"""

from typing import List, Optional

from .display_width import _display_width, _pad_to_width, slice_line

# Columns moved per horizontal scroll step
HSCROLL_STEP = 8


class ListViewport:
    """Vertical + horizontal scroll model over discrete rows."""

    def __init__(self, hscroll_step: int = HSCROLL_STEP):
        self._rows: List[str] = []
        self._max_row_width: int = 0
        self._hscroll_step = hscroll_step
        self.selection: int = 0
        self.y_offset: int = 0
        self.x_offset: int = 0

    @property
    def rows(self) -> List[str]:
        return self._rows

    @property
    def max_row_width(self) -> int:
        return self._max_row_width

    def __len__(self) -> int:
        return len(self._rows)

    def set_rows(self, rows: List[str]) -> None:
        """Replace the rendered rows and recompute the widest row.

        Call whenever the underlying items or any dynamic suffix (such as
        a processing indicator) change.
        """
        self._rows = list(rows)
        self._max_row_width = max((_display_width(row) for row in self._rows), default=0)

    def ensure_selected_visible(self, visible_height: int) -> None:
        """Clamp the selection and scroll the minimum amount to show it.

        Idempotent. Must be called after any change to the row count or the
        selection.
        """
        count = len(self._rows)
        height = max(1, visible_height)

        if count == 0:
            self.selection = 0
            self.y_offset = 0
            return

        self.selection = max(0, min(self.selection, count - 1))

        if self.selection < self.y_offset:
            self.y_offset = self.selection
        elif self.selection >= self.y_offset + height:
            self.y_offset = self.selection - height + 1

        self.y_offset = max(0, min(self.y_offset, max(0, count - height)))

    def move(self, delta: int, visible_height: int) -> None:
        """Move the selection by delta rows, keeping it visible."""
        if not self._rows:
            return
        self.selection += delta
        self.ensure_selected_visible(visible_height)

    def max_x_offset(self, visible_width: int) -> int:
        return max(0, self._max_row_width - visible_width)

    def scroll_left(self) -> None:
        self.x_offset = max(0, self.x_offset - self._hscroll_step)

    def scroll_right(self, visible_width: int) -> None:
        self.x_offset = min(self.x_offset + self._hscroll_step, self.max_x_offset(visible_width))

    def clamp_x_offset(self, visible_width: int) -> None:
        """Re-apply the horizontal bound after the row set or width changed."""
        self.x_offset = max(0, min(self.x_offset, self.max_x_offset(visible_width)))

    def visible_range(self, visible_height: int) -> range:
        """Indices of rows currently on screen."""
        start = self.y_offset
        end = min(len(self._rows), start + max(0, visible_height))
        return range(start, end)

    def render_row(self, index: int, visible_width: int) -> str:
        """Row text sliced at the horizontal offset and padded to width."""
        text = slice_line(self._rows[index], self.x_offset, visible_width)
        return _pad_to_width(text, visible_width)

    def selected_index(self) -> Optional[int]:
        if not self._rows:
            return None
        return self.selection
