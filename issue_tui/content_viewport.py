"""Scroll state for the long-text popups (analysis, plan, commit message).

Unlike the list viewport there is no selection: the vertical offset is
the first visible line. Horizontal scrolling re-slices every source line
through the layout helpers at the new offset, keeping the current line
position.
"""

from typing import List

from .display_width import _pad_to_width, max_line_width, slice_line, wrap_text
from .list_viewport import HSCROLL_STEP


class ContentViewport:
    """Two-axis scroll model over a single text blob.

    With ``wrap=True`` the blob is hard-wrapped to the viewport width and
    horizontal scrolling has nothing to reveal; otherwise source lines are
    kept intact and sliced at the horizontal offset.
    """

    def __init__(self, width: int = 40, height: int = 10, wrap: bool = False,
                 hscroll_step: int = HSCROLL_STEP):
        self.width = max(1, width)
        self.height = max(1, height)
        self.wrap = wrap
        self._hscroll_step = hscroll_step
        self._content: str = ""
        self._source_lines: List[str] = []
        self._max_line_width: int = 0
        self._view_lines: List[str] = []
        self.y_offset: int = 0
        self.x_offset: int = 0

    @property
    def content(self) -> str:
        return self._content

    @property
    def max_line_width(self) -> int:
        return self._max_line_width

    @property
    def total_lines(self) -> int:
        return len(self._source_lines)

    def set_size(self, width: int, height: int) -> None:
        """Resize the viewport, keeping the current line position."""
        self.width = max(1, width)
        self.height = max(1, height)
        if self.wrap:
            self._load_lines()
        self._reslice()
        self._clamp()

    def set_content(self, content: str) -> None:
        """Load a new blob and reset both offsets to the top-left."""
        self._content = content
        self.y_offset = 0
        self.x_offset = 0
        self._load_lines()
        self._reslice()

    def clear(self) -> None:
        self.set_content("")

    def _load_lines(self) -> None:
        text = wrap_text(self._content, self.width) if self.wrap else self._content
        self._source_lines = text.split("\n") if text else []
        self._max_line_width = max_line_width(self._source_lines)

    def _reslice(self) -> None:
        self._view_lines = [
            slice_line(line, self.x_offset, self.width) for line in self._source_lines
        ]

    def _max_y_offset(self) -> int:
        return max(0, len(self._source_lines) - self.height)

    def max_x_offset(self) -> int:
        return max(0, self._max_line_width - self.width)

    def _clamp(self) -> None:
        self.y_offset = max(0, min(self.y_offset, self._max_y_offset()))
        self.x_offset = max(0, min(self.x_offset, self.max_x_offset()))

    # Vertical scrolling

    def line_up(self, n: int = 1) -> None:
        self.y_offset = max(0, self.y_offset - n)

    def line_down(self, n: int = 1) -> None:
        self.y_offset = min(self._max_y_offset(), self.y_offset + n)

    def half_page_up(self) -> None:
        self.line_up(max(1, self.height // 2))

    def half_page_down(self) -> None:
        self.line_down(max(1, self.height // 2))

    def goto_top(self) -> None:
        self.y_offset = 0

    def goto_bottom(self) -> None:
        self.y_offset = self._max_y_offset()

    # Horizontal scrolling

    def scroll_left(self) -> None:
        new_offset = max(0, self.x_offset - self._hscroll_step)
        if new_offset != self.x_offset:
            self.x_offset = new_offset
            self._reslice()

    def scroll_right(self) -> None:
        new_offset = min(self.x_offset + self._hscroll_step, self.max_x_offset())
        if new_offset != self.x_offset:
            self.x_offset = new_offset
            self._reslice()

    def scroll_percent(self) -> float:
        """Vertical position as a fraction in [0, 1]."""
        if len(self._source_lines) <= self.height:
            return 1.0
        return self.y_offset / self._max_y_offset()

    def visible_lines(self) -> List[str]:
        """Exactly ``height`` lines, each padded to the viewport width."""
        window = self._view_lines[self.y_offset:self.y_offset + self.height]
        lines = [_pad_to_width(line, self.width) for line in window]
        while len(lines) < self.height:
            lines.append(" " * self.width)
        return lines
