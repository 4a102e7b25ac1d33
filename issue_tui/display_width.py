"""Display width utilities for terminal rendering.

Provides accurate display width measurement for strings containing
wide characters (CJK, emoji), ambiguous-width characters (box-drawing),
and zero-width characters, plus the layout helpers built on top of it:
wrapping, truncation, horizontal slicing and column-exact cutting.

All helpers address text by terminal columns, never by character count.
A glyph wider than the space left before a boundary is never split; the
remaining columns are filled with a single padding space instead.
"""

import os
import unicodedata
from typing import Iterator, List, Tuple

import wcwidth

ELLIPSIS = "..."


def _get_ambiguous_width() -> int:
    """Get the width to use for East Asian Ambiguous characters.

    Reads from IM_AMBIGUOUS_WIDTH environment variable.
    Default is 1 (standard Western terminals).
    Set to 2 for CJK terminals or terminals with ambiguous width = wide.

    Returns:
        1 or 2 depending on configuration.
    """
    value = os.environ.get("IM_AMBIGUOUS_WIDTH", "1")
    return 2 if value == "2" else 1


def char_width(char: str) -> int:
    """Display width of a single character.

    Uses wcwidth to detect zero-width and non-printable characters and
    unicodedata.east_asian_width() for everything else:
    - Fullwidth (F) and Wide (W) characters: 2 columns
    - Ambiguous (A) characters: configurable via IM_AMBIGUOUS_WIDTH
    - Halfwidth (H), Narrow (Na), Neutral (N): 1 column
    """
    wc = wcwidth.wcwidth(char)
    if wc == 0 or wc == -1:
        return 0
    eaw = unicodedata.east_asian_width(char)
    if eaw in ('F', 'W'):
        return 2
    if eaw == 'A':
        return _get_ambiguous_width()
    return 1


def _display_width(text: str) -> int:
    """Calculate the display width of a string, accounting for wide characters.

    Args:
        text: The string to measure.

    Returns:
        The display width in terminal columns.
    """
    return sum(char_width(char) for char in text)


def _pad_to_width(text: str, target_width: int, align: str = "left") -> str:
    """Pad a string to a target display width, accounting for wide characters.

    Args:
        text: The string to pad.
        target_width: The desired display width.
        align: Alignment - 'left', 'right', or 'center'.

    Returns:
        The padded string.
    """
    current_width = _display_width(text)
    padding_needed = max(0, target_width - current_width)

    if align == "right":
        return " " * padding_needed + text
    elif align == "center":
        left_pad = padding_needed // 2
        right_pad = padding_needed - left_pad
        return " " * left_pad + text + " " * right_pad
    else:  # left
        return text + " " * padding_needed


def iter_glyphs(text: str) -> Iterator[Tuple[str, int]]:
    """Yield (glyph, width) pairs.

    Zero-width characters (combining marks, variation selectors, ZWJ) are
    attached to the preceding glyph so they are never separated from it.
    """
    current = ""
    current_width = 0
    for char in text:
        width = char_width(char)
        if width == 0 and current:
            current += char
            continue
        if current:
            yield current, current_width
        current = char
        current_width = width
    if current:
        yield current, current_width


def max_line_width(lines: List[str]) -> int:
    """Widest display width among lines (0 for no lines)."""
    return max((_display_width(line) for line in lines), default=0)


def wrap_text(text: str, width: int) -> str:
    """Hard-wrap text so that every output line fits in width columns.

    Existing newlines are preserved. When the next glyph does not fit in
    the columns left on the current line, the line is closed with a single
    padding space and the glyph starts the next line. A glyph wider than
    width on its own is emitted alone on a line rather than split.

    Args:
        text: Text to wrap.
        width: Target display width; non-positive returns text unchanged.

    Returns:
        The wrapped text joined with newlines.
    """
    if width <= 0:
        return text

    out_lines: List[str] = []
    for line in text.split("\n"):
        current = ""
        used = 0
        for glyph, glyph_width in iter_glyphs(line):
            if used + glyph_width > width and used > 0:
                if used < width:
                    current += " "
                out_lines.append(current)
                current = ""
                used = 0
            current += glyph
            used += glyph_width
        out_lines.append(current)
    return "\n".join(out_lines)


def truncate(text: str, width: int, tail: str = ELLIPSIS) -> str:
    """Truncate a single line to width columns with a trailing tail.

    Text that already fits is returned unchanged. Otherwise as many whole
    glyphs as fit in ``width - len(tail)`` are kept, a padding space fills
    a column left over by a wide glyph, and the tail is appended. When the
    budget cannot even hold the tail, the text is cropped without one.

    Args:
        text: Single line of text.
        width: Display width budget; non-positive returns text unchanged.
        tail: Marker appended when text is cut.

    Returns:
        Text whose display width is at most width.
    """
    if width <= 0:
        return text
    if _display_width(text) <= width:
        return text

    tail_width = _display_width(tail)
    if tail_width > width:
        tail = ""
        tail_width = 0

    budget = width - tail_width
    kept = ""
    used = 0
    for glyph, glyph_width in iter_glyphs(text):
        if used + glyph_width > budget:
            break
        kept += glyph
        used += glyph_width
    if used < budget:
        kept += " " * (budget - used)
    return kept + tail


def slice_line(text: str, offset: int, width: int) -> str:
    """Horizontally scrolled view of a line.

    Whole glyphs are skipped until the skipped width reaches offset. If the
    offset falls inside a wide glyph, that glyph is dropped and a single
    padding space stands in for its visible half. The rest is truncated to
    width with the usual ellipsis rule.

    Args:
        text: Single line of text.
        offset: First visible display column (values below 0 count as 0).
        width: Visible display width; non-positive returns text unchanged.

    Returns:
        The visible portion of the line.
    """
    if width <= 0:
        return text
    offset = max(0, offset)

    skipped = 0
    index = 0
    glyphs = list(iter_glyphs(text))
    prefix = ""
    while index < len(glyphs) and skipped < offset:
        glyph_width = glyphs[index][1]
        skipped += glyph_width
        index += 1
        if skipped > offset:
            prefix = " "
    rest = prefix + "".join(glyph for glyph, _ in glyphs[index:])
    return truncate(rest, width)


def cut_columns(text: str, start: int, end: int) -> str:
    """Extract exactly the columns [start, end) of a line.

    Wide glyphs straddling either boundary are replaced by spaces for the
    columns they would occupy inside the range, and a short line is padded,
    so the result is always ``end - start`` columns wide.
    """
    if end <= start:
        return ""

    pieces: List[str] = []
    column = 0
    for glyph, glyph_width in iter_glyphs(text):
        glyph_end = column + glyph_width
        if glyph_end <= start:
            column = glyph_end
            continue
        if column >= end:
            break
        if column < start or glyph_end > end:
            visible = min(glyph_end, end) - max(column, start)
            pieces.append(" " * visible)
        else:
            pieces.append(glyph)
        column = glyph_end

    result = "".join(pieces)
    return _pad_to_width(result, end - start)
