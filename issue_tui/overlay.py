"""Overlay compositing for modal popups.

Splices a pre-rendered popup block into the centre of a background grid.
Columns are addressed by display width so wide glyphs in the background
that straddle a splice edge are replaced by padding, and every composed
row keeps exactly the background row's width.
"""

from typing import List, Optional, Tuple

from .display_width import _display_width, _pad_to_width, cut_columns

# (left background, popup, right background)
RowParts = Tuple[str, str, str]


def center_anchor(bg_width: int, bg_height: int, overlay_width: int,
                  overlay_height: int) -> Tuple[int, int]:
    """Top-left corner that centres the overlay, clamped to non-negative."""
    x = max(0, (bg_width - overlay_width) // 2)
    y = max(0, (bg_height - overlay_height) // 2)
    return x, y


def splice_row(background: str, overlay: str, x: int, row_width: int) -> RowParts:
    """Split one background row around an overlay row placed at column x.

    The overlay row is padded (or cut) to fit between x and the right edge
    of the row; the returned parts always add up to row_width columns.
    """
    overlay_width = min(_display_width(overlay), max(0, row_width - x))
    x = min(x, row_width)
    left = cut_columns(background, 0, x)
    middle = cut_columns(overlay, 0, overlay_width)
    right = cut_columns(background, x + overlay_width, row_width)
    return left, middle, right


def composite_parts(background: List[str], overlay: List[str],
                    width: Optional[int] = None) -> List[Optional[RowParts]]:
    """Per-row splice description for a centred overlay.

    Args:
        background: Background rows, already sized to the terminal.
        overlay: Popup rows; rows falling below the background are dropped.
        width: Row width in columns; defaults to the widest background row.

    Returns:
        One entry per background row: None for rows the overlay does not
        touch, otherwise the (left, popup, right) parts.
    """
    if width is None:
        width = max((_display_width(row) for row in background), default=0)
    overlay_width = max((_display_width(row) for row in overlay), default=0)
    x, y = center_anchor(width, len(background), overlay_width, len(overlay))

    parts: List[Optional[RowParts]] = [None] * len(background)
    for i, overlay_row in enumerate(overlay):
        row_index = y + i
        if row_index >= len(background):
            break
        padded = _pad_to_width(overlay_row, overlay_width)
        parts[row_index] = splice_row(background[row_index], padded, x, width)
    return parts


def composite(background: List[str], overlay: List[str],
              width: Optional[int] = None) -> List[str]:
    """Background rows with the overlay spliced into the centre.

    The result has the same number of rows as the background; untouched
    rows are padded to width so no row is narrower than the terminal.
    """
    if width is None:
        width = max((_display_width(row) for row in background), default=0)
    result = []
    for row, parts in zip(background, composite_parts(background, overlay, width)):
        if parts is None:
            result.append(cut_columns(row, 0, width))
        else:
            result.append("".join(parts))
    return result
