"""
Focus and scroll arithmetic for the container table and the inspect screen.

All functions take the window's TableState and mutate its focus/scroll
fields in place; only the window owner thread calls them. `rows` is always
the visible (filtered) collection, so the focused index is the one the user
sees on screen.

Table invariant kept by every function here:
    0 <= top_visible_row <= max(0, len(rows) - table_height)
    top_visible_row <= focus index < top_visible_row + table_height
"""

import logging

from .model import ContainerCollection, NotFoundError

logger = logging.getLogger(__name__)


def update_viewport(state, index: int, count: int) -> None:
    """Scroll just enough that row `index` of `count` rows is on screen."""
    height = max(1, state.table_height)
    top = state.top_visible_row
    if index < top:
        top = index
    elif index >= top + height:
        top = index - height + 1
    # No trailing blank page past the end of the data
    top = min(top, max(0, count - height))
    state.top_visible_row = max(0, top)


def clamp_focus_in_table(state, new_index: int, rows: ContainerCollection) -> None:
    """Focus row new_index, wrapping around either end of the table."""
    count = len(rows)
    if count == 0:
        state.focused_id = ""
        state.top_visible_row = 0
        return
    if new_index < 0:
        new_index = count - 1
    elif new_index >= count:
        new_index = 0
    state.focused_id = rows[new_index].id
    update_viewport(state, new_index, count)


def change_focus(state, forward: bool, rows: ContainerCollection) -> None:
    if not state.focused_id:
        if len(rows) == 0:
            return
        clamp_focus_in_table(state, 0 if forward else len(rows) - 1, rows)
        return
    try:
        index = rows.index_of(state.focused_id)
    except NotFoundError:
        logger.warning(f"Focused container {state.focused_id[:12]} is gone, clearing focus")
        state.focused_id = ""
        return
    clamp_focus_in_table(state, index + 1 if forward else index - 1, rows)


def sync_viewport(state, rows: ContainerCollection) -> None:
    """Re-establish the table invariant after the rows or the height changed."""
    count = len(rows)
    if state.focused_id and rows.contains(state.focused_id):
        update_viewport(state, rows.index_of(state.focused_id), count)
        return
    height = max(1, state.table_height)
    state.top_visible_row = max(0, min(state.top_visible_row, count - height))


def inspect_offset(num_lines: int, height: int, top_line: int) -> int:
    """
    First inspect line to show. The scroll cursor cycles instead of clamping:
    scrolling past either end wraps to the other one.
    """
    if num_lines <= height:
        return 0
    span = 1 + num_lines - height
    # Python's % already lands in [0, span) for negative cursors
    return top_line % span
