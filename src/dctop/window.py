"""
The containers window: a single-owner state machine over TableState.

Every input (keys, mouse clicks, resizes, refreshed data, stop) arrives as a
message on one queue.Queue inbox. The owner thread takes them one at a time,
applies the transition, then hands a snapshot to the DrawWorker. Nothing
else writes TableState, so it needs no lock.

Modes:
  display: TABLE (list of containers) / INSPECT (details of the focused one)
  input:   REGULAR (navigation keys) / SEARCH (editing the filter buffer)

Regular keys (single letters come from the configured KeyBindings):
  up/down    move focus (TABLE, wraps) or scroll details (INSPECT, wraps)
  g / G      first / last row (g also rewinds INSPECT scrolling)
  delete     remove the focused container and move focus to a neighbour
  l / e      docker logs / docker exec for the focused container
  i          toggle INSPECT (needs a focus)
  /          clear the search buffer and start editing it
  c          clear the search buffer
  q          quit

Search keys: printable characters insert at the cursor, left/right move it,
backspace/delete remove around it, enter reports the active filter, escape
or ctrl-d drop the buffer and go back to REGULAR.
"""

import logging
import queue
import threading
from typing import Callable, Optional

from .config import KeyBindings
from .events import (
    KeyEvent, Level, MouseEvent, NewData, Quit, ResizeEvent, ShowLogs, ShowShell,
    StatusMessage, Stop,
)
from .model import ContainerCollection, NotFoundError, SortType
from .state import (
    DataRefreshWorker, DisplayMode, DrawWorker, InputMode, TableState,
    container_window_bounds,
)
from .table import TableRenderer, sort_type_at
from .viewport import change_focus, clamp_focus_in_table, sync_viewport

logger = logging.getLogger(__name__)

BENIGN_DELETE_ERRORS = ("is already in progress", "No such container")


class ContainersWindow:
    def __init__(self, screen, backend, post_event: Callable[[object], None],
                 keybindings: Optional[KeyBindings] = None,
                 renderer: Optional[TableRenderer] = None,
                 min_refresh_interval: float = 0.5):
        self.screen = screen
        self.backend = backend
        self.post_event = post_event
        self.keys = keybindings or KeyBindings()
        self.renderer = renderer or TableRenderer()
        self.inbox: queue.Queue = queue.Queue()
        self.stop_event = threading.Event()
        self.refresher = DataRefreshWorker(backend, self.inbox, self.stop_event, min_refresh_interval)
        self.drawer = DrawWorker(screen, self.renderer, self.stop_event, post_event)
        width, height = screen.size()
        self.state = TableState.for_bounds(container_window_bounds(width, height))
        self._owner: Optional[threading.Thread] = None

    # Producers, callable from any thread

    def resize(self) -> None:
        self.inbox.put(ResizeEvent())

    def key_press(self, event: KeyEvent) -> None:
        self.inbox.put(event)

    def mouse_press(self, event: MouseEvent) -> None:
        self.inbox.put(event)

    def close(self) -> None:
        self.stop_event.set()
        self.inbox.put(Stop())
        if self._owner is not None and self._owner is not threading.current_thread():
            self._owner.join(timeout=2.0)
        self.renderer.close()

    # Owner

    def open(self) -> None:
        self.refresher.start()
        self.drawer.start()
        self._owner = threading.Thread(target=self.run, daemon=True, name="dctop-window")
        self._owner.start()
        # An empty collection differs from any non-empty listing, so the first cycle lists everything
        self.refresher.request(self.state.containers)
        self.drawer.submit(self.state.snapshot())

    def run(self) -> None:
        while True:
            message = self.inbox.get()
            if isinstance(message, Stop):
                logger.info("Stopping containers window")
                self.refresher.running = False
                self.drawer.running = False
                return
            try:
                self.handle(message)
            except Exception as e:
                logger.error(f"Failed to handle {type(message).__name__}: {e}", exc_info=True)
            self.drawer.submit(self.state.snapshot())

    def handle(self, message) -> None:
        if isinstance(message, ResizeEvent):
            self._handle_resize()
        elif isinstance(message, NewData):
            self._handle_new_data(message.collection)
        elif isinstance(message, MouseEvent):
            self._handle_mouse(message)
        elif isinstance(message, KeyEvent):
            if self.state.input_mode == InputMode.SEARCH:
                self._search_key(message.key)
            else:
                self._regular_key(message.key)
        else:
            logger.warning(f"Unknown message {message!r}")
            return
        sync_viewport(self.state, self.state.visible())

    def _handle_resize(self) -> None:
        width, height = self.screen.size()
        self.state.resize(container_window_bounds(width, height))
        logger.debug(f"Resized to {width}x{height}, table height {self.state.table_height}")

    def _handle_new_data(self, collection: ContainerCollection) -> None:
        state = self.state
        state.containers = collection.sorted_by(state.sort_primary, state.sort_secondary)
        if state.focused_id:
            if not state.containers.contains(state.focused_id):
                logger.debug(f"Focused container {state.focused_id[:12]} disappeared")
                self._drop_focus()
            elif state.containers.get(state.focused_id).stats is None:
                logger.debug(f"No stats for focused container {state.focused_id[:12]}, dropping focus")
                self._drop_focus()
        self.refresher.request(state.containers)

    def _drop_focus(self) -> None:
        self.state.focused_id = ""
        self.state.display_mode = DisplayMode.TABLE

    def _handle_mouse(self, event: MouseEvent) -> None:
        state = self.state
        if state.bounds.is_out_of_bounds(event.x, event.y):
            logger.debug(f"Out of bounds mouse event {event.x},{event.y}")
            return
        if state.display_mode != DisplayMode.TABLE:
            return
        x, y = state.bounds.relative_position(event.x, event.y)
        if y == 0:
            sort_type = sort_type_at(state.bounds.inner_width, x)
            if sort_type != SortType.NONE and sort_type != state.sort_primary:
                state.sort_secondary = state.sort_primary
                state.sort_primary = sort_type
                state.containers = state.containers.sorted_by(state.sort_primary, state.sort_secondary)
                logger.debug(f"Sorting by {state.sort_primary.name}, then {state.sort_secondary.name}")
        elif 2 <= y < state.table_height + 2:
            visible = state.visible()
            index = state.top_visible_row + y - 2
            if index < len(visible):
                clamp_focus_in_table(state, index, visible)

    def _regular_key(self, key: str) -> None:
        state = self.state
        keys = self.keys
        table = state.display_mode == DisplayMode.TABLE
        if key == "up":
            if table:
                change_focus(state, False, state.visible())
            else:
                state.top_inspect_line -= 1
        elif key == "down":
            if table:
                change_focus(state, True, state.visible())
            else:
                state.top_inspect_line += 1
        elif key == "delete":
            state.display_mode = DisplayMode.TABLE
            self._delete_focused()
        elif key == keys.logs:
            if state.focused_id:
                self.post_event(ShowLogs(state.focused_id))
        elif key == keys.shell:
            if state.focused_id:
                self.post_event(ShowShell(state.focused_id))
        elif key == keys.inspect:
            if table:
                if not state.focused_id:
                    return
                state.display_mode = DisplayMode.INSPECT
                state.top_inspect_line = 0
            else:
                state.display_mode = DisplayMode.TABLE
            logger.debug(f"Display mode is now {state.display_mode.value}")
        elif key == keys.first:
            if table:
                visible = state.visible()
                if len(visible):
                    clamp_focus_in_table(state, 0, visible)
            else:
                state.top_inspect_line = 0
        elif key == keys.last:
            if table:
                visible = state.visible()
                if len(visible):
                    clamp_focus_in_table(state, len(visible) - 1, visible)
        elif key == keys.clear_search:
            self._reset_search()
        elif key == keys.search:
            self._reset_search()
            self.post_event(StatusMessage(Level.INFO, "Switched to search mode..."))
            state.input_mode = InputMode.SEARCH
        elif key == keys.quit:
            self.post_event(Quit())

    def _search_key(self, key: str) -> None:
        state = self.state
        buffer, cursor = state.search_buffer, state.search_cursor
        if key == "left":
            state.search_cursor = max(0, cursor - 1)
        elif key == "right":
            state.search_cursor = min(len(buffer), cursor + 1)
        elif key == "backspace":
            if cursor > 0:
                state.search_buffer = buffer[:cursor - 1] + buffer[cursor:]
                state.search_cursor = cursor - 1
        elif key == "delete":
            if cursor < len(buffer):
                state.search_buffer = buffer[:cursor] + buffer[cursor + 1:]
        elif key == "enter":
            self.post_event(StatusMessage(Level.INFO, f"Searching for {buffer}"))
        elif key in ("escape", "ctrl-d"):
            state.input_mode = InputMode.REGULAR
            self._reset_search()
        elif len(key) == 1 and key.isprintable():
            state.search_buffer = buffer[:cursor] + key + buffer[cursor:]
            state.search_cursor = cursor + 1

    def _reset_search(self) -> None:
        self.state.search_buffer = ""
        self.state.search_cursor = 0
        self.post_event(StatusMessage(Level.INFO, "Cleared search"))

    def _delete_focused(self) -> None:
        state = self.state
        if not state.focused_id:
            return
        visible = state.visible()
        try:
            index = visible.index_of(state.focused_id)
        except NotFoundError:
            logger.warning(f"Tried deleting {state.focused_id[:12]} which is not in the table")
            state.focused_id = ""
            return
        threading.Thread(target=self.delete_container, args=(state.focused_id,),
                         daemon=True, name="dctop-delete").start()
        if len(visible) == 1:
            # Nothing left to move the focus to
            state.focused_id = ""
            return
        change_to_next = index != len(visible) - 1
        change_focus(state, change_to_next, visible)

    def delete_container(self, container_id: str) -> None:
        """Runs on a throwaway thread; the outcome shows up in a later NewData."""
        try:
            self.backend.delete(container_id)
            logger.info(f"Deleted container {container_id[:12]}")
        except Exception as e:
            message = str(e)
            if any(benign in message for benign in BENIGN_DELETE_ERRORS):
                logger.debug(f"Ignoring delete error for {container_id[:12]}: {message}")
                return
            logger.critical(f"Unexpected error deleting container {container_id[:12]}: {e}", exc_info=True)
            self.post_event(StatusMessage(Level.ERROR, f"Failed to delete {container_id[:12]}: {e}"))
