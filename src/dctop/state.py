"""
Window state and the background worker threads behind the containers table.

This module holds the single mutable record the window owner works on, and
the two long-lived daemon threads that keep Docker queries and screen
painting off the owner thread.

Architecture:
  - WindowBounds: frozen window geometry, validated on construction
  - TableState: all table/inspect/search state. Only the ContainersWindow
    owner thread mutates it; the other threads get snapshot() copies.
  - DataRefreshWorker: serves one refresh request at a time. It decides
    between a full re-list (an id or a status changed) and a stats-only refresh,
    and posts the resulting collection to the owner's inbox as NewData.
  - DrawWorker: paints snapshots in arrival order. A slow paint backs the
    queue up; it never blocks input handling.

Thread Safety:
  - No locks on TableState: all mutation is sequenced through the owner's
    inbox. Workers only ever see immutable snapshots and collections.
  - Workers never touch state directly; they talk through queue.Queue.
  - Screen access is serialized inside CursesScreen.

Worker Lifecycle:
  - Started by ContainersWindow.open()
  - Stopped by setting the shared stop Event. Each worker checks it before
    every Docker query, every send and every paint, and exits without
    delivering anything in flight.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .cache import cache_manager
from .events import Level, NewData, StatusMessage
from .model import ContainerCollection, SortType
from .stats import total_stats_summary, total_stats_text
from .styler import EMPTY_CHAR, Style

logger = logging.getLogger(__name__)

# Refresh cycles between inspect-cache sweeps
CACHE_CLEANUP_CYCLES = 60
POLL_TIMEOUT = 0.2

BORDER_STYLE = Style(fg="border")
TITLE_STYLE = Style(fg="border", bold=True)


class DisplayMode(Enum):
    TABLE = "table"
    INSPECT = "inspect"


class InputMode(Enum):
    REGULAR = "regular"
    SEARCH = "search"


@dataclass(frozen=True)
class WindowBounds:
    left: int
    top: int
    right: int
    bottom: int

    def __post_init__(self):
        if min(self.left, self.top, self.right, self.bottom) < 0:
            raise ValueError(f"Negative window coordinates: {self}")
        if self.left >= self.right or self.top >= self.bottom:
            raise ValueError(
                f"Bad window coordinates: top left ({self.left},{self.top}), "
                f"bottom right ({self.right},{self.bottom})")

    @property
    def inner_width(self) -> int:
        return self.right - self.left - 1

    @property
    def inner_height(self) -> int:
        return self.bottom - self.top - 1

    def is_out_of_bounds(self, x: int, y: int) -> bool:
        return x < self.left or x > self.right or y < self.top or y > self.bottom

    def relative_position(self, x: int, y: int) -> Tuple[int, int]:
        """Position relative to the window interior (inside the border)."""
        return x - self.left - 1, y - self.top - 1


def container_window_bounds(width: int, height: int) -> WindowBounds:
    """The table window takes the whole screen except the status line."""
    return WindowBounds(0, 0, max(1, width - 1), max(1, height - 2))


def calc_table_height(top: int, bottom: int) -> int:
    # border, header, separator, blank line, search line, border
    return bottom - top - 5


def calc_inspect_height(top: int, bottom: int) -> int:
    return bottom - top - 1


@dataclass
class TableState:
    bounds: WindowBounds
    display_mode: DisplayMode = DisplayMode.TABLE
    input_mode: InputMode = InputMode.REGULAR
    search_buffer: str = ""
    search_cursor: int = 0
    focused_id: str = ""
    top_visible_row: int = 0
    table_height: int = 0
    top_inspect_line: int = 0
    inspect_height: int = 0
    sort_primary: SortType = SortType.STATE
    sort_secondary: SortType = SortType.NAME
    containers: ContainerCollection = field(default_factory=ContainerCollection)

    @classmethod
    def for_bounds(cls, bounds: WindowBounds) -> "TableState":
        state = cls(bounds=bounds)
        state.resize(bounds)
        return state

    def resize(self, bounds: WindowBounds) -> None:
        self.bounds = bounds
        self.table_height = calc_table_height(bounds.top, bounds.bottom)
        self.inspect_height = calc_inspect_height(bounds.top, bounds.bottom)

    def visible(self) -> ContainerCollection:
        """The containers after the live search filter; the full collection is untouched."""
        return self.containers.filter(self.search_buffer)

    def snapshot(self) -> "TableState":
        # Every field is immutable, so a shallow copy is a safe snapshot.
        return replace(self)


class DataRefreshWorker(threading.Thread):
    def __init__(self, backend, inbox: queue.Queue, stop_event: threading.Event,
                 min_interval: float = 0.5):
        super().__init__(daemon=True, name="dctop-refresh")
        self.backend = backend
        self.inbox = inbox
        self.stop_event = stop_event
        self.min_interval = min_interval
        self.requests: "queue.Queue[ContainerCollection]" = queue.Queue()
        self.running = True

    def request(self, collection: ContainerCollection) -> None:
        self.requests.put(collection)

    def _cancelled(self) -> bool:
        return not self.running or self.stop_event.is_set()

    def refresh(self, collection: ContainerCollection) -> Optional[ContainerCollection]:
        """One refresh cycle. Returns None if cancelled part way through."""
        if self._cancelled():
            return None
        live = self.backend.list_states()
        if self._cancelled():
            return None
        if live is None:
            logger.warning("Container listing failed, keeping the current rows")
            return collection
        if collection.states() != live:
            logger.debug(f"Containers changed ({len(collection)} -> {len(live)}), re-listing")
            relisted = self.backend.list_containers(live, collection)
            return collection if relisted is None else relisted

        samples = self.backend.refresh_stats(collection.ids())
        deleted = set()
        for container_id, sample in samples.items():
            if sample is not None:
                continue
            if self._cancelled():
                return None
            if self.backend.is_being_removed(container_id) or not self.backend.exists(container_id):
                logger.debug(f"Container {container_id[:12]} is being removed")
                deleted.add(container_id)
        return collection.advance_stats(samples, frozenset(deleted))

    def run(self) -> None:
        cleanup_counter = 0
        last_cycle = 0.0
        while not self._cancelled():
            try:
                collection = self.requests.get(timeout=POLL_TIMEOUT)
            except queue.Empty:
                continue

            # Floor on cycle spacing so an idle daemon can't drive a busy loop
            delay = self.min_interval - (time.monotonic() - last_cycle)
            if delay > 0 and self.stop_event.wait(delay):
                break
            last_cycle = time.monotonic()

            try:
                new_data = self.refresh(collection)
            except Exception as e:
                logger.error(f"Refresh cycle failed: {e}", exc_info=True)
                new_data = collection
            if new_data is None or self._cancelled():
                logger.debug("Refresh worker cancelled with a request in flight")
                break
            self.inbox.put(NewData(new_data))

            cleanup_counter += 1
            if cleanup_counter >= CACHE_CLEANUP_CYCLES:
                cache_manager.cleanup_expired()
                cleanup_counter = 0
        logger.info("Refresh worker stopped")


class DrawWorker(threading.Thread):
    def __init__(self, screen, renderer, stop_event: threading.Event,
                 post_event: Callable[[object], None]):
        super().__init__(daemon=True, name="dctop-draw")
        self.screen = screen
        self.renderer = renderer
        self.stop_event = stop_event
        self.post_event = post_event
        self.snapshots: "queue.Queue[TableState]" = queue.Queue()
        self.running = True

    def submit(self, snapshot: TableState) -> None:
        self.snapshots.put(snapshot)

    def _cancelled(self) -> bool:
        return not self.running or self.stop_event.is_set()

    def draw_borders(self, bounds: WindowBounds, title: str = "") -> None:
        set_cell = self.screen.set_cell
        for x in range(bounds.left, bounds.right + 1):
            set_cell(x, bounds.top, "─", BORDER_STYLE)
            set_cell(x, bounds.bottom, "─", BORDER_STYLE)
        for y in range(bounds.top, bounds.bottom):
            set_cell(bounds.left, y, "│", BORDER_STYLE)
            set_cell(bounds.right, y, "│", BORDER_STYLE)
        set_cell(bounds.left, bounds.top, "┌", BORDER_STYLE)
        set_cell(bounds.right, bounds.top, "┐", BORDER_STYLE)
        set_cell(bounds.left, bounds.bottom, "└", BORDER_STYLE)
        set_cell(bounds.right, bounds.bottom, "┘", BORDER_STYLE)
        for i, ch in enumerate(title[:max(0, bounds.inner_width - 2)]):
            set_cell(bounds.left + 2 + i, bounds.top, ch, TITLE_STYLE)

    def paint(self, bounds: WindowBounds, lines: List) -> None:
        width = bounds.inner_width
        left, top = bounds.left + 1, bounds.top + 1
        for y, line in enumerate(lines):
            for x in range(width):
                if line is None:
                    ch, style = EMPTY_CHAR, Style()
                else:
                    ch, style = line(x)
                self.screen.set_cell(left + x, top + y, ch, style)

    def draw(self, state: TableState) -> None:
        self.draw_borders(state.bounds, total_stats_text(total_stats_summary(state.containers)))
        visible = state.visible()
        if len(visible) == 0 and state.search_buffer:
            self.post_event(StatusMessage(Level.WARNING, "Filtered list is empty"))
        lines = self.renderer.frame(state, visible)
        if self._cancelled():
            return
        self.paint(state.bounds, lines)
        self.screen.show()

    def run(self) -> None:
        while not self._cancelled():
            try:
                snapshot = self.snapshots.get(timeout=POLL_TIMEOUT)
            except queue.Empty:
                continue
            if self._cancelled():
                break
            try:
                self.draw(snapshot)
            except Exception as e:
                logger.error(f"Failed to draw frame: {e}", exc_info=True)
        logger.info("Draw worker stopped")
