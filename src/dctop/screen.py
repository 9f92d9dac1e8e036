"""
Curses terminal driver for dctop.

CursesScreen is the only object that calls into curses. Several threads use
it at once (the draw worker paints, the main thread polls input and writes
the status line), and curses is not thread-safe, so every call happens
under one RLock.

Responsibilities:
  - set_cell(x, y, char, style): one cell, style roles resolved through the
    configured ColorTheme into lazily allocated color pairs
  - size() / show() / clear()
  - poll_event(): non-blocking read, decoded into KeyEvent / MouseEvent /
    ResizeEvent with normalized key names
  - suspended(): context manager that hands the terminal to a subprocess
    (docker logs / docker exec) and restores curses afterwards
"""

import curses
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Optional, Tuple, Union

from .config import ColorTheme
from .events import KeyEvent, Level, MouseEvent, ResizeEvent
from .styler import EMPTY_CHAR, Style

logger = logging.getLogger(__name__)

COLOR_NAMES = {
    "default": -1,
    "black": curses.COLOR_BLACK,
    "red": curses.COLOR_RED,
    "green": curses.COLOR_GREEN,
    "yellow": curses.COLOR_YELLOW,
    "blue": curses.COLOR_BLUE,
    "magenta": curses.COLOR_MAGENTA,
    "cyan": curses.COLOR_CYAN,
    "white": curses.COLOR_WHITE,
}

SPECIAL_KEYS = {
    curses.KEY_UP: "up",
    curses.KEY_DOWN: "down",
    curses.KEY_LEFT: "left",
    curses.KEY_RIGHT: "right",
    curses.KEY_DC: "delete",
    curses.KEY_BACKSPACE: "backspace",
    curses.KEY_ENTER: "enter",
}

CHAR_KEYS = {
    "\n": "enter",
    "\r": "enter",
    "\x1b": "escape",
    "\x04": "ctrl-d",
    "\x7f": "backspace",
    "\x08": "backspace",
}

MOUSE_BUTTONS = curses.BUTTON1_PRESSED | curses.BUTTON1_CLICKED

Event = Union[KeyEvent, MouseEvent, ResizeEvent]


def decode_key(key: Union[int, str]) -> Optional[str]:
    """Normalize a get_wch() result into a key name, or None if it means nothing to us."""
    if isinstance(key, int):
        return SPECIAL_KEYS.get(key)
    if key in CHAR_KEYS:
        return CHAR_KEYS[key]
    if len(key) == 1 and key.isprintable():
        return key
    return None


class CursesScreen:
    def __init__(self, stdscr, theme: Optional[ColorTheme] = None):
        self.stdscr = stdscr
        self.theme = theme or ColorTheme()
        self._lock = threading.RLock()
        self._pairs: Dict[Tuple[int, int], int] = {}
        self._colors = False

    def setup(self) -> None:
        with self._lock:
            try:
                curses.curs_set(0)
            except curses.error:
                logger.debug("Terminal can't hide the cursor")
            self.stdscr.nodelay(True)
            self.stdscr.keypad(True)
            if curses.has_colors():
                curses.start_color()
                curses.use_default_colors()
                self._colors = True
            curses.mousemask(MOUSE_BUTTONS)
            curses.mouseinterval(0)

    def size(self) -> Tuple[int, int]:
        with self._lock:
            height, width = self.stdscr.getmaxyx()
        return width, height

    def _color(self, role: str) -> int:
        name = self.theme.color_for(role)
        if name not in COLOR_NAMES:
            logger.debug(f"Unknown color '{name}' for role '{role}', using default")
        return COLOR_NAMES.get(name, -1)

    def _attr(self, style: Style) -> int:
        attr = curses.A_NORMAL
        if self._colors:
            key = (self._color(style.fg), self._color(style.bg))
            if key != (-1, -1):
                pair = self._pairs.get(key)
                if pair is None and len(self._pairs) + 1 < curses.COLOR_PAIRS:
                    pair = len(self._pairs) + 1
                    curses.init_pair(pair, *key)
                    self._pairs[key] = pair
                if pair is not None:
                    attr |= curses.color_pair(pair)
        if style.bold:
            attr |= curses.A_BOLD
        if style.underline:
            attr |= curses.A_UNDERLINE
        if style.reverse:
            attr |= curses.A_REVERSE
        return attr

    def set_cell(self, x: int, y: int, char: str, style: Style) -> None:
        if char == EMPTY_CHAR:
            char = " "
        with self._lock:
            height, width = self.stdscr.getmaxyx()
            if not (0 <= x < width and 0 <= y < height):
                return
            try:
                self.stdscr.addstr(y, x, char, self._attr(style))
            except curses.error:
                # Writing the bottom-right cell moves the cursor off screen
                pass

    def draw_status(self, text: str, level: Level) -> None:
        """Replace the bottom line with a status message colored by level."""
        style = Style(fg=level.value, bold=level != Level.INFO)
        with self._lock:
            width, height = self.size()
            line = text[:max(0, width - 1)].ljust(max(0, width - 1))
            for x, ch in enumerate(line):
                self.set_cell(x, height - 1, ch, style)
            self.show()

    def show(self) -> None:
        with self._lock:
            self.stdscr.noutrefresh()
            curses.doupdate()

    def clear(self) -> None:
        with self._lock:
            self.stdscr.erase()

    def poll_event(self) -> Optional[Event]:
        with self._lock:
            try:
                key = self.stdscr.get_wch()
            except curses.error:
                return None
            if key == curses.KEY_RESIZE:
                curses.update_lines_cols()
                return ResizeEvent()
            if key == curses.KEY_MOUSE:
                try:
                    _, x, y, _, state = curses.getmouse()
                except curses.error:
                    return None
                if state & MOUSE_BUTTONS:
                    return MouseEvent(x, y)
                return None
        name = decode_key(key)
        if name is None:
            logger.debug(f"Ignoring key {key!r}")
            return None
        return KeyEvent(name)

    @contextmanager
    def suspended(self):
        """Give the terminal to a subprocess; the draw worker blocks on the lock meanwhile."""
        with self._lock:
            curses.def_prog_mode()
            curses.endwin()
            try:
                yield
            finally:
                curses.reset_prog_mode()
                try:
                    curses.curs_set(0)
                except curses.error:
                    pass
                self.stdscr.nodelay(True)
                self.stdscr.clearok(True)
                self.stdscr.refresh()
