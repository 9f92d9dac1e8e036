"""
Lazy positional text-and-style producers ("stylers").

Every visual unit on screen (a table cell, a whole row, a percentage bar, a
horizontal rule, the search box) is a Styler: an object that maps a
zero-based column position to a (character, style) pair. Higher-level
stylers compose lower-level ones, so a table row is just a TableRow over a
handful of TextCell / ValueBar stylers.

Contract:
  - render(pos) never raises for an out-of-range position; it returns
    EMPTY_CELL instead.
  - Stateful stylers keep explicit cursor fields. They reset when asked for
    position 0 and re-seek when asked out of order, so a styler can be
    replayed from column 0 any number of times.
  - Styles are role names (see Style), never concrete colors. The screen
    driver resolves roles through the configured color theme.
"""

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Style:
    fg: str = "default"
    bg: str = "default"
    bold: bool = False
    underline: bool = False
    reverse: bool = False

    def on(self, bg: str) -> "Style":
        return replace(self, bg=bg)


DEFAULT_STYLE = Style()

Cell = Tuple[str, Style]

EMPTY_CHAR = "\x00"
EMPTY_CELL: Cell = (EMPTY_CHAR, DEFAULT_STYLE)

VERTICAL_LINE = "│"
HORIZONTAL_LINE = "─"


class Styler:
    """Base class for all stylers."""

    width: Optional[int] = None  # None means unbounded

    def render(self, pos: int) -> Cell:
        raise NotImplementedError

    def __call__(self, pos: int) -> Cell:
        return self.render(pos)

    def reset(self) -> None:
        """Forget any cursor state. Stateless stylers have nothing to do."""

    def text(self, length: Optional[int] = None) -> str:
        """Flatten to a plain string (empty cells dropped). Handy for logs and tests."""
        length = length if length is not None else (self.width or 0)
        chars = []
        for pos in range(length):
            ch, _ = self.render(pos)
            if ch != EMPTY_CHAR:
                chars.append(ch)
        return "".join(chars)


class Text(Styler):
    def __init__(self, text: str, style: Style = DEFAULT_STYLE):
        self._text = text
        self._style = style
        self.width = len(text)

    def render(self, pos: int) -> Cell:
        if 0 <= pos < len(self._text):
            return self._text[pos], self._style
        return EMPTY_CELL


class TextCell(Styler):
    """Fixed-width table cell: pads short text, truncates long text with dots."""

    def __init__(self, width: int, text: str, style: Style = DEFAULT_STYLE):
        self.width = max(0, width)
        self._style = style
        self._cell = self.fit(text, self.width)

    @staticmethod
    def fit(text: str, width: int) -> str:
        if len(text) < width:
            return text + " " * (width - len(text))
        num_dots = min(3, max(0, (width - 1) // 3))
        return text[:width - num_dots] + "." * num_dots

    def render(self, pos: int) -> Cell:
        if 0 <= pos < len(self._cell):
            return self._cell[pos], self._style
        return EMPTY_CELL


class RuneRepeater(Styler):
    def __init__(self, glyph: str, style: Style = DEFAULT_STYLE):
        self._glyph = glyph
        self._style = style

    def render(self, pos: int) -> Cell:
        if pos < 0:
            return EMPTY_CELL
        return self._glyph, self._style


class TableRow(Styler):
    """
    Lays cell stylers out side by side with a vertical separator between them.

    Cursor fields (_column, _inner, _next_pos) track where the previous
    query landed so that a left-to-right sweep costs O(1) per position.
    Position 0 resets the cursor; any other out-of-order query re-seeks
    from the precomputed boundary list.
    """

    def __init__(self, widths: Sequence[int], cells: Sequence[Styler],
                 separator: str = VERTICAL_LINE, separator_style: Style = DEFAULT_STYLE):
        if len(widths) != len(cells):
            raise ValueError(f"{len(widths)} widths for {len(cells)} cells")
        self._widths = list(widths)
        self._cells = list(cells)
        self._separator = separator
        self._separator_style = separator_style
        # Start offset of every column; a separator sits right before each column but the first.
        self._starts: List[int] = []
        offset = 0
        for i, w in enumerate(self._widths):
            if i > 0:
                offset += 1
            self._starts.append(offset)
            offset += w
        self.width = offset
        self.reset()

    def reset(self) -> None:
        self._column = 0
        self._inner = 0
        self._next_pos = 0
        for cell in self._cells:
            cell.reset()

    def _seek(self, pos: int) -> None:
        column = 0
        for i, start in enumerate(self._starts):
            if pos >= start - (1 if i > 0 else 0):
                column = i
        self._column = column
        self._inner = pos - self._starts[column]

    def render(self, pos: int) -> Cell:
        if pos < 0 or pos >= self.width or not self._cells:
            return EMPTY_CELL
        if pos == 0:
            self.reset()
        elif pos != self._next_pos:
            self._seek(pos)
        self._next_pos = pos + 1

        last = len(self._cells) - 1
        if self._column < last and self._inner == self._widths[self._column]:
            self._column += 1
            self._inner = -1
        if self._inner < 0:
            # On a separator slot
            self._inner = 0
            return self._separator, self._separator_style
        cell = self._cells[self._column](self._inner)
        self._inner += 1
        return cell


class StrikeThrough(Styler):
    """Overlays a horizontal stroke on every other non-empty cell of the inner styler."""

    def __init__(self, inner: Styler, glyph: str = HORIZONTAL_LINE):
        self._inner = inner
        self._glyph = glyph
        self.width = inner.width

    def reset(self) -> None:
        self._inner.reset()

    def render(self, pos: int) -> Cell:
        ch, style = self._inner(pos)
        if ch == EMPTY_CHAR:
            return EMPTY_CELL
        if pos % 2 == 0:
            return self._glyph, style
        return ch, style


class ValueBar(Styler):
    """
    prefix | bar of bar_length cells | suffix

    The bar fills proportionally to value within [min_value, max_value].
    Overlay text is written left-justified over the bar and takes the
    background of whichever bar cell it lands on. Overlay text longer than
    the bar keeps going past it in the plain style.
    """

    def __init__(self, value: float, min_value: float = 0.0, max_value: float = 100.0,
                 bar_length: int = 10, overlay: str = "", prefix: str = "", suffix: str = "",
                 style: Style = DEFAULT_STYLE):
        self._prefix = prefix
        self._suffix = suffix
        self._overlay = overlay
        self._bar_length = max(0, bar_length)
        self._style = style
        span = max_value - min_value
        if span <= 0:
            ratio = 0.0
        else:
            ratio = (value - min_value) / span
        ratio = min(1.0, max(0.0, ratio))
        self._filled = int(round(ratio * self._bar_length))
        self._body = max(self._bar_length, len(overlay))
        self.width = len(prefix) + self._body + len(suffix)

    @property
    def filled(self) -> int:
        return self._filled

    def render(self, pos: int) -> Cell:
        if pos < 0 or pos >= self.width:
            return EMPTY_CELL
        if pos < len(self._prefix):
            return self._prefix[pos], self._style
        bar_pos = pos - len(self._prefix)
        if bar_pos < self._body:
            ch = self._overlay[bar_pos] if bar_pos < len(self._overlay) else " "
            if bar_pos >= self._bar_length:
                return ch, self._style
            bg = "bar_filled" if bar_pos < self._filled else "bar_empty"
            return ch, self._style.on(bg)
        return self._suffix[bar_pos - self._body], self._style


def percentage_bar(text: str, percent: Optional[float], width: int) -> ValueBar:
    """A width-wide bar filled to percent (None renders an empty bar) with text on top."""
    return ValueBar(percent or 0.0, 0.0, 100.0, bar_length=width, overlay=text)


class Background(Styler):
    """Repaints the background role of every non-empty cell of the inner styler."""

    def __init__(self, inner: Styler, bg: str):
        self._inner = inner
        self._bg = bg
        self.width = inner.width

    def reset(self) -> None:
        self._inner.reset()

    def render(self, pos: int) -> Cell:
        ch, style = self._inner(pos)
        if ch == EMPTY_CHAR:
            return EMPTY_CELL
        return ch, style.on(self._bg)


class TextBox(Styler):
    """Text with a cursor; the cursor cell gets cursor_style. Used by the search prompt."""

    def __init__(self, text: str, cursor: int, style: Style = DEFAULT_STYLE,
                 cursor_style: Style = Style(reverse=True)):
        self._text = text
        self._cursor = min(max(cursor, 0), len(text))
        self._style = style
        self._cursor_style = cursor_style
        self.width = len(text) + 1

    @property
    def cursor(self) -> int:
        return self._cursor

    def render(self, pos: int) -> Cell:
        if pos < 0 or pos >= self.width:
            return EMPTY_CELL
        ch = self._text[pos] if pos < len(self._text) else " "
        if pos == self._cursor:
            return ch, self._cursor_style
        return ch, self._style


class Concat(Styler):
    """First styler for positions below offset, second styler (shifted) after it."""

    def __init__(self, first: Styler, offset: int, second: Styler):
        self._first = first
        self._offset = offset
        self._second = second
        self.width = None if second.width is None else offset + second.width

    def reset(self) -> None:
        self._first.reset()
        self._second.reset()

    def render(self, pos: int) -> Cell:
        if pos < 0:
            return EMPTY_CELL
        if pos < self._offset:
            return self._first(pos)
        return self._second(pos - self._offset)
