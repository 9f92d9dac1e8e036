"""
Table layout and frame building for the containers window.

Turns a ContainerCollection plus a target width into stylers:

  build_header / build_row   one TableRow per line, fixed-fraction columns
  build_inspect_screen       flat list of lines for the inspect view
  TableRenderer              per-frame row fan-out + whole-frame assembly

Column layout:
  ID 4% | State 4% | Name 12% | Image 24% | Memory Usage 28% | CPU Usage 28%
  Each width is ceil(fraction * inner width); a "│" separator follows every
  column but the last. Mouse clicks on the header map back to a column with
  the same boundaries (see column_at).

Row fan-out:
  TableRenderer.build_table submits one task per visible record to a
  bounded ThreadPoolExecutor and waits for all of them before returning, so
  a frame is never assembled from a partial set of rows. Each task writes
  only rows[i] for its own i; no two tasks share a slot, which is what makes
  the unsynchronized list writes safe.

  A row that fails (no stats this cycle, or any other exception) is drawn
  as a strike-through of the styler the same container had in the previous
  frame, or of a blank row if it has none. The previous-frame map is only
  touched from the draw thread.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Sequence

from .model import ContainerCollection, ContainerRecord, NotFoundError, SortType, StatsSample
from .state import DisplayMode, InputMode, TableState
from .stats import (
    cpu_percent_text, cpu_usage_percent, format_network_rate, gib, memory_usage_percent,
    pad, resource_usage_text,
)
from .styler import (
    Background, Concat, HORIZONTAL_LINE, RuneRepeater, StrikeThrough, Style,
    Styler, TableRow, Text, TextBox, TextCell, ValueBar, percentage_bar,
)
from .viewport import inspect_offset

logger = logging.getLogger(__name__)

COLUMN_FRACTIONS = (0.04, 0.04, 0.12, 0.24, 0.28, 0.28)
HEADERS = ("ID", "State", "Name", "Image", "Memory Usage", "CPU Usage")
COLUMN_SORT_TYPES = (
    SortType.NONE, SortType.STATE, SortType.NAME, SortType.IMAGE, SortType.MEMORY, SortType.CPU,
)

SEPARATOR_STYLE = Style(fg="separator")
INSPECT_SEPARATOR_STYLE = Style(fg="inspect_separator")
SEARCH_PROMPT_STYLE = Style(fg="search_prompt")
CURSOR_STYLE = Style(reverse=True)
FOCUS_BG = "focus"

MAX_BAR_LENGTH = 40
BAR_DESCRIPTION_WIDTH = 25
NETWORK_LINE_WIDTH = 30


class StatsUnavailableError(Exception):
    """The container's stats could not be fetched this cycle."""


def column_widths(total_width: int) -> List[int]:
    return [math.ceil(fraction * total_width) for fraction in COLUMN_FRACTIONS]


def column_at(total_width: int, x: int) -> Optional[int]:
    """Index of the column under relative position x (a separator belongs to the column after it)."""
    end = 0
    for i, width in enumerate(column_widths(total_width)):
        end += width + (1 if i > 0 else 0)
        if 0 <= x < end:
            return i
    return None


def sort_type_at(total_width: int, x: int) -> SortType:
    column = column_at(total_width, x)
    if column is None:
        return SortType.NONE
    return COLUMN_SORT_TYPES[column]


def build_header(width: int) -> TableRow:
    widths = column_widths(width)
    return TableRow(widths, [TextCell(w, title) for w, title in zip(widths, HEADERS)])


def build_separator() -> Styler:
    return RuneRepeater(HORIZONTAL_LINE, SEPARATOR_STYLE)


def blank_row(width: int) -> TableRow:
    widths = column_widths(width)
    return TableRow(widths, [TextCell(w, "") for w in widths])


def build_row(width: int, record: ContainerRecord) -> Styler:
    if record.stats is None:
        raise StatsUnavailableError(record.id)
    current, previous = record.stats.current, record.stats.previous
    widths = column_widths(width)
    memory_text = resource_usage_text(current.memory.usage, current.memory.limit, "GB")
    cpu_percent = cpu_usage_percent(current.cpu, previous.cpu)
    cells = [
        TextCell(widths[0], record.id),
        TextCell(widths[1], record.state),
        TextCell(widths[2], record.name),
        TextCell(widths[3], record.image),
        percentage_bar(memory_text, memory_usage_percent(current.memory), widths[4]),
        percentage_bar(cpu_percent_text(cpu_percent), cpu_percent, widths[5]),
    ]
    row: Styler = TableRow(widths, cells)
    if record.deleted:
        row = StrikeThrough(row)
    return row


def resource_usage_bar(usage: int, quota: int, limit: int, resource: str, unit: str,
                       bar_length: int) -> ValueBar:
    if quota == 0:
        description = " Quota isn't set"
        quota = limit
    else:
        description = f" Quota: {gib(quota):.2f}{unit}"
    text = resource_usage_text(usage, quota, unit)
    return ValueBar(usage, 0, quota, bar_length=bar_length, overlay=" " + text + description,
                    prefix=resource)


def port_lines(ports) -> List[str]:
    lines = []
    for port, host_ports in ports.items():
        for host_port in host_ports:
            lines.append(f"  {port} : {host_port}")
    return sorted(lines)


def mount_lines(mounts) -> List[str]:
    lines = []
    for mount in sorted(mounts, key=lambda m: m.destination):
        lines.append(f"  {mount.type}> {mount.name}")
        lines.append(f"    {mount.source}:{mount.destination}")
        lines.append(f"    Mode: {mount.mode}, Driver: {mount.driver}, RW: {str(mount.rw).lower()}")
    return lines


def network_lines(current: StatsSample, previous: StatsSample) -> List[str]:
    lines = []
    elapsed = current.read_at - previous.read_at
    for interface in sorted(current.networks):
        lines.append(f"  {interface}")
        counters = current.networks[interface].as_dict()
        prev = previous.networks.get(interface, current.networks[interface]).as_dict()
        for key in sorted(counters):
            line = pad(f"    {key}:{counters[key]}", NETWORK_LINE_WIDTH)
            lines.append(line + format_network_rate(key, counters[key], prev[key], elapsed))
    return lines


def build_inspect_screen(record: ContainerRecord, window_width: int) -> List[Styler]:
    info = record.inspect
    if record.stats is not None:
        current, previous = record.stats.current, record.stats.previous
    else:
        current = previous = StatsSample()
    bar_length = min(max(window_width - BAR_DESCRIPTION_WIDTH, 0), MAX_BAR_LENGTH)
    separator = RuneRepeater(HORIZONTAL_LINE, INSPECT_SEPARATOR_STYLE)

    lines: List[Styler] = [
        Text(f"Name: {record.name}"),
        Text(f"ID: {record.id}"),
        Text(f"Image: {record.image}"),
        Text(f"State: {record.state}"),
        Text(f"Restart count: {info.restart_count}"),
        resource_usage_bar(current.cpu.container_usage - previous.cpu.container_usage,
                           info.nano_cpus,
                           current.cpu.system_usage - previous.cpu.system_usage,
                           "CPU:    ", "Cores", bar_length),
        resource_usage_bar(current.memory.usage, info.memory_quota, current.memory.limit,
                           "Memory: ", "GB", bar_length),
        separator,
        Text("Ports:"),
    ]
    lines.extend(Text(line) for line in port_lines(info.ports))
    lines.extend([separator, Text("Mounts:")])
    lines.extend(Text(line) for line in mount_lines(info.mounts))
    lines.extend([separator, Text("Network Usage:")])
    lines.extend(Text(line) for line in network_lines(current, previous))
    return lines


def search_row(buffer: str, cursor: int) -> Styler:
    return Concat(Text(" /", SEARCH_PROMPT_STYLE), 2, TextBox(buffer, cursor, cursor_style=CURSOR_STYLE))


class TableRenderer:
    """Builds whole frames; owns the row-render pool and the previous-frame rows."""

    def __init__(self, max_workers: int = 8):
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers),
                                            thread_name_prefix="dctop-row")
        self._previous: Dict[str, Styler] = {}

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def build_table(self, width: int, records: Sequence[ContainerRecord]) -> List[Styler]:
        """[header, separator, row(0), row(1), ...] for the given records."""
        rows: List[Optional[Styler]] = [None] * len(records)

        def render(i: int, record: ContainerRecord) -> None:
            rows[i] = build_row(width, record)

        futures = {self._executor.submit(render, i, r): i for i, r in enumerate(records)}
        wait(futures)

        previous = {}
        for future, i in futures.items():
            record = records[i]
            error = future.exception()
            if error is None:
                previous[record.id] = rows[i]
                continue
            if isinstance(error, StatsUnavailableError):
                logger.debug(f"No stats for {record.short_id} this frame")
            else:
                logger.warning(f"Failed to render row for {record.short_id}: {error}", exc_info=error)
            fallback = self._previous.get(record.id)
            if fallback is not None:
                previous[record.id] = fallback
            else:
                fallback = blank_row(width)
            rows[i] = StrikeThrough(fallback)
        self._previous = previous
        return [build_header(width), build_separator()] + rows

    def frame(self, state: TableState, visible: ContainerCollection) -> List[Optional[Styler]]:
        """One styler (or None for an empty line) per interior line of the window."""
        height = state.bounds.inner_height
        if state.display_mode == DisplayMode.INSPECT:
            return self._inspect_frame(state, height)

        table = self.build_table(state.bounds.inner_width, list(visible))
        lines: List[Optional[Styler]] = [None] * height
        for y in range(min(2, height)):
            lines[y] = table[y]
        for y in range(2, min(height, state.table_height + 2)):
            index = state.top_visible_row + y - 2
            if index >= len(visible):
                break
            row = table[index + 2]
            if visible[index].id == state.focused_id:
                row = Background(row, FOCUS_BG)
            lines[y] = row
        search_y = state.table_height + 3
        if state.input_mode == InputMode.SEARCH and 0 <= search_y < height:
            lines[search_y] = search_row(state.search_buffer, state.search_cursor)
        return lines

    def _inspect_frame(self, state: TableState, height: int) -> List[Optional[Styler]]:
        lines: List[Optional[Styler]] = [None] * height
        if not state.focused_id:
            return lines
        try:
            record = state.containers.get(state.focused_id)
        except NotFoundError:
            logger.warning(f"Container {state.focused_id[:12]} to inspect is not in the collection")
            return lines
        screen = build_inspect_screen(record, state.bounds.right - state.bounds.left)
        offset = inspect_offset(len(screen), state.inspect_height, state.top_inspect_line)
        for y, line in enumerate(screen[offset:offset + height]):
            lines[y] = line
        return lines
