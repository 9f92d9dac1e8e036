"""
Resource statistics helpers for dctop.

Pure functions that turn raw current/previous runtime counters into
percentages and human-readable strings. Nothing in here touches Docker or
curses, so the table renderer and the inspect screen can call these from
any thread.

Undefined values (first sample, no elapsed ticks, unknown limit) come back
as None and render as PLACEHOLDER instead of raising ZeroDivisionError.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .model import CpuCounters, ContainerRecord, MemoryUsage

logger = logging.getLogger(__name__)

PLACEHOLDER = "--"
GIB = 1 << 30

_BYTE_UNITS = (
    (1 << 30, "GB/s"),
    (1 << 20, "MB/s"),
    (1 << 10, "KB/s"),
)


def cpu_usage_percent(cur: CpuCounters, prev: CpuCounters) -> Optional[float]:
    system_delta = cur.system_usage - prev.system_usage
    if system_delta <= 0:
        return None
    return 100.0 * (cur.container_usage - prev.container_usage) / system_delta


def memory_usage_percent(mem: MemoryUsage) -> Optional[float]:
    if mem.limit <= 0:
        return None
    return 100.0 * mem.usage / mem.limit


def network_rate(cur: int, prev: int, elapsed: float) -> Optional[float]:
    if elapsed <= 0:
        return None
    return (cur - prev) / elapsed


def scale_byte_rate(rate: float) -> Tuple[float, str]:
    for factor, unit in _BYTE_UNITS:
        if rate > factor:
            return rate / factor, unit
    return rate, "Bytes/s"


def format_network_rate(key: str, cur: int, prev: int, elapsed: float) -> str:
    """Per-second rate for one network counter; byte counters get a scaled unit."""
    rate = network_rate(cur, prev, elapsed)
    if rate is None:
        return PLACEHOLDER
    if "byte" in key:
        value, unit = scale_byte_rate(rate)
        return f"{value:.3f}{unit}"
    return f"{rate:.3f}/s"


def gib(n: int) -> float:
    return n / GIB


def pad(text: str, min_len: int) -> str:
    return text + " " * max(0, min_len - len(text))


def resource_usage_text(use: int, limit: int, unit: str) -> str:
    return pad(f"{gib(use):.2f}{unit}/{gib(limit):.2f}{unit}", 17)


def cpu_percent_text(percent: Optional[float]) -> str:
    if percent is None:
        return pad(PLACEHOLDER, 8)
    return pad(f"{percent:.2f}%", 8)


@dataclass(frozen=True)
class TotalStats:
    cpu_usage: int = 0
    system_usage: int = 0
    memory_usage: int = 0


def total_stats_summary(records: Iterable[ContainerRecord]) -> TotalStats:
    """
    Summed CPU delta and memory across all records with stats.

    The system delta is the same host-wide counter for every container, so
    the first record that has stats provides it.
    """
    cpu_usage = 0
    memory_usage = 0
    system_usage = None
    for record in records:
        if record.stats is None:
            continue
        cur, prev = record.stats.current, record.stats.previous
        cpu_usage += cur.cpu.container_usage - prev.cpu.container_usage
        memory_usage += cur.memory.usage
        if system_usage is None:
            system_usage = cur.cpu.system_usage - prev.cpu.system_usage
    return TotalStats(cpu_usage=cpu_usage, system_usage=system_usage or 0, memory_usage=memory_usage)


def total_stats_text(totals: TotalStats) -> str:
    """One-line summary shown in the window title."""
    if totals.system_usage > 0:
        cpu = f"{100.0 * totals.cpu_usage / totals.system_usage:.2f}%"
    else:
        cpu = PLACEHOLDER
    return f" CPU {cpu} | Memory {gib(totals.memory_usage):.2f}GB "
