import pytest

from dctop.model import (
    CachedStats, ContainerCollection, ContainerRecord, CpuCounters, MemoryUsage, StatsSample,
)
from dctop.styler import EMPTY_CHAR

GIB = 1 << 30


def build_record(id, name=None, state="running", image="nginx:latest", memory=GIB // 2,
                 limit=GIB, cpu=(200, 100), system=(2000, 1000), stats=True, deleted=False):
    cached = None
    if stats:
        current = StatsSample(cpu=CpuCounters(cpu[0], system[0]), memory=MemoryUsage(memory, limit), read_at=2.0)
        previous = StatsSample(cpu=CpuCounters(cpu[1], system[1]), memory=MemoryUsage(memory, limit), read_at=1.0)
        cached = CachedStats(current=current, previous=previous)
    return ContainerRecord(id=id, name=name or f"name-{id}", image=image, state=state,
                           stats=cached, deleted=deleted)


@pytest.fixture
def make_record():
    return build_record


@pytest.fixture
def make_collection():
    def factory(count, **kwargs):
        return ContainerCollection([build_record(f"c{i}", name=f"c{i}", **kwargs) for i in range(count)])
    return factory


class FakeScreen:
    """Records every set_cell call into a dict grid, like a terminal that never scrolls."""

    def __init__(self, width=100, height=30):
        self.width = width
        self.height = height
        self.cells = {}
        self.shows = 0

    def size(self):
        return self.width, self.height

    def set_cell(self, x, y, char, style):
        self.cells[(x, y)] = (char, style)

    def show(self):
        self.shows += 1

    def line(self, y, start=0, end=None):
        end = self.width if end is None else end
        chars = []
        for x in range(start, end):
            ch = self.cells.get((x, y), (" ", None))[0]
            chars.append(" " if ch == EMPTY_CHAR else ch)
        return "".join(chars)


@pytest.fixture
def fake_screen():
    return FakeScreen()
