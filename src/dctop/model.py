"""
Data models for dctop.

This module defines the value types that flow between the Docker backend,
the refresh worker, the window state machine and the renderer.

Data Classes:
  - CpuCounters / MemoryUsage / NetworkCounters: raw runtime counters
  - StatsSample: one point-in-time reading of the counters above
  - CachedStats: current + previous samples, so rates can be derived
  - MountPoint / InspectInfo: slow-changing detail from `docker inspect`
  - ContainerRecord: everything the table knows about one container
  - ContainerCollection: immutable ordered snapshot of records

Key Properties:
  - Everything is frozen. A refresh cycle produces a new collection; the
    old one is superseded, never mutated.
  - ContainerRecord.stats is None when the last stats fetch failed. The
    renderer treats that as a transient failure for the row.
  - `deleted` is sticky: once a record has been seen as deleted, every
    later snapshot built from it keeps the flag.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional, Sequence, Tuple


class NotFoundError(LookupError):
    """A container id is not present in the collection."""


class SortType(Enum):
    NONE = 0
    STATE = 1
    NAME = 2
    IMAGE = 3
    MEMORY = 4
    CPU = 5


@dataclass(frozen=True)
class CpuCounters:
    container_usage: int = 0
    system_usage: int = 0


@dataclass(frozen=True)
class MemoryUsage:
    usage: int = 0
    limit: int = 0


@dataclass(frozen=True)
class NetworkCounters:
    rx_bytes: int = 0
    rx_packets: int = 0
    rx_errors: int = 0
    rx_dropped: int = 0
    tx_bytes: int = 0
    tx_packets: int = 0
    tx_errors: int = 0
    tx_dropped: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "rx_bytes": self.rx_bytes,
            "rx_packets": self.rx_packets,
            "rx_errors": self.rx_errors,
            "rx_dropped": self.rx_dropped,
            "tx_bytes": self.tx_bytes,
            "tx_packets": self.tx_packets,
            "tx_errors": self.tx_errors,
            "tx_dropped": self.tx_dropped,
        }


@dataclass(frozen=True)
class StatsSample:
    cpu: CpuCounters = field(default_factory=CpuCounters)
    memory: MemoryUsage = field(default_factory=MemoryUsage)
    networks: Mapping[str, NetworkCounters] = field(default_factory=dict)
    read_at: float = 0.0  # time.monotonic() of the read


@dataclass(frozen=True)
class CachedStats:
    current: StatsSample
    previous: StatsSample

    def advance(self, sample: StatsSample) -> "CachedStats":
        return CachedStats(current=sample, previous=self.current)


@dataclass(frozen=True)
class MountPoint:
    type: str = ""
    name: str = ""
    source: str = ""
    destination: str = ""
    mode: str = ""
    driver: str = ""
    rw: bool = False


@dataclass(frozen=True)
class InspectInfo:
    restart_count: int = 0
    nano_cpus: int = 0
    memory_quota: int = 0
    ports: Mapping[str, List[str]] = field(default_factory=dict)
    mounts: Tuple[MountPoint, ...] = ()


@dataclass(frozen=True)
class ContainerRecord:
    id: str
    name: str = ""
    image: str = ""
    state: str = ""
    stats: Optional[CachedStats] = None
    inspect: InspectInfo = field(default_factory=InspectInfo)
    deleted: bool = False

    @property
    def short_id(self) -> str:
        return self.id[:12]

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match over name, image and id."""
        needle = needle.lower()
        return (needle in self.name.lower()
                or needle in self.image.lower()
                or needle in self.id.lower())


def _text_key(sort_type: SortType):
    attr = {SortType.STATE: "state", SortType.NAME: "name", SortType.IMAGE: "image"}[sort_type]
    return lambda r: getattr(r, attr).lower()


def _usage_key(sort_type: SortType):
    # Descending by usage; records without stats go last either way.
    def key(r: ContainerRecord):
        if r.stats is None:
            return (1, 0)
        current = r.stats.current
        if sort_type == SortType.MEMORY:
            value = current.memory.usage
        else:
            value = current.cpu.container_usage - r.stats.previous.cpu.container_usage
        return (0, -value)
    return key


def sort_key(sort_type: SortType):
    if sort_type in (SortType.STATE, SortType.NAME, SortType.IMAGE):
        return _text_key(sort_type)
    if sort_type in (SortType.MEMORY, SortType.CPU):
        return _usage_key(sort_type)
    return None


class ContainerCollection:
    """Immutable ordered sequence of ContainerRecord."""

    def __init__(self, records: Sequence[ContainerRecord] = ()):
        self._records: Tuple[ContainerRecord, ...] = tuple(records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ContainerRecord]:
        return iter(self._records)

    def __getitem__(self, index: int) -> ContainerRecord:
        return self._records[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, ContainerCollection):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        return f"ContainerCollection({[r.short_id for r in self._records]})"

    def ids(self) -> FrozenSet[str]:
        return frozenset(r.id for r in self._records)

    def states(self) -> Dict[str, str]:
        """Status per id, comparable with DockerBackend.list_states()."""
        return {r.id: r.state for r in self._records}

    def contains(self, container_id: str) -> bool:
        return any(r.id == container_id for r in self._records)

    def index_of(self, container_id: str) -> int:
        for i, r in enumerate(self._records):
            if r.id == container_id:
                return i
        raise NotFoundError(container_id)

    def get(self, container_id: str) -> ContainerRecord:
        return self._records[self.index_of(container_id)]

    def sorted_by(self, primary: SortType, secondary: SortType = SortType.NONE) -> "ContainerCollection":
        """
        Stable two-key sort: ties on primary are broken by secondary, remaining
        ties keep their current relative order.
        """
        records = list(self._records)
        # Python's sort is stable, so sorting by the secondary key first and
        # the primary key second gives the lexicographic order we want.
        for sort_type in (secondary, primary):
            key = sort_key(sort_type)
            if key is not None:
                records.sort(key=key)
        return ContainerCollection(records)

    def filter(self, needle: str) -> "ContainerCollection":
        if not needle:
            return ContainerCollection(self._records)
        return ContainerCollection([r for r in self._records if r.matches(needle)])

    def advance_stats(self, samples: Mapping[str, Optional[StatsSample]],
                      deleted: FrozenSet[str] = frozenset()) -> "ContainerCollection":
        """
        New collection where every record's stats move one step forward.

        A sample of None means the fetch failed: the record keeps no stats this
        cycle. Ids in `deleted` get their sticky deleted flag set.
        """
        records = []
        for r in self._records:
            stats = r.stats
            if r.id in samples:
                sample = samples[r.id]
                if sample is None:
                    stats = None
                elif stats is None:
                    stats = CachedStats(current=sample, previous=sample)
                else:
                    stats = stats.advance(sample)
            records.append(replace(r, stats=stats, deleted=r.deleted or r.id in deleted))
        return ContainerCollection(records)
