"""
Docker API wrapper for dctop.

This module talks to the Docker daemon through docker-py and turns its raw
JSON into the immutable model types the rest of the app works with.

Operations:
  - list_states(): cheap sparse listing (id -> status), used to decide
    whether membership or status changed
  - list_containers(): full records (inspect + stats) for the listed ids
  - refresh_stats(): one stats sample per id, fetched in parallel
  - inspect(): name/image/state + InspectInfo, TTL-cached
  - delete(): force-remove; raises so the caller can classify the error
  - exists() / is_being_removed(): used to flag rows as deleted
  - logs_command() / shell_command(): argv for the interactive docker CLI

Error Handling:
  Query methods follow a fail-safe pattern through @docker_safe: the
  exception is logged with its traceback and a default value comes back.
  A failed listing comes back as None so the caller keeps what it has.
  delete() is the exception: its error text decides whether the failure
  is benign, so it propagates.

Dependencies:
  - docker>=7.0.0 (docker-py client)
"""

import docker
import functools
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .cache import cache_manager, cached
from .model import (
    CachedStats, ContainerCollection, ContainerRecord, CpuCounters, InspectInfo,
    MemoryUsage, MountPoint, NetworkCounters, StatsSample,
)

logger = logging.getLogger(__name__)

STATS_WORKERS = 8


def docker_safe(default_return: Any = None) -> Callable:
    """
    Decorator for Docker API methods that ensures safe error handling.

    Catches exceptions, logs them, and returns a default value so a
    refresh cycle never dies on a flaky daemon.

    Usage:
        @docker_safe(default_return=None)
        def list_states(self) -> Optional[Dict[str, str]]:
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.error(f"Docker operation failed in {func.__name__}: {e}", exc_info=True)
                return default_return
        return wrapper
    return decorator


@dataclass(frozen=True)
class InspectResult:
    name: str
    image: str
    state: str
    info: InspectInfo


def _cpu_counters(raw: Mapping[str, Any]) -> CpuCounters:
    usage = raw.get('cpu_usage', {}) or {}
    return CpuCounters(
        container_usage=usage.get('total_usage', 0) or 0,
        system_usage=raw.get('system_cpu_usage', 0) or 0,
    )


def _network_counters(raw: Mapping[str, Any]) -> NetworkCounters:
    return NetworkCounters(**{k: raw.get(k, 0) or 0 for k in NetworkCounters().as_dict()})


def parse_stats(raw: Mapping[str, Any], read_at: float) -> CachedStats:
    """
    Build CachedStats from one `docker stats --no-stream` payload.

    Docker already ships the previous CPU reading (precpu_stats), so even a
    first sample has a usable CPU delta. There is no previous network
    reading; it is set equal to the current one, which makes rates undefined
    until the next cycle.
    """
    memory = raw.get('memory_stats', {}) or {}
    networks = {
        name: _network_counters(counters)
        for name, counters in (raw.get('networks') or {}).items()
    }
    current = StatsSample(
        cpu=_cpu_counters(raw.get('cpu_stats', {}) or {}),
        memory=MemoryUsage(usage=memory.get('usage', 0) or 0, limit=memory.get('limit', 0) or 0),
        networks=networks,
        read_at=read_at,
    )
    previous = StatsSample(
        cpu=_cpu_counters(raw.get('precpu_stats', {}) or {}),
        memory=current.memory,
        networks=networks,
        read_at=read_at,
    )
    return CachedStats(current=current, previous=previous)


def parse_inspect(attrs: Mapping[str, Any]) -> InspectResult:
    host_config = attrs.get('HostConfig', {}) or {}
    raw_ports = (attrs.get('NetworkSettings', {}) or {}).get('Ports') or {}
    ports: Dict[str, List[str]] = {}
    for port, bindings in raw_ports.items():
        ports[port] = [b.get('HostPort', '') for b in (bindings or [])]
    mounts = tuple(
        MountPoint(
            type=m.get('Type', ''),
            name=m.get('Name', ''),
            source=m.get('Source', ''),
            destination=m.get('Destination', ''),
            mode=m.get('Mode', ''),
            driver=m.get('Driver', ''),
            rw=bool(m.get('RW', False)),
        )
        for m in attrs.get('Mounts') or []
    )
    return InspectResult(
        name=(attrs.get('Name') or '').lstrip('/'),
        image=(attrs.get('Config', {}) or {}).get('Image', ''),
        state=(attrs.get('State', {}) or {}).get('Status', ''),
        info=InspectInfo(
            restart_count=attrs.get('RestartCount', 0) or 0,
            nano_cpus=host_config.get('NanoCpus', 0) or 0,
            memory_quota=host_config.get('Memory', 0) or 0,
            ports=ports,
            mounts=mounts,
        ),
    )


class DockerBackend:
    def __init__(self, max_workers: int = STATS_WORKERS):
        self.max_workers = max(1, max_workers)
        try:
            self.client = docker.from_env()
        except Exception as e:
            logger.error(f"Could not connect to Docker: {e}")
            self.client = None

    @docker_safe(default_return=None)
    def list_states(self) -> Optional[Dict[str, str]]:
        """Status of every running container by id; None when the listing failed."""
        if not self.client: return None
        return {c.id: c.status for c in self.client.containers.list(sparse=True)}

    @docker_safe(default_return=None)
    @cached(key_prefix="inspect")
    def inspect(self, container_id: str) -> Optional[InspectResult]:
        if not self.client: return None
        return parse_inspect(self.client.api.inspect_container(container_id))

    @docker_safe(default_return=None)
    def fetch_stats(self, container_id: str) -> Optional[CachedStats]:
        if not self.client: return None
        raw = self.client.api.stats(container_id, stream=False)
        return parse_stats(raw, time.monotonic())

    def _parallel(self, func: Callable, ids: List[str]) -> List[Any]:
        if not ids:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(ids))) as pool:
            return list(pool.map(func, ids))

    def refresh_stats(self, ids: Iterable[str]) -> Dict[str, Optional[StatsSample]]:
        """One fresh sample per id; None where the fetch failed."""
        ids = sorted(ids)
        results = self._parallel(self.fetch_stats, ids)
        return {cid: (stats.current if stats else None) for cid, stats in zip(ids, results)}

    def _load_record(self, container_id: str, previous: Optional[ContainerRecord],
                     status: str = "") -> Optional[ContainerRecord]:
        if previous is not None and status and previous.state != status:
            # Restart count, ports and mounts may have changed with the status
            cache_manager.invalidate(f"inspect:{container_id}")
        details = self.inspect(container_id)
        if details is None:
            logger.debug(f"Container {container_id[:12]} vanished before it could be inspected")
            return None
        stats = self.fetch_stats(container_id)
        if stats is not None and previous is not None and previous.stats is not None:
            # Keep the rate window continuous across a re-list
            stats = CachedStats(current=stats.current, previous=previous.stats.current)
        return ContainerRecord(
            id=container_id,
            name=details.name,
            image=details.image,
            state=status or details.state,
            stats=stats,
            inspect=details.info,
            deleted=previous.deleted if previous is not None else False,
        )

    @docker_safe(default_return=None)
    def list_containers(self, states: Optional[Mapping[str, str]] = None,
                        previous: Optional[ContainerCollection] = None) -> Optional[ContainerCollection]:
        """
        Full records for the listed containers; None if the listing failed.

        The listed status wins over a cached inspect result, so a container
        that just stopped never shows up with its old state.
        """
        if states is None:
            states = self.list_states()
            if states is None:
                return None
        known = {r.id: r for r in previous} if previous is not None else {}
        ids = sorted(states)
        records = self._parallel(lambda cid: self._load_record(cid, known.get(cid), states[cid]), ids)
        return ContainerCollection([r for r in records if r is not None])

    def delete(self, container_id: str) -> None:
        if not self.client:
            raise RuntimeError("Docker not connected")
        self.client.api.remove_container(container_id, force=True)

    @docker_safe(default_return=True)
    def exists(self, container_id: str) -> bool:
        if not self.client: return True
        return bool(self.client.api.containers(all=True, quiet=True, filters={"id": container_id}))

    @docker_safe(default_return=False)
    def is_being_removed(self, container_id: str) -> bool:
        if not self.client: return False
        return bool(self.client.api.containers(
            all=True, quiet=True, filters={"id": container_id, "status": "removing"}))

    def logs_command(self, container_id: str, tail: int = 200) -> List[str]:
        return ["docker", "logs", "-f", "--tail", str(tail), container_id]

    def shell_command(self, container_id: str, shell: str) -> List[str]:
        return ["docker", "exec", "-it", container_id, shell]
