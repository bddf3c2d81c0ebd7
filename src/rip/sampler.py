"""Process sampling and port correlation for rip."""

import socket
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from typing import Protocol

import psutil
import structlog

from rip.models import Listener, ProcessRecord, RawProcess, SortKey
from rip.sorting import filter_records, matches_name, sort_records

log = structlog.get_logger()

DEFAULT_SAMPLE_DELAY = 0.2
MIN_SAMPLE_DELAY = 0.1

PortMap = dict[int, list[tuple[int, str]]]


class ProcessSource(Protocol):
    """Read access to the OS process table plus signal delivery."""

    def snapshot(self) -> list[RawProcess]: ...

    def send_signal(self, pid: int, sig: int) -> None: ...


class ListenerSource(Protocol):
    """Enumeration of listening sockets."""

    def listeners(self) -> Iterable[Listener]: ...


class PsutilProcessSource:
    """ProcessSource backed by psutil."""

    _ATTRS = ["pid", "name", "cpu_times", "memory_info", "create_time"]

    def snapshot(self) -> list[RawProcess]:
        """
        Collect one row per running process.

        Handles NoSuchProcess, AccessDenied and ZombieProcess by skipping the
        process; attributes psutil cannot read fall back to empty values.
        """
        processes: list[RawProcess] = []

        for proc in psutil.process_iter(attrs=self._ATTRS):
            try:
                info = proc.info
                cpu_times = info.get("cpu_times")
                mem_info = info.get("memory_info")
                processes.append(
                    RawProcess(
                        pid=info.get("pid", 0),
                        name=info.get("name") or "",
                        cpu_time=(cpu_times.user + cpu_times.system) if cpu_times else 0.0,
                        rss=mem_info.rss if mem_info else 0,
                        create_time=info.get("create_time") or 0.0,
                    )
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

        return processes

    def send_signal(self, pid: int, sig: int) -> None:
        """Send a signal to a process, raising psutil errors on failure."""
        psutil.Process(pid).send_signal(sig)


class PsutilListenerSource:
    """ListenerSource backed by psutil.net_connections()."""

    def listeners(self) -> list[Listener]:
        """
        Return TCP sockets in LISTEN state and bound UDP sockets.

        Raises psutil.AccessDenied where the platform requires privileges to
        see other users' sockets.
        """
        found: list[Listener] = []
        for conn in psutil.net_connections(kind="inet"):
            if conn.pid is None or not conn.laddr:
                continue
            if conn.type == socket.SOCK_STREAM:
                if conn.status != psutil.CONN_LISTEN:
                    continue
                protocol = "tcp"
            elif conn.type == socket.SOCK_DGRAM:
                if conn.raddr:
                    continue
                protocol = "udp"
            else:
                continue
            found.append(Listener(pid=conn.pid, port=conn.laddr.port, protocol=protocol))
        return found


def map_ports(source: ListenerSource) -> PortMap:
    """
    Group listening ports by owning pid.

    The same (port, protocol) pair is kept once per pid, so dual-stack
    IPv4/IPv6 bindings collapse to one entry. Enumeration failures degrade
    to an empty mapping.
    """
    ports: PortMap = {}
    try:
        listeners = list(source.listeners())
    except (psutil.Error, OSError) as e:
        log.warning("listener_enumeration_failed", error=str(e))
        return {}

    for listener in listeners:
        entry = (listener.port, listener.protocol)
        owned = ports.setdefault(listener.pid, [])
        if entry not in owned:
            owned.append(entry)
    return ports


@dataclass(slots=True, frozen=True)
class Query:
    """What to sample and how to order it."""

    name_filter: str | None = None
    port_filter: int | None = None
    ports: bool = False
    sort_key: SortKey = SortKey.CPU

    @property
    def port_mode(self) -> bool:
        """Port mode is on when requested or implied by a port filter."""
        return self.ports or self.port_filter is not None


class Sampler:
    """
    Two-snapshot process sampler.

    CPU usage is a rate, so every sample takes two snapshots of the process
    table separated by a fixed delay and divides the CPU-time delta by the
    elapsed wall-clock time.
    """

    def __init__(
        self,
        processes: ProcessSource,
        listeners: ListenerSource | None = None,
        delay: float = DEFAULT_SAMPLE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the Sampler.

        Args:
            processes: Source of process-table snapshots.
            listeners: Source of listening sockets, required for port mode.
            delay: Seconds between the two snapshots. Minimum 0.1s.
            sleep: Sleep function, replaceable in tests.
            clock: Monotonic clock, replaceable in tests.
        """
        self._processes = processes
        self._listeners = listeners
        self._delay = max(MIN_SAMPLE_DELAY, delay)
        self._sleep = sleep
        self._clock = clock

    @property
    def delay(self) -> float:
        """Get the inter-snapshot delay."""
        return self._delay

    @property
    def processes(self) -> ProcessSource:
        """The process source, also used to deliver signals."""
        return self._processes

    def sample(self, name_filter: str | None = None) -> list[ProcessRecord]:
        """Sample all processes whose name contains name_filter (case-insensitive)."""
        first = {proc.pid: proc for proc in self._processes.snapshot()}
        started = self._clock()
        self._sleep(self._delay)
        second = self._processes.snapshot()
        elapsed = self._clock() - started

        records: list[ProcessRecord] = []
        for proc in second:
            if not matches_name(proc.name, name_filter):
                continue
            previous = first.get(proc.pid)
            if previous is not None and previous.create_time != proc.create_time:
                # pid was reused between the snapshots
                previous = None
            cpu_percent = 0.0
            if previous is not None and elapsed > 0:
                cpu_percent = max(0.0, (proc.cpu_time - previous.cpu_time) / elapsed * 100.0)
            records.append(
                ProcessRecord(
                    pid=proc.pid,
                    name=proc.name,
                    cpu_percent=cpu_percent,
                    memory_mb=proc.rss // 1024 // 1024,
                )
            )

        log.debug("sample_complete", processes=len(second), matched=len(records))
        return records

    def sample_with_ports(
        self,
        name_filter: str | None = None,
        port_filter: int | None = None,
    ) -> list[ProcessRecord]:
        """Sample processes owning a listening port, one record per (pid, port)."""
        if self._listeners is None:
            raise ValueError("Port mode requires a listener source")

        port_map = map_ports(self._listeners)
        expanded = [
            replace(record, port=port, protocol=protocol)
            for record in self.sample(name_filter)
            for port, protocol in port_map.get(record.pid, [])
        ]
        return filter_records(expanded, port_filter=port_filter)

    def collect(self, query: Query) -> list[ProcessRecord]:
        """Sample according to a query and return the sorted records."""
        if query.port_mode:
            records = self.sample_with_ports(query.name_filter, query.port_filter)
        else:
            records = self.sample(query.name_filter)
        return sort_records(records, query.sort_key)
