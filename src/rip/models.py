"""Data models for rip."""

from dataclasses import dataclass
from enum import Enum


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable record of a process at a sampling instant."""

    pid: int
    name: str
    cpu_percent: float  # 0.0 - 100.0 * core_count
    memory_mb: int  # Resident memory, truncated to whole MB
    port: int | None = None  # Only set in port mode
    protocol: str | None = None  # 'tcp' or 'udp'


@dataclass(slots=True, frozen=True)
class RawProcess:
    """One row of a single process-table snapshot."""

    pid: int
    name: str
    cpu_time: float  # user + system seconds consumed so far
    rss: int  # Bytes
    create_time: float = 0.0  # Start time; tells a reused pid apart


@dataclass(slots=True, frozen=True)
class Listener:
    """A listening socket as reported by the OS."""

    pid: int
    port: int
    protocol: str


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEMORY = "memory"
    PID = "pid"
    NAME = "name"
    PORT = "port"

    @classmethod
    def parse(cls, text: str) -> "SortKey":
        """Parse a sort key name, accepting 'mem' as an alias for memory."""
        value = text.strip().lower()
        if value == "mem":
            return cls.MEMORY
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(key.value for key in cls)
            raise ValueError(f"Unknown sort key: {text!r}. Valid keys: {valid}") from None
