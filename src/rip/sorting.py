"""Filtering and ordering of process records."""

from collections.abc import Callable, Iterable

from rip.models import ProcessRecord, SortKey


def _by_cpu(record: ProcessRecord) -> float:
    return -record.cpu_percent


def _by_memory(record: ProcessRecord) -> int:
    return -record.memory_mb


def _by_pid(record: ProcessRecord) -> int:
    return record.pid


def _by_name(record: ProcessRecord) -> str:
    return record.name.lower()


def _by_port(record: ProcessRecord) -> tuple[bool, int]:
    # Records without a port sort before all records with one
    if record.port is None:
        return (False, 0)
    return (True, record.port)


SORT_KEYS: dict[SortKey, Callable[[ProcessRecord], object]] = {
    SortKey.CPU: _by_cpu,
    SortKey.MEMORY: _by_memory,
    SortKey.PID: _by_pid,
    SortKey.NAME: _by_name,
    SortKey.PORT: _by_port,
}


def sort_records(records: Iterable[ProcessRecord], key: SortKey) -> list[ProcessRecord]:
    """
    Return records ordered by the given sort key.

    CPU and memory sort descending, everything else ascending. The sort is
    stable, so ties keep their incoming order.
    """
    return sorted(records, key=SORT_KEYS[key])


def matches_name(name: str, name_filter: str | None) -> bool:
    """Check a process name against a case-insensitive substring filter."""
    if not name_filter:
        return True
    return name_filter.lower() in name.lower()


def matches_port(record: ProcessRecord, port_filter: int | None) -> bool:
    """Check a record against an exact port filter."""
    if port_filter is None:
        return True
    return record.port == port_filter


def filter_records(
    records: Iterable[ProcessRecord],
    name_filter: str | None = None,
    port_filter: int | None = None,
) -> list[ProcessRecord]:
    """Return the records matching both the name and port filters."""
    return [
        record
        for record in records
        if matches_name(record.name, name_filter) and matches_port(record, port_filter)
    ]
