"""Signal resolution and dispatch."""

import signal
from collections.abc import Iterable
from dataclasses import dataclass

import psutil

from rip.models import ProcessRecord
from rip.sampler import ProcessSource


class ConfigurationError(Exception):
    """Invalid invocation, rejected before any process is sampled or touched."""


class UnknownSignal(ConfigurationError):
    """The requested signal name or number is not supported."""


class UnsafeBatchKill(ConfigurationError):
    """Batch kill was requested without a name or port filter."""


SIGNALS: dict[str, signal.Signals] = {
    "KILL": signal.SIGKILL,
    "9": signal.SIGKILL,
    "TERM": signal.SIGTERM,
    "15": signal.SIGTERM,
    "INT": signal.SIGINT,
    "2": signal.SIGINT,
    "HUP": signal.SIGHUP,
    "1": signal.SIGHUP,
    "QUIT": signal.SIGQUIT,
    "3": signal.SIGQUIT,
    "USR1": signal.SIGUSR1,
    "10": signal.SIGUSR1,
    "USR2": signal.SIGUSR2,
    "12": signal.SIGUSR2,
    "STOP": signal.SIGSTOP,
    "19": signal.SIGSTOP,
    "CONT": signal.SIGCONT,
    "18": signal.SIGCONT,
}


def resolve_signal(text: str) -> signal.Signals:
    """
    Resolve a signal name or number.

    Matching is case-insensitive and an optional SIG prefix is ignored, so
    "kill", "SIGKILL" and "9" all resolve to SIGKILL.

    Raises:
        UnknownSignal: If the text does not name a supported signal.
    """
    name = text.strip().upper()
    if name.startswith("SIG"):
        name = name[3:]
    try:
        return SIGNALS[name]
    except KeyError:
        raise UnknownSignal(f"Unknown signal: {name}") from None


def check_batch_kill(name_filter: str | None, port_filter: int | None) -> None:
    """
    Refuse a batch kill that would match every process on the host.

    Raises:
        UnsafeBatchKill: If neither a name filter nor a port filter is given.
    """
    if not name_filter and port_filter is None:
        raise UnsafeBatchKill("--confirm-nuke requires --filter or --port")


@dataclass(slots=True, frozen=True)
class DispatchOutcome:
    """Result of sending a signal to one process."""

    record: ProcessRecord
    success: bool
    error: str | None = None


def dispatch(
    targets: Iterable[ProcessRecord],
    sig: signal.Signals,
    source: ProcessSource,
) -> list[DispatchOutcome]:
    """
    Send a signal to each target in turn.

    A failed send (process already gone, permission denied) is recorded for
    that target and the remaining targets are still attempted.
    """
    outcomes: list[DispatchOutcome] = []
    for record in targets:
        try:
            source.send_signal(record.pid, sig)
        except (psutil.Error, OSError) as e:
            outcomes.append(DispatchOutcome(record, False, str(e) or type(e).__name__))
        else:
            outcomes.append(DispatchOutcome(record, True))
    return outcomes
