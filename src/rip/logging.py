"""Console reporting with Rich and structured log file output.

Operator-facing messages (kill results, empty results, errors) are printed
with Rich markup. structlog writes JSON lines to a rotating file only, so it
never draws over the terminal UI.
"""

from __future__ import annotations

import logging
import logging.handlers
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from rip.config import Config
    from rip.signals import DispatchOutcome

_console = Console(highlight=False)
_err_console = Console(highlight=False, stderr=True)

log = structlog.get_logger()


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    EMPTY = "[dim]∅[/]"


def info(msg: str, icon: str = "") -> None:
    """Print an informational message."""
    icon_part = f"{icon} " if icon else ""
    _console.print(f"{icon_part}{msg}", soft_wrap=True)


def error(msg: str, icon: str = "") -> None:
    """Print an error message to stderr."""
    icon_part = f"{icon} " if icon else ""
    _err_console.print(f"{icon_part}[bold red]Error:[/] {msg}", soft_wrap=True)


def no_processes_found() -> None:
    """Report that the filters matched nothing."""
    info("No processes found", Icon.EMPTY)


def no_processes_selected() -> None:
    """Report that the operator selected nothing."""
    info("No processes selected", Icon.EMPTY)


def config_invalid(msg: str) -> None:
    """Report an unreadable config file. Logging is not configured yet."""
    error(escape(msg), Icon.FAIL)


def configuration_rejected(msg: str) -> None:
    """Report a fatal configuration error."""
    log.error("configuration_rejected", error=msg)
    error(escape(msg), Icon.FAIL)


def signal_outcome(outcome: DispatchOutcome, signal_name: str) -> None:
    """Report the result of signalling one process."""
    record = outcome.record
    name = escape(record.name)
    if outcome.success:
        log.info("signal_sent", pid=record.pid, name=record.name, signal=signal_name)
        info(f"[green]Killed[/] [bold]{name}[/] [dim](PID: {record.pid})[/]", Icon.OK)
    else:
        log.warning(
            "signal_failed",
            pid=record.pid,
            name=record.name,
            signal=signal_name,
            error=outcome.error,
        )
        _err_console.print(
            f"{Icon.FAIL} [red]Failed[/] [bold]{name}[/] [dim](PID: {record.pid})[/]: "
            f"{escape(outcome.error or '')}",
            soft_wrap=True,
        )


def configure(config: Config) -> None:
    """Configure structlog to write JSON lines to the rotating log file.

    Args:
        config: Application config with paths and rotation limits
    """
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.logging.log_max_bytes,
        backupCount=config.logging.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
            ],
        )
    )

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.INFO)
    stdlib_root.handlers.clear()
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
