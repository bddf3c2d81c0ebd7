"""Command-line entry point for rip."""

import signal
from pathlib import Path

import click

from rip import logging as console
from rip.config import Config
from rip.models import ProcessRecord, SortKey
from rip.sampler import PsutilListenerSource, PsutilProcessSource, Query, Sampler
from rip.signals import ConfigurationError, check_batch_kill, dispatch, resolve_signal
from rip.state import SelectionState, select_targets

SORT_CHOICES = [key.value for key in SortKey] + ["mem"]


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(
    None, "-v", "--version", package_name="rip-kill", prog_name="rip", message="%(prog)s %(version)s"
)
@click.option("-f", "--filter", "name_filter", help="Pre-filter processes by name")
@click.option("-s", "--signal", "signal_name", help="Signal to send (default: KILL)")
@click.option(
    "--sort",
    type=click.Choice(SORT_CHOICES, case_sensitive=False),
    help="Sort processes by field (default: cpu)",
)
@click.option("-l", "--live", is_flag=True, help="Live mode with auto-refreshing process list")
@click.option("-p", "--ports", is_flag=True, help="Show one row per listening port")
@click.option("--port", type=int, help="Only processes listening on this port")
@click.option(
    "--confirm-nuke",
    is_flag=True,
    help="Signal every matching process without prompting (needs --filter or --port)",
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default: ~/.config/rip/config.toml)",
)
def main(
    name_filter: str | None,
    signal_name: str | None,
    sort: str | None,
    live: bool,
    ports: bool,
    port: int | None,
    confirm_nuke: bool,
    config_path: Path | None,
) -> None:
    """Fuzzy find and kill processes."""
    try:
        config = Config.load(config_path)
    except ValueError as e:
        console.config_invalid(str(e))
        raise SystemExit(1)

    console.configure(config)

    try:
        sig = resolve_signal(signal_name or config.defaults.signal)
        sort_key = SortKey.parse(sort or config.defaults.sort)
        if confirm_nuke:
            check_batch_kill(name_filter, port)
    except (ConfigurationError, ValueError) as e:
        console.configuration_rejected(str(e))
        raise SystemExit(1)

    query = Query(name_filter=name_filter, port_filter=port, ports=ports, sort_key=sort_key)
    sampler = Sampler(
        PsutilProcessSource(),
        PsutilListenerSource(),
        delay=config.sampler.sample_delay,
    )
    records = sampler.collect(query)

    if confirm_nuke:
        _kill(sampler, select_targets(records, {record.pid for record in records}), sig)
        return

    if not records and not live:
        console.no_processes_found()
        return

    state = SelectionState(
        records,
        refresh=lambda: sampler.collect(query),
        refresh_interval=config.live.refresh_interval if live else None,
    )
    _run_picker(state, query.port_mode, config.live.poll_interval)

    if not state.with_kill:
        console.no_processes_selected()
        return
    _kill(sampler, state.kill_list(), sig)


def _run_picker(state: SelectionState, show_ports: bool, poll_interval: float) -> None:
    """Run the terminal UI until the operator quits or confirms."""
    from rip.app import RipApp

    RipApp(state, show_ports=show_ports, poll_interval=poll_interval).run()


def _kill(sampler: Sampler, targets: list[ProcessRecord], sig: signal.Signals) -> None:
    """Signal each target and report every outcome."""
    if not targets:
        console.no_processes_found()
        return
    for outcome in dispatch(targets, sig, sampler.processes):
        console.signal_outcome(outcome, sig.name)


if __name__ == "__main__":
    main()
