# src/wpstack/cli/app.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from wpstack.config.loader import load_request
from wpstack.config.settings import Settings
from wpstack.errors import InputError
from wpstack.install.probe import probe as probe_host
from wpstack.install.stream import stream_installation
from wpstack.logging.log import init_logging
from wpstack.observers.console import ConsoleObserver
from wpstack.observers.dispatcher import EventBus
from wpstack.observers.events import Stage
from wpstack.observers.jsonfile import JsonFileObserver
from wpstack.observers.logger import LoggerObserver
from wpstack.observers.sinks import BusSink


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Provision a WordPress stack on a remote host over SSH")


def _load(request: Path, settings: Settings):
    try:
        return load_request(request, settings)
    except InputError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)


@app.command()
def probe(
    request: Path = typer.Argument(..., help="Installation request YAML"),
    debug: bool = typer.Option(False, "--debug"),
):
    """Check SSH connectivity and report OS, memory and free disk."""
    settings = Settings.default()
    init_logging(verbose=debug)
    req = _load(request, settings)

    result = probe_host(req.connection, settings)
    if not result.success:
        typer.secho(f"✖ {result.error}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    s = result.server
    typer.secho(f"✔ Connected to {req.connection.host}", fg=typer.colors.GREEN)
    typer.echo(f"  OS:        {s.os}")
    typer.echo(f"  Memory:    {s.memory}")
    typer.echo(f"  Disk free: {s.disk_free}")


@app.command()
def install(
    request: Path = typer.Argument(..., help="Installation request YAML"),
    events_file: Optional[Path] = typer.Option(
        None,
        "--events-file",
        help="Append every progress event as a JSON line",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Give up waiting after this many seconds (default 300)",
    ),
    debug: bool = typer.Option(False, "--debug"),
):
    """Install nginx, MariaDB, PHP and WordPress, optionally with TLS."""
    settings = Settings.default()
    logger, run_id, log_path = init_logging(verbose=debug)
    req = _load(request, settings)

    observers = [ConsoleObserver(), LoggerObserver(logger)]
    if events_file:
        observers.append(JsonFileObserver(events_file))
    sink = BusSink(EventBus(observers))

    final = None
    for ev in stream_installation(req.connection, req.site, settings, timeout=timeout, run_id=run_id):
        sink.emit(ev)
        final = ev

    if final is None or final.stage is not Stage.COMPLETE:
        typer.secho(f"Log file: {log_path}", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    typer.echo(json.dumps(final.result, indent=2))
    typer.secho("Store these credentials now; the log file never contains them.", fg=typer.colors.YELLOW)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
