# src/wpstack/observers/console.py
from __future__ import annotations

import typer

from .events import ProgressEvent, Stage, Status

_STYLE = {
    Status.RUNNING: ("…", typer.colors.CYAN),
    Status.COMPLETED: ("✔", typer.colors.GREEN),
    Status.FAILED: ("✖", typer.colors.RED),
}


class ConsoleObserver:
    """Human readable progress on the terminal."""

    def __init__(self, show_details: bool = True):
        self.show_details = show_details

    def notify(self, event: ProgressEvent) -> None:
        icon, color = _STYLE[event.status]
        if event.stage is Stage.ERROR:
            typer.secho(f"{icon} {event.message}", fg=color, bold=True, err=True)
            return
        typer.secho(f"{icon} [{event.stage}] {event.message}", fg=color)
        if event.detail and self.show_details and event.status is not Status.RUNNING:
            typer.secho(f"    {event.detail}", fg=typer.colors.YELLOW)
