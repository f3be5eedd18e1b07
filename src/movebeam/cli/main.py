"""Main CLI application."""

import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from movebeam import __version__
from movebeam.cli.config_commands import config
from movebeam.cli.daemon_commands import activity, daemon
from movebeam.core.config import format_duration
from movebeam.core.timers import TimerSnapshot
from movebeam.daemon.client import DaemonClient, TimerNotFoundError
from movebeam.daemon.ipc import IPCError

error_console = Console(stderr=True)


def get_client(ctx: click.Context) -> DaemonClient:
    """Get a client for the daemon socket selected on the command line."""
    socket_path = ctx.obj.get("socket")
    return DaemonClient(Path(socket_path) if socket_path else None)


def format_timer(snapshot: TimerSnapshot) -> str:
    """Format a timer as ``elapsed/interval``."""
    return f"{format_duration(snapshot.elapsed)}/{format_duration(snapshot.interval)}"


def render_bar(
    snapshot: TimerSnapshot,
    size: int = 16,
    fill: str = "█",
    empty: str = "░",
    left: str = "▕",
    right: str = "▏",
) -> str:
    """Render a timer as a progress bar, full once the interval is reached."""
    interval = snapshot.interval.total_seconds()
    percentage = min(snapshot.elapsed.total_seconds() / interval, 1.0) if interval else 1.0
    fill_count = round(size * percentage)
    return f"{left}{fill * fill_count}{empty * (size - fill_count)}{right}"


def _fail(message: str) -> None:
    error_console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--socket", help="Timer daemon socket path", type=click.Path())
@click.pass_context
def cli(ctx: click.Context, socket: Optional[str]) -> None:
    """Movebeam - Reminders to move and take breaks.

    Timers run inside the background daemon (start it with
    'movebeam daemon start'); these commands query and reset them.
    """
    ctx.ensure_object(dict)
    ctx.obj["socket"] = socket


@cli.command("list")
@click.pass_context
def list_timers(ctx: click.Context) -> None:
    """List of information from all timers."""
    try:
        timers = get_client(ctx).list_timers()
    except IPCError as e:
        _fail(str(e))
        return

    for name, snapshot in timers:
        click.echo(f"{name}\t{format_timer(snapshot)}")


@cli.command()
@click.argument("name")
@click.pass_context
def get(ctx: click.Context, name: str) -> None:
    """Get the information of a specific timer."""
    try:
        snapshot = get_client(ctx).get(name)
    except TimerNotFoundError:
        click.echo("ERROR: Timer not found!")
        sys.exit(1)
    except IPCError as e:
        _fail(str(e))
        return
    click.echo(format_timer(snapshot))


@cli.command()
@click.argument("name")
@click.option("-s", "--size", default=16, show_default=True, help="Bar width in characters")
@click.option("-f", "--fill", default="█", show_default=True, help="Filled cell")
@click.option("-e", "--empty", default="░", show_default=True, help="Empty cell")
@click.option("-l", "--left", default="▕", show_default=True, help="Left edge")
@click.option("-r", "--right", default="▏", show_default=True, help="Right edge")
@click.pass_context
def bar(
    ctx: click.Context, name: str, size: int, fill: str, empty: str, left: str, right: str
) -> None:
    """Status bar for a specific timer."""
    try:
        snapshot = get_client(ctx).get(name)
    except TimerNotFoundError:
        click.echo("ERROR: Timer not found!")
        sys.exit(1)
    except IPCError as e:
        _fail(str(e))
        return
    click.echo(render_bar(snapshot, size, fill, empty, left, right))


@cli.command()
@click.argument("name")
@click.pass_context
def reset(ctx: click.Context, name: str) -> None:
    """Reset a specific timer."""
    try:
        get_client(ctx).reset(name)
    except TimerNotFoundError:
        click.echo("ERROR: Timer not found!")
        sys.exit(1)
    except IPCError as e:
        _fail(str(e))


@cli.command("reset-all")
@click.pass_context
def reset_all(ctx: click.Context) -> None:
    """Reset all timers."""
    try:
        get_client(ctx).reset_all()
    except IPCError as e:
        _fail(str(e))


@cli.command()
@click.pass_context
def running(ctx: click.Context) -> None:
    """Show how long the daemon has been running."""
    try:
        uptime = get_client(ctx).uptime()
    except IPCError as e:
        _fail(str(e))
        return
    click.echo(format_duration(uptime))


@cli.command()
@click.pass_context
def inactivity(ctx: click.Context) -> None:
    """Show the time since the last input, as last seen by the daemon."""
    try:
        duration: Optional[timedelta] = get_client(ctx).inactivity()
    except IPCError as e:
        _fail(str(e))
        return
    if duration is None:
        click.echo("unknown")
    else:
        click.echo(format_duration(duration))


cli.add_command(daemon)
cli.add_command(activity)
cli.add_command(config)


if __name__ == "__main__":
    cli()
