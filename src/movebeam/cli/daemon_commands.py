"""CLI commands for daemon management."""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

import click
import psutil  # type: ignore[import-untyped]
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from movebeam import ACTIVITY_DAEMON_NAME, DAEMON_NAME
from movebeam.core.config import format_duration
from movebeam.daemon.client import DaemonClient
from movebeam.daemon.ipc import IPCError
from movebeam.daemon.platform import get_log_file_path, get_pid_file_path
from movebeam.daemon.state import PIDFileManager

console = Console()


@click.group()
def daemon() -> None:
    """Manage the Movebeam timer daemon."""
    pass


@daemon.command()
@click.option(
    "--foreground",
    "-f",
    is_flag=True,
    help="Run daemon in foreground (don't daemonize)",
)
@click.option("--config", "config_path", type=click.Path(), help="Path of configuration file")
@click.pass_context
def start(ctx: click.Context, foreground: bool, config_path: Optional[str]) -> None:
    """Start the timer daemon."""
    from movebeam.core.config import ConfigManager
    from movebeam.daemon.daemon import DaemonError, MovebeamDaemon

    socket_path = (ctx.obj or {}).get("socket")
    client = DaemonClient(Path(socket_path) if socket_path else None, timeout=1.0)
    if client.is_daemon_running():
        console.print("[yellow]Daemon is already running[/yellow]")
        return

    try:
        config = ConfigManager(Path(config_path) if config_path else None)
        daemon_instance = MovebeamDaemon(
            config=config, socket_path=Path(socket_path) if socket_path else None
        )
    except (ValueError, DaemonError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if foreground:
        console.print("[cyan]Starting daemon in foreground...[/cyan]")
    else:
        console.print("[cyan]Starting daemon in background...[/cyan]")

    try:
        daemon_instance.start(foreground=foreground)
    except KeyboardInterrupt:
        console.print("\n[yellow]Daemon stopped by user[/yellow]")
    except DaemonError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


def _stop_process(name: str) -> None:
    pid_manager = PIDFileManager(get_pid_file_path(name))
    pid = pid_manager.read()
    if pid is None or not psutil.pid_exists(pid):
        console.print("[yellow]Daemon is not running[/yellow]")
        pid_manager.remove()
        return

    console.print("[cyan]Stopping daemon...[/cyan]")
    try:
        process = psutil.Process(pid)
        process.terminate()
        process.wait(timeout=5)
    except psutil.TimeoutExpired:
        console.print(f"[red]Error: daemon (PID {pid}) did not stop within 5 seconds[/red]")
        sys.exit(1)
    except psutil.Error as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    console.print("[green]✓[/green] Daemon stopped")


@daemon.command()
def stop() -> None:
    """Stop the timer daemon."""
    _stop_process(DAEMON_NAME)


@daemon.command()
@click.option("--verbose", "-v", is_flag=True, help="Show every timer")
@click.pass_context
def status(ctx: click.Context, verbose: bool) -> None:
    """Show daemon status."""
    socket_path = (ctx.obj or {}).get("socket")
    client = DaemonClient(Path(socket_path) if socket_path else None, timeout=1.0)

    try:
        with client:
            uptime = client.uptime()
            timers = client.list_timers()
            inactivity = client.inactivity()
    except IPCError:
        console.print("[yellow]Daemon is not running[/yellow]")
        return

    pid = PIDFileManager(get_pid_file_path(DAEMON_NAME)).read()
    status_text = f"""
[green]●[/green] Daemon is running
  PID: {pid if pid is not None else 'N/A'}
  Running for: {format_duration(uptime)}
  Inactivity: {format_duration(inactivity) if inactivity is not None else 'unknown'}
  Timers: {len(timers)}
    """
    console.print(Panel(status_text.strip(), title="Daemon Status"))

    if verbose:
        table = Table(title="Timers", show_header=True)
        table.add_column("Timer", style="cyan")
        table.add_column("Elapsed", style="green")
        table.add_column("Interval", style="green")
        for name, snapshot in timers:
            table.add_row(name, format_duration(snapshot.elapsed), format_duration(snapshot.interval))
        console.print(table)


@daemon.command()
@click.option("--lines", "-n", default=50, help="Number of log lines to show")
def logs(lines: int) -> None:
    """View daemon logs."""
    log_file = get_log_file_path(DAEMON_NAME)

    if not log_file.exists():
        console.print("[yellow]No log file found[/yellow]")
        return

    with open(log_file, "r") as f:
        last_lines = f.readlines()[-lines:]
    console.print("".join(last_lines), end="")


@click.group()
def activity() -> None:
    """Manage the activity daemon (time since last input)."""
    pass


@activity.command("start")
@click.option("--socket", "socket_path", type=click.Path(), help="Socket path to serve on")
def activity_start(socket_path: Optional[str]) -> None:
    """Run the activity daemon in the foreground."""
    from movebeam.daemon.activity import ActivityDaemon

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    pid_manager = PIDFileManager(get_pid_file_path(ACTIVITY_DAEMON_NAME))
    if pid_manager.is_running():
        console.print("[yellow]Activity daemon is already running[/yellow]")
        return

    pid_manager.write(os.getpid())
    try:
        ActivityDaemon(Path(socket_path) if socket_path else None).start()
    except IPCError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    finally:
        pid_manager.remove()


@activity.command("stop")
def activity_stop() -> None:
    """Stop the activity daemon."""
    _stop_process(ACTIVITY_DAEMON_NAME)
