"""CLI commands for configuration management."""

import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from movebeam.core.config import ConfigManager, default_config_path, format_duration

console = Console()
error_console = Console(stderr=True)


def _load(config_path: Optional[str]) -> ConfigManager:
    try:
        return ConfigManager(Path(config_path) if config_path else None)
    except ValueError as e:
        error_console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@click.group()
def config() -> None:
    """Manage Movebeam configuration.

    Configuration is stored in ~/.config/movebeam/movebeam.yml
    """
    pass


@config.command("init")
@click.option("--config", "config_path", type=click.Path(), help="Path of configuration file")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def config_init(config_path: Optional[str], force: bool) -> None:
    """Write the default configuration file.

    Example:
        movebeam config init
    """
    path = Path(config_path) if config_path else default_config_path()
    if path.exists() and not force:
        error_console.print(f"[yellow]{path} already exists (use --force to overwrite)[/yellow]")
        sys.exit(1)

    # Loads defaults because the file does not exist (or is replaced)
    if force and path.exists():
        path.unlink()
    ConfigManager(path).save()
    console.print(f"[green]✓[/green] Wrote {path}")


@config.command("show")
@click.option("--config", "config_path", type=click.Path(), help="Path of configuration file")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def config_show(config_path: Optional[str], as_json: bool) -> None:
    """Show the effective configuration.

    Example:
        movebeam config show
        movebeam config show --json
    """
    config_mgr = _load(config_path)

    if as_json:
        click.echo(json.dumps(config_mgr.to_dict(), indent=2))
        return

    table = Table(title="Timers")
    table.add_column("Timer", style="cyan")
    table.add_column("Interval", style="green")
    table.add_column("Break", style="green")
    table.add_column("Notify")
    for timer in config_mgr.timers:
        table.add_row(
            timer.name,
            format_duration(timer.interval),
            format_duration(timer.break_duration) if timer.break_duration else "-",
            "yes" if timer.notify else "no",
        )
    console.print(table)

    policy = config_mgr.inactivity_policy
    if policy.enabled:
        pause = format_duration(policy.pause_threshold) if policy.pause_threshold else "-"
        reset = format_duration(policy.reset_threshold) if policy.reset_threshold else "-"
        console.print(f"Inactivity pause: {pause}, reset: {reset}")
    else:
        console.print("Activity tracking disabled")
    console.print(f"\nConfig file: {config_mgr.config_path}")
