"""Admin commands for init and settings."""

import sqlite3
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from runway.config import DEFAULT_SETTINGS, create_default_config, get_config_path, load_settings, set_setting
from runway.store.schema import database_exists, get_db_path, init_database

console = Console()


def run_migration(db_path: Path) -> None:
    """Run database migrations on existing database."""
    console.print(f"[cyan]Running migrations on {db_path}...[/cyan]")
    init_database(db_path)
    console.print("[green]✓[/green] Migrations complete")
    console.print("[dim]Database schema is up to date[/dim]")


def run_full_init(db_path: Path, config_path: Path) -> None:
    """Initialize new database and config."""
    if db_path.exists():
        db_path.unlink()

    console.print(f"[cyan]Initializing database at {db_path}...[/cyan]")
    init_database(db_path)
    console.print("[green]✓[/green] Database initialized")

    console.print(f"[cyan]Creating config file at {config_path}...[/cyan]")
    create_default_config(config_path)
    console.print("[green]✓[/green] Config file created (permissions: 600)")

    console.print("\n[green]Initialization complete![/green]", style="bold")
    console.print(f"[dim]Database: {db_path}[/dim]")
    console.print(f"[dim]Config: {config_path}[/dim]")


def init_command(force: bool = False, migrate: bool = False) -> None:
    """Initialize runway database and configuration."""
    db_path = get_db_path()
    config_path = get_config_path()

    db_exists = database_exists(db_path)
    config_exists = config_path.exists()

    try:
        if migrate:
            if not db_exists:
                console.print("[red]No database found to migrate[/red]", style="bold")
                console.print(f"[dim]Expected location: {db_path}[/dim]")
                sys.exit(1)
            run_migration(db_path)
            return

        if not force and (db_exists or config_exists):
            console.print("[red]Initialization failed:[/red]", style="bold")
            if db_exists:
                console.print(f"  Database already exists: {db_path}")
            if config_exists:
                console.print(f"  Config already exists: {config_path}")
            console.print("\n[yellow]Use 'runway init --force' to overwrite[/yellow]")
            console.print("[yellow]Or 'runway init --migrate' to update database schema only[/yellow]")
            sys.exit(1)

        run_full_init(db_path, config_path)

    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)
    except OSError as e:
        console.print(f"[red]Filesystem error: {e}[/red]", style="bold")
        sys.exit(1)


def coerce_setting(key: str, raw: str) -> Any:
    """Convert a command-line string to the type of a setting's default.

    Raises:
        KeyError: If the setting is unknown.
        ValueError: If the value cannot be converted.
    """
    default = DEFAULT_SETTINGS[key]
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in ("true", "yes", "on", "1"):
            return True
        if lowered in ("false", "no", "off", "0"):
            return False
        raise ValueError(f"{key} must be true or false, got {raw!r}")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def config_command(key: str | None = None, value: str | None = None) -> None:
    """Show settings, or update one."""
    config_path = get_config_path()

    try:
        if key is not None and key not in DEFAULT_SETTINGS:
            raise KeyError(key)

        if key is not None and value is not None:
            set_setting(key, coerce_setting(key, value), config_path)
            console.print(f"[green]✓[/green] {key} = {value}")
            return

        settings = load_settings(config_path)
        table = Table(title="Settings")
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        table.add_column("Default", style="dim")

        for name, current in settings.items():
            if key is not None and name != key:
                continue
            table.add_row(name, str(current), str(DEFAULT_SETTINGS.get(name, "")))

        console.print(table)
        console.print(f"[dim]Config: {config_path}[/dim]")

    except KeyError:
        console.print(f"[red]Unknown setting '{key}'[/red]", style="bold")
        console.print(f"[dim]Known settings: {', '.join(DEFAULT_SETTINGS)}[/dim]")
        sys.exit(1)
    except ValueError as e:
        console.print(f"[red]Invalid config: {e}[/red]", style="bold")
        sys.exit(1)
    except OSError as e:
        console.print(f"[red]Filesystem error: {e}[/red]", style="bold")
        sys.exit(1)
