# Copyright (c) Syntropy Systems
"""jenx targets command."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from jenx.config import load_config
from jenx.errors import ConfigError

console = Console()


def targets(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Absolute path to the config file (default: ~/.jenx/config.yaml)",
    ),
) -> None:
    """List configured Jenkins targets."""
    try:
        config = load_config(config_file)
    except ConfigError as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from e

    if not config.targets:
        console.print("[dim]No targets configured. Run 'jenx init' to add one.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Host")
    table.add_column("User")
    table.add_column("Token")

    for target in config.targets:
        ref = target.credential.ref
        token_state = "[green]set[/green]" if os.environ.get(ref) else "[red]missing[/red]"
        host = target.host
        if target.insecure_skip_tls_verify:
            host += " [yellow](insecure)[/yellow]"
        table.add_row(
            target.id,
            target.name,
            host,
            target.username,
            f"${ref} {token_state}",
        )

    console.print(table)
