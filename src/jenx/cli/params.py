# Copyright (c) Syntropy Systems
"""jenx params command."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from jenx.client import get_client
from jenx.config import load_config
from jenx.errors import JenxError
from jenx.permutation import job_url_for

console = Console()


def params(
    job: str = typer.Argument(
        ...,
        help="Job URL or path (e.g., folder/deploy)",
    ),
    target: Optional[str] = typer.Option(
        None,
        "--target", "-t",
        help="Jenkins target id (optional when only one is configured)",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Absolute path to the config file (default: ~/.jenx/config.yaml)",
    ),
) -> None:
    """Show the parameters a job accepts.

    Choice parameters are the ones a plan can expand into permutations.
    """
    try:
        config = load_config(config_file)
        client = get_client(config, target)
    except JenxError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    with client:
        try:
            job_url = job_url_for(client.host, job)
            defs = client.get_job_params(job_url)
        except JenxError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from e

    if not defs:
        console.print(f"[dim]{job_url} has no parameters[/dim]")
        return

    table = Table(title=job_url, show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Kind")
    table.add_column("Default")
    table.add_column("Choices")
    table.add_column("Description", style="dim")

    for param in defs:
        table.add_row(
            param.name,
            param.kind.value,
            param.default or "-",
            ", ".join(param.choices) or "-",
            param.description or "",
        )

    console.print(table)
