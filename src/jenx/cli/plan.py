# Copyright (c) Syntropy Systems
"""jenx plan command."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.table import Table

from jenx.config import first_set, load_config
from jenx.errors import JenxError
from jenx.permutation import PlanConfig, build_permutations

if TYPE_CHECKING:
    from jenx.models.run import JobSpec

console = Console()


def build_plan_table(title: str, specs: list[JobSpec]) -> Table:
    """Build the permutation preview table."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("#", style="dim")
    table.add_column("Parameters")

    for i, spec in enumerate(specs, start=1):
        table.add_row(str(i), spec.summary() or "[dim](no parameters)[/dim]")

    return table


def plan(
    plan_file: Path = typer.Argument(
        ...,
        help="Path to the plan YAML file",
        exists=True,
    ),
    max_permutations: Optional[int] = typer.Option(
        None,
        "--max-permutations", "-m",
        help="Refuse plans expanding to more builds than this",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Absolute path to the config file (default: ~/.jenx/config.yaml)",
    ),
) -> None:
    r"""Preview the builds a plan expands to, without triggering anything.

    Example plan.yaml:

    \b
        job: folder/deploy
        fixed:
          REASON: maintenance
        choices:
          REGION: [US, EU]
          ACTION: [drain, reload]
    """
    try:
        config = load_config(config_file)
        plan_config = PlanConfig.from_yaml(plan_file)
        limit = first_set(
            max_permutations, plan_config.max_permutations, default=config.max_permutations
        )
        specs = build_permutations(plan_config.selection(), limit)
    except (OSError, JenxError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(build_plan_table(f"Plan: {plan_config.job}", specs))
    console.print(f"\n[bold]{len(specs)} build(s)[/bold] would be triggered (limit {limit})")
