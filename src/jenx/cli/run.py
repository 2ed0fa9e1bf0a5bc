# Copyright (c) Syntropy Systems
"""jenx run command - trigger every permutation with a live status view."""
from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.live import Live
from rich.table import Table

from jenx.client import get_client
from jenx.config import first_set, load_config
from jenx.errors import JenxError
from jenx.executor import RunExecutor
from jenx.models.run import RunBatch, RunState
from jenx.permutation import PlanConfig, build_permutations, job_url_for

if TYPE_CHECKING:
    from jenx.executor import RunStream

console = Console()

STATE_STYLES = {
    RunState.PLANNED: "dim",
    RunState.QUEUED: "yellow",
    RunState.RUNNING: "blue",
    RunState.SUCCESS: "green",
    RunState.FAILED: "red",
    RunState.ABORTED: "magenta",
    RunState.ERROR: "red",
}


def clip(text: str, width: int) -> str:
    """Shorten text to ``width`` characters with an ellipsis."""
    if len(text) <= width:
        return text
    return text[: max(0, width - 3)] + "..."


def build_run_table(batch: RunBatch, title: str = "Runs") -> Table:
    """Build the per-build status table."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("#", style="dim", width=4)
    table.add_column("State", width=9)
    table.add_column("Parameters")
    table.add_column("Result", width=24)
    table.add_column("Build")

    for record in batch.records:
        style = STATE_STYLES.get(record.state, "white")
        table.add_row(
            str(record.index + 1),
            f"[{style}]{record.state.value}[/{style}]",
            record.spec.summary(),
            clip(record.outcome, 24) or "-",
            record.url or "-",
        )

    counts = batch.counts()
    summary = "  ".join(
        f"[{STATE_STYLES[state]}]{state.value.lower()}: {counts[state]}[/{STATE_STYLES[state]}]"
        for state in RunState
        if counts[state]
    )
    table.caption = summary
    return table


def drain(stream: RunStream, batch: RunBatch, live: Live | None = None) -> None:
    """Fold every update from the stream into the batch until it closes."""
    for update in stream:
        batch.apply(update)
        if live is not None:
            live.update(build_run_table(batch))


def execute_batch(executor: RunExecutor, job_url: str, batch: RunBatch) -> bool:
    """Run every spec in the batch, rendering progress live.

    Ctrl+C cancels the batch; builds already triggered keep running on
    Jenkins. Returns True if the run was cancelled.
    """
    scope = threading.Event()
    stream = executor.run(scope, job_url, batch.specs)
    try:
        with Live(build_run_table(batch), console=console, refresh_per_second=4) as live:
            drain(stream, batch, live)
    except KeyboardInterrupt:
        scope.set()
        console.print("\n[yellow]Cancelling run, waiting for workers...[/yellow]")
        drain(stream, batch)
        return True
    return False


def _print_outcome(batch: RunBatch) -> None:
    console.print(build_run_table(batch, title="Results"))
    for record in batch.records:
        if record.state.is_retryable and record.error:
            console.print(f"  [red]#{record.index + 1}:[/red] {record.error}")


def run(  # noqa: PLR0913
    plan_file: Path = typer.Argument(
        ...,
        help="Path to the plan YAML file",
        exists=True,
    ),
    target: Optional[str] = typer.Option(
        None,
        "--target", "-t",
        help="Jenkins target id (overrides the plan's target)",
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency", "-j",
        help="Builds in flight at once (default from plan or config: 4)",
    ),
    max_permutations: Optional[int] = typer.Option(
        None,
        "--max-permutations", "-m",
        help="Refuse plans expanding to more builds than this",
    ),
    retry_failed: int = typer.Option(
        0,
        "--retry-failed", "-r",
        help="Re-run failed, aborted and errored builds up to N more times",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Absolute path to the config file (default: ~/.jenx/config.yaml)",
    ),
) -> None:
    """Trigger one build per permutation of a plan and follow them to completion.

    Exits non-zero if any build did not succeed.
    """
    try:
        config = load_config(config_file)
        plan_config = PlanConfig.from_yaml(plan_file)
        limit = first_set(
            max_permutations, plan_config.max_permutations, default=config.max_permutations
        )
        specs = build_permutations(plan_config.selection(), limit)
        client = get_client(config, first_set(target, plan_config.target, default=None))
    except (OSError, JenxError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    with client:
        try:
            job_url = job_url_for(client.host, plan_config.job)
        except JenxError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from e

        workers = first_set(concurrency, plan_config.concurrency, default=config.concurrency)
        executor = RunExecutor(client, workers)
        batch = RunBatch(specs)

        console.print(
            f"[bold]Triggering {len(specs)} build(s)[/bold] of {job_url} "
            f"[dim]({executor.concurrency} at a time)[/dim]"
        )

        attempt = 0
        while True:
            cancelled = execute_batch(executor, job_url, batch)
            _print_outcome(batch)
            if cancelled:
                console.print("[yellow]Run cancelled[/yellow]")
                raise typer.Exit(130)

            if attempt >= retry_failed:
                break
            failed = batch.rebuild_failed_only()
            if not failed:
                break
            attempt += 1
            console.print(
                f"\n[yellow]Retrying {len(failed)} failed build(s)[/yellow] "
                f"[dim](attempt {attempt} of {retry_failed})[/dim]"
            )

    if batch.failed_specs():
        console.print(f"[red]{len(batch.failed_specs())} build(s) did not succeed[/red]")
        raise typer.Exit(1)
    console.print("[green]All builds succeeded[/green]")
