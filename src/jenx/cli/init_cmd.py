# Copyright (c) Syntropy Systems
"""jenx init command."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from jenx.config import load_config, save_config, validate_targets
from jenx.errors import ConfigError

console = Console()


def init(  # noqa: PLR0913
    target_id: str = typer.Option(
        ...,
        "--id",
        help="Short identifier for the Jenkins target",
    ),
    host: str = typer.Option(
        ...,
        "--host",
        help="Jenkins base URL (e.g., https://jenkins.example.com)",
    ),
    username: str = typer.Option(
        ...,
        "--username", "-u",
        help="Jenkins user the API token belongs to",
    ),
    token_env: str = typer.Option(
        ...,
        "--token-env",
        help="Environment variable holding the API token",
    ),
    name: Optional[str] = typer.Option(
        None,
        "--name",
        help="Display name (defaults to the id)",
    ),
    insecure: bool = typer.Option(
        False,
        "--insecure",
        help="Skip TLS certificate verification",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Absolute path to the config file (default: ~/.jenx/config.yaml)",
    ),
) -> None:
    """Add or update a Jenkins target in the config file.

    Example:

        jenx init --id prod --host https://jenkins.example.com \\
            --username ci-bot --token-env JENKINS_PROD_TOKEN
    """
    try:
        config = load_config(config_file)
    except ConfigError as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from e

    raw_target = {
        "id": target_id,
        "name": name or "",
        "host": host,
        "username": username,
        "credential": {"type": "env", "ref": token_env},
        "insecure_skip_tls_verify": insecure,
    }

    existing = [t for t in config.targets if t.id != target_id.strip()]
    replaced = len(existing) != len(config.targets)
    try:
        config.targets = validate_targets(
            [t.model_dump(mode="json") for t in existing] + [raw_target]
        )
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if config.config_path is None:
        console.print("[red]Error:[/red] No config path resolved")
        raise typer.Exit(1)

    try:
        save_config(config.config_path, config)
    except ConfigError as e:
        console.print(f"[red]Error saving config:[/red] {e}")
        raise typer.Exit(1) from e

    target = config.targets[-1]
    verb = "Updated" if replaced else "Added"
    console.print(f"[green]{verb} target:[/green] {target.id}")
    console.print(f"  [dim]host:[/dim] {target.host}")
    console.print(f"  [dim]token env:[/dim] {target.credential.ref}")
    console.print(f"  [dim]config:[/dim] {config.config_path}")
