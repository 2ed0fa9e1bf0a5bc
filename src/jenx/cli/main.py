# Copyright (c) Syntropy Systems
"""Main CLI entry point for jenx."""

import logging

import typer

from jenx.cli.init_cmd import init
from jenx.cli.params import params
from jenx.cli.plan import plan
from jenx.cli.run import run
from jenx.cli.targets import targets

app = typer.Typer(
    name="jenx",
    help=(
        "Run one Jenkins job across every permutation of its parameters, "
        "a few builds at a time."
    ),
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Log HTTP retries and worker activity",
    ),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register commands
_ = app.command()(init)
_ = app.command()(targets)
_ = app.command()(params)
_ = app.command()(plan)
_ = app.command()(run)


if __name__ == "__main__":
    app()
