"""Root Typer app for the pbusage CLI."""

from __future__ import annotations

import logging
from typing import Annotated

import typer

app = typer.Typer(
    name="pbusage",
    help="pbusage: classify how generated protobuf types are used across rewrite levels.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("-v", "--verbose", help="Log progress.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


def _register_commands() -> None:
    """Register all CLI commands."""
    from pbusage.cli.report import report_cmd
    from pbusage.cli.run_cmd import run_cmd

    app.command(name="run")(run_cmd)
    app.command(name="report")(report_cmd)


_register_commands()
