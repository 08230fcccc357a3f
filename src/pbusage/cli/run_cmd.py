"""CLI run command: classify all rewrite-level snapshots."""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from pbusage.config import Config
from pbusage.logging.logger import RunLogger
from pbusage.runner.correlator import run_all
from pbusage.runner.emitter import EntryEmitter, JsonlSink
from pbusage.stats.models import RewriteLevel

console = Console()


def run_cmd(
    none: Annotated[
        Path | None, typer.Option("--none", help="Snapshot of the unmodified code.")
    ] = None,
    green: Annotated[Path | None, typer.Option(help="Snapshot after the green rewrite.")] = None,
    yellow: Annotated[
        Path | None, typer.Option(help="Snapshot after the yellow rewrite.")
    ] = None,
    red: Annotated[Path | None, typer.Option(help="Snapshot after the red rewrite.")] = None,
    output: Annotated[
        Path | None, typer.Option("-o", "--output", help="JSONL file for entries.")
    ] = None,
    base_dir: Annotated[
        Path | None, typer.Option("--base-dir", help="Directory for logs and default output.")
    ] = None,
    workers: Annotated[int | None, typer.Option(help="Files classified in parallel.")] = None,
    max_depth: Annotated[
        int | None, typer.Option("--max-depth", help="Frames kept per reflection trace.")
    ] = None,
    timeout: Annotated[
        float | None, typer.Option("--timeout", help="Seconds allowed per file.")
    ] = None,
    include_generated: Annotated[
        bool, typer.Option("--include-generated", help="Classify generated files too.")
    ] = False,
    append: Annotated[bool, typer.Option("--append", help="Append to the output file.")] = False,
) -> None:
    """Classify generated-type uses in every given snapshot."""
    from pbusage.cli.report import ReportBuilder, render_report

    snapshots = {
        level: path
        for level, path in (
            (RewriteLevel.NONE, none),
            (RewriteLevel.GREEN, green),
            (RewriteLevel.YELLOW, yellow),
            (RewriteLevel.RED, red),
        )
        if path is not None
    }
    if not snapshots:
        console.print(
            "[red]No snapshots given.[/red] Pass at least one of --none/--green/--yellow/--red."
        )
        raise typer.Exit(code=2)

    config = Config() if base_dir is None else Config(base_dir=base_dir)
    overrides: dict[str, object] = {"skip_generated_files": not include_generated}
    if workers is not None:
        overrides["workers"] = workers
    if max_depth is not None:
        overrides["max_reflect_depth"] = max_depth
    if timeout is not None:
        overrides["file_timeout_s"] = timeout
    config = dataclasses.replace(config, **overrides)
    config.ensure_dirs()

    out = output or config.output_path
    if not append:
        out.unlink(missing_ok=True)
    emitter = EntryEmitter(JsonlSink(out))
    result = run_all(snapshots, config, emitter, run_logger=RunLogger(config.log_dir))

    render_report(ReportBuilder().build(result.entries, failures=result.failures))
    console.print(f"\n{emitter.count} entries written to {escape(str(out))}")
    if len(result.failures) == len(snapshots):
        raise typer.Exit(code=1)
