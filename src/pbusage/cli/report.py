"""CLI report command: summarize usage entries."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pbusage.runner.correlator import correlate, transitions
from pbusage.runner.emitter import read_entries
from pbusage.stats.models import RewriteLevel, StatusType, UseType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pbusage.runner.correlator import SnapshotFailure
    from pbusage.stats.models import Entry

console = Console()


# -----------------------------------------------------------------------
# Data classes for report structure
# -----------------------------------------------------------------------


@dataclass
class StatusRow:
    """A FAIL or SKIP location."""

    level: str
    status: str
    package: str
    file: str
    line: int
    error: str


@dataclass
class ChangeRow:
    """A call site whose use changed between rewrite levels."""

    file: str
    line: int
    column: int
    before: str
    before_uses: list[str]
    after: str
    after_uses: list[str]


@dataclass
class ReportData:
    """Complete report data container."""

    total: int = 0
    # level name -> use type name -> count
    uses: dict[str, dict[str, int]] = field(default_factory=dict)
    statuses: list[StatusRow] = field(default_factory=list)
    changes: list[ChangeRow] = field(default_factory=list)
    snapshot_failures: list[dict[str, str]] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(1 for s in self.statuses if s.status == StatusType.FAIL.name)

    @property
    def skipped(self) -> int:
        return sum(1 for s in self.statuses if s.status == StatusType.SKIP.name)


# -----------------------------------------------------------------------
# ReportBuilder
# -----------------------------------------------------------------------


class ReportBuilder:
    """Aggregate entries into report rows."""

    def build(
        self,
        entries: Iterable[Entry],
        *,
        failures: Iterable[SnapshotFailure] = (),
        with_changes: bool = False,
    ) -> ReportData:
        entries = list(entries)
        data = ReportData(total=len(entries))

        counts: dict[RewriteLevel, Counter[UseType]] = {}
        for entry in entries:
            if entry.ok and entry.use is not None:
                counts.setdefault(entry.level, Counter())[entry.use.type] += 1
            elif entry.status is not None:
                start = entry.location.start
                data.statuses.append(
                    StatusRow(
                        level=entry.level.name,
                        status=entry.status.type.name,
                        package=entry.location.package,
                        file=entry.location.file,
                        line=start.line if start is not None else 0,
                        error=entry.status.error,
                    )
                )
        data.uses = {
            level.name: {use.name: n for use, n in sorted(counter.items())}
            for level, counter in sorted(counts.items())
        }
        data.snapshot_failures = [
            {"level": f.level.name, "path": f.path, "error": f.error} for f in failures
        ]

        if with_changes:
            for change in transitions(correlate(entries)):
                data.changes.append(
                    ChangeRow(
                        file=change.site.file,
                        line=change.site.line,
                        column=change.site.column,
                        before=change.before.name,
                        before_uses=[u.name for u in change.before_uses],
                        after=change.after.name,
                        after_uses=[u.name for u in change.after_uses],
                    )
                )
        return data


# -----------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------


def render_report(data: ReportData) -> None:
    """Render report data using Rich panels and tables."""
    console.print(
        Panel(Text(f"Usage Report ({data.total} entries)", style="bold cyan"), border_style="cyan")
    )

    levels = list(data.uses)
    if levels:
        table = Table(title="Uses per rewrite level")
        table.add_column("Use", style="cyan")
        for level in levels:
            table.add_column(level, justify="right")
        for use in UseType:
            row = [str(data.uses[level].get(use.name, 0)) for level in levels]
            if any(cell != "0" for cell in row):
                table.add_row(use.name, *row)
        console.print(table)
    else:
        console.print("[dim]No classified uses.[/dim]")

    console.print(
        f"\nFailed: [red]{data.failed}[/red] | Skipped: [yellow]{data.skipped}[/yellow]"
    )
    if data.statuses:
        status_table = Table(title="FAIL / SKIP locations")
        status_table.add_column("Level")
        status_table.add_column("Status")
        status_table.add_column("Location", max_width=50)
        status_table.add_column("Error", max_width=60)
        for s in data.statuses:
            style = "red" if s.status == StatusType.FAIL.name else "yellow"
            where = f"{s.file}:{s.line}" if s.file else s.package
            status_table.add_row(s.level, Text(s.status, style=style), Text(where), Text(s.error))
        console.print(status_table)

    for failure in data.snapshot_failures:
        console.print(f"[red]Snapshot {failure['level']} failed:[/red] {escape(failure['error'])}")

    if data.changes:
        change_table = Table(title="Changed call sites")
        change_table.add_column("Site", max_width=50)
        change_table.add_column("Before")
        change_table.add_column("After")
        for c in data.changes:
            change_table.add_row(
                Text(f"{c.file}:{c.line}:{c.column}"),
                f"{c.before}: {', '.join(c.before_uses)}",
                f"{c.after}: {', '.join(c.after_uses)}",
            )
        console.print(change_table)


# -----------------------------------------------------------------------
# CLI command
# -----------------------------------------------------------------------


def report_cmd(
    path: Annotated[Path, typer.Argument(help="JSONL file written by 'pbusage run'.")],
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
    changes: Annotated[
        bool, typer.Option("--changes", help="List call sites whose use changed.")
    ] = False,
) -> None:
    """Summarize a usage entry stream."""
    if not path.exists():
        console.print(f"[red]Entry file not found:[/red] {escape(str(path))}")
        raise typer.Exit(code=1)

    try:
        entries = list(read_entries(path))
    except ValidationError as exc:
        console.print(f"[red]Malformed entry file:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    data = ReportBuilder().build(entries, with_changes=changes)
    if output_json:
        import dataclasses

        console.print_json(json.dumps(dataclasses.asdict(data)))
    else:
        render_report(data)
