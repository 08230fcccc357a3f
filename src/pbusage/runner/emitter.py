"""Entry construction and emission to an append-only sink."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from pbusage.stats.models import (
    Entry,
    Expression,
    Location,
    Position,
    Source,
    Status,
    StatusType,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from pbusage.analysis.cursor import Cursor
    from pbusage.analysis.types import Classification
    from pbusage.program.models import FileUnit, Node
    from pbusage.stats.models import RewriteLevel


def _ast_name(kind: str) -> str:
    return f"*ast.{kind}" if kind else ""


def node_location(package: str, file: FileUnit, node: Node) -> Location:
    return Location(
        package=package,
        file=file.path,
        is_generated_file=file.generated,
        start=Position(line=node.pos.line, column=node.pos.column),
        end=Position(line=node.end.line, column=node.end.column),
    )


def usage_entry(
    level: RewriteLevel,
    package: str,
    file: FileUnit,
    cursor: Cursor,
    result: Classification,
) -> Entry:
    """Wrap a successful classification."""
    return Entry(
        location=node_location(package, file, cursor.node),
        level=level,
        type=result.type,
        expr=Expression(type=_ast_name(cursor.kind), parent_type=_ast_name(cursor.parent_kind)),
        use=result.use,
        source=Source(file=f"pbusage/analysis/rules.py:{result.rule}"),
    )


def status_entry(
    level: RewriteLevel,
    status: StatusType,
    error: str,
    package: str,
    file: FileUnit | None = None,
    node: Node | None = None,
) -> Entry:
    """Wrap a failure or a skipped location.

    Only ``location.package`` is guaranteed; file and position are kept
    when known.
    """
    if file is not None and node is not None:
        location = node_location(package, file, node)
    elif file is not None:
        location = Location(package=package, file=file.path, is_generated_file=file.generated)
    else:
        location = Location(package=package)
    return Entry(
        status=Status(type=status, error=error or status.name.lower()),
        location=location,
        level=level,
    )


class Sink(Protocol):
    def write(self, entry: Entry) -> None: ...


class MemorySink:
    """Collect entries in a list."""

    def __init__(self) -> None:
        self.entries: list[Entry] = []

    def write(self, entry: Entry) -> None:
        self.entries.append(entry)


class JsonlSink:
    """Append entries to a JSON Lines file, one entry per line."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def write(self, entry: Entry) -> None:
        with self.path.open("a", encoding="utf-8") as f:
            f.write(entry.model_dump_json(exclude_none=True) + "\n")


def read_entries(path: Path) -> Iterator[Entry]:
    """Read entries back from a JSON Lines file written by JsonlSink."""
    with path.open(encoding="utf-8") as f:
        for line in f:
            if line.strip():
                yield Entry.model_validate_json(line)


class EntryEmitter:
    """Forward finished entries to a sink.

    Entries are frozen, so nothing here can alter them. Sink errors
    propagate to the caller; retrying is the sink's business.
    """

    def __init__(self, sink: Sink) -> None:
        self.sink = sink
        self.count = 0

    def emit(self, entry: Entry) -> None:
        self.sink.write(entry)
        self.count += 1
