"""Rewrite-level correlator -- classify every snapshot and merge the results."""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

from pbusage.analysis.classifier import UseClassifier
from pbusage.analysis.cursor import walk
from pbusage.analysis.errors import FileLoadError, SnapshotLoadError, UnclassifiableError
from pbusage.analysis.types import AnalysisContext
from pbusage.logging.logger import flush_logs
from pbusage.program.loader import load_snapshot
from pbusage.runner.emitter import status_entry, usage_entry
from pbusage.stats.models import Entry, RewriteLevel, StatusType, UseType

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path

    from pbusage.config import Config
    from pbusage.logging.logger import RunLogger
    from pbusage.program.models import FileUnit, PackageUnit
    from pbusage.runner.emitter import EntryEmitter

logger = logging.getLogger(__name__)


class FileAborted(Exception):
    """The file pass ran past its deadline or was cancelled."""


@dataclass(frozen=True, slots=True)
class SnapshotFailure:
    """A snapshot that could not be loaded at all."""

    level: RewriteLevel
    path: str
    error: str


@dataclass
class RunResult:
    entries: list[Entry] = field(default_factory=list)
    failures: list[SnapshotFailure] = field(default_factory=list)

    def with_status(self, status: StatusType) -> list[Entry]:
        return [e for e in self.entries if e.status is not None and e.status.type == status]

    @property
    def failed(self) -> list[Entry]:
        return self.with_status(StatusType.FAIL)

    @property
    def skipped(self) -> list[Entry]:
        return self.with_status(StatusType.SKIP)

    def use_counts(self) -> dict[RewriteLevel, Counter[UseType]]:
        counts: dict[RewriteLevel, Counter[UseType]] = defaultdict(Counter)
        for entry in self.entries:
            if entry.ok and entry.use is not None:
                counts[entry.level][entry.use.type] += 1
        return dict(counts)


def classify_file(
    classifier: UseClassifier,
    level: RewriteLevel,
    package: str,
    file: FileUnit,
    *,
    timeout_s: float | None = None,
    cancel: threading.Event | None = None,
) -> list[Entry]:
    """Classify every node of one file.

    A node that raises becomes a status entry of its own; the rest of the
    file is still classified. Running past ``timeout_s`` or being cancelled
    replaces the file's entries with a single FAIL entry.
    """
    config = classifier.ctx.config
    try:
        if file.errors:
            raise FileLoadError("; ".join(file.errors))
        if file.root is None:
            raise FileLoadError("no syntax tree")
    except FileLoadError as exc:
        return [status_entry(level, StatusType.FAIL, f"load: {exc}", package, file)]
    if file.generated and config.skip_generated_files:
        return [status_entry(level, StatusType.SKIP, "generated file", package, file)]

    deadline = time.monotonic() + timeout_s if timeout_s is not None else None
    entries: list[Entry] = []
    try:
        for cursor in walk(file.root):
            if cancel is not None and cancel.is_set():
                raise FileAborted("cancelled")
            if deadline is not None and time.monotonic() > deadline:
                raise FileAborted(f"timed out after {timeout_s}s")
            try:
                result = classifier.classify(cursor)
                if result is not None:
                    entries.append(usage_entry(level, package, file, cursor, result))
            except UnclassifiableError as exc:
                entries.append(
                    status_entry(level, StatusType.SKIP, str(exc), package, file, cursor.node)
                )
            except Exception as exc:
                logger.warning(
                    "Failed to classify %s node at %s:%d",
                    cursor.kind,
                    file.path,
                    cursor.node.pos.line,
                    exc_info=True,
                )
                entries.append(
                    status_entry(level, StatusType.FAIL, f"{type(exc).__name__}: {exc}", package)
                )
    except FileAborted as exc:
        logger.warning("Aborted %s (%s): %s", file.path, level.name, exc)
        return [status_entry(level, StatusType.FAIL, str(exc), package, file)]
    return entries


def _package_units(packages: Iterable[PackageUnit]) -> list[tuple[str, FileUnit]]:
    return [(pkg.path, file) for pkg in packages for file in pkg.files]


def run_snapshot(
    level: RewriteLevel,
    path: str | Path,
    config: Config,
    emitter: EntryEmitter,
    *,
    cancel: threading.Event | None = None,
) -> list[Entry]:
    """Classify one snapshot with a fresh resolver and call graph.

    Files are classified concurrently; entries are emitted in file order.
    A file whose pass raises is reported as a single FAIL entry.

    Raises:
        SnapshotLoadError: the snapshot cannot be loaded at all.
    """
    snapshot = load_snapshot(path, level)
    classifier = UseClassifier(AnalysisContext.for_snapshot(snapshot, config))

    entries: list[Entry] = [
        status_entry(level, StatusType.FAIL, "load: " + "; ".join(pkg.errors), pkg.path)
        for pkg in snapshot.packages
        if pkg.errors
    ]
    units = _package_units(snapshot.packages)
    with ThreadPoolExecutor(max_workers=max(1, config.workers)) as pool:
        futures = [
            (
                pool.submit(
                    classify_file,
                    classifier,
                    level,
                    package,
                    file,
                    timeout_s=config.file_timeout_s,
                    cancel=cancel,
                ),
                package,
                file,
            )
            for package, file in units
        ]
        for future, package, file in futures:
            try:
                entries.extend(future.result())
            except Exception as exc:
                logger.warning("Failed to classify %s (%s)", file.path, level.name, exc_info=True)
                entries.append(
                    status_entry(
                        level, StatusType.FAIL, f"{type(exc).__name__}: {exc}", package, file
                    )
                )

    for entry in entries:
        emitter.emit(entry)
    return entries


def run_all(
    snapshots: Mapping[RewriteLevel, str | Path],
    config: Config,
    emitter: EntryEmitter,
    *,
    run_logger: RunLogger | None = None,
    cancel: threading.Event | None = None,
) -> RunResult:
    """Run the classifier over every rewrite level and concatenate the entries.

    A snapshot that cannot be loaded is recorded in ``RunResult.failures``
    and the remaining levels still run. Diagnostics are flushed on exit.
    """
    result = RunResult()
    try:
        for level in sorted(snapshots):
            path = snapshots[level]
            if run_logger is not None:
                run_logger.log("snapshot.start", {"path": str(path)}, level=level.name)
                timer = run_logger.timed("snapshot.run", level=level.name)
            else:
                timer = nullcontext({})
            try:
                with timer as context:
                    entries = run_snapshot(level, path, config, emitter, cancel=cancel)
                    context["entries"] = len(entries)
                    context["failed"] = sum(1 for e in entries if _has_status(e, StatusType.FAIL))
                    context["skipped"] = sum(1 for e in entries if _has_status(e, StatusType.SKIP))
            except SnapshotLoadError as exc:
                logger.error("Skipping %s snapshot: %s", level.name, exc)
                result.failures.append(SnapshotFailure(level=level, path=str(path), error=str(exc)))
                continue
            result.entries.extend(entries)
        if run_logger is not None:
            run_logger.log(
                "run.done",
                {"entries": len(result.entries), "snapshot_failures": len(result.failures)},
            )
    finally:
        flush_logs()
    return result


def _has_status(entry: Entry, status: StatusType) -> bool:
    return entry.status is not None and entry.status.type == status


class SiteKey(NamedTuple):
    """Stable identity of a call site across rewrite levels."""

    package: str
    file: str
    line: int
    column: int


@dataclass(frozen=True, slots=True)
class SiteChange:
    """A call site whose uses differ between two consecutive levels."""

    site: SiteKey
    before: RewriteLevel
    before_uses: tuple[UseType, ...]
    after: RewriteLevel
    after_uses: tuple[UseType, ...]


def site_key(entry: Entry) -> SiteKey | None:
    start = entry.location.start
    if start is None:
        return None
    return SiteKey(entry.location.package, entry.location.file, start.line, start.column)


def correlate(entries: Iterable[Entry]) -> dict[SiteKey, dict[RewriteLevel, list[Entry]]]:
    """Group successful entries by call site, then by rewrite level."""
    groups: dict[SiteKey, dict[RewriteLevel, list[Entry]]] = defaultdict(
        lambda: defaultdict(list)
    )
    for entry in entries:
        key = site_key(entry)
        if entry.ok and key is not None:
            groups[key][entry.level].append(entry)
    return {key: dict(levels) for key, levels in groups.items()}


def transitions(groups: Mapping[SiteKey, Mapping[RewriteLevel, list[Entry]]]) -> list[SiteChange]:
    """Sites whose set of use types changes from one observed level to the next."""
    changes: list[SiteChange] = []
    for site in sorted(groups):
        levels = groups[site]
        observed = sorted(levels)
        for before, after in zip(observed, observed[1:]):
            before_uses = tuple(sorted({e.use.type for e in levels[before] if e.use}))
            after_uses = tuple(sorted({e.use.type for e in levels[after] if e.use}))
            if before_uses != after_uses:
                changes.append(SiteChange(site, before, before_uses, after, after_uses))
    return changes
