"""Snapshot loader -- read a front-end dump of one rewrite level from disk."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from pbusage.analysis.errors import SnapshotLoadError
from pbusage.program.models import CallGraphDump, PackageUnit
from pbusage.stats.models import RewriteLevel

logger = logging.getLogger(__name__)

PACKAGES_DIR = "packages"
CALL_GRAPH_FILE = "callgraph.json"


@dataclass(frozen=True, slots=True)
class Snapshot:
    """All packages of one rewrite level plus its call graph."""

    level: RewriteLevel
    path: Path
    packages: tuple[PackageUnit, ...]
    call_graph: CallGraphDump


def load_package(path: Path) -> PackageUnit:
    """Load one package dump. A malformed dump becomes a failed PackageUnit.

    A dump without a package path is named after its file stem.
    """
    try:
        package = PackageUnit.model_validate_json(path.read_bytes())
    except (OSError, ValidationError) as exc:
        logger.warning("Failed to load package dump %s", path, exc_info=True)
        return PackageUnit(path=_guess_package_path(path), errors=(f"{path.name}: {exc}",))
    if not package.path.strip():
        logger.warning("Package dump %s has no package path, using %r", path, path.stem)
        package = package.model_copy(update={"path": path.stem})
    return package


def _guess_package_path(path: Path) -> str:
    """Best effort package path for a dump that could not be parsed."""
    try:
        data = json.loads(path.read_text(encoding="utf-8", errors="replace"))
    except (OSError, json.JSONDecodeError):
        return path.stem
    if isinstance(data, dict) and isinstance(data.get("path"), str) and data["path"]:
        return data["path"]
    return path.stem


def load_call_graph(path: Path) -> CallGraphDump:
    if not path.exists():
        return CallGraphDump()
    try:
        return CallGraphDump.model_validate_json(path.read_bytes())
    except (OSError, ValidationError) as exc:
        msg = f"call graph {path} is unreadable: {exc}"
        raise SnapshotLoadError(msg) from exc


def load_snapshot(path: str | Path, level: RewriteLevel) -> Snapshot:
    """Load a snapshot directory.

    Raises:
        SnapshotLoadError: the directory or its packages/ tree is missing, or
            the call graph cannot be read.
    """
    root = Path(path)
    packages_dir = root / PACKAGES_DIR
    if not root.is_dir():
        msg = f"{level.name} snapshot {root} does not exist"
        raise SnapshotLoadError(msg)
    if not packages_dir.is_dir():
        msg = f"{level.name} snapshot {root} has no {PACKAGES_DIR}/ directory"
        raise SnapshotLoadError(msg)

    packages = tuple(load_package(p) for p in sorted(packages_dir.glob("*.json")))
    call_graph = load_call_graph(root / CALL_GRAPH_FILE)
    logger.info("Loaded %s snapshot: %d packages", level.name, len(packages))
    return Snapshot(level=level, path=root, packages=packages, call_graph=call_graph)
