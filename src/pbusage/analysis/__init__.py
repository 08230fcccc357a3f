"""Usage analysis -- classify how generated message types are used.

Public API:
    AnalysisContext.for_snapshot(snapshot, config) -> AnalysisContext
    UseClassifier(ctx).classify(cursor) -> Classification | None
    walk(root) -> Iterator[Cursor]
"""

from __future__ import annotations

from pbusage.analysis.call_graph import CallGraphIndex
from pbusage.analysis.classifier import UseClassifier
from pbusage.analysis.cursor import Cursor, walk
from pbusage.analysis.errors import FileLoadError, SnapshotLoadError, UnclassifiableError
from pbusage.analysis.reflect import ReflectTracer
from pbusage.analysis.resolver import TypeResolver
from pbusage.analysis.rules import RULES
from pbusage.analysis.types import AnalysisContext, Classification, Rule

__all__ = [
    "RULES",
    "AnalysisContext",
    "CallGraphIndex",
    "Classification",
    "Cursor",
    "FileLoadError",
    "ReflectTracer",
    "Rule",
    "SnapshotLoadError",
    "TypeResolver",
    "UnclassifiableError",
    "UseClassifier",
    "walk",
]
