"""Internal data types for the usage classifier.

Frozen dataclasses shared by the rule table, the classifier and the
correlator. They are converted into ``pbusage.stats`` records on emission.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pbusage.analysis.call_graph import CallGraphIndex
from pbusage.analysis.reflect import ReflectTracer
from pbusage.analysis.resolver import TypeResolver

if TYPE_CHECKING:
    from collections.abc import Callable

    from pbusage.analysis.cursor import Cursor
    from pbusage.config import Config
    from pbusage.program.loader import Snapshot
    from pbusage.stats.models import Type, Use, UseType


@dataclass(frozen=True, slots=True)
class AnalysisContext:
    """Everything a classification needs for one snapshot.

    Passed explicitly into every call; nothing here is mutated after
    construction, so one context is shared by all workers of a pass.
    """

    config: Config
    resolver: TypeResolver
    index: CallGraphIndex
    tracer: ReflectTracer

    @classmethod
    def for_snapshot(cls, snapshot: Snapshot, config: Config) -> AnalysisContext:
        index = CallGraphIndex.for_snapshot(snapshot)
        return cls(
            config=config,
            resolver=TypeResolver.for_snapshot(snapshot, config),
            index=index,
            tracer=ReflectTracer(index, config),
        )


@dataclass(frozen=True, slots=True)
class Classification:
    """Outcome of classifying one node."""

    type: Type  # the generated type involved
    use: Use
    rule: str  # name of the rule that fired


@dataclass(frozen=True, slots=True)
class Rule:
    """One predicate/handler pair of the classifier's ordered rule table.

    ``match`` returns (generated type, use) or None when the rule does not
    apply; it raises UnclassifiableError when the node clearly involves a
    generated type but the evidence is incomplete.
    """

    name: str
    use_types: tuple[UseType, ...]
    match: Callable[[Cursor, AnalysisContext], tuple[Type, Use] | None]
