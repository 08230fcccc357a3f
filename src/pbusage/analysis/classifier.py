"""UseClassifier -- dispatch a syntax node to the first matching rule."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pbusage.analysis.rules import RULES
from pbusage.analysis.types import Classification

if TYPE_CHECKING:
    from pbusage.analysis.cursor import Cursor
    from pbusage.analysis.types import AnalysisContext, Rule


class UseClassifier:
    """Classify nodes against an ordered rule table.

    Usage:
        classifier = UseClassifier(ctx)
        for cursor in walk(file.root):
            result = classifier.classify(cursor)

    The first rule that matches wins, so a node is classified at most once.
    Nested nodes are visited and classified on their own.
    """

    def __init__(self, ctx: AnalysisContext, rules: tuple[Rule, ...] = RULES) -> None:
        self.ctx = ctx
        self.rules = rules

    def classify(self, cursor: Cursor) -> Classification | None:
        """Classify one node, or return None if no generated type is involved.

        Raises:
            UnclassifiableError: a rule recognized a generated type but could
                not decide how it is used.
        """
        for rule in self.rules:
            result = rule.match(cursor, self.ctx)
            if result is not None:
                type_, use = result
                return Classification(type=type_, use=use, rule=rule.name)
        return None

