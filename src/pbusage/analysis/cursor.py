"""Cursor -- a syntax node together with its chain of parents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from pbusage.program.models import Node

FUNC_KINDS = frozenset({"FuncDecl", "FuncLit"})


@dataclass(frozen=True, slots=True)
class Cursor:
    """A node, its parent cursor and its slot (role, index) in the parent."""

    node: Node
    parent: Cursor | None = None
    role: str = ""
    index: int = 0

    @property
    def kind(self) -> str:
        return self.node.kind

    @property
    def parent_kind(self) -> str:
        return self.parent.node.kind if self.parent is not None else ""

    def ancestors(self) -> Iterator[Cursor]:
        current = self.parent
        while current is not None:
            yield current
            current = current.parent

    def enclosing(self, kinds: frozenset[str]) -> Cursor | None:
        """Nearest ancestor whose kind is in ``kinds``."""
        return next((a for a in self.ancestors() if a.kind in kinds), None)

    def enclosing_function(self) -> Cursor | None:
        return self.enclosing(FUNC_KINDS)


def walk(root: Node) -> Iterator[Cursor]:
    """Yield a cursor for every node in pre-order (children in role order)."""
    stack = [Cursor(root)]
    while stack:
        cursor = stack.pop()
        yield cursor
        pending: list[Cursor] = []
        for role, nodes in cursor.node.children.items():
            pending.extend(
                Cursor(node, cursor, role, index) for index, node in enumerate(nodes)
            )
        stack.extend(reversed(pending))
