"""CallGraphIndex -- read-only callee -> caller lookup for one snapshot."""

from __future__ import annotations

from typing import TYPE_CHECKING

import networkx as nx

from pbusage.analysis.cursor import FUNC_KINDS, walk
from pbusage.program.models import FunctionInfo

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pbusage.program.loader import Snapshot
    from pbusage.program.models import CallGraphDump, FileUnit


def package_of(symbol: str) -> str:
    """Package path of a Go function symbol.

    Examples:
        example.com/p.F -> example.com/p
        example.com/p.(*T).M -> example.com/p
        reflect.Value.Field -> reflect
    """
    slash = symbol.rfind("/")
    dot = symbol.find(".", slash + 1)
    return symbol[:dot] if dot > 0 else symbol


def is_exported(symbol: str) -> bool:
    """Whether the function (or method) name of a symbol starts upper case."""
    name = symbol[symbol.rfind("/") + 1 :].rsplit(".", 1)[-1]
    return name[:1].isupper()


def extract_edges(file: FileUnit) -> tuple[dict[str, FunctionInfo], list[tuple[str, str]]]:
    """Collect declared functions and caller -> callee edges from one file.

    Calls inside a function literal without a symbol of its own are
    attributed to the enclosing named function.
    """
    functions: dict[str, FunctionInfo] = {}
    edges: list[tuple[str, str]] = []
    if file.root is None:
        return functions, edges

    for cursor in walk(file.root):
        node = cursor.node
        if node.kind in FUNC_KINDS and node.symbol:
            functions[node.symbol] = FunctionInfo(
                package=package_of(node.symbol),
                file=file.path,
                line=node.pos.line,
                exported=is_exported(node.symbol),
            )
        elif node.kind == "CallExpr" and node.callee is not None and node.callee.symbol:
            caller = next(
                (
                    a.node.symbol
                    for a in cursor.ancestors()
                    if a.kind in FUNC_KINDS and a.node.symbol
                ),
                None,
            )
            if caller is not None:
                edges.append((caller, node.callee.symbol))
    return functions, edges


class CallGraphIndex:
    """Directed call graph; edge (A, B) means "A calls B".

    Built once per snapshot and only read afterwards, so concurrent
    lookups need no locking.
    """

    def __init__(self) -> None:
        self.graph = nx.DiGraph()

    @classmethod
    def from_dump(cls, dump: CallGraphDump) -> CallGraphIndex:
        index = cls()
        index.add_functions(dump.functions.items())
        index.add_edges(dump.edges)
        return index

    @classmethod
    def for_snapshot(cls, snapshot: Snapshot) -> CallGraphIndex:
        """Merge the front-end call graph with edges found in the syntax trees."""
        index = cls.from_dump(snapshot.call_graph)
        for package in snapshot.packages:
            for file in package.files:
                functions, edges = extract_edges(file)
                index.add_functions(functions.items())
                index.add_edges(edges)
        return index

    def add_functions(self, functions: Iterable[tuple[str, FunctionInfo]]) -> None:
        for symbol, info in functions:
            existing = self.graph.nodes.get(symbol, {}).get("info")
            if existing is None or not existing.file:
                self.graph.add_node(symbol, info=info)

    def add_edges(self, edges: Iterable[tuple[str, str]]) -> None:
        self.graph.add_edges_from(edges)

    def callers(self, symbol: str) -> list[str]:
        """Direct callers of ``symbol``, sorted for deterministic traversal."""
        if symbol not in self.graph:
            return []
        return sorted(self.graph.predecessors(symbol))

    def function(self, symbol: str) -> FunctionInfo:
        """Metadata for ``symbol``; derived from the symbol when unknown."""
        info = self.graph.nodes[symbol].get("info") if symbol in self.graph else None
        if info is None:
            return FunctionInfo(package=package_of(symbol), exported=is_exported(symbol))
        if not info.package:
            info = info.model_copy(update={"package": package_of(symbol)})
        return info

    def __contains__(self, symbol: str) -> bool:
        return symbol in self.graph

    def __len__(self) -> int:
        return self.graph.number_of_nodes()
