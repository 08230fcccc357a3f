"""ReflectTracer -- reconstruct the call stack leading into the reflection API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pbusage.analysis.call_graph import is_exported
from pbusage.analysis.cursor import FUNC_KINDS
from pbusage.stats.models import Frame, ReflectCall

if TYPE_CHECKING:
    from pbusage.analysis.call_graph import CallGraphIndex
    from pbusage.analysis.cursor import Cursor
    from pbusage.config import Config


def build_frames(symbols: list[str], index: CallGraphIndex) -> tuple[Frame, ...]:
    """Turn a leaf-first list of function symbols into numbered frames."""
    frames: list[Frame] = []
    pkg_index = 0
    for i, symbol in enumerate(symbols):
        info = index.function(symbol)
        if frames and frames[-1].package == info.package:
            pkg_index += 1
        else:
            pkg_index = 0
        frames.append(
            Frame(
                function=symbol,
                is_exported=info.exported if info.exported is not None else is_exported(symbol),
                package=info.package,
                file=info.file,
                line=str(info.line) if info.line else "",
                index=i,
                pkg_index=pkg_index,
            )
        )
    return tuple(frames)


class ReflectTracer:
    """Walk the call graph backwards from a reflection call site.

    Frame 0 is the reflection function itself, frame 1 the function
    containing the call, and every further frame a caller of the previous
    one. When a function has several callers the smallest unvisited symbol
    is followed. The walk ends at a root, at a cycle, or after
    ``max_reflect_depth`` frames.
    """

    def __init__(self, index: CallGraphIndex, config: Config) -> None:
        self.index = index
        self.reflection_packages = frozenset(config.reflection_packages)
        self.max_depth = max(1, config.max_reflect_depth)

    def trace(self, cursor: Cursor) -> ReflectCall:
        callee = cursor.node.callee
        entry = ""
        if callee is not None:
            entry = callee.symbol or f"{callee.package}.{callee.name}"
        symbols = [entry]
        visited = {entry}

        current = self._enclosing_symbol(cursor)
        while current is not None and current not in visited and len(symbols) < self.max_depth:
            symbols.append(current)
            visited.add(current)
            current = next((c for c in self.index.callers(current) if c not in visited), None)

        frames = build_frames(symbols, self.index)
        fn = next((f for f in frames if f.package not in self.reflection_packages), None)
        caller = None
        if fn is not None:
            caller = next((f for f in frames[fn.index + 1 :] if f.package != fn.package), None)
        return ReflectCall(frames=frames, fn=fn, caller=caller)

    @staticmethod
    def _enclosing_symbol(cursor: Cursor) -> str | None:
        for ancestor in cursor.ancestors():
            if ancestor.kind in FUNC_KINDS and ancestor.node.symbol:
                return ancestor.node.symbol
        return None
