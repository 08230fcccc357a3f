"""Tests for CallGraphIndex and call edge extraction."""

from builders import APP, call, file_unit, func, func_decl, ident, n, package_unit, snapshot

from pbusage.analysis.call_graph import CallGraphIndex, extract_edges, is_exported, package_of
from pbusage.program.models import CallGraphDump, Callee, FunctionInfo

Q = "example.com/q"


def _call(symbol: str, at=(2, 2)):
    name = symbol.rsplit(".", 1)[-1]
    return n("ExprStmt", at=at, X=call(ident(name), callee=Callee(symbol=symbol, name=name), at=at))


class TestSymbols:
    def test_package_of(self):
        assert package_of("example.com/p.F") == "example.com/p"
        assert package_of("example.com/p.(*T).M") == "example.com/p"
        assert package_of("reflect.Value.Field") == "reflect"
        assert package_of("main") == "main"

    def test_is_exported(self):
        assert is_exported("example.com/p.(*T).Do")
        assert not is_exported("example.com/p.(*T).do")
        assert not is_exported("example.com/p.helper")


class TestExtractEdges:
    def test_functions_and_calls(self):
        unit = file_unit(
            func_decl(f"{APP}.F", _call(f"{APP}.G"), at=(1, 1)),
            func_decl(f"{APP}.G", at=(5, 1)),
        )
        functions, edges = extract_edges(unit)

        assert set(functions) == {f"{APP}.F", f"{APP}.G"}
        assert functions[f"{APP}.G"] == FunctionInfo(
            package=APP, file="app/main.go", line=5, exported=True
        )
        assert edges == [(f"{APP}.F", f"{APP}.G")]

    def test_anonymous_function_calls_belong_to_enclosing(self):
        lit = n("FuncLit", type=func(), Body=n("BlockStmt", List=[_call(f"{Q}.H")]))
        unit = file_unit(func_decl(f"{APP}.F", n("ExprStmt", X=call(lit))))
        _, edges = extract_edges(unit)
        assert edges == [(f"{APP}.F", f"{Q}.H")]

    def test_unresolved_callee_ignored(self):
        unit = file_unit(func_decl(f"{APP}.F", n("ExprStmt", X=call(ident("f")))))
        assert extract_edges(unit)[1] == []

    def test_file_without_tree(self):
        unit = file_unit()
        unit = unit.model_copy(update={"root": None})
        assert extract_edges(unit) == ({}, [])


class TestCallGraphIndex:
    def test_callers_are_sorted(self):
        dump = CallGraphDump(
            edges=((f"{Q}.Z", f"{APP}.F"), (f"{Q}.A", f"{APP}.F"), (f"{APP}.F", f"{Q}.A"))
        )
        index = CallGraphIndex.from_dump(dump)
        assert index.callers(f"{APP}.F") == [f"{Q}.A", f"{Q}.Z"]
        assert index.callers("unknown.F") == []
        assert len(index) == 3

    def test_function_metadata_falls_back_to_symbol(self):
        index = CallGraphIndex()
        info = index.function(f"{Q}.helper")
        assert info.package == Q
        assert info.exported is False

    def test_missing_package_filled_from_symbol(self):
        dump = CallGraphDump(functions={f"{Q}.G": FunctionInfo(file="q.go", line=3)})
        info = CallGraphIndex.from_dump(dump).function(f"{Q}.G")
        assert info.package == Q
        assert info.file == "q.go"

    def test_snapshot_merges_dump_and_syntax(self):
        dump = CallGraphDump(
            functions={f"{APP}.F": FunctionInfo(package=APP)},
            edges=((f"{Q}.G", f"{APP}.F"),),
        )
        pkg = package_unit(APP, file_unit(func_decl(f"{APP}.F", _call(f"{APP}.helper"))))
        index = CallGraphIndex.for_snapshot(snapshot(pkg, call_graph=dump))

        assert index.callers(f"{APP}.F") == [f"{Q}.G"]
        assert index.callers(f"{APP}.helper") == [f"{APP}.F"]
        # Syntax positions replace dump entries without a file.
        assert index.function(f"{APP}.F").file == "app/main.go"
        assert f"{Q}.G" in index
