"""Tests for ReflectTracer: frames, termination and frame numbering."""

from builders import (
    ANY,
    M,
    basic,
    call,
    context,
    file_unit,
    find,
    func,
    func_decl,
    ident,
    n,
    named,
    package_unit,
    pb_package,
    ptr,
    select_method,
    struct,
)

from pbusage.analysis.call_graph import CallGraphIndex
from pbusage.analysis.classifier import UseClassifier
from pbusage.analysis.reflect import build_frames
from pbusage.config import Config
from pbusage.program.models import CallGraphDump, Callee, FunctionInfo
from pbusage.stats.models import ReflectCall, UseType

P = "example.com/p"
Q = "example.com/q"
VALUE = named("Value", "reflect", underlying=struct())
FIELD_SIG = func([basic("int")], [VALUE])
VALUE_OF_SIG = func([ANY], [VALUE])


def value_of_field(at=(5, 9)):
    """``reflect.ValueOf(m).Field(0)`` with ``m *pb.M``."""
    value_of = Callee(
        symbol="reflect.ValueOf", name="ValueOf", package="reflect", signature=VALUE_OF_SIG
    )
    inner = call(
        n("SelectorExpr", at=at, type=VALUE_OF_SIG, X=ident("reflect"), Sel=ident("ValueOf")),
        ident("m", ptr(M), at=(at[0], at[1] + 15)),
        callee=value_of,
        type=VALUE,
        at=at,
    )
    field = Callee(
        symbol="reflect.Value.Field", name="Field", package="reflect", signature=FIELD_SIG
    )
    return call(
        select_method(inner, "Field", VALUE, FIELD_SIG, at=at),
        n("BasicLit", at=(at[0], at[1] + 24), type=basic("int")),
        callee=field,
        type=VALUE,
        at=at,
    )


def reflect_package(symbol: str = f"{P}.F"):
    body = n("ExprStmt", at=(5, 9), X=value_of_field())
    return package_unit(P, file_unit(func_decl(symbol, body), path="p/p.go"))


def trace(edges=(), functions=None, config=None):
    pkg = reflect_package()
    dump = CallGraphDump(functions=functions or {}, edges=tuple(edges))
    ctx = context(pb_package(), pkg, call_graph=dump, config=config)
    result = UseClassifier(ctx).classify(find(pkg.files[0].root, "CallExpr"))
    assert result is not None
    assert result.use.type == UseType.REFLECT_CALL
    return result.use.reflect_call


class TestReflectTracer:
    def test_frames_from_reflection_to_caller(self):
        """reflect.ValueOf(m).Field(0) in P.F, called from Q.G."""
        call_graph = {f"{Q}.G": FunctionInfo(package=Q, file="q/q.go", line=10, exported=True)}
        reflect_call = trace(edges=[(f"{Q}.G", f"{P}.F")], functions=call_graph)

        frames = reflect_call.frames
        assert [f.function for f in frames] == ["reflect.Value.Field", f"{P}.F", f"{Q}.G"]
        assert frames[0].package == "reflect"
        assert reflect_call.fn.package == P
        assert reflect_call.fn.file == "p/p.go"
        assert reflect_call.caller.package == Q
        assert reflect_call.caller.line == "10"
        assert reflect_call.caller.is_exported

    def test_no_caller_at_root(self):
        reflect_call = trace()
        assert len(reflect_call.frames) == 2
        assert reflect_call.fn.function == f"{P}.F"
        assert reflect_call.caller is None

    def test_same_package_callers_are_skipped_for_caller(self):
        reflect_call = trace(edges=[(f"{P}.helper", f"{P}.F"), (f"{Q}.G", f"{P}.helper")])
        assert [f.pkg_index for f in reflect_call.frames] == [0, 0, 1, 0]
        assert reflect_call.caller.function == f"{Q}.G"

    def test_cycle_terminates(self):
        reflect_call = trace(edges=[(f"{Q}.G", f"{P}.F"), (f"{P}.F", f"{Q}.G")])
        assert [f.function for f in reflect_call.frames] == [
            "reflect.Value.Field",
            f"{P}.F",
            f"{Q}.G",
        ]

    def test_depth_bound(self):
        edges = [(f"{Q}.G{i + 1}", f"{Q}.G{i}") for i in range(10)] + [(f"{Q}.G0", f"{P}.F")]
        reflect_call = trace(edges=edges, config=Config(max_reflect_depth=4))
        assert len(reflect_call.frames) == 4
        assert reflect_call.frames[-1].function == f"{Q}.G1"

    def test_smallest_caller_followed(self):
        reflect_call = trace(edges=[(f"{Q}.Zeta", f"{P}.F"), (f"{Q}.Alpha", f"{P}.F")])
        assert reflect_call.frames[2].function == f"{Q}.Alpha"

    def test_trace_survives_serialization(self):
        reflect_call = trace(edges=[(f"{Q}.G", f"{P}.F")])
        assert ReflectCall.model_validate_json(reflect_call.model_dump_json()) == reflect_call


class TestBuildFrames:
    def test_numbering(self):
        index = CallGraphIndex()
        frames = build_frames(["reflect.ValueOf", f"{P}.f", f"{P}.G", f"{Q}.H"], index)
        assert [f.index for f in frames] == [0, 1, 2, 3]
        assert [f.pkg_index for f in frames] == [0, 0, 1, 0]
        assert [f.is_exported for f in frames] == [True, False, True, True]
        assert frames[1].line == ""
