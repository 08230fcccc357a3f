"""Value flow -- where does the value of an expression go?

Conversions and shallow copies are both decided by the syntactic slot an
expression sits in and the static type of that slot.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from pbusage.analysis.resolver import type_string
from pbusage.program.models import TypeKind, TypeRef
from pbusage.stats.models import FuncArg

if TYPE_CHECKING:
    from pbusage.analysis.cursor import Cursor
    from pbusage.program.models import Node


class FlowContext(StrEnum):
    CALL_ARGUMENT = "call_argument"
    RETURN_VALUE = "return_value"
    FUNC_RET = "func_ret"
    ASSIGNMENT = "assignment"
    EXPLICIT = "explicit"
    COMPOSITE_LITERAL_ELEMENT = "composite_literal_element"
    CHAN_SEND = "chan_send"


@dataclass(frozen=True, slots=True)
class ValueFlow:
    context: FlowContext
    dest: TypeRef | None  # None when the destination type is unknown
    func_arg: FuncArg | None = None  # CALL_ARGUMENT only


def core_type(t: TypeRef | None) -> TypeRef | None:
    """Underlying type of a named type; other types are returned as is."""
    while t is not None and t.kind == TypeKind.NAMED and t.underlying is not None:
        t = t.underlying
    return t


def param_type(signature: TypeRef, index: int) -> TypeRef | None:
    """Type of the parameter receiving argument ``index``."""
    params = signature.params
    if not params:
        return None
    if signature.variadic and index >= len(params) - 1:
        last = params[-1]
        return last.elem if last.kind == TypeKind.SLICE else last
    return params[index] if index < len(params) else None


def element_type(literal: TypeRef | None, index: int) -> TypeRef | None:
    """Type of the ``index``-th unkeyed element of a composite literal."""
    core = core_type(literal)
    if core is not None and core.kind == TypeKind.POINTER:
        core = core_type(core.elem)
    if core is None:
        return None
    if core.kind in (TypeKind.SLICE, TypeKind.ARRAY, TypeKind.MAP):
        return core.elem
    if core.kind == TypeKind.STRUCT and index < len(core.fields):
        return core.fields[index].type
    return None


def keyed_element_type(literal: TypeRef | None, key: Node | None) -> TypeRef | None:
    """Type of the value in a ``key: value`` element of a composite literal."""
    core = core_type(literal)
    if core is not None and core.kind == TypeKind.POINTER:
        core = core_type(core.elem)
    if core is None:
        return None
    if core.kind == TypeKind.STRUCT:
        name = key.name if key is not None else ""
        return next((f.type for f in core.fields if f.name == name), None)
    if core.kind in (TypeKind.SLICE, TypeKind.ARRAY, TypeKind.MAP):
        return core.elem
    return None


def _call_flow(cursor: Cursor, call: Node) -> ValueFlow | None:
    callee = call.callee
    if callee is not None and callee.builtin:
        return None
    if callee is not None and callee.conversion:
        return ValueFlow(FlowContext.EXPLICIT, call.type)

    signature = callee.signature if callee is not None else None
    if signature is None:
        fun = call.child("Fun")
        signature = fun.type if fun is not None else None
    signature = core_type(signature)
    if signature is not None and signature.kind != TypeKind.FUNC:
        signature = None

    func_arg = FuncArg(
        function_name=callee.name if callee is not None else "",
        package_path=callee.package if callee is not None else "",
        signature=type_string(signature),
    )
    dest = param_type(signature, cursor.index) if signature is not None else None
    return ValueFlow(FlowContext.CALL_ARGUMENT, dest, func_arg)


def _return_flow(cursor: Cursor, ret: Cursor) -> ValueFlow:
    context = FlowContext.FUNC_RET if cursor.kind == "CallExpr" else FlowContext.RETURN_VALUE
    fn = ret.enclosing_function()
    signature = core_type(fn.node.type) if fn is not None else None
    dest = None
    if signature is not None and len(signature.results) == len(ret.node.nodes("Results")):
        dest = signature.results[cursor.index]
    return ValueFlow(context, dest)


def value_flow(cursor: Cursor) -> ValueFlow | None:
    """Classify the slot the expression at ``cursor`` flows into.

    Returns None when the value does not leave the expression (selector
    operands, assignment targets, builtin arguments, ...).
    """
    parent = cursor.parent
    if parent is None:
        return None
    p = parent.node

    match (parent.kind, cursor.role):
        case ("CallExpr", "Args"):
            return _call_flow(cursor, p)
        case ("ReturnStmt", "Results"):
            return _return_flow(cursor, parent)
        case ("AssignStmt", "Rhs"):
            lhs = p.nodes("Lhs")
            if len(lhs) != len(p.nodes("Rhs")):
                return None
            dest = lhs[cursor.index].type
            if dest is None and p.token == ":=":
                dest = cursor.node.type
            return ValueFlow(FlowContext.ASSIGNMENT, dest)
        case ("ValueSpec", "Values"):
            declared = p.child("Type")
            name = p.child("Names", cursor.index)
            dest = declared.type if declared is not None else None
            if dest is None and name is not None:
                dest = name.type
            return ValueFlow(FlowContext.ASSIGNMENT, dest or cursor.node.type)
        case ("CompositeLit", "Elts"):
            return ValueFlow(
                FlowContext.COMPOSITE_LITERAL_ELEMENT, element_type(p.type, cursor.index)
            )
        case ("KeyValueExpr", "Value"):
            literal = parent.parent
            if literal is None or literal.kind != "CompositeLit":
                return None
            return ValueFlow(
                FlowContext.COMPOSITE_LITERAL_ELEMENT,
                keyed_element_type(literal.node.type, p.child("Key")),
            )
        case ("SendStmt", "Value"):
            chan = p.child("Chan")
            chan_type = core_type(chan.type) if chan is not None else None
            return ValueFlow(FlowContext.CHAN_SEND, chan_type.elem if chan_type else None)
    return None
