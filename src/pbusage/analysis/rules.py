"""Classification rules, in priority order.

Each rule inspects one node (and its parents through the cursor) and
returns the generated type involved plus the ``Use`` record, or None.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pbusage.analysis.errors import UnclassifiableError
from pbusage.analysis.flow import FlowContext, core_type, value_flow
from pbusage.analysis.resolver import same_type, type_string
from pbusage.analysis.types import Rule
from pbusage.program.models import TypeKind
from pbusage.stats.models import (
    Constructor,
    ConstructorType,
    Conversion,
    ConversionContext,
    Embedding,
    FieldAccess,
    MethodCall,
    MethodCallType,
    ShallowCopy,
    ShallowCopyType,
    TypeAssertion,
    TypeDefinition,
    Use,
    UseType,
)

if TYPE_CHECKING:
    from pbusage.analysis.cursor import Cursor
    from pbusage.analysis.types import AnalysisContext
    from pbusage.program.models import Node, TypeRef
    from pbusage.stats.models import Type

Match = tuple["Type", Use] | None

_SWITCH_KINDS = frozenset({"TypeSwitchStmt", "SwitchStmt"})

_CONVERSION_CONTEXTS: dict[FlowContext, ConversionContext] = {
    FlowContext.CALL_ARGUMENT: ConversionContext.CALL_ARGUMENT,
    FlowContext.RETURN_VALUE: ConversionContext.RETURN_VALUE,
    FlowContext.FUNC_RET: ConversionContext.FUNC_RET,
    FlowContext.ASSIGNMENT: ConversionContext.ASSIGNMENT,
    FlowContext.EXPLICIT: ConversionContext.EXPLICIT,
    FlowContext.COMPOSITE_LITERAL_ELEMENT: ConversionContext.COMPOSITE_LITERAL_ELEMENT,
    FlowContext.CHAN_SEND: ConversionContext.CHAN_SEND,
}

# No EXPLICIT: T(x) of a message value is a conversion, never a copy.
_COPY_CONTEXTS: dict[FlowContext, ShallowCopyType] = {
    FlowContext.ASSIGNMENT: ShallowCopyType.ASSIGN,
    FlowContext.CALL_ARGUMENT: ShallowCopyType.CALL_ARGUMENT,
    FlowContext.RETURN_VALUE: ShallowCopyType.FUNC_RET,
    FlowContext.FUNC_RET: ShallowCopyType.FUNC_RET,
    FlowContext.COMPOSITE_LITERAL_ELEMENT: ShallowCopyType.COMPOSITE_LITERAL_ELEMENT,
    FlowContext.CHAN_SEND: ShallowCopyType.CHAN_SEND,
}


def _type_switch_operand(switch: Node) -> Node | None:
    """The ``x`` in ``switch v := x.(type)``."""
    guard = switch.child("Assign")
    if guard is not None and guard.kind == "AssignStmt":
        guard = guard.child("Rhs")
    elif guard is not None and guard.kind == "ExprStmt":
        guard = guard.child("X")
    if guard is None or guard.kind != "TypeAssertExpr":
        return None
    return guard.child("X")


def type_assertion(cursor: Cursor, ctx: AnalysisContext) -> Match:
    """``x.(*pb.M)`` and ``case *pb.M:`` in a type switch."""
    node = cursor.node
    resolver = ctx.resolver
    if node.kind == "TypeAssertExpr":
        target = node.child("Type")
        message = resolver.message(target.type) if target is not None else None
        operand = node.child("X")
    elif cursor.role == "List" and cursor.parent_kind == "CaseClause":
        switch = cursor.parent.enclosing(_SWITCH_KINDS) if cursor.parent else None
        if switch is None or switch.kind != "TypeSwitchStmt":
            return None
        message = resolver.message(node.type)
        operand = _type_switch_operand(switch.node)
    else:
        return None

    if message is None:
        return None
    src = resolver.describe(operand.type, strip_pointer=False) if operand is not None else None
    return resolver.describe(message), Use(
        type=UseType.TYPE_ASSERTION, type_assertion=TypeAssertion(src_type=src)
    )


def type_definition(cursor: Cursor, ctx: AnalysisContext) -> Match:
    """``type T pb.M`` and ``type T = *pb.M``."""
    node = cursor.node
    if node.kind != "TypeSpec":
        return None
    underlying = node.child("Type")
    message = ctx.resolver.message(underlying.type) if underlying is not None else None
    if message is None:
        return None
    declared = node.type
    if declared is None and (name := node.child("Name")) is not None:
        declared = name.type
    new_type = ctx.resolver.describe(declared, strip_pointer=False) if declared else None
    return ctx.resolver.describe(message), Use(
        type=UseType.TYPE_DEFINITION, type_definition=TypeDefinition(new_type=new_type)
    )


def embedding(cursor: Cursor, ctx: AnalysisContext) -> Match:
    """An anonymous ``pb.M`` or ``*pb.M`` member of a struct type."""
    node = cursor.node
    if node.kind != "Field" or cursor.parent_kind != "StructType" or node.nodes("Names"):
        return None
    field_type = node.child("Type")
    message = ctx.resolver.message(field_type.type) if field_type is not None else None
    if message is None:
        return None
    # Named fields declared together ("a, b int") count once per name.
    siblings = cursor.parent.node.nodes("Fields")[: cursor.index] if cursor.parent else ()
    field_index = sum(max(1, len(f.nodes("Names"))) for f in siblings)
    return ctx.resolver.describe(message), Use(
        type=UseType.EMBEDDING, embedding=Embedding(field_index=field_index)
    )


def _builder_of(call: Node, message: TypeRef, ctx: AnalysisContext) -> bool:
    """``pb.M_builder{...}.Build()`` returning ``*pb.M``."""
    fun = call.child("Fun")
    if fun is None or fun.kind != "SelectorExpr" or fun.selection is None:
        return False
    if fun.selection.kind != "method" or fun.selection.name != ctx.config.builder_method:
        return False
    receiver = fun.child("X")
    recv_type = receiver.type if receiver is not None else None
    if recv_type is not None and recv_type.kind == TypeKind.POINTER:
        recv_type = recv_type.elem
    return (
        recv_type is not None
        and recv_type.kind == TypeKind.NAMED
        and recv_type.package == message.package
        and recv_type.name == message.name + ctx.config.builder_suffix
    )


def constructor(cursor: Cursor, ctx: AnalysisContext) -> Match:
    """Composite literals, ``new(pb.M)`` and builder ``Build()`` calls."""
    node = cursor.node
    resolver = ctx.resolver
    if node.kind == "CompositeLit" and not node.is_type:
        message = resolver.message(node.type)
        kind = (
            ConstructorType.NONEMPTY_LITERAL
            if node.nodes("Elts")
            else ConstructorType.EMPTY_LITERAL
        )
    elif node.kind == "CallExpr":
        message = resolver.message(node.type)
        if message is None:
            return None
        callee = node.callee
        if callee is not None and callee.builtin and callee.name == "new":
            kind = ConstructorType.EMPTY_LITERAL
        elif _builder_of(node, message, ctx):
            kind = ConstructorType.BUILDER
        else:
            return None
    else:
        return None

    if message is None:
        return None
    return resolver.describe(message), Use(
        type=UseType.CONSTRUCTOR, constructor=Constructor(type=kind)
    )


def _returns_oneof(signature: TypeRef | None, message: TypeRef) -> bool:
    """Result is the message's oneof wrapper interface (``isM_Kind``)."""
    signature = core_type(signature)
    if signature is None or signature.kind != TypeKind.FUNC or len(signature.results) != 1:
        return False
    result = signature.results[0]
    return result.kind == TypeKind.NAMED and result.name.startswith(f"is{message.name}_")


def _selected_message(node: Node, ctx: AnalysisContext) -> TypeRef | None:
    selection = node.selection
    if selection is not None and (message := ctx.resolver.message(selection.recv)):
        return message
    operand = node.child("X")
    return ctx.resolver.message(operand.type) if operand is not None else None


def method_call(cursor: Cursor, ctx: AnalysisContext) -> Match:
    """``m.GetFoo()`` and other methods of a generated type."""
    node = cursor.node
    selection = node.selection
    if node.kind != "SelectorExpr" or selection is None or selection.kind != "method":
        return None
    message = _selected_message(node, ctx)
    if message is None:
        return None

    if selection.name in ctx.config.build_accessors:
        kind = MethodCallType.GET_BUILD
    elif selection.name.startswith("Get") and _returns_oneof(selection.type, message):
        kind = MethodCallType.GET_ONEOF
    else:
        kind = MethodCallType.INVALID
    return ctx.resolver.describe(message), Use(
        type=UseType.METHOD_CALL, method_call=MethodCall(method=selection.name, type=kind)
    )


def is_internal_field(name: str) -> bool:
    return not name[:1].isupper() or name.startswith("XXX_")


def field_access(cursor: Cursor, ctx: AnalysisContext) -> Match:
    """``m.Name`` reads and writes; unexported and XXX_ fields are internal."""
    node = cursor.node
    if node.kind != "SelectorExpr":
        return None
    selection = node.selection
    if selection is None:
        operand = node.child("X")
        if operand is not None and ctx.resolver.message(operand.type) is not None:
            sel = node.child("Sel")
            name = sel.name if sel is not None else "?"
            msg = f"selector .{name} on {type_string(operand.type)} has no resolved selection"
            raise UnclassifiableError(msg)
        return None
    if selection.kind != "field":
        return None
    message = _selected_message(node, ctx)
    if message is None:
        return None

    payload = FieldAccess(
        field_name=selection.name,
        field_type=ctx.resolver.describe(selection.type, strip_pointer=False)
        if selection.type is not None
        else None,
    )
    if is_internal_field(selection.name):
        use = Use(type=UseType.INTERNAL_FIELD_ACCESS, internal_field_access=payload)
    else:
        use = Use(type=UseType.DIRECT_FIELD_ACCESS, direct_field_access=payload)
    return ctx.resolver.describe(message), use


def _explicit_from(cursor: Cursor, ctx: AnalysisContext) -> Match:
    """``(*pb.M)(p)`` where ``p`` is not itself a generated type."""
    node = cursor.node
    callee = node.callee
    if node.kind != "CallExpr" or callee is None or not callee.conversion:
        return None
    message = ctx.resolver.message(node.type)
    operand = node.child("Args")
    if message is None or operand is None or ctx.resolver.message(operand.type) is not None:
        return None
    return ctx.resolver.describe(message), Use(
        type=UseType.CONVERSION,
        conversion=Conversion(
            dest_type_name=type_string(node.type), context=ConversionContext.EXPLICIT
        ),
    )


def conversion(cursor: Cursor, ctx: AnalysisContext) -> Match:
    """A generated-type value flowing into a slot of a different type."""
    node = cursor.node
    if node.is_type:
        return None
    if (explicit := _explicit_from(cursor, ctx)) is not None:
        return explicit
    message = ctx.resolver.message(node.type)
    if message is None:
        return None
    flow = value_flow(cursor)
    if flow is None or flow.dest is None or same_type(flow.dest, node.type):
        return None

    context = _CONVERSION_CONTEXTS[flow.context]
    return ctx.resolver.describe(message), Use(
        type=UseType.CONVERSION,
        conversion=Conversion(
            dest_type_name=type_string(flow.dest),
            context=context,
            func_arg=flow.func_arg if context == ConversionContext.CALL_ARGUMENT else None,
        ),
    )


def shallow_copy(cursor: Cursor, ctx: AnalysisContext) -> Match:
    """A message value (not a pointer) copied into another location."""
    node = cursor.node
    if node.is_type or node.kind == "CompositeLit":
        return None
    if not ctx.resolver.is_message_value(node.type):
        return None
    flow = value_flow(cursor)
    if flow is None or flow.context not in _COPY_CONTEXTS:
        return None
    if flow.dest is not None and not same_type(flow.dest, node.type):
        return None

    kind = _COPY_CONTEXTS[flow.context]
    return ctx.resolver.describe(node.type), Use(
        type=UseType.SHALLOW_COPY,
        shallow_copy=ShallowCopy(type=kind),
        func_arg=flow.func_arg if kind == ShallowCopyType.CALL_ARGUMENT else None,
    )


def _reached_message(node: Node | None, ctx: AnalysisContext) -> TypeRef | None:
    """Generated type an expression reaches through a reflection call chain."""
    while node is not None:
        if (message := ctx.resolver.message(node.type)) is not None:
            return message
        if node.kind in ("ParenExpr", "StarExpr", "UnaryExpr", "SelectorExpr"):
            node = node.child("X")
            continue
        callee = node.callee
        if node.kind != "CallExpr" or callee is None:
            return None
        if callee.package not in ctx.config.reflection_packages:
            return None
        for arg in node.nodes("Args"):
            if (message := _reached_message(arg, ctx)) is not None:
                return message
        node = node.child("Fun")
    return None


def reflect_call(cursor: Cursor, ctx: AnalysisContext) -> Match:
    """Calls into the reflection API on (values derived from) a generated type."""
    node = cursor.node
    callee = node.callee
    if node.kind != "CallExpr" or callee is None:
        return None
    if callee.package not in ctx.config.reflection_packages:
        return None
    message = _reached_message(node, ctx)
    if message is None:
        return None
    return ctx.resolver.describe(message), Use(
        type=UseType.REFLECT_CALL, reflect_call=ctx.tracer.trace(cursor)
    )


def build_dependency(cursor: Cursor, ctx: AnalysisContext) -> Match:
    """An import of a package that declares generated types."""
    node = cursor.node
    if node.kind != "ImportSpec":
        return None
    package = ctx.resolver.package_type(node.name)
    if package is None:
        return None
    return package, Use(type=UseType.BUILD_DEPENDENCY)


RULES: tuple[Rule, ...] = (
    Rule("type_assertion", (UseType.TYPE_ASSERTION,), type_assertion),
    Rule("type_definition", (UseType.TYPE_DEFINITION,), type_definition),
    Rule("embedding", (UseType.EMBEDDING,), embedding),
    Rule("constructor", (UseType.CONSTRUCTOR,), constructor),
    Rule("method_call", (UseType.METHOD_CALL,), method_call),
    Rule(
        "field_access",
        (UseType.DIRECT_FIELD_ACCESS, UseType.INTERNAL_FIELD_ACCESS),
        field_access,
    ),
    Rule("conversion", (UseType.CONVERSION,), conversion),
    Rule("shallow_copy", (UseType.SHALLOW_COPY,), shallow_copy),
    Rule("reflect_call", (UseType.REFLECT_CALL,), reflect_call),
    Rule("build_dependency", (UseType.BUILD_DEPENDENCY,), build_dependency),
)
