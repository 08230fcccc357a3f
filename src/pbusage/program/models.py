"""Type-checked program representation produced by the Go front end.

One ``PackageUnit`` per JSON file in a snapshot's ``packages/`` directory.
Nodes mirror go/ast: ``kind`` is the go/ast node name without the
``*ast.`` prefix and ``children`` uses go/ast field names as roles.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class TypeKind(StrEnum):
    BASIC = "basic"
    NAMED = "named"
    POINTER = "pointer"
    INTERFACE = "interface"
    STRUCT = "struct"
    SLICE = "slice"
    ARRAY = "array"
    MAP = "map"
    CHAN = "chan"
    FUNC = "func"
    UNSAFE_POINTER = "unsafe_pointer"
    TYPE_PARAM = "type_param"
    TUPLE = "tuple"


class Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class FieldDecl(Frozen):
    """A struct field declaration."""

    name: str
    type: TypeRef
    embedded: bool = False


class TypeRef(Frozen):
    """A resolved static type (go/types.Type)."""

    kind: TypeKind
    name: str = ""  # basic name, named type name, type parameter name
    package: str = ""  # import path of the defining package
    package_name: str = ""  # package identifier: "pb" for "example.com/x/pb"
    elem: TypeRef | None = None  # pointer, slice, array, chan, map value
    key: TypeRef | None = None  # map key
    length: int = 0  # array length
    underlying: TypeRef | None = None  # named types
    fields: tuple[FieldDecl, ...] = ()  # struct
    methods: tuple[str, ...] = ()  # method set of named/interface types
    params: tuple[TypeRef, ...] = ()  # func; tuple members
    results: tuple[TypeRef, ...] = ()  # func
    variadic: bool = False
    constraint: TypeRef | None = None  # core type of a type parameter's constraint


class Pos(Frozen):
    line: int = Field(default=0, ge=0)
    column: int = Field(default=0, ge=0)


class Selection(Frozen):
    """Resolved target of a selector expression (go/types.Selection)."""

    kind: str  # field | method
    name: str
    recv: TypeRef | None = None  # type declaring the field or method
    type: TypeRef | None = None  # field type, or method signature


class Callee(Frozen):
    """Statically resolved target of a call expression."""

    symbol: str = ""  # "example.com/p.F", "reflect.Value.Field"
    name: str = ""
    package: str = ""
    signature: TypeRef | None = None
    builtin: bool = False
    conversion: bool = False  # T(x)


class Node(Frozen):
    kind: str
    pos: Pos = Pos()
    end: Pos = Pos()
    type: TypeRef | None = None
    is_type: bool = False
    name: str = ""  # identifier, declared name, or import path for ImportSpec
    token: str = ""  # operator or assignment token
    symbol: str = ""  # FuncDecl / FuncLit function identity
    selection: Selection | None = None
    callee: Callee | None = None
    children: dict[str, tuple[Node, ...]] = Field(default_factory=dict)

    def child(self, role: str, index: int = 0) -> Node | None:
        nodes = self.children.get(role, ())
        return nodes[index] if index < len(nodes) else None

    def nodes(self, role: str) -> tuple[Node, ...]:
        return self.children.get(role, ())


class FileUnit(Frozen):
    path: str
    generated: bool = False
    errors: tuple[str, ...] = ()
    root: Node | None = None


class PackageUnit(Frozen):
    path: str
    name: str = ""
    message_types: tuple[str, ...] = ()
    files: tuple[FileUnit, ...] = ()
    errors: tuple[str, ...] = ()


class FunctionInfo(Frozen):
    """Call-graph node metadata."""

    package: str = ""
    file: str = ""
    line: int = 0
    exported: bool | None = None


class CallGraphDump(Frozen):
    functions: dict[str, FunctionInfo] = Field(default_factory=dict)
    edges: tuple[tuple[str, str], ...] = ()  # (caller, callee)


FieldDecl.model_rebuild()
