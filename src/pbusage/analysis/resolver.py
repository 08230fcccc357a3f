"""TypeResolver -- recognize generated message types and name them."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pbusage.program.models import TypeKind, TypeRef
from pbusage.stats.models import Type

if TYPE_CHECKING:
    from collections.abc import Mapping

    from pbusage.config import Config
    from pbusage.program.loader import Snapshot
    from pbusage.program.models import Node


def type_string(t: TypeRef | None, *, qualified: bool = False) -> str:
    """Render a type the way go/types prints it.

    Named types use the package identifier ("pb.M") or, when qualified,
    the full import path ("example.com/x/pb.M").
    """
    if t is None:
        return ""
    match t.kind:
        case TypeKind.BASIC | TypeKind.TYPE_PARAM:
            return t.name
        case TypeKind.NAMED:
            prefix = t.package if qualified else t.package_name
            return f"{prefix}.{t.name}" if prefix else t.name
        case TypeKind.POINTER:
            return "*" + type_string(t.elem, qualified=qualified)
        case TypeKind.UNSAFE_POINTER:
            return "unsafe.Pointer"
        case TypeKind.INTERFACE:
            if not t.methods:
                return "interface{}"
            return "interface{" + "; ".join(f"{m}()" for m in t.methods) + "}"
        case TypeKind.SLICE:
            return "[]" + type_string(t.elem, qualified=qualified)
        case TypeKind.ARRAY:
            return f"[{t.length}]" + type_string(t.elem, qualified=qualified)
        case TypeKind.MAP:
            key = type_string(t.key, qualified=qualified)
            return f"map[{key}]" + type_string(t.elem, qualified=qualified)
        case TypeKind.CHAN:
            return "chan " + type_string(t.elem, qualified=qualified)
        case TypeKind.STRUCT:
            fields = "; ".join(
                f"{f.name} {type_string(f.type, qualified=qualified)}" for f in t.fields
            )
            return "struct{" + fields + "}"
        case TypeKind.FUNC:
            params = [type_string(p, qualified=qualified) for p in t.params]
            if t.variadic and params:
                params[-1] = "..." + params[-1].removeprefix("[]")
            sig = "func(" + ", ".join(params) + ")"
            results = [type_string(r, qualified=qualified) for r in t.results]
            if len(results) == 1:
                sig += " " + results[0]
            elif results:
                sig += " (" + ", ".join(results) + ")"
            return sig
        case TypeKind.TUPLE:
            return "(" + ", ".join(type_string(p, qualified=qualified) for p in t.params) + ")"
    return t.name


def same_type(a: TypeRef | None, b: TypeRef | None) -> bool:
    """Type identity, compared on the fully qualified rendering."""
    if a is None or b is None:
        return False
    return type_string(a, qualified=True) == type_string(b, qualified=True)


class TypeResolver:
    """Decide whether a static type is a generated message type.

    Scoped to a single snapshot; holds no mutable state so it can be shared
    by all classification workers of that snapshot.
    """

    def __init__(self, config: Config, generated_packages: Mapping[str, str] | None = None) -> None:
        self.config = config
        self.generated_packages: dict[str, str] = dict(generated_packages or {})

    @classmethod
    def for_snapshot(cls, snapshot: Snapshot, config: Config) -> TypeResolver:
        generated = {
            pkg.path: pkg.name or pkg.path.rsplit("/", 1)[-1]
            for pkg in snapshot.packages
            if pkg.message_types
        }
        return cls(config, generated)

    def resolve(self, node: Node) -> Type | None:
        """Name the generated type behind a node's static type, or None."""
        message = self.message(node.type)
        return self.describe(message) if message is not None else None

    def message(self, t: TypeRef | None) -> TypeRef | None:
        """Return the named message type behind ``t``.

        Looks through one pointer level and through a type parameter's
        constraint. Returns None when ``t`` is not a generated type.
        """
        if t is None:
            return None
        if t.kind == TypeKind.TYPE_PARAM:
            return self.message(t.constraint)
        if t.kind == TypeKind.POINTER:
            t = t.elem
            if t is None:
                return None
        if t.kind == TypeKind.NAMED and self.is_message(t):
            return t
        return None

    def is_message(self, named: TypeRef) -> bool:
        if self.config.message_marker_method in named.methods:
            return True
        underlying = named.underlying
        if underlying is None or underlying.kind != TypeKind.STRUCT:
            return False
        marker_type = self.config.message_marker_field_type
        marker_short = marker_type.rsplit("/", 1)[-1]
        return any(
            f.name == self.config.message_marker_field
            and type_string(f.type, qualified=True) in (marker_type, marker_short)
            for f in underlying.fields
        )

    def is_message_value(self, t: TypeRef | None) -> bool:
        """True for a message held by value (not through a pointer)."""
        return t is not None and t.kind == TypeKind.NAMED and self.is_message(t)

    def describe(self, t: TypeRef | None, *, strip_pointer: bool = True) -> Type:
        """Short and fully qualified names of any type.

        Pointers to generated types are stripped unless ``strip_pointer`` is
        False, so records name the message rather than the pointer.
        """
        if strip_pointer and t is not None and self.message(t) is not None:
            while t.kind == TypeKind.POINTER and t.elem is not None:
                t = t.elem
        return Type(short_name=type_string(t), long_name=type_string(t, qualified=True))

    def package_type(self, path: str) -> Type | None:
        """Name a generated package for build dependency records."""
        name = self.generated_packages.get(path)
        if name is None:
            return None
        return Type(short_name=name, long_name=path)
