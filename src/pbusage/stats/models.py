"""Pydantic models and enums for usage entries.

Field tags and enum values are the wire contract shared with the offline
aggregation jobs; never renumber them.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, assert_never

from pydantic import BaseModel, ConfigDict, Field, model_validator


def tag(number: int, default: Any = None) -> Any:
    """Declare a field with its stable wire tag."""
    return Field(default=default, json_schema_extra={"tag": number})


class RewriteLevel(IntEnum):
    UNSPECIFIED = 0
    NONE = 1
    GREEN = 2
    YELLOW = 3
    RED = 4


class StatusType(IntEnum):
    UNSPECIFIED = 0
    OK = 1
    SKIP = 2
    FAIL = 3


class UseType(IntEnum):
    UNSPECIFIED = 0
    DIRECT_FIELD_ACCESS = 1
    METHOD_CALL = 2
    CONSTRUCTOR = 3
    CONVERSION = 4
    TYPE_ASSERTION = 5
    TYPE_DEFINITION = 6
    EMBEDDING = 7
    INTERNAL_FIELD_ACCESS = 8
    REFLECT_CALL = 9
    SHALLOW_COPY = 10
    BUILD_DEPENDENCY = 11


class MethodCallType(IntEnum):
    INVALID = 0
    GET_ONEOF = 1
    GET_BUILD = 2


class ConstructorType(IntEnum):
    UNSPECIFIED = 0
    EMPTY_LITERAL = 1
    NONEMPTY_LITERAL = 2
    BUILDER = 3


class ConversionContext(IntEnum):
    UNSPECIFIED = 0
    CALL_ARGUMENT = 1
    RETURN_VALUE = 2
    ASSIGNMENT = 3
    EXPLICIT = 4
    COMPOSITE_LITERAL_ELEMENT = 5
    CHAN_SEND = 6
    FUNC_RET = 7


class ShallowCopyType(IntEnum):
    UNSPECIFIED = 0
    ASSIGN = 1
    CALL_ARGUMENT = 2
    FUNC_RET = 3
    COMPOSITE_LITERAL_ELEMENT = 4
    CHAN_SEND = 5


class Record(BaseModel):
    """Base for all entry parts: immutable once built."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class Position(Record):
    line: int = Field(default=0, ge=0, json_schema_extra={"tag": 1})
    column: int = Field(default=0, ge=0, json_schema_extra={"tag": 2})


class Location(Record):
    package: str = Field(min_length=1, json_schema_extra={"tag": 1})
    file: str = tag(2, "")
    is_generated_file: bool = tag(3, False)
    start: Position | None = tag(4)
    end: Position | None = tag(5)


class Status(Record):
    type: StatusType = tag(1, StatusType.UNSPECIFIED)
    error: str = tag(2, "")

    @model_validator(mode="after")
    def _error_matches_type(self) -> Status:
        failed = self.type in (StatusType.SKIP, StatusType.FAIL)
        if failed != bool(self.error):
            msg = f"status {self.type.name} requires error to be {'set' if failed else 'empty'}"
            raise ValueError(msg)
        return self

    @property
    def is_ok(self) -> bool:
        return self.type in (StatusType.UNSPECIFIED, StatusType.OK)


class Type(Record):
    short_name: str = tag(1, "")
    long_name: str = tag(2, "")


class Expression(Record):
    type: str = tag(1, "")
    parent_type: str = tag(2, "")


class Frame(Record):
    function: str = tag(1, "")
    is_exported: bool = tag(6, False)
    package: str = tag(2, "")
    file: str = tag(3, "")
    line: str = tag(4, "")
    index: int = tag(5, 0)
    pkg_index: int = tag(7, 0)


class ReflectCall(Record):
    frames: tuple[Frame, ...] = Field(min_length=1, json_schema_extra={"tag": 1})
    fn: Frame | None = tag(2)
    caller: Frame | None = tag(3)

    @model_validator(mode="after")
    def _dense_indices(self) -> ReflectCall:
        previous: Frame | None = None
        for i, frame in enumerate(self.frames):
            if frame.index != i:
                msg = f"frame {i} has index {frame.index}"
                raise ValueError(msg)
            expected = 0
            if previous is not None and previous.package == frame.package:
                expected = previous.pkg_index + 1
            if frame.pkg_index != expected:
                msg = f"frame {i} has pkg_index {frame.pkg_index}, want {expected}"
                raise ValueError(msg)
            previous = frame
        return self


class FieldAccess(Record):
    field_name: str = tag(1, "")
    field_type: Type | None = tag(2)


class MethodCall(Record):
    method: str = tag(1, "")
    type: MethodCallType = tag(2, MethodCallType.INVALID)


class Constructor(Record):
    type: ConstructorType = tag(1, ConstructorType.UNSPECIFIED)


class FuncArg(Record):
    function_name: str = tag(1, "")
    package_path: str = tag(2, "")
    signature: str = tag(3, "")


class Conversion(Record):
    dest_type_name: str = tag(1, "")
    func_arg: FuncArg | None = tag(3)
    context: ConversionContext = tag(2, ConversionContext.UNSPECIFIED)

    @model_validator(mode="after")
    def _func_arg_only_for_calls(self) -> Conversion:
        if (self.func_arg is not None) != (self.context == ConversionContext.CALL_ARGUMENT):
            msg = "func_arg is set iff context is CALL_ARGUMENT"
            raise ValueError(msg)
        return self


class TypeAssertion(Record):
    src_type: Type | None = tag(1)


class TypeDefinition(Record):
    new_type: Type | None = tag(1)


class Embedding(Record):
    field_index: int = Field(default=0, ge=0, json_schema_extra={"tag": 1})


class ShallowCopy(Record):
    type: ShallowCopyType = tag(1, ShallowCopyType.UNSPECIFIED)


class Source(Record):
    file: str = tag(1, "")


# Use.type -> name of the payload field it selects (None: payload-less).
USE_PAYLOAD_FIELDS: dict[UseType, str | None] = {
    UseType.UNSPECIFIED: None,
    UseType.DIRECT_FIELD_ACCESS: "direct_field_access",
    UseType.METHOD_CALL: "method_call",
    UseType.CONSTRUCTOR: "constructor",
    UseType.CONVERSION: "conversion",
    UseType.TYPE_ASSERTION: "type_assertion",
    UseType.TYPE_DEFINITION: "type_definition",
    UseType.EMBEDDING: "embedding",
    UseType.INTERNAL_FIELD_ACCESS: "internal_field_access",
    UseType.REFLECT_CALL: "reflect_call",
    UseType.SHALLOW_COPY: "shallow_copy",
    UseType.BUILD_DEPENDENCY: None,
}

_FUNC_ARG_USES = frozenset({UseType.CONVERSION, UseType.SHALLOW_COPY})


class Use(Record):
    """Tagged union: ``type`` selects exactly one payload field."""

    type: UseType = tag(1, UseType.UNSPECIFIED)
    direct_field_access: FieldAccess | None = tag(2)
    method_call: MethodCall | None = tag(3)
    constructor: Constructor | None = tag(4)
    conversion: Conversion | None = tag(5)
    func_arg: FuncArg | None = tag(6)
    type_assertion: TypeAssertion | None = tag(7)
    type_definition: TypeDefinition | None = tag(8)
    embedding: Embedding | None = tag(9)
    internal_field_access: FieldAccess | None = tag(10)
    reflect_call: ReflectCall | None = tag(11)
    shallow_copy: ShallowCopy | None = tag(12)

    @model_validator(mode="after")
    def _one_payload(self) -> Use:
        expected = USE_PAYLOAD_FIELDS[self.type]
        populated = [
            name for name in USE_PAYLOAD_FIELDS.values() if name and getattr(self, name) is not None
        ]
        if populated != ([expected] if expected else []):
            msg = f"use {self.type.name} carries payloads {populated}"
            raise ValueError(msg)
        if self.func_arg is not None and self.type not in _FUNC_ARG_USES:
            msg = f"use {self.type.name} cannot carry func_arg"
            raise ValueError(msg)
        return self

    def payload(self) -> Record | None:
        """Return the payload selected by ``type``."""
        match self.type:
            case UseType.DIRECT_FIELD_ACCESS:
                return self.direct_field_access
            case UseType.INTERNAL_FIELD_ACCESS:
                return self.internal_field_access
            case UseType.METHOD_CALL:
                return self.method_call
            case UseType.CONSTRUCTOR:
                return self.constructor
            case UseType.CONVERSION:
                return self.conversion
            case UseType.TYPE_ASSERTION:
                return self.type_assertion
            case UseType.TYPE_DEFINITION:
                return self.type_definition
            case UseType.EMBEDDING:
                return self.embedding
            case UseType.REFLECT_CALL:
                return self.reflect_call
            case UseType.SHALLOW_COPY:
                return self.shallow_copy
            case UseType.BUILD_DEPENDENCY | UseType.UNSPECIFIED:
                return None
            case _:
                assert_never(self.type)


class Entry(Record):
    """A single observed use of a generated type (or a failure to observe one)."""

    status: Status | None = tag(1)
    location: Location = Field(json_schema_extra={"tag": 2})
    level: RewriteLevel = tag(3, RewriteLevel.UNSPECIFIED)
    type: Type | None = tag(4)
    expr: Expression | None = tag(5)
    use: Use | None = tag(6)
    source: Source | None = tag(7)

    @model_validator(mode="after")
    def _complete_on_success(self) -> Entry:
        parts = ("type", "expr", "use")
        if self.ok:
            missing = [name for name in parts if getattr(self, name) is None]
            if missing or self.location.start is None:
                msg = f"successful entry is missing {missing or ['location.start']}"
                raise ValueError(msg)
        elif any(getattr(self, name) is not None for name in parts):
            msg = f"{self.status.type.name} entry cannot carry a classification"
            raise ValueError(msg)
        return self

    @property
    def ok(self) -> bool:
        return self.status is None or self.status.is_ok
