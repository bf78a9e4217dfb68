"""
Resolved type nodes.

A TypeNode is what a type descriptor becomes at one use site (a field, a
parameter, a return value, an array element). Nodes render themselves as
Ruby FFI type expressions.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from type_refs import class_name


class TypeResolutionError(Exception):
    """A type was used by value but no definition for it was ever seen."""

    def __init__(self, qual_name: str):
        self.qual_name = qual_name
        super().__init__(
            f"Tried to use type `{qual_name}' by value, but missing the definition for that type!"
        )


class TypeNode:
    def render(self) -> str:
        raise NotImplementedError


@dataclass
class Builtin(TypeNode):
    keyword: str

    def render(self) -> str:
        return f":{self.keyword}"


@dataclass
class SymbolicReference(TypeNode):
    name: str
    kind: str = "symbol"  # "record", "enum" or "symbol"

    def render(self) -> str:
        if self.kind == "record":
            return f"{class_name(self.name)}.by_value"
        return f":{self.name}"


@dataclass
class OpaquePointer(TypeNode):
    def render(self) -> str:
        return ":pointer"


@dataclass
class KnownPointer(TypeNode):
    name: str

    def render(self) -> str:
        return f"{class_name(self.name)}.by_ref"


@dataclass
class StringPointer(TypeNode):
    def render(self) -> str:
        return ":string"


@dataclass
class ArrayOf(TypeNode):
    element: TypeNode
    size: Optional[int]  # None for flexible array members

    def render(self) -> str:
        return f"[{self.element.render()}, {self.size or 0}]"


@dataclass
class Callback(TypeNode):
    return_type: TypeNode
    param_types: List[TypeNode] = field(default_factory=list)
    variadic: bool = False

    def render_params(self) -> str:
        params = [p.render() for p in self.param_types]
        if self.variadic:
            params.append(":varargs")
        return ", ".join(params)

    def render(self) -> str:
        return f"callback([{self.render_params()}], {self.return_type.render()})"


@dataclass
class Poison(TypeNode):
    qual_name: str

    def render(self) -> str:
        raise TypeResolutionError(self.qual_name)


# --- Record layouts shared by inline aggregates and top-level records ---

@dataclass
class RecordMember:
    name: Optional[str]
    type: TypeNode


def render_record(name: str, is_union: bool, members: List[RecordMember]) -> str:
    """Renders a `class X < FFI::Struct` (or FFI::Union) definition."""
    counter = 0
    entries = []
    for member in members:
        member_name = member.name
        if not member_name:
            counter += 1
            member_name = f"field{counter}"
        entries.append(f":{member_name}, {member.type.render()}")

    base = "FFI::Union" if is_union else "FFI::Struct"
    lines = [f"class {class_name(name)} < {base}"]
    if entries:
        lines.append(f"  layout {', '.join(entries)}")
    lines.append("end")
    return "\n".join(lines)


@dataclass
class InlineAggregate(TypeNode):
    """A record definition emitted at its first point of use."""
    name: str
    is_union: bool
    members: List[RecordMember] = field(default_factory=list)

    def render(self) -> str:
        return render_record(self.name, self.is_union, self.members)
