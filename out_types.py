from dataclasses import dataclass, field
from typing import List, Tuple

from type_nodes import Callback, RecordMember, SymbolicReference, TypeNode, render_record
from type_refs import RecordKind, class_name


class Declaration:
    """One top-level construct of the generated binding."""

    def render(self) -> str:
        raise NotImplementedError


@dataclass
class MacroDecl(Declaration):
    name: str
    text: str
    duplicate: bool = False  # a macro of that name came earlier in the run

    def render(self) -> str:
        if self.duplicate:
            return ""
        return f"{self.name} = {self.text}"


@dataclass
class TypedefDecl(Declaration):
    name: str
    type: TypeNode
    opaque: bool = False  # alias of a record that is never defined

    @property
    def is_self_alias(self) -> bool:
        if self.opaque:
            return class_name(self.type.name) == class_name(self.name)
        return (isinstance(self.type, SymbolicReference)
                and self.type.name in (self.name, class_name(self.name)))

    def render(self) -> str:
        if self.opaque:
            if self.is_self_alias:
                return ""
            return f"{class_name(self.name)} = {class_name(self.type.name)}"

        if isinstance(self.type, Callback):
            return (f"callback :{self.name}, [{self.type.render_params()}], "
                    f"{self.type.return_type.render()}")

        # Don't emit anything if the names are identical
        if self.is_self_alias:
            return ""
        return f"typedef {self.type.render()}, :{self.name}"


@dataclass
class EnumDecl(Declaration):
    name: str
    members: List[Tuple[str, int]] = field(default_factory=list)

    def render(self) -> str:
        members = ", ".join(f":{n}, {v}" for n, v in self.members)
        return f"enum :{self.name}, [{members}]"


@dataclass
class StructDecl(Declaration):
    name: str
    members: List[RecordMember] = field(default_factory=list)
    redundant: bool = False  # already defined at an earlier point of use

    is_union = False

    def render(self) -> str:
        if self.redundant:
            return ""
        return render_record(self.name, self.is_union, self.members)


@dataclass
class UnionDecl(StructDecl):
    is_union = True


@dataclass
class FunctionDecl(Declaration):
    name: str
    return_type: TypeNode
    param_types: List[TypeNode] = field(default_factory=list)
    variadic: bool = False

    def render(self) -> str:
        params = [p.render() for p in self.param_types]
        if self.variadic:
            params.append(":varargs")
        return f"attach_function :{self.name}, [{', '.join(params)}], {self.return_type.render()}"


@dataclass
class VariableDecl(Declaration):
    name: str
    type: TypeNode

    def render(self) -> str:
        return f"attach_variable :{self.name}, {self.type.render()}"


@dataclass
class ForwardDecl(Declaration):
    name: str
    kind: RecordKind = RecordKind.STRUCT
    redundant: bool = False

    def render(self) -> str:
        if self.redundant:
            return ""
        base = "FFI::Union" if self.kind == RecordKind.UNION else "FFI::Struct"
        return f"class {class_name(self.name)} < {base}\nend"
