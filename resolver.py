import logging
from typing import List

from emit_context import EmissionContext
from type_nodes import (
    ArrayOf, Builtin, Callback, InlineAggregate, KnownPointer, OpaquePointer,
    Poison, RecordMember, StringPointer, SymbolicReference, TypeNode,
)
from type_refs import (
    Array, Enum, FlexibleArray, Float, Function, IntegerKind, Integer, Pointer,
    Struct, TypeRef, Union, Void, strip_tag,
)

logger = logging.getLogger(__name__)


class TypeResolver:
    """
    Turns type descriptors into renderable type nodes.

    Resolution consults the emission context to decide whether a type is used
    by value, by reference, opaquely or through an alias. The one side effect
    is on records that have not been declared yet: their definition is queued
    as an InlineAggregate (see `take_inline`) and the name is registered, so
    each one is defined exactly once, at its first use.
    """

    def __init__(self, ctx: EmissionContext):
        self.ctx = ctx
        self._inline: List[InlineAggregate] = []

    def take_inline(self) -> List[InlineAggregate]:
        """Returns and clears the definitions queued since the last call."""
        queued, self._inline = self._inline, []
        return queued

    def resolve_all(self, types: List[TypeRef]) -> List[TypeNode]:
        return [self.resolve(t) for t in types]

    def resolve(self, desc: TypeRef) -> TypeNode:
        # 1. Builtins, unless a typedef of that name was already emitted
        if isinstance(desc, (Void, Integer, Float)):
            if self.ctx.is_declared_symbol(desc.qual_name):
                return SymbolicReference(desc.qual_name)
            if isinstance(desc, Void):
                return Builtin("void")
            return Builtin(desc.kind.value)

        # 2. Enums
        if isinstance(desc, Enum):
            name = strip_tag(desc.name or desc.qual_name)
            if desc.anonymous or not name:
                return Builtin(IntegerKind.INT64.value)
            return SymbolicReference(name, "enum")

        # 3. Structs and unions
        if isinstance(desc, (Struct, Union)):
            return self._resolve_record(desc)

        # 4. Pointers
        if isinstance(desc, Pointer):
            return self._resolve_pointer(desc)

        # 5. Arrays
        if isinstance(desc, Array):
            return ArrayOf(self.resolve(desc.element), desc.size)
        if isinstance(desc, FlexibleArray):
            return ArrayOf(self.resolve(desc.element), None)

        # 6. Function types
        if isinstance(desc, Function):
            return self._resolve_function(desc, desc.qual_name)

        logger.debug("Unsupported type '%s', deferring failure to render time", desc.qual_name)
        return Poison(desc.qual_name)

    def _resolve_function(self, desc: Function, qual_name: str) -> TypeNode:
        if qual_name and self.ctx.is_declared_symbol(qual_name):
            return SymbolicReference(qual_name)
        return Callback(
            self.resolve(desc.return_type),
            self.resolve_all(desc.param_types),
            desc.variadic,
        )

    def _resolve_pointer(self, desc: Pointer) -> TypeNode:
        if desc.qual_name and self.ctx.is_declared_symbol(desc.qual_name):
            return SymbolicReference(desc.qual_name)

        pointee = desc.pointee
        # Function pointers collapse into the callback itself
        if isinstance(pointee, Function):
            return self._resolve_function(pointee, desc.qual_name or pointee.qual_name)

        if isinstance(pointee, Integer) and pointee.is_char:
            return StringPointer()

        # Never descend into the pointee body: this is what breaks cycles
        names = [strip_tag(pointee.qual_name)]
        if isinstance(pointee, (Struct, Union)):
            if pointee.anonymous:
                names[0] = self.ctx.synthesized_name(names[0]) or names[0]
            elif pointee.name:
                names.append(strip_tag(pointee.name))
        for name in names:
            if self.ctx.is_declared_type(name) or self.ctx.is_forward_declared(name):
                return KnownPointer(name)
        return OpaquePointer()

    def _resolve_record(self, desc) -> TypeNode:
        is_union = isinstance(desc, Union)
        key = strip_tag(desc.qual_name)
        # The tag name, when the use site spells the record through a typedef
        tag = strip_tag(desc.name) if desc.name and not desc.anonymous else ""

        for name in (key, tag):
            if not name:
                continue
            if self.ctx.is_declared_type(name):
                return SymbolicReference(name, "record")
            if self.ctx.is_declared_symbol(name):
                return SymbolicReference(name)

        key = tag or key
        if desc.anonymous or not key:
            name = self.ctx.synthesized_name(key)
            if name is not None:
                return SymbolicReference(name, "record")
            if not desc.defined:
                return Poison(key)
            name = self.ctx.fresh_name("UnnamedUnion" if is_union else "UnnamedStruct")
            self.ctx.remember_synthesized(key, name)
        else:
            if not desc.defined:
                return Poison(key)
            name = key

        # Declared before the members are resolved, so a member pointing back
        # at this record finds it
        self.ctx.declare_type(name)
        members = [RecordMember(m.name, self.resolve(m.type)) for m in desc.members]
        self._inline.append(InlineAggregate(name, is_union, members))
        logger.debug("Emitting inline definition for %s", name)
        return SymbolicReference(name, "record")
