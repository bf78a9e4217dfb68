import logging
from typing import Dict, List, Optional, Sequence, Tuple

from emit_context import EmissionContext
from out_types import (
    Declaration, EnumDecl, ForwardDecl, FunctionDecl, MacroDecl, StructDecl,
    TypedefDecl, UnionDecl, VariableDecl,
)
from resolver import TypeResolver
from type_nodes import InlineAggregate, KnownPointer, RecordMember
from type_refs import RecordKind, Struct, TypeRef, Union, strip_tag

logger = logging.getLogger(__name__)

Member = Tuple[Optional[str], TypeRef]


class BindingGenerator:
    """
    Builds a Ruby FFI module from declaration events.

    The header walker calls one `define_*`/`declare_forward` method per
    top-level declaration, in source order. Each call builds its declaration
    right away, resolving every type it references against the names seen so
    far. `render()` then produces the module text once and caches it.
    """

    def __init__(self, module_name: str, libraries: Optional[Sequence[str]] = None):
        self.module_name = module_name
        self.libraries = list(libraries or [])
        self.ctx = EmissionContext()
        self.resolver = TypeResolver(self.ctx)
        self.nodes: List[Declaration] = []
        # Inline record definitions, keyed by the index of the declaration
        # whose construction first used them
        self.inline: Dict[int, List[InlineAggregate]] = {}
        self._output: Optional[str] = None

    def _append(self, node: Declaration) -> Declaration:
        queued = self.resolver.take_inline()
        if queued:
            self.inline[len(self.nodes)] = queued
        self.nodes.append(node)
        return node

    def _members(self, members: Sequence[Member]) -> List[RecordMember]:
        return [RecordMember(name or None, self.resolver.resolve(t)) for name, t in members]

    # --- Declaration events ---

    def define_macro(self, name: str, text: str) -> Declaration:
        logger.debug("Macro definition for %s", name)
        const_name = name.upper()
        duplicate = self.ctx.is_macro_defined(const_name)
        self.ctx.define_macro(const_name)
        return self._append(MacroDecl(const_name, text, duplicate))

    def define_typedef(self, name: str, aliased: TypeRef) -> Declaration:
        logger.debug("Typedef definition for %s", name)
        if isinstance(aliased, (Struct, Union)) and not aliased.defined:
            return self._define_opaque_typedef(name, aliased)
        node = TypedefDecl(name, self.resolver.resolve(aliased))
        self.ctx.declare_symbol(name)
        return self._append(node)

    def _define_opaque_typedef(self, name: str, aliased: TypeRef) -> Declaration:
        # typedef struct foo Foo; with no definition of foo: Foo can only be
        # pointed to, so it becomes another name for the forward-declared class
        target = strip_tag(aliased.qual_name)
        if not (self.ctx.is_declared_type(target) or self.ctx.is_forward_declared(target)):
            kind = RecordKind.UNION if isinstance(aliased, Union) else RecordKind.STRUCT
            self.declare_forward(target, kind)
        self.ctx.declare_forward(name)
        return self._append(TypedefDecl(name, KnownPointer(target), opaque=True))

    def define_enum(self, name: str, members: Sequence[Tuple[str, int]]) -> Optional[Declaration]:
        logger.debug("Enum definition for %s", name)
        key = strip_tag(name or "")
        # Uses of an unnamed enum resolve to :int64, so there is nothing to bind
        if not key:
            logger.debug("Skipping enum without a name")
            return None
        self.ctx.declare_type(key)
        return self._append(EnumDecl(key, [(n, int(v)) for n, v in members]))

    def _define_record(self, decl_cls, name: str, members: Sequence[Member]) -> Declaration:
        key = strip_tag(name)
        if self.ctx.is_declared_type(key):
            logger.debug("%s already defined, skipping", key)
            return self._append(decl_cls(key, redundant=True))
        # Declared first, so members pointing back at the record find it
        self.ctx.declare_type(key)
        return self._append(decl_cls(key, self._members(members)))

    def define_struct(self, name: str, members: Sequence[Member],
                      anonymous: bool = False, defined: bool = True) -> Declaration:
        logger.debug("Struct definition for %s", name)
        if not defined:
            return self.declare_forward(name, RecordKind.STRUCT)
        return self._define_record(StructDecl, self._record_name(name, anonymous, "UnnamedStruct"), members)

    def define_union(self, name: str, members: Sequence[Member],
                     anonymous: bool = False, defined: bool = True) -> Declaration:
        logger.debug("Union definition for %s", name)
        if not defined:
            return self.declare_forward(name, RecordKind.UNION)
        return self._define_record(UnionDecl, self._record_name(name, anonymous, "UnnamedUnion"), members)

    def _record_name(self, name: str, anonymous: bool, prefix: str) -> str:
        key = strip_tag(name or "")
        if not anonymous and key:
            return key
        synthesized = self.ctx.synthesized_name(key)
        if synthesized is None:
            synthesized = self.ctx.fresh_name(prefix)
            self.ctx.remember_synthesized(key, synthesized)
        return synthesized

    def define_function(self, name: str, return_type: TypeRef, param_types: Sequence[TypeRef],
                        variadic: bool = False) -> Declaration:
        logger.debug("Function declaration for %s", name)
        return self._append(FunctionDecl(
            name,
            self.resolver.resolve(return_type),
            self.resolver.resolve_all(list(param_types)),
            variadic,
        ))

    def define_variable(self, name: str, type: TypeRef) -> Declaration:
        logger.debug("Variable declaration for %s", name)
        return self._append(VariableDecl(name, self.resolver.resolve(type)))

    def declare_forward(self, name: str, kind: RecordKind = RecordKind.STRUCT) -> Declaration:
        logger.debug("Forward declaration for %s", name)
        key = strip_tag(name)
        redundant = self.ctx.is_declared_type(key) or self.ctx.is_forward_declared(key)
        self.ctx.declare_forward(key)
        return self._append(ForwardDecl(key, kind, redundant))

    # --- Emission ---

    def fragments(self) -> List[str]:
        """Renders every declaration, inline definitions first at their first use."""
        out: List[str] = []
        for index, node in enumerate(self.nodes):
            for aggregate in self.inline.get(index, []):
                out.append(aggregate.render())
            text = node.render()
            if text:
                out.append(text)
        return out

    def render(self) -> str:
        if self._output is None:
            # Render everything before caching: a TypeResolutionError leaves
            # no partial output behind
            body = self.fragments()
            lines = ["require 'ffi'", "", f"module {self.module_name}", "  extend FFI::Library"]
            lines.extend(f"  ffi_lib '{lib}'" for lib in self.libraries)
            for fragment in body:
                lines.append("")
                lines.extend(f"  {line}" if line else "" for line in fragment.split("\n"))
            lines.append("end")
            self._output = "\n".join(lines) + "\n"
        return self._output

    @property
    def parsed(self) -> str:
        return self.render()
