from typing import Dict, Optional, Set


class EmissionContext:
    """
    Registry of the names a single generation run knows about.

    The registries only grow. A name in `declared_types` is a record or enum
    that has been defined and may be used by value; `declared_symbols` holds
    typedef and callback aliases; `forward_declared` holds records that can
    only be pointed to.
    """

    def __init__(self):
        self.declared_types: Set[str] = set()
        self.declared_symbols: Set[str] = set()
        self.forward_declared: Set[str] = set()
        self.defined_macros: Set[str] = set()
        self._synthesized: Dict[str, str] = {}  # anonymous spelling -> generated name
        self._count = 0

    def is_declared_type(self, name: str) -> bool:
        return name in self.declared_types

    def declare_type(self, name: str):
        self.declared_types.add(name)

    def is_declared_symbol(self, name: str) -> bool:
        return name in self.declared_symbols

    def declare_symbol(self, name: str):
        self.declared_symbols.add(name)

    def is_forward_declared(self, name: str) -> bool:
        return name in self.forward_declared

    def declare_forward(self, name: str):
        self.forward_declared.add(name)

    def is_macro_defined(self, name: str) -> bool:
        return name in self.defined_macros

    def define_macro(self, name: str):
        self.defined_macros.add(name)

    def fresh_name(self, prefix: str) -> str:
        """Returns `prefix` followed by a counter that is unique for the run."""
        self._count += 1
        return f"{prefix}{self._count}"

    def synthesized_name(self, spelling: str) -> Optional[str]:
        """Gets the name already generated for an anonymous type's spelling."""
        if not spelling:
            return None
        return self._synthesized.get(spelling)

    def remember_synthesized(self, spelling: str, name: str):
        if spelling:
            self._synthesized[spelling] = name
