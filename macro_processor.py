import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

from clang.cindex import CursorKind, Token, TokenKind, TranslationUnit

logger = logging.getLogger(__name__)


class MacroExpansionError(Exception):
    """A macro body refers to a function-like macro and cannot be emitted."""


@dataclass
class MacroDefinition:
    name: str
    tokens: List[Tuple[str, bool]] = field(default_factory=list)  # (spelling, is_identifier)
    function_like: bool = False
    in_primary_file: bool = True


class MacroProcessor:
    """
    Collects object-like macros and pastes their bodies back together.

    Identifiers that name another object-like macro are replaced by that
    macro's (recursively expanded) body. A reference to a function-like macro
    drops the whole macro. The resulting text is never evaluated.
    """

    def __init__(self, definitions: Optional[Dict[str, MacroDefinition]] = None):
        self.definitions: Dict[str, MacroDefinition] = dict(definitions or {})
        self.order: List[str] = [n for n, d in self.definitions.items() if d.in_primary_file]

    def add(self, definition: MacroDefinition):
        # Later definitions replace earlier ones, as the preprocessor would
        self.definitions[definition.name] = definition
        if definition.in_primary_file and definition.name not in self.order:
            self.order.append(definition.name)

    def remove(self, name: str):
        """Forgets a macro, as `#undef` does."""
        self.definitions.pop(name, None)
        if name in self.order:
            self.order.remove(name)

    @classmethod
    def from_translation_unit(cls, tu: TranslationUnit, header_path: str) -> "MacroProcessor":
        """Reads every macro definition of the translation unit."""
        processor = cls()
        # (offset, definition or None, name) for the primary file, replayed in source order
        # so that an #undef only removes the definitions before it
        primary: List[Tuple[int, Optional[MacroDefinition], str]] = []

        for cursor in tu.cursor.get_children():
            if cursor.kind != CursorKind.MACRO_DEFINITION:
                continue
            # Builtin macros have no location
            if not cursor.location.file:
                continue
            tokens = list(cursor.get_tokens())
            function_like = is_function_like(tokens)
            # Expect a pattern like: NAME <replacement...>
            if tokens and tokens[0].spelling == cursor.spelling:
                tokens = tokens[1:]
            in_primary_file = same_file(str(cursor.location.file), header_path)
            definition = MacroDefinition(
                name=cursor.spelling,
                tokens=[(t.spelling, t.kind == TokenKind.IDENTIFIER) for t in tokens],
                function_like=function_like,
                in_primary_file=in_primary_file,
            )
            if in_primary_file:
                primary.append((cursor.location.offset, definition, definition.name))
            else:
                processor.add(definition)

        primary.extend((offset, None, name) for offset, name in undefined_macros(tu))
        for _, definition, name in sorted(primary, key=lambda event: event[0]):
            if definition is None:
                logger.debug("Macro %s undefined", name)
                processor.remove(name)
            else:
                processor.add(definition)
        return processor

    def expand(self, name: str, active: Optional[Set[str]] = None) -> List[str]:
        """Returns the body tokens of `name` with nested object-like macros expanded."""
        active = set(active or ()) | {name}
        out: List[str] = []
        for spelling, is_ident in self.definitions[name].tokens:
            child = self.definitions.get(spelling) if is_ident else None
            if child is None or spelling in active:
                out.append(spelling)
                continue
            if child.function_like:
                raise MacroExpansionError(f"{name} refers to function-like macro {spelling}")
            out.extend(self.expand(spelling, active))
        return out

    def process(self) -> List[Tuple[str, str]]:
        """Returns (name, text) for each emittable macro of the primary file, in source order."""
        result = []
        for name in self.order:
            definition = self.definitions[name]
            # Ignore function-like macros and macros with no tokens
            if definition.function_like or not definition.tokens:
                continue
            try:
                text = "".join(self.expand(name))
            except MacroExpansionError as e:
                logger.debug("Skipping macro: %s", e)
                continue
            result.append((name, text))
        return result


def same_file(a: str, b: str) -> bool:
    return os.path.realpath(a) == os.path.realpath(b)


def is_function_like(tokens: List[Token]) -> bool:
    """A macro is function-like when `(` directly follows its name, with no space."""
    if len(tokens) < 2 or tokens[1].spelling != "(":
        return False
    return tokens[1].extent.start.offset == tokens[0].extent.end.offset


def undefined_macros(tu: TranslationUnit) -> Iterator[Tuple[int, str]]:
    """Yields (offset, name) for every `#undef NAME` of the primary file."""
    tokens = list(tu.get_tokens(extent=tu.cursor.extent))
    for hash_tok, directive, name in zip(tokens, tokens[1:], tokens[2:]):
        if hash_tok.spelling == "#" and directive.spelling == "undef" \
                and name.kind == TokenKind.IDENTIFIER:
            yield hash_tok.location.offset, name.spelling
