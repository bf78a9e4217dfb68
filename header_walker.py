import logging
import os
from typing import Dict, List, Optional, Set

from clang.cindex import (Config, Cursor, CursorKind, Index, StorageClass,
                          TranslationUnit, Type, TypeKind)

from generator import BindingGenerator
from macro_processor import MacroProcessor, same_file
from type_refs import (
    Array, Enum, FlexibleArray, Float, FloatKind, Function, Integer, IntegerKind,
    Pointer, RecordField, RecordKind, Struct, TypeRef, Union, Unsupported, Void,
    strip_qualifiers,
)

if os.getenv("LIBCLANG_PATH"):
    Config.set_library_file(os.environ["LIBCLANG_PATH"])

logger = logging.getLogger(__name__)

SIGNED_KINDS = {
    TypeKind.CHAR_S, TypeKind.SCHAR, TypeKind.WCHAR, TypeKind.SHORT,
    TypeKind.INT, TypeKind.LONG, TypeKind.LONGLONG,
}
UNSIGNED_KINDS = {
    TypeKind.CHAR_U, TypeKind.UCHAR, TypeKind.CHAR16, TypeKind.CHAR32,
    TypeKind.USHORT, TypeKind.UINT, TypeKind.ULONG, TypeKind.ULONGLONG,
}
SIGNED_BY_SIZE = {1: IntegerKind.INT8, 2: IntegerKind.INT16, 4: IntegerKind.INT32, 8: IntegerKind.INT64}
UNSIGNED_BY_SIZE = {1: IntegerKind.UINT8, 2: IntegerKind.UINT16, 4: IntegerKind.UINT32, 8: IntegerKind.UINT64}
FLOAT_KINDS = {
    TypeKind.HALF: FloatKind.HALF,
    TypeKind.FLOAT: FloatKind.FLOAT,
    TypeKind.DOUBLE: FloatKind.DOUBLE,
    TypeKind.LONGDOUBLE: FloatKind.LONG_DOUBLE,
}
SUGAR_KINDS = (TypeKind.TYPEDEF, TypeKind.ELABORATED)


def _is_unnamed(spelling: str) -> bool:
    # Newer libclang spells anonymous records as "struct (unnamed at file:line:col)"
    return not spelling or "(unnamed" in spelling or "(anonymous" in spelling


class HeaderWalker:
    """
    Walks a C header with libclang and reports its declarations to a
    BindingGenerator, one event per top-level declaration, in source order.
    """

    def __init__(self, generator: BindingGenerator):
        self.generator = generator
        self.header_path = ""
        self._typedef_names: Dict[int, str] = {}  # anonymous record/enum -> typedef naming it
        self._members: Dict[int, List[RecordField]] = {}
        self._seen_functions: Set[str] = set()

    def walk(self, header_path: str, clang_args: Optional[List[str]] = None):
        """Parses the given C header file and feeds every declaration to the generator."""
        if not os.path.exists(header_path):
            raise FileNotFoundError(f"Header file not found: {header_path}")

        logger.info("Parsing header: %s", header_path)
        index = Index.create()
        # Use '-x', 'c-header' to force parsing as C
        args = ['-x', 'c-header'] + list(clang_args or [])
        logger.debug("Parsing with args: %s", args)
        tu = index.parse(header_path, args=args,
                         options=TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD)

        if not tu:
            raise RuntimeError("Failed to parse the translation unit.")

        for diag in tu.diagnostics:
            if diag.severity >= diag.Error:
                logger.warning("Clang error: %s. Bindings may be incomplete.", diag.spelling)

        self.header_path = header_path

        # Macros first, the way a preprocessor pass would see them
        for name, text in MacroProcessor.from_translation_unit(tu, header_path).process():
            self.generator.define_macro(name, text)

        self._collect_typedef_names(tu.cursor)
        for cursor in tu.cursor.get_children():
            self._visit_cursor(cursor)

    def _in_main_file(self, cursor: Cursor) -> bool:
        location = cursor.location
        return bool(location.file) and same_file(str(location.file), self.header_path)

    def _collect_typedef_names(self, root: Cursor):
        for cursor in root.get_children():
            if cursor.kind != CursorKind.TYPEDEF_DECL:
                continue
            decl = cursor.underlying_typedef_type.get_canonical().get_declaration()
            if decl.kind in (CursorKind.STRUCT_DECL, CursorKind.UNION_DECL, CursorKind.ENUM_DECL) \
                    and _is_unnamed(decl.spelling):
                self._typedef_names.setdefault(decl.hash, cursor.spelling)

    def _decl_name(self, cursor: Cursor) -> str:
        """Tag name of a record or enum, or the typedef naming an anonymous one."""
        if not _is_unnamed(cursor.spelling):
            return cursor.spelling
        definition = cursor.get_definition() or cursor
        return self._typedef_names.get(definition.hash, "")

    # --- Declarations ---

    def _visit_cursor(self, cursor: Cursor):
        if not self._in_main_file(cursor):
            return

        kind = cursor.kind
        if kind == CursorKind.STRUCT_DECL:
            self._handle_record(cursor, RecordKind.STRUCT)
        elif kind == CursorKind.UNION_DECL:
            self._handle_record(cursor, RecordKind.UNION)
        elif kind == CursorKind.ENUM_DECL:
            self._handle_enum(cursor)
        elif kind == CursorKind.FUNCTION_DECL:
            self._handle_function(cursor)
        elif kind == CursorKind.TYPEDEF_DECL:
            self._handle_typedef(cursor)
        elif kind == CursorKind.VAR_DECL:
            self._handle_variable(cursor)

    def _handle_record(self, cursor: Cursor, kind: RecordKind):
        name = self._decl_name(cursor)

        if not cursor.is_definition():
            if name:
                self.generator.declare_forward(name, kind)
            return

        # Don't try to do binding for records without a linkage name
        if name:
            members = [(f.name, f.type) for f in self._record_fields(cursor)]
            if kind == RecordKind.UNION:
                self.generator.define_union(name, members)
            else:
                self.generator.define_struct(name, members)

        # Nested definitions come after their parent
        for child in cursor.get_children():
            if child.kind in (CursorKind.STRUCT_DECL, CursorKind.UNION_DECL, CursorKind.ENUM_DECL):
                self._visit_cursor(child)

    def _handle_enum(self, cursor: Cursor):
        if not cursor.is_definition():
            return
        name = self._decl_name(cursor)
        if not name:
            return
        members = [
            (c.spelling, c.enum_value)
            for c in cursor.get_children() if c.kind == CursorKind.ENUM_CONSTANT_DECL
        ]
        self.generator.define_enum(name, members)

    def _handle_function(self, cursor: Cursor):
        name = cursor.spelling
        if not name or name in self._seen_functions:
            return
        self._seen_functions.add(name)

        variadic = cursor.type.kind == TypeKind.FUNCTIONPROTO and cursor.type.is_function_variadic()
        self.generator.define_function(
            name,
            self.describe(cursor.result_type),
            [self.describe(arg.type) for arg in cursor.get_arguments()],
            variadic,
        )

    def _handle_typedef(self, cursor: Cursor):
        name = cursor.spelling
        underlying = cursor.underlying_typedef_type

        # typedef struct { ... } Foo; was already reported as the record Foo
        decl = underlying.get_canonical().get_declaration()
        if decl.kind in (CursorKind.STRUCT_DECL, CursorKind.UNION_DECL, CursorKind.ENUM_DECL) \
                and _is_unnamed(decl.spelling):
            return

        self.generator.define_typedef(name, self.describe(underlying))

    def _handle_variable(self, cursor: Cursor):
        if cursor.storage_class == StorageClass.STATIC:
            return
        self.generator.define_variable(cursor.spelling, self.describe(cursor.type))

    # --- Types ---

    def _record_fields(self, definition: Cursor) -> List[RecordField]:
        """Member list of a record definition, shared by every reference to it."""
        key = definition.hash
        if key in self._members:
            return self._members[key]
        # Registered before it is filled, so self-referencing records terminate
        members: List[RecordField] = []
        self._members[key] = members
        for field_cursor in definition.type.get_fields():
            field_name = None if _is_unnamed(field_cursor.spelling) else field_cursor.spelling
            members.append(RecordField(field_name, self.describe(field_cursor.type)))
        return members

    def describe(self, c_type: Type, qual_name: Optional[str] = None) -> TypeRef:
        """Converts a clang Type into a type descriptor."""
        if qual_name is None:
            qual_name = strip_qualifiers(c_type.spelling)

        t = c_type
        while t.kind in SUGAR_KINDS:
            if t.kind == TypeKind.TYPEDEF:
                t = t.get_declaration().underlying_typedef_type
            else:
                t = t.get_named_type()
        kind = t.kind

        # 1. Builtins
        if kind == TypeKind.VOID:
            return Void(qual_name)
        if kind == TypeKind.BOOL:
            return Integer(qual_name, IntegerKind.BOOL)
        if kind in (TypeKind.INT128, TypeKind.UINT128):
            return Integer(qual_name, IntegerKind.INT128)
        if kind in SIGNED_KINDS and t.get_size() in SIGNED_BY_SIZE:
            return Integer(qual_name, SIGNED_BY_SIZE[t.get_size()])
        if kind in UNSIGNED_KINDS and t.get_size() in UNSIGNED_BY_SIZE:
            return Integer(qual_name, UNSIGNED_BY_SIZE[t.get_size()])
        if kind in FLOAT_KINDS:
            return Float(qual_name, FLOAT_KINDS[kind])

        # 2. Pointers
        if kind == TypeKind.POINTER:
            return Pointer(qual_name, self.describe(t.get_pointee()))

        # 3. Arrays
        if kind == TypeKind.CONSTANTARRAY:
            return Array(qual_name, self.describe(t.get_array_element_type()), t.get_array_size())
        if kind == TypeKind.INCOMPLETEARRAY:
            return FlexibleArray(qual_name, self.describe(t.get_array_element_type()))

        # 4. Functions
        if kind == TypeKind.FUNCTIONPROTO:
            return Function(qual_name, self.describe(t.get_result()),
                            [self.describe(a) for a in t.argument_types()],
                            t.is_function_variadic())
        if kind == TypeKind.FUNCTIONNOPROTO:
            return Function(qual_name, self.describe(t.get_result()), [])

        # 5. Enums
        if kind == TypeKind.ENUM:
            name = self._decl_name(t.get_declaration())
            return Enum(qual_name, name, anonymous=not name)

        # 6. Structs and unions
        if kind == TypeKind.RECORD:
            decl = t.get_declaration()
            definition = decl.get_definition()
            name = self._decl_name(decl)
            cls = Union if decl.kind == CursorKind.UNION_DECL else Struct
            if definition is None:
                return cls(qual_name, name, [], anonymous=not name, defined=False)
            return cls(qual_name, name, self._record_fields(definition), anonymous=not name)

        # Other sugar (attributes, typeof, ...): retry on the canonical type
        canonical = t.get_canonical()
        if canonical.kind != kind:
            return self.describe(canonical, qual_name)

        logger.debug("Unsupported type kind %s for '%s'", kind, qual_name)
        return Unsupported(qual_name)
