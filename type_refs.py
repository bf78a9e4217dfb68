from dataclasses import dataclass, field
from enum import Enum as _Enum
from typing import List, Optional

# --- Type descriptors as reported by the header walker ---

TAG_PREFIXES = ("struct ", "union ", "enum ")


class IntegerKind(_Enum):
    """Integer widths, valued by their Ruby FFI keyword."""
    BOOL = "bool"
    UINT8 = "uint8"
    INT8 = "int8"
    UINT16 = "uint16"
    INT16 = "int16"
    UINT32 = "uint32"
    INT32 = "int32"
    UINT64 = "uint64"
    INT64 = "int64"
    INT128 = "int128"


class FloatKind(_Enum):
    HALF = "half"
    FLOAT = "float"
    DOUBLE = "double"
    LONG_DOUBLE = "long_double"


class RecordKind(_Enum):
    STRUCT = "struct"
    UNION = "union"


def strip_tag(name: str) -> str:
    """Removes a leading `struct `/`union `/`enum ` tag, giving the registry key."""
    for prefix in TAG_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def class_name(name: str) -> str:
    """Camel-cases a C identifier into a Ruby constant name (point_list -> PointList)."""
    return "".join(part[:1].upper() + part[1:] for part in strip_tag(name).split("_"))


def strip_qualifiers(spelling: str) -> str:
    words = [w for w in spelling.split() if w not in ("const", "volatile", "restrict")]
    return " ".join(words)


@dataclass
class TypeRef:
    qual_name: str = ""


@dataclass
class Void(TypeRef):
    qual_name: str = "void"


@dataclass
class Integer(TypeRef):
    kind: IntegerKind = IntegerKind.INT32

    @property
    def is_char(self) -> bool:
        return strip_qualifiers(self.qual_name) == "char"


@dataclass
class Float(TypeRef):
    kind: FloatKind = FloatKind.DOUBLE


@dataclass
class Enum(TypeRef):
    name: str = ""
    anonymous: bool = False


@dataclass
class RecordField:
    name: Optional[str]  # None for anonymous members
    type: TypeRef


# Records may be part of a cycle (struct -> pointer -> same struct), so their
# members stay out of __eq__ and __repr__.
@dataclass(eq=False)
class Struct(TypeRef):
    name: str = ""
    members: List[RecordField] = field(default_factory=list, repr=False)
    anonymous: bool = False
    defined: bool = True

    __eq__ = object.__eq__
    __hash__ = object.__hash__


@dataclass(eq=False)
class Union(TypeRef):
    name: str = ""
    members: List[RecordField] = field(default_factory=list, repr=False)
    anonymous: bool = False
    defined: bool = True

    __eq__ = object.__eq__
    __hash__ = object.__hash__


@dataclass
class Pointer(TypeRef):
    pointee: TypeRef = field(default_factory=Void)


@dataclass
class Array(TypeRef):
    element: TypeRef = field(default_factory=Void)
    size: int = 0


@dataclass
class FlexibleArray(TypeRef):
    element: TypeRef = field(default_factory=Void)


@dataclass
class Function(TypeRef):
    return_type: TypeRef = field(default_factory=Void)
    param_types: List[TypeRef] = field(default_factory=list)
    variadic: bool = False


@dataclass
class Unsupported(TypeRef):
    pass
