"""Tests for type reference resolution."""

import pytest

from emit_context import EmissionContext
from resolver import TypeResolver
from type_nodes import (
    ArrayOf, Builtin, Callback, InlineAggregate, KnownPointer, OpaquePointer,
    Poison, StringPointer, SymbolicReference, TypeResolutionError,
)
from type_refs import (
    Array, Enum, FlexibleArray, Float, FloatKind, Function, Integer, IntegerKind,
    Pointer, RecordField, Struct, Union, Unsupported, Void,
)

INT32 = Integer("int", IntegerKind.INT32)


@pytest.fixture
def ctx():
    return EmissionContext()


@pytest.fixture
def resolver(ctx):
    return TypeResolver(ctx)


def point(defined=True):
    members = [RecordField("x", INT32), RecordField("y", INT32)] if defined else []
    return Struct("struct Point", "Point", members, defined=defined)


class TestBuiltins:
    def test_integer(self, resolver):
        assert resolver.resolve(INT32) == Builtin("int32")
        assert resolver.resolve(INT32).render() == ":int32"

    def test_void_and_float(self, resolver):
        assert resolver.resolve(Void()).render() == ":void"
        assert resolver.resolve(Float("double", FloatKind.DOUBLE)).render() == ":double"
        assert resolver.resolve(Float("long double", FloatKind.LONG_DOUBLE)).render() == ":long_double"

    def test_typedef_name_wins_once_declared(self, ctx, resolver):
        size_t = Integer("size_t", IntegerKind.UINT64)
        assert resolver.resolve(size_t).render() == ":uint64"
        ctx.declare_symbol("size_t")
        assert resolver.resolve(size_t) == SymbolicReference("size_t")
        assert resolver.resolve(size_t).render() == ":size_t"


class TestEnums:
    def test_named_enum(self, resolver):
        node = resolver.resolve(Enum("enum Color", "Color"))
        assert node == SymbolicReference("Color", "enum")
        assert node.render() == ":Color"

    def test_anonymous_enum_falls_back_to_int64(self, resolver):
        assert resolver.resolve(Enum("enum (unnamed)", "", anonymous=True)) == Builtin("int64")


class TestPointers:
    def test_unknown_pointee_is_opaque(self, resolver):
        assert resolver.resolve(Pointer("struct Point *", point())) == OpaquePointer()

    def test_declared_pointee(self, ctx, resolver):
        ctx.declare_type("Point")
        node = resolver.resolve(Pointer("struct Point *", point()))
        assert node == KnownPointer("Point")
        assert node.render() == "Point.by_ref"

    def test_forward_declared_pointee(self, ctx, resolver):
        ctx.declare_forward("Point")
        assert resolver.resolve(Pointer("struct Point *", point(defined=False))) == KnownPointer("Point")

    def test_pointer_never_descends_into_pointee(self, resolver):
        broken = Struct("struct Broken", "Broken", [RecordField("x", Unsupported("__m128"))])
        assert resolver.resolve(Pointer("struct Broken *", broken)) == OpaquePointer()
        assert resolver.take_inline() == []

    def test_char_pointer_is_string(self, resolver):
        assert resolver.resolve(Pointer("char *", Integer("char", IntegerKind.INT8))) == StringPointer()
        assert resolver.resolve(Pointer("char *", Integer("const char", IntegerKind.INT8))).render() == ":string"

    def test_unsigned_char_pointer_is_not_string(self, resolver):
        node = resolver.resolve(Pointer("unsigned char *", Integer("unsigned char", IntegerKind.UINT8)))
        assert node == OpaquePointer()

    def test_function_pointer_collapses_to_callback(self, resolver):
        fn = Function("void (int)", Void(), [INT32])
        node = resolver.resolve(Pointer("void (*)(int)", fn))
        assert isinstance(node, Callback)
        assert node.render() == "callback([:int32], :void)"

    def test_function_pointer_typedef_is_symbolic(self, ctx, resolver):
        ctx.declare_symbol("handler_t")
        fn = Function("void (int)", Void(), [INT32])
        assert resolver.resolve(Pointer("handler_t", fn)).render() == ":handler_t"


class TestArraysAndFunctions:
    def test_fixed_array(self, resolver):
        node = resolver.resolve(Array("int [4]", INT32, 4))
        assert node == ArrayOf(Builtin("int32"), 4)
        assert node.render() == "[:int32, 4]"

    def test_flexible_array(self, resolver):
        node = resolver.resolve(FlexibleArray("int []", INT32))
        assert node.size is None
        assert node.render() == "[:int32, 0]"

    def test_variadic_callback(self, resolver):
        fn = Function("int (const char *, ...)", INT32,
                      [Pointer("const char *", Integer("const char", IntegerKind.INT8))], variadic=True)
        assert resolver.resolve(fn).render() == "callback([:string, :varargs], :int32)"


class TestRecords:
    def test_declared_record_is_used_by_value(self, ctx, resolver):
        ctx.declare_type("Point")
        node = resolver.resolve(point())
        assert node == SymbolicReference("Point", "record")
        assert node.render() == "Point.by_value"
        assert resolver.take_inline() == []

    def test_record_typedef_is_symbolic(self, ctx, resolver):
        ctx.declare_symbol("point_t")
        assert resolver.resolve(Struct("point_t", "Point", [])).render() == ":point_t"

    def test_undeclared_record_is_defined_inline(self, ctx, resolver):
        node = resolver.resolve(point())
        assert node == SymbolicReference("Point", "record")
        assert ctx.is_declared_type("Point")
        (aggregate,) = resolver.take_inline()
        assert isinstance(aggregate, InlineAggregate)
        assert aggregate.render() == "class Point < FFI::Struct\n  layout :x, :int32, :y, :int32\nend"

    def test_inline_definition_happens_once(self, resolver):
        resolver.resolve(point())
        resolver.resolve(point())
        assert len(resolver.take_inline()) == 1

    def test_take_inline_clears_the_queue(self, resolver):
        resolver.resolve(point())
        resolver.take_inline()
        assert resolver.take_inline() == []

    def test_anonymous_records_get_distinct_names(self, resolver):
        first = resolver.resolve(Struct("", "", [RecordField("a", INT32)], anonymous=True))
        second = resolver.resolve(Struct("", "", [RecordField("b", INT32)], anonymous=True))
        assert first.name == "UnnamedStruct1"
        assert second.name == "UnnamedStruct2"

    def test_same_anonymous_spelling_reuses_its_name(self, resolver):
        spelling = "struct (unnamed at shapes.h:4:5)"
        anon = Struct(spelling, "", [RecordField("a", INT32)], anonymous=True)
        assert resolver.resolve(anon).name == "UnnamedStruct1"
        assert resolver.resolve(anon).name == "UnnamedStruct1"
        assert len(resolver.take_inline()) == 1

    def test_anonymous_union_prefix(self, resolver):
        anon = Union("", "", [RecordField("i", INT32)], anonymous=True)
        assert resolver.resolve(anon).name == "UnnamedUnion1"
        (aggregate,) = resolver.take_inline()
        assert aggregate.render().startswith("class UnnamedUnion1 < FFI::Union")

    def test_nested_inline_records_come_first(self, resolver):
        inner = Struct("struct Inner", "Inner", [RecordField("a", INT32)])
        outer = Struct("struct Outer", "Outer", [RecordField("inner", inner)])
        resolver.resolve(outer)
        assert [a.name for a in resolver.take_inline()] == ["Inner", "Outer"]

    def test_self_pointer_inside_inline_record(self, resolver):
        node = Struct("struct Node", "Node")
        node.members.append(RecordField("next", Pointer("struct Node *", node)))
        resolver.resolve(node)
        (aggregate,) = resolver.take_inline()
        assert aggregate.members[0].type == KnownPointer("Node")


class TestPoison:
    def test_undefined_record_by_value(self, resolver):
        node = resolver.resolve(Struct("struct Ghost", "Ghost", defined=False))
        assert node == Poison("Ghost")

    def test_unsupported_type(self, resolver):
        assert resolver.resolve(Unsupported("_Complex double")) == Poison("_Complex double")

    def test_poison_fails_only_when_rendered(self, resolver):
        node = resolver.resolve(Struct("struct Ghost", "Ghost", defined=False))
        with pytest.raises(TypeResolutionError) as exc_info:
            node.render()
        assert exc_info.value.qual_name == "Ghost"
        assert "`Ghost'" in str(exc_info.value)


class TestTypedefSpelledRecords:
    def test_typedef_spelling_and_tag_spelling_define_once(self, resolver):
        members = [RecordField("a", INT32)]
        first = resolver.resolve(Struct("Foo", "foo_s", members))
        second = resolver.resolve(Struct("struct foo_s", "foo_s", members))
        assert first == SymbolicReference("foo_s", "record")
        assert second == SymbolicReference("foo_s", "record")
        (aggregate,) = resolver.take_inline()
        assert aggregate.render().startswith("class FooS < FFI::Struct")

    def test_tag_declared_then_typedef_spelling(self, ctx, resolver):
        ctx.declare_type("foo_s")
        assert resolver.resolve(Struct("Foo", "foo_s", [])).render() == "FooS.by_value"
        assert resolver.take_inline() == []

    def test_pointer_through_typedef_spelling(self, ctx, resolver):
        ctx.declare_type("foo_s")
        node = resolver.resolve(Pointer("Foo *", Struct("Foo", "foo_s", [])))
        assert node == KnownPointer("foo_s")

    def test_undefined_record_is_named_by_tag(self, resolver):
        assert resolver.resolve(Struct("Foo", "foo_s", defined=False)) == Poison("foo_s")
