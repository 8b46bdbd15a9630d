from __future__ import annotations


def _load():
    from unparam.program.types import (
        ANY,
        BasicType,
        GenericType,
        InterfaceType,
        Method,
        NamedType,
        Signature,
        StructType,
        UnionType,
        Var,
    )

    return ANY, BasicType, GenericType, InterfaceType, Method, NamedType, Signature, StructType, UnionType, Var


def test_signature_renders_without_names() -> None:
    ANY, BasicType, _, _, _, _, Signature, _, _, Var = _load()
    sign = Signature(
        params=(Var("a", BasicType("int")), Var("b", ANY)),
        results=(Var("", BasicType("str")),),
    )
    assert sign.type_string() == "Callable[[int, Any], str]"
    assert sign.param_types() == (BasicType("int"), ANY)
    assert sign.result_types() == (BasicType("str"),)


def test_signature_result_rendering() -> None:
    _, BasicType, _, _, _, _, Signature, _, _, Var = _load()
    assert Signature().type_string() == "Callable[[], None]"
    two = Signature(results=(Var("", BasicType("int")), Var("", BasicType("str"))))
    assert two.type_string() == "Callable[[], (int, str)]"


def test_composite_types_render_structurally() -> None:
    ANY, BasicType, GenericType, InterfaceType, Method, NamedType, Signature, StructType, UnionType, Var = _load()
    generic = GenericType(BasicType("dict"), (BasicType("str"), NamedType("pkg.Model")))
    assert str(generic) == "dict[str, pkg.Model]"
    assert UnionType((BasicType("int"), BasicType("None"))).type_string() == "int | None"
    struct = StructType((Var("f", Signature(params=(Var("", BasicType("int")),))),))
    assert struct.type_string() == "struct{f: Callable[[int], None]}"
    iface = InterfaceType((Method("m", Signature(params=(Var("x", ANY),))),))
    assert iface.type_string() == "interface{m[[Any], None]}"


def test_types_compare_by_value() -> None:
    _, BasicType, _, _, _, NamedType, Signature, _, _, Var = _load()
    left = Signature(params=(Var("a", BasicType("int")),))
    right = Signature(params=(Var("a", BasicType("int")),))
    assert left == right
    assert NamedType("int") != BasicType("int")
    assert left.underlying() is left


def test_base_type_is_abstract() -> None:
    import pytest

    from unparam.program.types import Type

    with pytest.raises(TypeError):
        Type()
