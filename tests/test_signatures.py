from __future__ import annotations


def _load():
    from unparam.analysis.signatures import build_catalog, signature_key
    from unparam.program.model import FunctionMember, Package, Program, TypeMember
    from unparam.program.types import (
        ANY,
        BasicType,
        InterfaceType,
        Method,
        Signature,
        StructType,
        Var,
    )

    return (
        build_catalog,
        signature_key,
        FunctionMember,
        Package,
        Program,
        TypeMember,
        ANY,
        BasicType,
        InterfaceType,
        Method,
        Signature,
        StructType,
        Var,
    )


def _sig(*params, results=()):
    from unparam.program.types import BasicType, Signature, Var

    return Signature(
        params=tuple(Var(f"p{i}", BasicType(p)) for i, p in enumerate(params)),
        results=tuple(Var("", BasicType(r)) for r in results),
    )


def test_signature_key_ignores_names() -> None:
    signature_key = _load()[1]
    assert signature_key(_sig("int", "str", results=("bool",))) == "(int, str)(bool)"
    assert signature_key(_sig()) == "()()"
    assert signature_key(_sig("int", results=("int", "error"))) == "(int)(int, error)"


def test_signature_key_is_pure() -> None:
    signature_key = _load()[1]
    sign = _sig("int", "str")
    assert signature_key(sign) == signature_key(sign)
    assert signature_key(sign) == signature_key(_sig("int", "str"))


def test_catalog_collects_every_contract_source() -> None:
    (
        build_catalog,
        _,
        FunctionMember,
        Package,
        Program,
        TypeMember,
        _ANY,
        BasicType,
        InterfaceType,
        Method,
        Signature,
        StructType,
        Var,
    ) = _load()
    members = (
        TypeMember("S", StructType((Var("cb", _sig("int", results=("str",))),))),
        TypeMember("I", InterfaceType((Method("m", _sig("int", "str")),))),
        TypeMember("Handler", _sig("bytes")),
        FunctionMember("register", Signature(params=(Var("fn", _sig("float", "float")),))),
    )
    program = Program(packages=(Package(path="dep", members=members),))
    assert build_catalog(program) == {
        "(int)(str)",
        "(int, str)()",
        "(bytes)()",
        "(float, float)()",
    }


def test_catalog_skips_empty_parameter_lists_and_plain_fields() -> None:
    (
        build_catalog,
        _,
        FunctionMember,
        Package,
        Program,
        TypeMember,
        _ANY,
        BasicType,
        InterfaceType,
        Method,
        Signature,
        StructType,
        Var,
    ) = _load()
    members = (
        TypeMember("S", StructType((Var("n", BasicType("int")), Var("cb", _sig(results=("int",)))))),
        TypeMember("I", InterfaceType((Method("close", _sig()),))),
        TypeMember("Thunk", _sig()),
        FunctionMember("f", _sig("int", "str")),
    )
    program = Program(packages=(Package(path="p", root=True, members=members),))
    assert build_catalog(program) == frozenset()


def test_catalog_spans_all_packages() -> None:
    build_catalog, _, _, Package, Program, TypeMember, *_ = _load()
    program = Program(
        packages=(
            Package(path="root", root=True, members=(TypeMember("A", _sig("int")),)),
            Package(path="dep", root=False, members=(TypeMember("B", _sig("str")),)),
        )
    )
    assert build_catalog(program) == {"(int)()", "(str)()"}
