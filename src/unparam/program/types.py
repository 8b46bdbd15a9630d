"""Resolved types of the program model.

Every type renders a structural identity string through ``type_string()``.
Two types are identical for the analysis exactly when their identity strings
are equal, so the rendering never includes parameter or result names.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


class Type(ABC):
    @abstractmethod
    def type_string(self) -> str:
        ...

    def underlying(self) -> Type:
        return self

    def __str__(self) -> str:
        return self.type_string()


@dataclass(frozen=True)
class BasicType(Type):
    name: str

    def type_string(self) -> str:
        return self.name


ANY = BasicType("Any")
NONE = BasicType("None")


@dataclass(frozen=True)
class NamedType(Type):
    """A reference to a declared type by its qualified name.

    The declaration itself lives in a TypeMember; a reference never owns it,
    which keeps self-referential declarations representable.
    """

    name: str

    def type_string(self) -> str:
        return self.name


@dataclass(frozen=True)
class GenericType(Type):
    origin: Type
    args: tuple[Type, ...]

    def type_string(self) -> str:
        rendered = ", ".join(arg.type_string() for arg in self.args)
        return f"{self.origin.type_string()}[{rendered}]"


@dataclass(frozen=True)
class UnionType(Type):
    members: tuple[Type, ...]

    def type_string(self) -> str:
        return " | ".join(member.type_string() for member in self.members)


@dataclass(frozen=True)
class OpaqueType(Type):
    """A type the front end could not decompose; identity is its text."""

    text: str

    def type_string(self) -> str:
        return self.text


@dataclass(frozen=True)
class Var:
    name: str
    type: Type


@dataclass(frozen=True)
class Signature(Type):
    params: tuple[Var, ...] = ()
    results: tuple[Var, ...] = ()

    def param_types(self) -> tuple[Type, ...]:
        return tuple(var.type for var in self.params)

    def result_types(self) -> tuple[Type, ...]:
        return tuple(var.type for var in self.results)

    def type_string(self) -> str:
        params = ", ".join(t.type_string() for t in self.param_types())
        results = self.result_types()
        if not results:
            result = "None"
        elif len(results) == 1:
            result = results[0].type_string()
        else:
            result = "(" + ", ".join(t.type_string() for t in results) + ")"
        return f"Callable[[{params}], {result}]"


@dataclass(frozen=True)
class Method:
    name: str
    signature: Signature


@dataclass(frozen=True)
class StructType(Type):
    fields: tuple[Var, ...] = ()

    def type_string(self) -> str:
        body = "; ".join(f"{f.name}: {f.type.type_string()}" for f in self.fields)
        return f"struct{{{body}}}"


@dataclass(frozen=True)
class InterfaceType(Type):
    methods: tuple[Method, ...] = ()

    def type_string(self) -> str:
        body = "; ".join(
            f"{m.name}{m.signature.type_string()[len('Callable'):]}" for m in self.methods
        )
        return f"interface{{{body}}}"
