"""Whole-program model consumed by the analysis.

The model is arena-shaped: a Program owns flat tuples of packages and
functions, and every cross reference (function -> package, parameter ->
function, parameter -> referrer instructions) is an index, never an owning
pointer. Front ends build it once; the analysis only reads it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, TypeAlias

from unparam.program.types import Signature, Type

DEFAULT_ABORT_PRIMITIVE = "throw"


class EffectClass(str, Enum):
    PURE = "pure"
    RETURN = "return"
    PANIC = "panic"
    CALL = "call"
    OTHER = "other"


class InstrKind(str, Enum):
    ALLOC = "alloc"
    STORE = "store"
    UNOP = "unop"
    BINOP = "binop"
    MAKE_INTERFACE = "make_interface"
    MAKE_MAP = "make_map"
    EXTRACT = "extract"
    INDEX_ADDR = "index_addr"
    FIELD_ADDR = "field_addr"
    SLICE = "slice"
    LOOKUP = "lookup"
    CHANGE_TYPE = "change_type"
    TYPE_ASSERT = "type_assert"
    CONVERT = "convert"
    CHANGE_INTERFACE = "change_interface"
    RETURN = "return"
    PANIC = "panic"
    CALL = "call"
    IF = "if"
    JUMP = "jump"
    MAKE_CLOSURE = "make_closure"
    FIELD = "field"
    INDEX = "index"
    RANGE = "range"
    NEXT = "next"
    PHI = "phi"
    AWAIT = "await"
    YIELD = "yield"
    DEFER = "defer"
    GO = "go"
    SEND = "send"
    SELECT = "select"
    OTHER = "other"

    @property
    def effect(self) -> EffectClass:
        return _EFFECTS.get(self, EffectClass.OTHER)


_EFFECTS: dict[InstrKind, EffectClass] = {
    InstrKind.ALLOC: EffectClass.PURE,
    InstrKind.STORE: EffectClass.PURE,
    InstrKind.UNOP: EffectClass.PURE,
    InstrKind.BINOP: EffectClass.PURE,
    InstrKind.MAKE_INTERFACE: EffectClass.PURE,
    InstrKind.MAKE_MAP: EffectClass.PURE,
    InstrKind.EXTRACT: EffectClass.PURE,
    InstrKind.INDEX_ADDR: EffectClass.PURE,
    InstrKind.FIELD_ADDR: EffectClass.PURE,
    InstrKind.SLICE: EffectClass.PURE,
    InstrKind.LOOKUP: EffectClass.PURE,
    InstrKind.CHANGE_TYPE: EffectClass.PURE,
    InstrKind.TYPE_ASSERT: EffectClass.PURE,
    InstrKind.CONVERT: EffectClass.PURE,
    InstrKind.CHANGE_INTERFACE: EffectClass.PURE,
    InstrKind.RETURN: EffectClass.RETURN,
    InstrKind.PANIC: EffectClass.PANIC,
    InstrKind.CALL: EffectClass.CALL,
}


@dataclass(frozen=True)
class ParamRef:
    index: int


@dataclass(frozen=True)
class ConstRef:
    text: str


@dataclass(frozen=True)
class ValueRef:
    text: str


Operand: TypeAlias = ParamRef | ConstRef | ValueRef


@dataclass(frozen=True)
class Instruction:
    id: int
    kind: InstrKind
    operands: tuple[Operand, ...] = ()
    # Textual callee for CALL instructions, e.g. "log.info" or "os.abort".
    callee: str = ""


@dataclass(frozen=True)
class BasicBlock:
    index: int
    instrs: tuple[Instruction, ...] = ()


@dataclass(frozen=True)
class Position:
    filename: str
    line: int
    column: int

    def sort_key(self) -> tuple[str, int, int]:
        return (self.filename, self.line, self.column)

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


@dataclass(frozen=True)
class Parameter:
    name: str
    index: int
    type: Type
    pos: Position
    function: int
    referrers: tuple[int, ...] = ()

    @property
    def used(self) -> bool:
        return bool(self.referrers)


@dataclass(frozen=True)
class Function:
    name: str
    package: int | None
    signature: Signature
    params: tuple[Parameter, ...] = ()
    blocks: tuple[BasicBlock, ...] = ()
    has_receiver: bool = False

    @property
    def entry_block(self) -> BasicBlock | None:
        return self.blocks[0] if self.blocks else None


@dataclass(frozen=True)
class FunctionMember:
    name: str
    signature: Signature


@dataclass(frozen=True)
class TypeMember:
    name: str
    # The declaration's underlying shape (struct, interface, signature, ...).
    type: Type


Member: TypeAlias = FunctionMember | TypeMember


@dataclass(frozen=True)
class Package:
    path: str
    root: bool = False
    members: tuple[Member, ...] = ()


@dataclass(frozen=True)
class Program:
    packages: tuple[Package, ...] = ()
    functions: tuple[Function, ...] = ()
    abort_primitive: str = DEFAULT_ABORT_PRIMITIVE

    def root_packages(self) -> frozenset[int]:
        return frozenset(i for i, pkg in enumerate(self.packages) if pkg.root)

    def function_of(self, param: Parameter) -> Function:
        return self.functions[param.function]

    def iter_members(self) -> Iterator[tuple[Package, Member]]:
        for pkg in self.packages:
            for member in pkg.members:
                yield pkg, member
