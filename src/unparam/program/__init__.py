from unparam.program.model import (
    BasicBlock,
    ConstRef,
    EffectClass,
    Function,
    FunctionMember,
    InstrKind,
    Instruction,
    Member,
    Operand,
    Package,
    Parameter,
    ParamRef,
    Position,
    Program,
    TypeMember,
    ValueRef,
)
from unparam.program.types import (
    ANY,
    NONE,
    BasicType,
    GenericType,
    InterfaceType,
    Method,
    NamedType,
    OpaqueType,
    Signature,
    StructType,
    Type,
    UnionType,
    Var,
)

__all__ = [
    "ANY",
    "NONE",
    "BasicBlock",
    "BasicType",
    "ConstRef",
    "EffectClass",
    "Function",
    "FunctionMember",
    "GenericType",
    "InstrKind",
    "Instruction",
    "InterfaceType",
    "Member",
    "Method",
    "NamedType",
    "OpaqueType",
    "Operand",
    "Package",
    "Parameter",
    "ParamRef",
    "Position",
    "Program",
    "Signature",
    "StructType",
    "Type",
    "TypeMember",
    "UnionType",
    "ValueRef",
    "Var",
]
