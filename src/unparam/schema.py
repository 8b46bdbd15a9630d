from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ValidationError, model_validator

from unparam.exceptions import LoadError
from unparam.program.model import (
    DEFAULT_ABORT_PRIMITIVE,
    BasicBlock,
    ConstRef,
    Function,
    FunctionMember,
    Instruction,
    InstrKind,
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


class VarDTO(BaseModel):
    name: str = ""
    type: Union[TypeDTO, str]


class MethodDTO(BaseModel):
    name: str
    signature: TypeDTO


class TypeDTO(BaseModel):
    """A type node. A bare string anywhere a type is expected is opaque."""

    kind: Literal["basic", "named", "generic", "union", "opaque", "signature", "struct", "interface"]
    name: Optional[str] = None
    args: List[Union[TypeDTO, str]] = []
    params: List[VarDTO] = []
    results: List[VarDTO] = []
    fields: List[VarDTO] = []
    methods: List[MethodDTO] = []

    @model_validator(mode="after")
    def _check_name(self) -> TypeDTO:
        if self.kind in ("basic", "named", "opaque", "generic") and not self.name:
            raise ValueError(f"{self.kind} type requires a name")
        return self


class PositionDTO(BaseModel):
    filename: str
    line: int
    column: int


class OperandDTO(BaseModel):
    param: Optional[int] = None
    const: Optional[str] = None
    value: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> OperandDTO:
        given = [v for v in (self.param, self.const, self.value) if v is not None]
        if len(given) != 1:
            raise ValueError("operand needs exactly one of param, const, value")
        return self


class InstrDTO(BaseModel):
    id: int
    kind: InstrKind
    operands: List[OperandDTO] = []
    callee: str = ""


class BlockDTO(BaseModel):
    instrs: List[InstrDTO] = []


class ParamDTO(BaseModel):
    name: str
    type: Union[TypeDTO, str] = "Any"
    pos: PositionDTO
    # Instruction ids reading the parameter; derived from operands when omitted.
    referrers: Optional[List[int]] = None


class FunctionDTO(BaseModel):
    name: str
    package: Optional[int] = None
    signature: Optional[TypeDTO] = None
    params: List[ParamDTO] = []
    blocks: List[BlockDTO] = []
    has_receiver: bool = False


class MemberDTO(BaseModel):
    kind: Literal["function", "type"]
    name: str
    signature: Optional[TypeDTO] = None
    type: Optional[Union[TypeDTO, str]] = None

    @model_validator(mode="after")
    def _check_payload(self) -> MemberDTO:
        if self.kind == "function" and self.signature is None:
            raise ValueError(f"function member {self.name!r} requires a signature")
        if self.kind == "type" and self.type is None:
            raise ValueError(f"type member {self.name!r} requires a type")
        return self


class PackageDTO(BaseModel):
    path: str
    root: bool = False
    members: List[MemberDTO] = []


class ProgramDTO(BaseModel):
    abort_primitive: str = DEFAULT_ABORT_PRIMITIVE
    packages: List[PackageDTO] = []
    functions: List[FunctionDTO] = []

    @model_validator(mode="after")
    def _check_indices(self) -> ProgramDTO:
        for fn in self.functions:
            if fn.package is not None and not 0 <= fn.package < len(self.packages):
                raise ValueError(f"function {fn.name!r} refers to unknown package {fn.package}")
            for instr in (i for block in fn.blocks for i in block.instrs):
                for operand in instr.operands:
                    if operand.param is not None and not 0 <= operand.param < len(fn.params):
                        raise ValueError(
                            f"instruction {instr.id} of {fn.name!r} refers to unknown parameter {operand.param}"
                        )
        return self


VarDTO.model_rebuild()
MethodDTO.model_rebuild()
TypeDTO.model_rebuild()


def type_from_dto(dto: Union[TypeDTO, str]) -> Type:
    if isinstance(dto, str):
        return OpaqueType(dto)
    if dto.kind == "basic":
        return BasicType(dto.name or "")
    if dto.kind == "named":
        return NamedType(dto.name or "")
    if dto.kind == "opaque":
        return OpaqueType(dto.name or "")
    if dto.kind == "generic":
        return GenericType(NamedType(dto.name or ""), tuple(type_from_dto(a) for a in dto.args))
    if dto.kind == "union":
        return UnionType(tuple(type_from_dto(a) for a in dto.args))
    if dto.kind == "signature":
        return signature_from_dto(dto)
    if dto.kind == "struct":
        return StructType(tuple(_var(f) for f in dto.fields))
    return InterfaceType(
        tuple(Method(m.name, signature_from_dto(m.signature)) for m in dto.methods)
    )


def _var(dto: VarDTO) -> Var:
    return Var(dto.name, type_from_dto(dto.type))


def signature_from_dto(dto: TypeDTO) -> Signature:
    if dto.kind != "signature":
        raise LoadError(f"expected a signature type, got {dto.kind!r}")
    return Signature(
        params=tuple(_var(p) for p in dto.params),
        results=tuple(_var(r) for r in dto.results),
    )


def _operand(dto: OperandDTO) -> Operand:
    if dto.param is not None:
        return ParamRef(dto.param)
    if dto.const is not None:
        return ConstRef(dto.const)
    return ValueRef(dto.value or "")


def _member(dto: MemberDTO) -> Member:
    if dto.kind == "function" and dto.signature is not None:
        return FunctionMember(dto.name, signature_from_dto(dto.signature))
    return TypeMember(dto.name, type_from_dto(dto.type or "Any"))


def _function(index: int, dto: FunctionDTO) -> Function:
    blocks = tuple(
        BasicBlock(
            index=b,
            instrs=tuple(
                Instruction(
                    id=instr.id,
                    kind=instr.kind,
                    operands=tuple(_operand(o) for o in instr.operands),
                    callee=instr.callee,
                )
                for instr in block.instrs
            ),
        )
        for b, block in enumerate(dto.blocks)
    )
    derived: Dict[int, List[int]] = {}
    for block in blocks:
        for instr in block.instrs:
            for operand in instr.operands:
                if isinstance(operand, ParamRef):
                    derived.setdefault(operand.index, []).append(instr.id)
    params = tuple(
        Parameter(
            name=p.name,
            index=i,
            type=type_from_dto(p.type),
            pos=Position(p.pos.filename, p.pos.line, p.pos.column),
            function=index,
            referrers=tuple(p.referrers if p.referrers is not None else derived.get(i, ())),
        )
        for i, p in enumerate(dto.params)
    )
    if dto.signature is not None:
        signature = signature_from_dto(dto.signature)
    else:
        start = 1 if dto.has_receiver else 0
        signature = Signature(params=tuple(Var(p.name, p.type) for p in params[start:]))
    return Function(
        name=dto.name,
        package=dto.package,
        signature=signature,
        params=params,
        blocks=blocks,
        has_receiver=dto.has_receiver,
    )


def program_from_dto(dto: ProgramDTO) -> Program:
    return Program(
        packages=tuple(
            Package(path=p.path, root=p.root, members=tuple(_member(m) for m in p.members))
            for p in dto.packages
        ),
        functions=tuple(_function(i, fn) for i, fn in enumerate(dto.functions)),
        abort_primitive=dto.abort_primitive,
    )


def load_program_json(path: Path) -> Program:
    """Validate a JSON program model and materialize it."""
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise LoadError(f"cannot read program model: {exc}", path=Path(path)) from exc
    try:
        dto = ProgramDTO.model_validate_json(raw)
    except ValidationError as exc:
        raise LoadError(f"invalid program model: {exc}", path=Path(path)) from exc
    return program_from_dto(dto)
