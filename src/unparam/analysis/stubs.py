"""Detection of dummy implementations.

A block is a dummy implementation when it will almost immediately panic,
abort or return constants only. Unused parameters of such functions are
expected (unfinished code, adapters) and are never reported.
"""

from __future__ import annotations

import re

from unparam.invariants import never
from unparam.program.model import (
    DEFAULT_ABORT_PRIMITIVE,
    BasicBlock,
    ConstRef,
    EffectClass,
    Instruction,
)

HARMLESS_CALL_RE = re.compile(r"(?i)\blog(ger)?\b|\bf?print")


def bare_name(callee: str) -> str:
    """Return the last dotted component of a callee, without call syntax."""
    name = callee.strip()
    if "(" in name:
        name = name.split("(", 1)[0]
    return name.rsplit(".", 1)[-1]


def is_harmless_call(callee: str) -> bool:
    return HARMLESS_CALL_RE.search(callee) is not None


def _returns_constants(instr: Instruction) -> bool:
    # A bare return yields nothing and so is not a constant-return stub.
    if not instr.operands:
        return False
    return all(isinstance(operand, ConstRef) for operand in instr.operands)


def is_stub(block: BasicBlock, *, abort_primitive: str = DEFAULT_ABORT_PRIMITIVE) -> bool:
    for instr in block.instrs:
        effect = instr.kind.effect
        if effect is EffectClass.PURE:
            # arguments of a trailing panic/log/print call
            continue
        if effect is EffectClass.RETURN:
            return _returns_constants(instr)
        if effect is EffectClass.PANIC:
            return True
        if effect is EffectClass.CALL:
            if is_harmless_call(instr.callee):
                continue
            return bare_name(instr.callee) == abort_primitive
        if effect is EffectClass.OTHER:
            return False
        never("unknown effect class", effect=effect, kind=instr.kind)
    return False
