"""Catalogue of contract-constrained function signatures.

A function whose signature appears anywhere in the program as a field type,
an interface method, a function-type declaration or a function-typed
parameter may be required to keep that exact parameter list, so its unused
parameters are not actionable.
"""

from __future__ import annotations

import logging
from typing import Iterable

from unparam.program.model import FunctionMember, Program, TypeMember
from unparam.program.types import InterfaceType, Signature, StructType, Type

logger = logging.getLogger(__name__)


def _tuple_join(types: Iterable[Type]) -> str:
    return "(" + ", ".join(t.type_string() for t in types) + ")"


def signature_key(sign: Signature) -> str:
    """Render a signature as ``(params)(results)``, ignoring names."""
    return _tuple_join(sign.param_types()) + _tuple_join(sign.result_types())


def _signature_keys(program: Program) -> Iterable[str]:
    def keyed(t: Type) -> Iterable[str]:
        if isinstance(t, Signature) and t.params:
            yield signature_key(t)

    for _pkg, member in program.iter_members():
        if isinstance(member, FunctionMember):
            for param in member.signature.params:
                yield from keyed(param.type)
            continue
        if not isinstance(member, TypeMember):
            continue
        underlying = member.type.underlying()
        if isinstance(underlying, StructType):
            for field in underlying.fields:
                yield from keyed(field.type)
        elif isinstance(underlying, InterfaceType):
            for method in underlying.methods:
                yield from keyed(method.signature)
        elif isinstance(underlying, Signature):
            yield from keyed(underlying)


def build_catalog(program: Program) -> frozenset[str]:
    catalog = frozenset(_signature_keys(program))
    logger.debug(
        "signature catalog: %d entries across %d packages",
        len(catalog),
        len(program.packages),
    )
    return catalog
