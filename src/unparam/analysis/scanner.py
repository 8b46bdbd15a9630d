from __future__ import annotations

import logging
from typing import AbstractSet, Callable

from unparam.analysis.stubs import is_stub
from unparam.config import PLACEHOLDER_PARAM
from unparam.program.model import Function, Parameter, Program

logger = logging.getLogger(__name__)


def _default_ignored(name: str) -> bool:
    return name in ("", PLACEHOLDER_PARAM)


def _skip_reason(
    fn: Function,
    root_packages: AbstractSet[int],
    abort_primitive: str,
) -> str | None:
    if fn.package is None:
        return "builtin"
    entry = fn.entry_block
    if entry is None:
        return "no body"
    if fn.package not in root_packages:
        return "not a requested package"
    if is_stub(entry, abort_primitive=abort_primitive):
        return "dummy implementation"
    return None


def scan(
    program: Program,
    root_packages: AbstractSet[int] | None = None,
    *,
    is_ignored_param: Callable[[str], bool] = _default_ignored,
    abort_primitive: str | None = None,
) -> list[Parameter]:
    """Collect parameters of requested functions that nothing reads.

    The result is in discovery order; the reporter owns the final ordering.
    """
    if root_packages is None:
        root_packages = program.root_packages()
    if abort_primitive is None:
        abort_primitive = program.abort_primitive
    potential: list[Parameter] = []
    for fn in program.functions:
        reason = _skip_reason(fn, root_packages, abort_primitive)
        if reason is not None:
            logger.debug("skipping %s: %s", fn.name, reason)
            continue
        for i, par in enumerate(fn.params):
            if i == 0 and fn.has_receiver:
                continue
            if is_ignored_param(par.name):
                continue
            if par.used:
                continue
            potential.append(par)
    return potential
