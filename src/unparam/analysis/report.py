from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import AbstractSet, Iterable

from unparam.analysis.signatures import signature_key
from unparam.program.model import Parameter, Position, Program

logger = logging.getLogger(__name__)


def relative_position(pos: Position, workdir: Path | str | None) -> str:
    """Render a position, relative to workdir when the file lies under it."""
    line = str(pos)
    if workdir is None:
        return line
    root = os.fspath(workdir).rstrip(os.sep)
    if not root:
        return line
    prefix = root + os.sep
    if line.startswith(prefix):
        return line[len(prefix):]
    return line


def sort_candidates(candidates: Iterable[Parameter]) -> list[Parameter]:
    return sorted(candidates, key=lambda par: par.pos.sort_key())


def report(
    candidates: Iterable[Parameter],
    catalog: AbstractSet[str],
    program: Program,
    *,
    workdir: Path | str | None = None,
) -> list[str]:
    warns: list[str] = []
    for par in sort_candidates(candidates):
        sign = program.function_of(par).signature
        if signature_key(sign) in catalog:
            # could be required by a field, interface or function type
            logger.debug("suppressed %s at %s: contract signature", par.name, par.pos)
            continue
        warns.append(f"{relative_position(par.pos, workdir)}: {par.name} is unused")
    return warns
