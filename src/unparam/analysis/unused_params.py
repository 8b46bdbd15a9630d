"""Find function parameters that are declared but never read.

The analysis runs in two independent whole-program passes followed by a
filtering step:

  1) Catalog: every function-shaped signature appearing as a function-typed
     parameter, struct field, interface method or function-type declaration
     anywhere in the program (dependencies included).
  2) Scan: every function of a requested package that is not a dummy
     implementation contributes its unread, named, non-receiver parameters.
  3) Report: candidates are ordered by position, those whose function matches
     a catalogued signature are dropped, and the rest are rendered as
     ``path:line:col: name is unused``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from unparam.analysis.report import report
from unparam.analysis.scanner import scan
from unparam.analysis.signatures import build_catalog
from unparam.config import UnparamConfig, resolve_workdir
from unparam.program.model import Program

logger = logging.getLogger(__name__)


def unused_params(
    program: Program,
    *,
    workdir: Path | str | None = None,
    config: UnparamConfig | None = None,
) -> list[str]:
    if config is None:
        config = UnparamConfig()
    catalog = build_catalog(program)
    candidates = scan(
        program,
        program.root_packages(),
        is_ignored_param=config.is_ignored_param,
        abort_primitive=config.abort_primitive,
    )
    logger.debug("%d candidate parameters before contract filtering", len(candidates))
    return report(candidates, catalog, program, workdir=workdir)


def analyze_paths(
    paths: Sequence[Path | str],
    *,
    config: UnparamConfig | None = None,
    workdir: Path | str | None = None,
) -> list[str]:
    """Load Python sources under ``paths`` and report their unused parameters.

    Raises WorkdirError before loading when the working directory cannot be
    resolved, and LoadError when any module fails to load; no partial results
    are produced in either case.
    """
    from unparam.ingest import load_program

    if workdir is None:
        workdir = resolve_workdir()
    if config is None:
        config = UnparamConfig(project_root=Path(workdir))
    program = load_program([Path(p) for p in paths], config=config)
    return unused_params(program, workdir=workdir, config=config)


def analyze_model(
    model_path: Path,
    *,
    config: UnparamConfig | None = None,
    workdir: Path | str | None = None,
) -> list[str]:
    """Report unused parameters of a serialized program model."""
    from unparam.schema import load_program_json

    if workdir is None:
        workdir = resolve_workdir()
    program = load_program_json(model_path)
    return unused_params(program, workdir=workdir, config=config)
