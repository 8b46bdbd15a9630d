from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from unparam.config import UnparamConfig
from unparam.exceptions import LoadError

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = (".py", ".pyi")


def iter_python_paths(paths: Iterable[Path], *, config: UnparamConfig) -> list[Path]:
    """Expand input paths to python files, pruning ignored directories early."""
    out: list[Path] = []
    for path in paths:
        if not path.exists():
            raise LoadError("no such file or directory", path=path)
        if path.is_dir():
            for root, dirnames, filenames in os.walk(path, topdown=True):
                dirnames[:] = sorted(d for d in dirnames if d not in config.exclude_dirs)
                for filename in sorted(filenames):
                    if not filename.endswith(SOURCE_SUFFIXES):
                        continue
                    candidate = Path(root) / filename
                    if config.is_ignored_path(candidate.relative_to(path)):
                        continue
                    out.append(candidate.resolve())
        elif path.suffix in SOURCE_SUFFIXES:
            out.append(path.resolve())
        else:
            raise LoadError("not a Python source file", path=path)
    unique = sorted(set(out), key=lambda p: p.as_posix())
    if not unique:
        joined = ", ".join(str(p) for p in paths) or "."
        raise LoadError(f"no Python modules found in {joined}")
    logger.debug("discovered %d python files", len(unique))
    return unique


def search_roots(config: UnparamConfig) -> list[Path]:
    """Import roots, most specific first."""
    root = config.resolved_root()
    roots: list[Path] = []
    for candidate in (*config.search_paths, root / "src", root):
        candidate = candidate.resolve()
        if candidate.is_dir() and candidate not in roots:
            roots.append(candidate)
    return sorted(roots, key=lambda p: len(p.parts), reverse=True)


def module_name_for_path(path: Path, roots: Iterable[Path]) -> tuple[str, bool]:
    """Return the dotted module name of ``path`` and whether it is a package."""
    path = path.resolve()
    for root in roots:
        try:
            rel = path.relative_to(root)
        except ValueError:
            continue
        parts = list(rel.with_suffix("").parts)
        if parts and parts[-1] == "__init__":
            return ".".join(parts[:-1]) or root.name, True
        if parts:
            return ".".join(parts), False
    if path.stem == "__init__":
        return path.parent.name, True
    return path.stem, False


def resolve_module(name: str, roots: Iterable[Path]) -> Path | None:
    """Find the source file of a dotted module name under the search roots."""
    parts = name.split(".")
    if not all(parts):
        return None
    for root in roots:
        base = root.joinpath(*parts)
        for candidate in (
            base.with_suffix(".py"),
            base / "__init__.py",
            base.with_suffix(".pyi"),
            base / "__init__.pyi",
        ):
            if candidate.is_file():
                return candidate.resolve()
    return None
