from __future__ import annotations

from unparam.ingest.discovery import iter_python_paths, module_name_for_path, resolve_module, search_roots
from unparam.ingest.python_loader import PYTHON_ABORT_PRIMITIVE, load_program, parse_module

__all__ = [
    "PYTHON_ABORT_PRIMITIVE",
    "iter_python_paths",
    "load_program",
    "module_name_for_path",
    "parse_module",
    "resolve_module",
    "search_roots",
]
