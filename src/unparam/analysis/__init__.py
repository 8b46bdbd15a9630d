from unparam.analysis.report import report, sort_candidates
from unparam.analysis.scanner import scan
from unparam.analysis.signatures import build_catalog, signature_key
from unparam.analysis.stubs import is_stub
from unparam.analysis.unused_params import analyze_model, analyze_paths, unused_params

__all__ = [
    "analyze_model",
    "analyze_paths",
    "build_catalog",
    "is_stub",
    "report",
    "scan",
    "signature_key",
    "sort_candidates",
    "unused_params",
]
