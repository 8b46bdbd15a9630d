"""unparam package root."""

from unparam.exceptions import LoadError, NeverThrown, UnparamError, WorkdirError
from unparam.invariants import never

__all__ = [
    "__version__",
    "LoadError",
    "NeverThrown",
    "UnparamError",
    "WorkdirError",
    "never",
]

__version__ = "0.1.0"
