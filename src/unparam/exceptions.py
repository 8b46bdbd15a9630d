"""Error classes raised by unparam."""

from __future__ import annotations

from pathlib import Path


class UnparamError(RuntimeError):
    """Base class for failures that abort an analysis run."""


class LoadError(UnparamError):
    """The program model could not be built.

    Raised for missing inputs, unreadable or unparsable modules (roots and
    dependencies alike) and malformed serialized models. A run that raises
    this produces no partial output.
    """

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)
        self.path = path


class WorkdirError(UnparamError):
    """The working directory could not be resolved."""


class NeverThrown(RuntimeError):
    """Raised by never() when a statically unreachable path is reached."""

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.env = dict(env or {})
