"""Invariant markers."""

from __future__ import annotations

from typing import NoReturn

from unparam.exceptions import NeverThrown


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as intentionally unreachable.

    The env payload is attached to the raised exception for diagnostics only.
    """
    message = reason or "unreachable code path reached"
    if env:
        details = ", ".join(f"{key}={env[key]!r}" for key in sorted(env))
        message = f"{message} ({details})"
    raise NeverThrown(message, env=env)
