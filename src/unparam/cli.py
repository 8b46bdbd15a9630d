from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from unparam import __version__
from unparam.analysis.unused_params import analyze_model, analyze_paths
from unparam.config import TomlTable, build_config, merge_payload, resolve_workdir, unparam_defaults
from unparam.exceptions import UnparamError
from unparam.logging_utils import setup_logging

app = typer.Typer(add_completion=False)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"unparam {__version__}")
        raise typer.Exit(code=0)


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Report function parameters that are never used."""


def build_check_payload(
    *,
    exclude: Optional[List[str]],
    ignore_params: Optional[str],
    abort_primitive: Optional[str],
    follow_imports: Optional[bool],
) -> TomlTable:
    payload: TomlTable = {
        "exclude": list(exclude) if exclude else None,
        "ignore_params": ignore_params,
        "abort_primitive": abort_primitive,
        "follow_imports": follow_imports,
    }
    return payload


@app.command()
def check(
    paths: List[Path] = typer.Argument(None),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    model: Optional[Path] = typer.Option(
        None, "--model", help="Analyze a JSON program model instead of Python sources."
    ),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude"),
    ignore_params: Optional[str] = typer.Option(
        None, "--ignore-params", help="Comma-separated parameter names to ignore."
    ),
    abort_primitive: Optional[str] = typer.Option(None, "--abort-primitive"),
    follow_imports: Optional[bool] = typer.Option(
        None, "--follow-imports/--no-follow-imports"
    ),
    fail_on_findings: bool = typer.Option(
        False, "--fail-on-findings", help="Exit 1 when any parameter is reported."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Print one line per unused parameter."""
    setup_logging(verbose)
    try:
        workdir = resolve_workdir()
        defaults = unparam_defaults(root, config)
        payload = build_check_payload(
            exclude=exclude,
            ignore_params=ignore_params,
            abort_primitive=abort_primitive,
            follow_imports=follow_imports,
        )
        settings = build_config(root, merge_payload(payload, defaults))
        if model is not None:
            lines = analyze_model(model, config=settings, workdir=workdir)
        else:
            lines = analyze_paths(paths or [Path(".")], config=settings, workdir=workdir)
    except UnparamError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    for line in lines:
        typer.echo(line)
    if fail_on_findings and lines:
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
