from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

from unparam.exceptions import WorkdirError

DEFAULT_CONFIG_NAME = "unparam.toml"
DEFAULT_EXCLUDE_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".tox",
        ".venv",
        "__pycache__",
        "build",
        "dist",
        "node_modules",
        "venv",
    }
)
PLACEHOLDER_PARAM = "_"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


@dataclass(frozen=True)
class UnparamConfig:
    # None means the working directory at the time of use.
    project_root: Path | None = None
    exclude_dirs: frozenset[str] = DEFAULT_EXCLUDE_DIRS
    ignore_params: frozenset[str] = frozenset()
    # None defers to the program model's own host constant.
    abort_primitive: str | None = None
    search_paths: tuple[Path, ...] = ()
    follow_imports: bool = True

    def resolved_root(self) -> Path:
        if self.project_root is not None:
            return self.project_root.resolve()
        return resolve_workdir()

    def is_ignored_path(self, path: Path) -> bool:
        return bool(self.exclude_dirs & set(path.parts))

    def is_ignored_param(self, name: str) -> bool:
        if name in ("", PLACEHOLDER_PARAM):
            return True
        return name in self.ignore_params


def resolve_workdir() -> Path:
    try:
        return Path.cwd()
    except OSError as exc:
        raise WorkdirError(f"cannot resolve working directory: {exc}") from exc


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else resolve_workdir()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def unparam_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("unparam", {})
    return section if isinstance(section, dict) else {}


def _normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            if isinstance(item, str):
                items.extend([part.strip() for part in item.split(",") if part.strip()])
    return [item for item in items if item]


def _as_bool(value: TomlValue, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return default


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


def build_config(root: Path, section: TomlTable) -> UnparamConfig:
    """Turn a merged ``[unparam]`` table into an UnparamConfig."""
    root = root.resolve()
    exclude = DEFAULT_EXCLUDE_DIRS | frozenset(_normalize_name_list(section.get("exclude")))
    search_paths: list[Path] = []
    for entry in _normalize_name_list(section.get("search_paths")):
        path = Path(entry)
        if not path.is_absolute():
            path = root / path
        search_paths.append(path)
    abort_primitive = section.get("abort_primitive")
    if not isinstance(abort_primitive, str) or not abort_primitive.strip():
        abort_primitive = None
    return UnparamConfig(
        project_root=root,
        exclude_dirs=exclude,
        ignore_params=frozenset(_normalize_name_list(section.get("ignore_params"))),
        abort_primitive=abort_primitive.strip() if abort_primitive else None,
        search_paths=tuple(search_paths),
        follow_imports=_as_bool(section.get("follow_imports"), True),
    )
