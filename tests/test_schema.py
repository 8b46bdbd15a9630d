from __future__ import annotations

import json
from pathlib import Path

import pytest


def _load():
    from unparam.analysis.unused_params import analyze_model
    from unparam.exceptions import LoadError
    from unparam.schema import ProgramDTO, load_program_json, program_from_dto

    return analyze_model, LoadError, ProgramDTO, load_program_json, program_from_dto


def _sig(*params: str, results: tuple[str, ...] = ()) -> dict[str, object]:
    return {
        "kind": "signature",
        "params": [{"type": {"kind": "basic", "name": p}} for p in params],
        "results": [{"type": {"kind": "basic", "name": r}} for r in results],
    }


def _param(name: str, type_name: str, line: int, column: int) -> dict[str, object]:
    return {
        "name": name,
        "type": {"kind": "basic", "name": type_name},
        "pos": {"filename": "/work/p/p.src", "line": line, "column": column},
    }


def _example_payload() -> dict[str, object]:
    return {
        "packages": [{"path": "p", "root": True, "members": []}],
        "functions": [
            {
                "name": "F",
                "package": 0,
                "signature": _sig("int", "int", results=("int",)),
                "params": [_param("a", "int", 3, 8), _param("b", "int", 3, 15)],
                "blocks": [
                    {"instrs": [{"id": 1, "kind": "return", "operands": [{"param": 0}]}]}
                ],
            },
            {
                "name": "G",
                "package": 0,
                "signature": _sig(),
                "blocks": [
                    {
                        "instrs": [
                            {"id": 2, "kind": "call", "operands": [{"const": "\"x\""}], "callee": "log.info"},
                            {"id": 3, "kind": "return"},
                        ]
                    }
                ],
            },
            {
                "name": "H",
                "package": 0,
                "signature": {
                    "kind": "signature",
                    "params": [{"name": "cb", "type": _sig("int")}],
                },
                "params": [
                    {
                        "name": "cb",
                        "type": _sig("int"),
                        "pos": {"filename": "/work/p/p.src", "line": 9, "column": 8},
                    }
                ],
                "blocks": [{"instrs": [{"id": 4, "kind": "return"}]}],
            },
        ],
    }


def _dump(tmp_path: Path, payload: dict[str, object]) -> Path:
    path = tmp_path / "model.json"
    path.write_text(json.dumps(payload))
    return path


def test_model_end_to_end_example(tmp_path: Path) -> None:
    analyze_model, *_ = _load()
    path = _dump(tmp_path, _example_payload())
    lines = analyze_model(path, workdir="/work")
    assert lines == ["p/p.src:3:15: b is unused", "p/p.src:9:8: cb is unused"]


def test_referrers_are_derived_from_operands(tmp_path: Path) -> None:
    *_, load_program_json, _ = _load()
    program = load_program_json(_dump(tmp_path, _example_payload()))
    f = program.functions[0]
    assert f.params[0].referrers == (1,)
    assert f.params[1].referrers == ()
    assert program.abort_primitive == "throw"
    assert program.root_packages() == {0}


def test_explicit_referrers_win(tmp_path: Path) -> None:
    *_, load_program_json, _ = _load()
    payload = _example_payload()
    payload["functions"][0]["params"][1]["referrers"] = [7]
    program = load_program_json(_dump(tmp_path, payload))
    assert program.functions[0].params[1].used


def test_members_become_contracts(tmp_path: Path) -> None:
    analyze_model, *_ = _load()
    payload = _example_payload()
    payload["packages"].append(
        {
            "path": "dep",
            "members": [
                {
                    "kind": "type",
                    "name": "I",
                    "type": {"kind": "interface", "methods": [{"name": "M", "signature": _sig("int", "int", results=("int",))}]},
                }
            ],
        }
    )
    lines = analyze_model(_dump(tmp_path, payload), workdir="/work")
    assert lines == ["p/p.src:9:8: cb is unused"]


def test_string_types_are_opaque(tmp_path: Path) -> None:
    *_, load_program_json, _ = _load()
    payload = _example_payload()
    payload["functions"][0]["params"][0]["type"] = "Mapping[str, int]"
    program = load_program_json(_dump(tmp_path, payload))
    assert program.functions[0].params[0].type.type_string() == "Mapping[str, int]"


@pytest.mark.parametrize(
    "mutate",
    [
        lambda p: p["functions"][0].update(package=5),
        lambda p: p["functions"][0]["blocks"][0]["instrs"][0].update(kind="teleport"),
        lambda p: p["functions"][0]["blocks"][0]["instrs"][0].update(operands=[{"param": 0, "const": "1"}]),
        lambda p: p["functions"][0]["blocks"][0]["instrs"][0].update(operands=[{"param": 9}]),
        lambda p: p["packages"][0]["members"].append({"kind": "function", "name": "x"}),
    ],
)
def test_invalid_models_raise_load_error(tmp_path: Path, mutate) -> None:
    _, LoadError, _, load_program_json, _ = _load()
    payload = _example_payload()
    mutate(payload)
    with pytest.raises(LoadError, match="invalid program model"):
        load_program_json(_dump(tmp_path, payload))


def test_unreadable_or_malformed_json_raises_load_error(tmp_path: Path) -> None:
    _, LoadError, _, load_program_json, _ = _load()
    with pytest.raises(LoadError, match="cannot read"):
        load_program_json(tmp_path / "missing.json")
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(LoadError):
        load_program_json(bad)


def test_abort_primitive_from_document(tmp_path: Path) -> None:
    *_, ProgramDTO, _, program_from_dto = _load()
    dto = ProgramDTO.model_validate({"abort_primitive": "die"})
    assert program_from_dto(dto).abort_primitive == "die"
