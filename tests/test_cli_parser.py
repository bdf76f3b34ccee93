from __future__ import annotations

from pathlib import Path

import orjson
import pytest

from story_continuity.cli import EXIT_INPUT_ERROR, EXIT_ISSUES, EXIT_OK, _build_overrides, _build_parser, main


def _write_nodes(tmp_path: Path) -> Path:
    path = tmp_path / "nodes.json"
    path.write_bytes(
        orjson.dumps(
            [
                {"id": "n1", "order": 0, "worldStateDelta": [{"key": "trust", "op": "SET", "value": 5}]},
                {
                    "id": "n2",
                    "order": 1,
                    "participants": [{"entityId": "e1", "role": "SUPPORT"}],
                    "worldStateDelta": [{"key": "trust", "op": "INC", "value": 2}],
                },
            ]
        )
    )
    return path


def test_check_requires_input_and_node_id() -> None:
    parser = _build_parser()
    args = parser.parse_args(["check", "--input", "nodes.json", "--node-id", "n2"])

    assert args.command == "check"
    assert args.node_id == "n2"
    assert args.json is False

    with pytest.raises(SystemExit):
        parser.parse_args(["check", "--input", "nodes.json"])


def test_check_builds_continuity_overrides() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        ["--log-level", "debug", "check", "--input", "x.json", "--node-id", "n1", "--no-inherited", "--disable", "EMPTY_GOAL"]
    )

    overrides = _build_overrides(args)

    assert overrides["app"]["log_level"] == "debug"
    assert overrides["continuity"]["disabled_rules"] == ["EMPTY_GOAL"]
    assert overrides["continuity"]["include_inherited_issues"] is False


def test_rules_command_has_no_continuity_overrides() -> None:
    args = _build_parser().parse_args(["rules"])
    assert _build_overrides(args) == {}


def test_check_json_output_and_exit_code(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    nodes_path = _write_nodes(tmp_path)
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SystemExit) as exc_info:
        main(["check", "--input", str(nodes_path), "--node-id", "n2", "--json"])

    assert exc_info.value.code == EXIT_OK
    payload = orjson.loads(capsys.readouterr().out)
    assert payload["preState"] == {"trust": 5}
    assert payload["postState"] == {"trust": 7}
    assert payload["issues"] == []


def test_check_all_exit_code_reflects_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    path = tmp_path / "nodes.json"
    path.write_bytes(
        orjson.dumps([{"id": "n1", "order": 0, "nodeType": "CHAPTER", "worldStateDelta": [{"key": "x", "op": "SET", "value": "a"}, {"key": "x", "op": "INC"}]}])
    )
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SystemExit) as exc_info:
        main(["check-all", "--input", str(path), "--json"])

    assert exc_info.value.code == EXIT_ISSUES
    payload = orjson.loads(capsys.readouterr().out)
    assert [issue["code"] for issue in payload[0]["issues"]] == ["DELTA_TYPE_MISMATCH"]


def test_unknown_node_exits_with_input_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    nodes_path = _write_nodes(tmp_path)
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SystemExit) as exc_info:
        main(["state", "--input", str(nodes_path), "--node-id", "missing"])

    assert exc_info.value.code == EXIT_INPUT_ERROR


def test_malformed_yaml_input_exits_with_input_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "nodes.yaml"
    path.write_text("- id: [unclosed\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SystemExit) as exc_info:
        main(["check", "--input", str(path), "--node-id", "n1"])

    assert exc_info.value.code == EXIT_INPUT_ERROR
