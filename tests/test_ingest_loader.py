from __future__ import annotations

from pathlib import Path
import textwrap

import orjson
import pytest
from pydantic import ValidationError

from story_continuity.domain.models import DeltaOp
from story_continuity.ingest.loader import load_nodes, parse_nodes


def test_load_nodes_from_json_object(tmp_path: Path) -> None:
    path = tmp_path / "nodes.json"
    path.write_bytes(
        orjson.dumps(
            {
                "nodes": [
                    {
                        "_id": "n1",
                        "time": {"order": 3},
                        "worldStateDelta": [{"key": "trust", "op": "SET", "value": 5}],
                        "cinematicSettings": {"lens": "35mm"},
                    }
                ]
            }
        )
    )

    nodes = load_nodes(path)

    assert len(nodes) == 1
    assert nodes[0].id == "n1"
    assert nodes[0].order == 3
    assert nodes[0].world_state_delta[0].op is DeltaOp.SET


def test_load_nodes_from_yaml_list(tmp_path: Path) -> None:
    path = tmp_path / "nodes.yaml"
    path.write_text(
        textwrap.dedent(
            """
            - id: a
              order: 1
              nodeType: CHAPTER
              hooks:
                foreshadow: ["storm"]
            - id: b
              order: 2
            """
        ).strip(),
        encoding="utf-8",
    )

    nodes = load_nodes(path)

    assert [node.id for node in nodes] == ["a", "b"]
    assert nodes[0].node_type == "CHAPTER"
    assert nodes[0].hooks.foreshadow == ["storm"]
    assert nodes[1].participants == []


def test_load_nodes_rejects_unknown_extension(tmp_path: Path) -> None:
    path = tmp_path / "nodes.txt"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(ValueError):
        load_nodes(path)


def test_parse_nodes_rejects_bad_shapes() -> None:
    with pytest.raises(ValueError):
        parse_nodes({"items": []})

    with pytest.raises(ValidationError):
        parse_nodes([{"id": "n1", "worldStateDelta": [{"key": "x", "op": "MULTIPLY"}]}])

    with pytest.raises(ValidationError):
        parse_nodes([{"id": "n1", "worldStateDelta": [{"key": "", "op": "SET"}]}])
