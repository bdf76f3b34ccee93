from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson
import yaml
from loguru import logger

from story_continuity.domain.models import StoryNode

_JSON_SUFFIXES = {".json"}
_YAML_SUFFIXES = {".yaml", ".yml"}


def _read_payload(path: Path) -> Any:
    suffix = path.suffix.lower()
    if suffix in _JSON_SUFFIXES:
        return orjson.loads(path.read_bytes())
    if suffix in _YAML_SUFFIXES:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    raise ValueError(f"Unsupported node file extension: {path.suffix or '(none)'}")


def parse_nodes(payload: Any) -> list[StoryNode]:
    if isinstance(payload, dict):
        payload = payload.get("nodes")
    if not isinstance(payload, list):
        raise ValueError("Expected a list of story nodes or an object with a 'nodes' list")
    return [StoryNode.model_validate(item) for item in payload]


def load_nodes(path: Path) -> list[StoryNode]:
    logger.info("Reading story nodes from {}", path)
    nodes = parse_nodes(_read_payload(path))
    logger.info("Parsed {} story nodes", len(nodes))
    return nodes
