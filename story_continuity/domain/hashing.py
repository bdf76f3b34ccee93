from __future__ import annotations

import hashlib
from typing import Any

import orjson

from story_continuity.domain.models import StoryNode


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def canonical_json(value: Any) -> str:
    return orjson.dumps(value, option=orjson.OPT_SORT_KEYS).decode("utf-8")


def state_fingerprint(state: dict[str, Any]) -> str:
    """Stable digest of a world state; equal states always hash equal."""

    return sha256_text(canonical_json(state))


def node_fingerprint(node: StoryNode) -> str:
    return sha256_text(canonical_json(node.model_dump(mode="json", by_alias=True)))
