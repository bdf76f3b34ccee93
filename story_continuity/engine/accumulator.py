from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from loguru import logger

from story_continuity.domain.hashing import node_fingerprint
from story_continuity.domain.models import DeltaIssue, StoryNode, WorldState
from story_continuity.engine.deltas import apply_deltas
from story_continuity.errors import NodeNotFoundError

NodeInput = StoryNode | Mapping[str, Any]


@dataclass(frozen=True)
class AccumulatedState:
    node: StoryNode
    pre: WorldState
    post: WorldState
    delta_issues: list[DeltaIssue] = field(default_factory=list)


def coerce_nodes(nodes: Iterable[NodeInput]) -> list[StoryNode]:
    return [node if isinstance(node, StoryNode) else StoryNode.model_validate(node) for node in nodes]


def sort_nodes(nodes: Iterable[NodeInput]) -> list[StoryNode]:
    """Return nodes in canonical timeline order: ``(order, id)``.

    Exact ``(order, id)`` duplicates fall back to a content fingerprint so the
    result never depends on the caller's array order.
    """

    return sorted(coerce_nodes(nodes), key=lambda node: (node.order, node.id, node_fingerprint(node)))


def compute_pre_and_post(nodes: Iterable[NodeInput], target_node_id: str) -> AccumulatedState:
    ordered = sort_nodes(nodes)
    target_idx = next((idx for idx, node in enumerate(ordered) if node.id == target_node_id), None)
    if target_idx is None:
        raise NodeNotFoundError(target_node_id)

    fold_log = logger.bind(target=target_node_id)

    state: WorldState = {}
    delta_issues: list[DeltaIssue] = []
    for node in ordered[:target_idx]:
        state, issues = apply_deltas(state, node.world_state_delta, node_id=node.id)
        delta_issues.extend(issues)

    target = ordered[target_idx]
    pre = state
    post, target_issues = apply_deltas(pre, target.world_state_delta, node_id=target.id)
    delta_issues.extend(target_issues)

    fold_log.debug(
        "Folded world state nodes_before={} deltas_in_target={} keys_pre={} keys_post={} delta_issues={}",
        target_idx,
        len(target.world_state_delta),
        len(pre),
        len(post),
        len(delta_issues),
    )
    return AccumulatedState(node=target, pre=pre, post=post, delta_issues=delta_issues)


def compute_timeline(nodes: Iterable[NodeInput]) -> list[AccumulatedState]:
    """Pre/post state for every node in a single pass over the timeline.

    Each entry carries the delta issues accumulated up to and including its
    node, matching what ``compute_pre_and_post`` returns for that node.
    """

    ordered = sort_nodes(nodes)
    state: WorldState = {}
    delta_issues: list[DeltaIssue] = []
    timeline: list[AccumulatedState] = []
    for node in ordered:
        post, issues = apply_deltas(state, node.world_state_delta, node_id=node.id)
        delta_issues.extend(issues)
        timeline.append(AccumulatedState(node=node, pre=state, post=post, delta_issues=list(delta_issues)))
        state = post

    logger.debug("Computed timeline nodes={} delta_issues={}", len(timeline), len(delta_issues))
    return timeline
