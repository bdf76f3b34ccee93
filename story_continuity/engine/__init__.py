"""World-state delta application and timeline folding."""

from story_continuity.engine.accumulator import AccumulatedState, compute_pre_and_post, compute_timeline, sort_nodes
from story_continuity.engine.deltas import DeltaOutcome, apply_delta, apply_deltas

__all__ = [
    "AccumulatedState",
    "DeltaOutcome",
    "apply_delta",
    "apply_deltas",
    "compute_pre_and_post",
    "compute_timeline",
    "sort_nodes",
]
