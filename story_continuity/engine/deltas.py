from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Sequence

from story_continuity.domain.models import Delta, DeltaIssue, DeltaOp, Severity, WorldState

_MISSING = object()


@dataclass(frozen=True)
class DeltaOutcome:
    state: WorldState
    issue: DeltaIssue | None = None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def json_type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if _is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def json_equal(left: Any, right: Any) -> bool:
    """Deep equality over JSON values; booleans never equal numbers."""

    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) and _is_number(right):
        return left == right
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(json_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, dict) and isinstance(right, dict):
        if left.keys() != right.keys():
            return False
        return all(json_equal(left[key], right[key]) for key in left)
    if type(left) is not type(right):
        return False
    return left == right


def _type_mismatch(delta: Delta, found: Any, expected: str, node_id: str, delta_index: int) -> DeltaIssue:
    return DeltaIssue(
        code="TYPE_MISMATCH",
        severity=Severity.ERROR,
        node_id=node_id,
        key=delta.key,
        op=delta.op,
        delta_index=delta_index,
        message=(
            f"{delta.op.value} on '{delta.key}' (delta #{delta_index}) expects {expected} but found "
            f"{json_type_name(found)} ({found!r}); value left unchanged."
        ),
        found_type=json_type_name(found),
        expected_type=expected,
    )


def _dangling_remove(delta: Delta, node_id: str, delta_index: int) -> DeltaIssue:
    return DeltaIssue(
        code="DANGLING_REMOVE",
        severity=Severity.INFO,
        node_id=node_id,
        key=delta.key,
        op=delta.op,
        delta_index=delta_index,
        message=f"REMOVE on '{delta.key}' (delta #{delta_index}) ignored: key is not present in world state.",
    )


def apply_delta(state: WorldState, delta: Delta, *, node_id: str = "-", delta_index: int = 0) -> DeltaOutcome:
    """Apply one delta to ``state`` and return the resulting state.

    The input mapping is never modified. Anomalies are reported through
    ``DeltaOutcome.issue`` and leave the prior value untouched.
    """

    current = state.get(delta.key, _MISSING)

    if delta.op is DeltaOp.SET:
        return DeltaOutcome({**state, delta.key: copy.deepcopy(delta.value)})

    if delta.op in (DeltaOp.INC, DeltaOp.DEC):
        if current is _MISSING:
            current = 0
        elif not _is_number(current):
            return DeltaOutcome(state, _type_mismatch(delta, current, "number", node_id, delta_index))
        step = delta.value if _is_number(delta.value) else 1
        result = current + step if delta.op is DeltaOp.INC else current - step
        return DeltaOutcome({**state, delta.key: result})

    if delta.op is DeltaOp.ADD:
        if current is _MISSING:
            return DeltaOutcome({**state, delta.key: [copy.deepcopy(delta.value)]})
        if not isinstance(current, list):
            return DeltaOutcome(state, _type_mismatch(delta, current, "array", node_id, delta_index))
        return DeltaOutcome({**state, delta.key: [*current, copy.deepcopy(delta.value)]})

    # REMOVE
    if current is _MISSING:
        return DeltaOutcome(state, _dangling_remove(delta, node_id, delta_index))
    if isinstance(current, list) and delta.has_value:
        for idx, item in enumerate(current):
            if json_equal(item, delta.value):
                return DeltaOutcome({**state, delta.key: current[:idx] + current[idx + 1 :]})
        return DeltaOutcome(state)
    remaining = dict(state)
    del remaining[delta.key]
    return DeltaOutcome(remaining)


def apply_deltas(
    state: WorldState,
    deltas: Sequence[Delta],
    *,
    node_id: str = "-",
) -> tuple[WorldState, list[DeltaIssue]]:
    issues: list[DeltaIssue] = []
    for delta_index, delta in enumerate(deltas):
        outcome = apply_delta(state, delta, node_id=node_id, delta_index=delta_index)
        state = outcome.state
        if outcome.issue is not None:
            issues.append(outcome.issue)
    return state, issues
