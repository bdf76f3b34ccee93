from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Sequence

from story_continuity.domain.models import (
    ContinuityIssue,
    DeltaIssue,
    DeltaOp,
    NodeType,
    Severity,
    StoryNode,
    WorldState,
)

RuleCheck = Callable[[StoryNode, WorldState, WorldState, Sequence[DeltaIssue]], list[ContinuityIssue]]

DEFAULT_CHARACTER_NODE_TYPES: tuple[NodeType, ...] = ("SCENE", "BEAT")
DEFAULT_LOCATION_KEY_TEMPLATE = "character.{entity_id}.location"


@dataclass(frozen=True)
class Rule:
    code: str
    severity: Severity
    description: str
    check: RuleCheck


def _blank(text: str) -> bool:
    return not text.strip()


def delta_issue_to_continuity(issue: DeltaIssue) -> ContinuityIssue:
    """Surface a fold-time delta issue as a continuity issue for its own node."""

    if issue.code == "TYPE_MISMATCH":
        return ContinuityIssue(
            severity=Severity.ERROR,
            code="DELTA_TYPE_MISMATCH",
            message=issue.message,
            node_id=issue.node_id,
            suggestion=(
                f"Expected type {issue.expected_type} for '{issue.key}' before {issue.op.value}; "
                f"use SET to replace the {issue.found_type} value first."
            ),
        )
    return ContinuityIssue(
        severity=Severity.INFO,
        code="DANGLING_REMOVE",
        message=issue.message,
        node_id=issue.node_id,
        suggestion=f"Drop the REMOVE delta or add '{issue.key}' in an earlier node.",
    )


def check_duplicate_key_write(node, pre, post, delta_issues) -> list[ContinuityIssue]:
    counts = Counter(delta.key for delta in node.world_state_delta if delta.op is DeltaOp.SET)
    issues: list[ContinuityIssue] = []
    for key in sorted(key for key, count in counts.items() if count > 1):
        issues.append(
            ContinuityIssue(
                severity=Severity.INFO,
                code="DUPLICATE_KEY_WRITE",
                message=f"'{key}' is SET {counts[key]} times in this node; only the last write takes effect.",
                node_id=node.id,
                suggestion="Remove the shadowed SET deltas.",
            )
        )
    return issues


def check_role_conflict(node, pre, post, delta_issues) -> list[ContinuityIssue]:
    roles: dict[str, list[str]] = {}
    for participant in node.participants:
        seen = roles.setdefault(participant.entity_id, [])
        if participant.role not in seen:
            seen.append(participant.role)

    issues: list[ContinuityIssue] = []
    for entity_id in sorted(roles):
        if len(roles[entity_id]) < 2:
            continue
        issues.append(
            ContinuityIssue(
                severity=Severity.ERROR,
                code="ROLE_CONFLICT",
                message=f"Participant {entity_id} has conflicting roles: {', '.join(roles[entity_id])}.",
                node_id=node.id,
                entity_ids=[entity_id],
                suggestion="Keep a single role per participant in a node.",
            )
        )
    return issues


def check_delta_type_mismatch(node, pre, post, delta_issues) -> list[ContinuityIssue]:
    return [
        delta_issue_to_continuity(issue)
        for issue in delta_issues
        if issue.code == "TYPE_MISMATCH" and issue.node_id == node.id
    ]


def check_dangling_remove(node, pre, post, delta_issues) -> list[ContinuityIssue]:
    return [
        delta_issue_to_continuity(issue)
        for issue in delta_issues
        if issue.code == "DANGLING_REMOVE" and issue.node_id == node.id
    ]


def check_unresolved_foreshadow(node, pre, post, delta_issues) -> list[ContinuityIssue]:
    foreshadow = [item for item in node.hooks.foreshadow if not _blank(item)]
    if not foreshadow or node.hooks.payoff_targets:
        return []
    return [
        ContinuityIssue(
            severity=Severity.WARN,
            code="UNRESOLVED_FORESHADOW",
            message=f"Node foreshadows {len(foreshadow)} thread(s) but declares no payoff targets.",
            node_id=node.id,
            suggestion="Add payoffTargets pointing at the node(s) that resolve the foreshadowing.",
        )
    ]


def check_empty_goal(node, pre, post, delta_issues) -> list[ContinuityIssue]:
    goals = node.goals
    if not _blank(goals.dramatic_goal) or (_blank(goals.conflict) and _blank(goals.turn)):
        return []
    return [
        ContinuityIssue(
            severity=Severity.INFO,
            code="EMPTY_GOAL",
            message="Dramatic goal is blank while conflict or turn is filled in.",
            node_id=node.id,
            suggestion="State what the node is trying to achieve dramatically.",
        )
    ]


def make_no_participants_check(character_node_types: Sequence[NodeType] = DEFAULT_CHARACTER_NODE_TYPES) -> RuleCheck:
    node_types = frozenset(character_node_types)

    def check_no_participants(node, pre, post, delta_issues) -> list[ContinuityIssue]:
        if node.participants or node.node_type not in node_types:
            return []
        return [
            ContinuityIssue(
                severity=Severity.WARN,
                code="NO_PARTICIPANTS",
                message=f"{node.node_type} node has no participants.",
                node_id=node.id,
                suggestion="Add the characters who appear in this node.",
            )
        ]

    return check_no_participants


def make_location_mismatch_check(key_template: str = DEFAULT_LOCATION_KEY_TEMPLATE) -> RuleCheck:
    def check_char_location_mismatch(node, pre, post, delta_issues) -> list[ContinuityIssue]:
        scene_location = node.locations[0] if node.locations else ""
        if not scene_location:
            return []
        issues: list[ContinuityIssue] = []
        seen: set[str] = set()
        for participant in node.participants:
            entity_id = participant.entity_id
            if entity_id in seen:
                continue
            seen.add(entity_id)
            key = key_template.format(entity_id=entity_id)
            post_loc = post.get(key)
            pre_loc = pre.get(key)
            effective = post_loc if isinstance(post_loc, str) else pre_loc if isinstance(pre_loc, str) else None
            if not effective or effective == scene_location:
                continue
            issues.append(
                ContinuityIssue(
                    severity=Severity.WARN,
                    code="CHAR_LOCATION_MISMATCH",
                    message=(
                        f"Character {entity_id} location ({effective}) differs from scene location "
                        f"({scene_location})."
                    ),
                    node_id=node.id,
                    entity_ids=[entity_id],
                    suggestion=f"Add a travel delta ({key} SET <locationId>) or adjust the scene location.",
                )
            )
        return issues

    return check_char_location_mismatch


def check_item_resurrected(node, pre, post, delta_issues) -> list[ContinuityIssue]:
    issues: list[ContinuityIssue] = []
    for delta in node.world_state_delta:
        if delta.op is not DeltaOp.SET:
            continue
        if not (delta.key.startswith("item.") and delta.key.endswith(".status")):
            continue
        if pre.get(delta.key) == "DESTROYED" and delta.value != "DESTROYED":
            item_id = delta.key[len("item.") : -len(".status")]
            issues.append(
                ContinuityIssue(
                    severity=Severity.ERROR,
                    code="ITEM_RESURRECTED",
                    message=f"Item status resurrected from DESTROYED to {delta.value}.",
                    node_id=node.id,
                    entity_ids=[item_id] if item_id else [],
                    suggestion="If intentional, create a new item entity or explain the recovery in-world.",
                )
            )
    return issues


def default_rules(
    *,
    character_node_types: Sequence[NodeType] = DEFAULT_CHARACTER_NODE_TYPES,
    location_key_template: str = DEFAULT_LOCATION_KEY_TEMPLATE,
) -> list[Rule]:
    return [
        Rule(
            "DUPLICATE_KEY_WRITE",
            Severity.INFO,
            "Same key SET more than once in a node",
            check_duplicate_key_write,
        ),
        Rule("ROLE_CONFLICT", Severity.ERROR, "Participant listed with different roles", check_role_conflict),
        Rule(
            "DELTA_TYPE_MISMATCH",
            Severity.ERROR,
            "INC/DEC/ADD applied to a value of the wrong type",
            check_delta_type_mismatch,
        ),
        Rule("DANGLING_REMOVE", Severity.INFO, "REMOVE of a key that does not exist", check_dangling_remove),
        Rule(
            "UNRESOLVED_FORESHADOW",
            Severity.WARN,
            "Foreshadowing without payoff targets",
            check_unresolved_foreshadow,
        ),
        Rule("EMPTY_GOAL", Severity.INFO, "Conflict or turn set without a dramatic goal", check_empty_goal),
        Rule(
            "NO_PARTICIPANTS",
            Severity.WARN,
            "Character-bearing node without participants",
            make_no_participants_check(character_node_types),
        ),
        Rule(
            "CHAR_LOCATION_MISMATCH",
            Severity.WARN,
            "Participant tracked at a different location than the scene",
            make_location_mismatch_check(location_key_template),
        ),
        Rule(
            "ITEM_RESURRECTED",
            Severity.ERROR,
            "Destroyed item set back to another status",
            check_item_resurrected,
        ),
    ]
