from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from loguru import logger

from story_continuity.continuity.aggregate import aggregate_issues
from story_continuity.continuity.engine import RuleEngine
from story_continuity.domain.hashing import state_fingerprint
from story_continuity.domain.models import ContinuityIssue, Severity, StoryNode, WorldState
from story_continuity.engine.accumulator import AccumulatedState, NodeInput, compute_pre_and_post, compute_timeline


@dataclass
class ContinuityReport:
    node: StoryNode
    issues: list[ContinuityIssue]
    pre_state: WorldState
    post_state: WorldState
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return self.counts.get(Severity.ERROR.value, 0) > 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "nodeId": self.node.id,
            "issues": [issue.to_payload() for issue in self.issues],
            "preState": self.pre_state,
            "postState": self.post_state,
        }


def _count_by_severity(issues: list[ContinuityIssue]) -> dict[str, int]:
    counts = {severity.value: 0 for severity in Severity}
    for issue in issues:
        counts[issue.severity.value] += 1
    return counts


def _report_for(accumulated: AccumulatedState, engine: RuleEngine, include_inherited: bool) -> ContinuityReport:
    node = accumulated.node
    rule_issues = engine.evaluate(node, accumulated.pre, accumulated.post, accumulated.delta_issues)
    issues = aggregate_issues(
        rule_issues,
        delta_issues=accumulated.delta_issues,
        target_node_id=node.id,
        include_inherited=include_inherited,
    )
    counts = _count_by_severity(issues)
    logger.bind(node_id=node.id).info(
        "Continuity check completed errors={} warnings={} infos={} pre_hash={} post_hash={}",
        counts[Severity.ERROR.value],
        counts[Severity.WARN.value],
        counts[Severity.INFO.value],
        state_fingerprint(accumulated.pre)[:12],
        state_fingerprint(accumulated.post)[:12],
    )
    return ContinuityReport(
        node=node,
        issues=issues,
        pre_state=accumulated.pre,
        post_state=accumulated.post,
        counts=counts,
    )


def check_continuity(
    nodes: Iterable[NodeInput],
    target_node_id: str,
    *,
    engine: RuleEngine | None = None,
    include_inherited: bool = True,
) -> ContinuityReport:
    accumulated = compute_pre_and_post(nodes, target_node_id)
    return _report_for(accumulated, engine or RuleEngine(), include_inherited)


def check_all(
    nodes: Iterable[NodeInput],
    *,
    engine: RuleEngine | None = None,
    include_inherited: bool = False,
) -> list[ContinuityReport]:
    """Check every node in timeline order using a single fold.

    Inherited issues are off by default here since every node reports its own.
    """

    rule_engine = engine or RuleEngine()
    return [_report_for(accumulated, rule_engine, include_inherited) for accumulated in compute_timeline(nodes)]
