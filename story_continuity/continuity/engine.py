from __future__ import annotations

from typing import Iterable, Sequence

from loguru import logger

from story_continuity.config.schema import AppConfigRoot
from story_continuity.continuity.rules import Rule, default_rules
from story_continuity.domain.models import ContinuityIssue, DeltaIssue, StoryNode, WorldState


class RuleEngine:
    """Runs an ordered list of independent continuity rules over one node.

    Rules only see the node, its pre/post world state and the fold-time delta
    issues; they never see each other's output.
    """

    def __init__(self, rules: Iterable[Rule] | None = None) -> None:
        self._rules: list[Rule] = list(default_rules() if rules is None else rules)
        codes = [rule.code for rule in self._rules]
        duplicates = sorted({code for code in codes if codes.count(code) > 1})
        if duplicates:
            raise ValueError(f"Duplicate rule codes: {', '.join(duplicates)}")

    @property
    def rules(self) -> tuple[Rule, ...]:
        return tuple(self._rules)

    @property
    def codes(self) -> list[str]:
        return [rule.code for rule in self._rules]

    def without(self, *codes: str) -> RuleEngine:
        unknown = sorted(set(codes) - set(self.codes))
        if unknown:
            raise ValueError(f"Unknown rule codes: {', '.join(unknown)}")
        return RuleEngine(rule for rule in self._rules if rule.code not in codes)

    def evaluate(
        self,
        node: StoryNode,
        pre: WorldState,
        post: WorldState,
        delta_issues: Sequence[DeltaIssue] = (),
    ) -> list[ContinuityIssue]:
        issues: list[ContinuityIssue] = []
        for rule in self._rules:
            rule_log = logger.bind(node_id=node.id, rule=rule.code)
            try:
                found = rule.check(node, pre, post, delta_issues)
            except Exception:
                rule_log.exception("Continuity rule failed")
                raise
            if found:
                rule_log.debug("Rule reported issues count={}", len(found))
            issues.extend(found)
        return issues


def build_rule_engine(config: AppConfigRoot) -> RuleEngine:
    continuity = config.continuity
    engine = RuleEngine(
        default_rules(
            character_node_types=continuity.character_node_types,
            location_key_template=continuity.location_key_template,
        )
    )
    if continuity.disabled_rules:
        engine = engine.without(*continuity.disabled_rules)
    return engine
