"""Continuity rules, rule engine and issue aggregation."""

from story_continuity.continuity.aggregate import aggregate_issues
from story_continuity.continuity.engine import RuleEngine, build_rule_engine
from story_continuity.continuity.rules import Rule, default_rules
from story_continuity.continuity.service import ContinuityReport, check_all, check_continuity

__all__ = [
    "ContinuityReport",
    "Rule",
    "RuleEngine",
    "aggregate_issues",
    "build_rule_engine",
    "check_all",
    "check_continuity",
    "default_rules",
]
