from __future__ import annotations

from typing import Iterable, Sequence

from story_continuity.continuity.rules import delta_issue_to_continuity
from story_continuity.domain.models import ContinuityIssue, DeltaIssue


def issue_sort_key(issue: ContinuityIssue) -> tuple[int, str, str, str, str]:
    entity_key = ",".join(sorted(issue.entity_ids))
    return (-issue.severity.rank, issue.code, entity_key, issue.node_id, issue.message)


def aggregate_issues(
    rule_issues: Iterable[ContinuityIssue],
    *,
    delta_issues: Sequence[DeltaIssue] = (),
    target_node_id: str | None = None,
    include_inherited: bool = True,
) -> list[ContinuityIssue]:
    """Merge rule output into one ordered list.

    Delta issues raised by nodes other than ``target_node_id`` are added as
    inherited issues attributed to the node that produced them. Rule issues
    already cover the target's own delta issues, so the two sources never
    overlap; identical entries are distinct occurrences and are all kept.
    """

    merged: list[ContinuityIssue] = list(rule_issues)
    if include_inherited:
        merged.extend(
            delta_issue_to_continuity(issue) for issue in delta_issues if issue.node_id != target_node_id
        )
    return sorted(merged, key=issue_sort_key)
