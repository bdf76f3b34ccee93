from __future__ import annotations

from story_continuity.continuity.aggregate import aggregate_issues
from story_continuity.domain.models import ContinuityIssue, DeltaIssue, DeltaOp, Severity


def _issue(severity: Severity, code: str, entity_ids: list[str] | None = None, node_id: str = "n1") -> ContinuityIssue:
    return ContinuityIssue(
        severity=severity,
        code=code,
        message=f"{code} message",
        node_id=node_id,
        entity_ids=entity_ids or [],
    )


def test_sorted_by_severity_then_code_then_entities() -> None:
    issues = [
        _issue(Severity.INFO, "EMPTY_GOAL"),
        _issue(Severity.ERROR, "ROLE_CONFLICT", ["e2"]),
        _issue(Severity.WARN, "NO_PARTICIPANTS"),
        _issue(Severity.ERROR, "DELTA_TYPE_MISMATCH"),
        _issue(Severity.ERROR, "ROLE_CONFLICT", ["e1"]),
        _issue(Severity.INFO, "DANGLING_REMOVE"),
    ]

    result = aggregate_issues(issues)

    assert [(issue.code, issue.entity_ids) for issue in result] == [
        ("DELTA_TYPE_MISMATCH", []),
        ("ROLE_CONFLICT", ["e1"]),
        ("ROLE_CONFLICT", ["e2"]),
        ("NO_PARTICIPANTS", []),
        ("DANGLING_REMOVE", []),
        ("EMPTY_GOAL", []),
    ]
    assert aggregate_issues(list(reversed(issues))) == result


def test_identical_issues_are_kept_as_separate_occurrences() -> None:
    issue = _issue(Severity.WARN, "UNRESOLVED_FORESHADOW")
    assert aggregate_issues([issue, issue]) == [issue, issue]


def test_inherited_delta_issues_are_attributed_to_origin() -> None:
    delta_issues = [
        DeltaIssue(
            code="TYPE_MISMATCH",
            severity=Severity.ERROR,
            node_id="n0",
            key="mood",
            op=DeltaOp.INC,
            delta_index=1,
            message="INC on 'mood' (delta #1) expects number but found string ('calm'); value left unchanged.",
            found_type="string",
            expected_type="number",
        ),
        DeltaIssue(
            code="DANGLING_REMOVE",
            severity=Severity.INFO,
            node_id="n1",
            key="ghost",
            op=DeltaOp.REMOVE,
            delta_index=0,
            message="REMOVE on 'ghost' (delta #0) ignored: key is not present in world state.",
        ),
    ]

    result = aggregate_issues([], delta_issues=delta_issues, target_node_id="n1")

    assert [(issue.code, issue.node_id) for issue in result] == [("DELTA_TYPE_MISMATCH", "n0")]

    without = aggregate_issues([], delta_issues=delta_issues, target_node_id="n1", include_inherited=False)
    assert without == []
