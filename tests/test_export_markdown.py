from __future__ import annotations

from pathlib import Path

from story_continuity.continuity.service import check_all
from story_continuity.domain.models import ContinuityIssue, Severity
from story_continuity.export.markdown import (
    _render_issues,
    _render_state,
    _safe_filename,
    export_report_markdown,
    render_report,
)


def _nodes() -> list[dict]:
    return [
        {
            "id": "n1",
            "order": 0,
            "title": "Oath",
            "goals": {"dramaticGoal": "Swear"},
            "participants": [{"entityId": "mara", "role": "PROTAGONIST"}],
            "worldStateDelta": [{"key": "trust", "op": "SET", "value": 5}],
        },
        {
            "id": "n2",
            "order": 1,
            "title": "Betrayal",
            "participants": [],
            "worldStateDelta": [{"key": "trust", "op": "ADD", "value": 1}],
        },
    ]


def test_safe_filename() -> None:
    assert _safe_filename("Continuity report: act 1/2") == "Continuity_report__act_1_2"
    assert _safe_filename("  ") == "untitled"


def test_render_state_empty_and_sorted() -> None:
    assert "_(empty)_" in _render_state("Pre-state", {})
    rendered = _render_state("Post-state", {"b": 1, "a": [1, 2]})
    assert rendered.index('"a"') < rendered.index('"b"')


def test_render_issues_escapes_pipes() -> None:
    rendered = _render_issues(
        [
            ContinuityIssue(
                severity=Severity.WARN,
                code="NO_PARTICIPANTS",
                message="a | b",
                node_id="n2",
            )
        ]
    )
    assert "a \\| b" in rendered
    assert "| WARN | NO_PARTICIPANTS | n2 |" in rendered
    assert _render_issues([]) == "No continuity issues.\n"


def test_render_report_summary() -> None:
    rendered = render_report(check_all(_nodes()), "Act one")

    assert rendered.startswith("# Act one")
    assert "Nodes checked: 2" in rendered
    assert "errors: 1" in rendered
    assert "## [1] Betrayal" in rendered


def test_export_report_markdown_writes_file(tmp_path: Path) -> None:
    reports = check_all(_nodes())

    result = export_report_markdown(reports, tmp_path / "out", title="Act one")

    assert result.report_path == tmp_path / "out" / "Act_one.md"
    assert result.nodes_exported == 2
    assert result.issues_exported == sum(len(report.issues) for report in reports)
    text = result.report_path.read_text(encoding="utf-8")
    assert "DELTA_TYPE_MISMATCH" in text
