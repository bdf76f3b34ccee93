from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence
import re

import orjson
from loguru import logger

from story_continuity.continuity.service import ContinuityReport
from story_continuity.domain.models import ContinuityIssue, Severity


@dataclass
class ExportResult:
    output_dir: Path
    report_path: Path
    nodes_exported: int
    issues_exported: int


def _safe_filename(text: str) -> str:
    sanitized = re.sub(r"[\\/:*?\"<>|]+", "_", text).strip()
    sanitized = re.sub(r"\s+", "_", sanitized)
    return sanitized or "untitled"


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def _render_state(title: str, state: dict[str, Any]) -> str:
    if not state:
        return f"**{title}:** _(empty)_\n"
    body = orjson.dumps(state, option=orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2).decode("utf-8")
    return f"**{title}:**\n\n```json\n{body}\n```\n"


def _render_issues(issues: Sequence[ContinuityIssue]) -> str:
    if not issues:
        return "No continuity issues.\n"

    lines = [
        "| Severity | Code | Node | Entities | Message | Suggestion |",
        "| --- | --- | --- | --- | --- | --- |",
    ]
    for issue in issues:
        entities = ", ".join(issue.entity_ids)
        lines.append(
            f"| {issue.severity.value} | {issue.code} | {issue.node_id} | {_escape_cell(entities)} "
            f"| {_escape_cell(issue.message)} | {_escape_cell(issue.suggestion or '')} |"
        )
    lines.append("")
    return "\n".join(lines)


def _render_node_section(report: ContinuityReport, include_states: bool) -> str:
    node = report.node
    heading = f"## [{node.order}] {node.title or node.id}"
    parts = [heading, "", f"`{node.id}` · {node.node_type}", "", _render_issues(report.issues)]
    if include_states:
        parts.append(_render_state("Pre-state", report.pre_state))
        parts.append(_render_state("Post-state", report.post_state))
    return "\n".join(parts)


def _render_summary(reports: Sequence[ContinuityReport]) -> str:
    totals = {severity.value: 0 for severity in Severity}
    for report in reports:
        for issue in report.issues:
            totals[issue.severity.value] += 1
    return (
        f"Nodes checked: {len(reports)} · "
        f"errors: {totals['ERROR']} · warnings: {totals['WARN']} · info: {totals['INFO']}\n"
    )


def render_report(reports: Sequence[ContinuityReport], title: str, include_states: bool = True) -> str:
    sections = [f"# {title}", "", _render_summary(reports)]
    sections.extend(_render_node_section(report, include_states) for report in reports)
    return "\n".join(sections)


def export_report_markdown(
    reports: Sequence[ContinuityReport],
    output_dir: Path,
    title: str = "Continuity report",
    include_states: bool = True,
) -> ExportResult:
    output_dir.mkdir(parents=True, exist_ok=True)
    report_path = output_dir / f"{_safe_filename(title)}.md"
    report_path.write_text(render_report(reports, title, include_states), encoding="utf-8")

    issues_exported = sum(len(report.issues) for report in reports)
    logger.info("Exported continuity report to {} nodes={} issues={}", report_path, len(reports), issues_exported)
    return ExportResult(
        output_dir=output_dir,
        report_path=report_path,
        nodes_exported=len(reports),
        issues_exported=issues_exported,
    )
