from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Sequence

import orjson
import yaml
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.pretty import Pretty
from rich.table import Table

from story_continuity.config import load_config
from story_continuity.config.loader import masked_env_snapshot
from story_continuity.config.schema import AppConfigRoot
from story_continuity.continuity.engine import RuleEngine, build_rule_engine
from story_continuity.continuity.service import ContinuityReport, check_all, check_continuity
from story_continuity.domain.hashing import state_fingerprint
from story_continuity.domain.models import Severity
from story_continuity.engine.accumulator import compute_pre_and_post
from story_continuity.errors import ContinuityError
from story_continuity.export.markdown import export_report_markdown
from story_continuity.ingest.loader import load_nodes
from story_continuity.utils.logging import setup_logging

console = Console()

_SEVERITY_STYLE = {
    Severity.ERROR: "bold red",
    Severity.WARN: "yellow",
    Severity.INFO: "cyan",
}

EXIT_OK = 0
EXIT_ISSUES = 1
EXIT_INPUT_ERROR = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="story-continuity")
    parser.add_argument("--config", type=Path, default=None, help="Path to custom config YAML")
    parser.add_argument("--profile", type=str, default=None, help="Config profile name")
    parser.add_argument("--output-dir", type=Path, default=None, help="Override output directory")
    parser.add_argument("--log-level", type=str, default=None, help="Override log level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("config", help="Validate and print effective config")
    subparsers.add_parser("rules", help="List active continuity rules")

    state_parser = subparsers.add_parser("state", help="Print world state before and after a node")
    state_parser.add_argument("--input", type=Path, required=True, help="Story node file (JSON or YAML)")
    state_parser.add_argument("--node-id", type=str, required=True, help="Target node id")
    state_parser.add_argument("--json", action="store_true", help="Emit JSON instead of tables")

    check_parser = subparsers.add_parser("check", help="Run the continuity check for one node")
    check_parser.add_argument("--input", type=Path, required=True, help="Story node file (JSON or YAML)")
    check_parser.add_argument("--node-id", type=str, required=True, help="Target node id")
    check_parser.add_argument("--json", action="store_true", help="Emit JSON instead of tables")
    check_parser.add_argument("--no-inherited", action="store_true", help="Skip delta issues from earlier nodes")
    check_parser.add_argument("--disable", nargs="+", default=None, metavar="CODE", help="Rule codes to skip")

    check_all_parser = subparsers.add_parser("check-all", help="Run the continuity check for every node")
    check_all_parser.add_argument("--input", type=Path, required=True, help="Story node file (JSON or YAML)")
    check_all_parser.add_argument("--json", action="store_true", help="Emit JSON instead of tables")
    check_all_parser.add_argument("--disable", nargs="+", default=None, metavar="CODE", help="Rule codes to skip")
    check_all_parser.add_argument("--export", action="store_true", help="Write a markdown report to the output dir")

    return parser


def _build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    app_overrides: dict[str, Any] = {}
    if args.output_dir:
        app_overrides["output_dir"] = str(args.output_dir)
    if args.log_level:
        app_overrides["log_level"] = args.log_level
    if app_overrides:
        overrides["app"] = app_overrides

    continuity_overrides: dict[str, Any] = {}
    if getattr(args, "disable", None):
        continuity_overrides["disabled_rules"] = list(args.disable)
    if getattr(args, "no_inherited", False):
        continuity_overrides["include_inherited_issues"] = False
    if continuity_overrides:
        overrides["continuity"] = continuity_overrides
    return overrides


def _print_config(config: AppConfigRoot) -> None:
    console.print(Panel(Pretty(config.model_dump(mode="json")), title="Effective Config"))
    console.print(Panel(Pretty(masked_env_snapshot()), title="Env Snapshot"))


def _print_rules(engine: RuleEngine) -> None:
    table = Table(title="Continuity Rules", show_header=True, header_style="bold")
    table.add_column("Code")
    table.add_column("Severity")
    table.add_column("Description")
    for rule in engine.rules:
        table.add_row(rule.code, f"[{_SEVERITY_STYLE[rule.severity]}]{rule.severity.value}[/]", rule.description)
    console.print(table)


def _print_json(payload: Any) -> None:
    sys.stdout.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8") + "\n")


def _print_report(report: ContinuityReport) -> None:
    node = report.node
    table = Table(title=f"Continuity: {node.title or node.id} ({node.id})", show_header=True, header_style="bold")
    table.add_column("Severity")
    table.add_column("Code")
    table.add_column("Node")
    table.add_column("Entities")
    table.add_column("Message")
    table.add_column("Suggestion")
    for issue in report.issues:
        table.add_row(
            f"[{_SEVERITY_STYLE[issue.severity]}]{issue.severity.value}[/]",
            issue.code,
            issue.node_id,
            ", ".join(issue.entity_ids),
            escape(issue.message),
            escape(issue.suggestion or ""),
        )
    if not report.issues:
        console.print(Panel("No continuity issues.", title=table.title))
        return
    console.print(table)


def _exit_code(reports: Sequence[ContinuityReport]) -> int:
    return EXIT_ISSUES if any(report.has_errors for report in reports) else EXIT_OK


def _run(args: argparse.Namespace, config: AppConfigRoot) -> int:
    if args.command == "config":
        _print_config(config)
        return EXIT_OK

    engine = build_rule_engine(config)

    if args.command == "rules":
        _print_rules(engine)
        return EXIT_OK

    nodes = load_nodes(args.input)

    if args.command == "state":
        accumulated = compute_pre_and_post(nodes, args.node_id)
        if args.json:
            _print_json(
                {
                    "nodeId": accumulated.node.id,
                    "preState": accumulated.pre,
                    "postState": accumulated.post,
                    "deltaIssues": [
                        issue.model_dump(mode="json", by_alias=True, exclude_none=True)
                        for issue in accumulated.delta_issues
                    ],
                }
            )
            return EXIT_OK
        console.print(Panel(Pretty(accumulated.pre), title=f"Pre-state {state_fingerprint(accumulated.pre)[:12]}"))
        console.print(Panel(Pretty(accumulated.post), title=f"Post-state {state_fingerprint(accumulated.post)[:12]}"))
        for issue in accumulated.delta_issues:
            console.print(f"[{_SEVERITY_STYLE[issue.severity]}]{issue.code}[/] {issue.node_id}: {escape(issue.message)}")
        return EXIT_OK

    if args.command == "check":
        report = check_continuity(
            nodes,
            args.node_id,
            engine=engine,
            include_inherited=config.continuity.include_inherited_issues,
        )
        if args.json:
            _print_json(report.to_payload())
        else:
            _print_report(report)
        return _exit_code([report])

    if args.command == "check-all":
        reports = check_all(nodes, engine=engine)
        if args.json:
            _print_json([report.to_payload() for report in reports])
        else:
            for report in reports:
                _print_report(report)
        if args.export:
            result = export_report_markdown(reports, config.app.output_dir, title=f"Continuity report {args.input.stem}")
            console.print(Panel(f"Exported to {result.report_path}", title="Export"))
        return _exit_code(reports)

    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    overrides = _build_overrides(args)
    config = load_config(
        config_path=args.config,
        profile=args.profile,
        overrides=overrides,
    )

    setup_logging(config.app.log_level)
    logger.info("Loaded configuration")

    try:
        with logger.contextualize(command=args.command):
            exit_code = _run(args, config)
    except ContinuityError as exc:
        console.print(Panel(str(exc), title=exc.code, style="red"))
        exit_code = EXIT_INPUT_ERROR
    except (ValueError, OSError, yaml.YAMLError) as exc:
        console.print(Panel(str(exc), title="Invalid input", style="red"))
        exit_code = EXIT_INPUT_ERROR
    logger.bind(command=args.command).debug("Finished with exit code {}", exit_code)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
