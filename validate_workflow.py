# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Standalone workflow graph validation tool.

This module exposes a small CLI that loads a generated workflow (a JSON file or
a raw model reply containing one), runs structural and variable validation,
repairs stale variable references and prints readable error messages when
issues are found.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Iterable, List

from flowguard.config import PipelineSettings
from flowguard.kinds import NodeKindRegistry
from flowguard.logging_utils import configure_run_logging
from flowguard.pipeline import PipelineOutcome, validate_and_repair, validate_graph
from flowguard.response_parser import parse_workflow_response
from flowguard.verification import ValidationIssue, ValidationReport


def _format_issues(issues: Iterable[ValidationIssue]) -> str:
    lines = []
    for idx, issue in enumerate(issues, start=1):
        location_bits = []
        if issue.node_id:
            location_bits.append(f"node={issue.node_id}")
        if issue.field:
            location_bits.append(f"field={issue.field}")
        location = f" ({', '.join(location_bits)})" if location_bits else ""
        lines.append(f"{idx}. [{issue.code}]{location} {issue.message}")
    return "\n".join(lines)


def _build_registry(device_kinds: List[str], definitions_path: Path | None) -> NodeKindRegistry:
    registry = NodeKindRegistry()
    for kind in device_kinds:
        registry.register(kind)
    if definitions_path is not None:
        raw = json.loads(definitions_path.read_text(encoding="utf-8"))
        if not isinstance(raw, list):
            raise ValueError("设备节点定义文件应该是 JSON 数组。")
        registry.register_definitions(raw)
    return registry


def _print_report(report: ValidationReport) -> None:
    if report.error_issues:
        print("校验未通过，发现以下问题：", file=sys.stderr)
        print(_format_issues(report.error_issues), file=sys.stderr)
    if report.warning_issues:
        print("警告：", file=sys.stderr)
        print(_format_issues(report.warning_issues), file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate and repair a generated workflow graph.")
    parser.add_argument("workflow", type=Path, help="Path to workflow JSON file or model reply")
    parser.add_argument(
        "--device-kind",
        action="append",
        default=[],
        help="Additional supported node kind (repeatable).",
    )
    parser.add_argument(
        "--device-definitions",
        type=Path,
        default=None,
        help="JSON array of device node definitions whose kinds are supported.",
    )
    parser.add_argument(
        "--max-nodes",
        type=int,
        default=None,
        help="Soft ceiling on node count (defaults to FLOWGUARD_MAX_NODES or 20).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="只做校验，不修复变量引用。",
    )
    parser.add_argument(
        "--print-repaired",
        action="store_true",
        help="Print the repaired workflow JSON after a successful run.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON ({valid, errors, warnings}).",
    )
    args = parser.parse_args(argv)
    if args.json:
        # Keep stdout parseable.
        configure_run_logging(level="ERROR")

    try:
        workflow_text = args.workflow.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"找不到 workflow 文件: {args.workflow}", file=sys.stderr)
        return 2

    try:
        registry = _build_registry(args.device_kind, args.device_definitions)
    except (OSError, ValueError) as exc:
        print(f"加载设备节点定义失败: {exc}", file=sys.stderr)
        return 2

    try:
        settings = PipelineSettings.from_env()
    except ValueError as exc:
        print(f"加载配置失败: {exc}", file=sys.stderr)
        return 2
    if args.max_nodes is not None:
        settings = settings.model_copy(update={"max_nodes": args.max_nodes})

    parsed = parse_workflow_response(workflow_text)
    if not parsed.success:
        print(parsed.error, file=sys.stderr)
        return 2

    outcome: PipelineOutcome | None = None
    if args.validate_only:
        report = validate_graph(parsed.graph, registry.is_kind_supported, settings=settings)
    else:
        outcome = validate_and_repair(parsed.graph, registry.is_kind_supported, settings=settings)
        report = outcome.report

    if args.json:
        payload = outcome.to_dict() if outcome is not None and args.print_repaired else report.to_dict()
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        _print_report(report)

    if not report.valid:
        return 1

    if not args.json:
        print("workflow 校验通过。")
        if outcome is not None and outcome.repair is not None:
            print(f"共修复 {outcome.repair.fix_count} 处变量引用。")
        if args.print_repaired and outcome is not None:
            print(json.dumps(outcome.graph.to_payload(), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
