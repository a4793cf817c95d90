# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""End-to-end validation and repair of one generated workflow graph.

A raw mapping is parsed first; a payload that does not fit the graph model
is reported as ``PARSE_FAILED`` and nothing else runs. Order of passes:

1. structural validation; fatal shape errors skip steps 2-4;
2. topological sequencing; a cycle skips steps 3-4;
3. reaching-definition analysis;
4. reference repair (in place, or on a clone when configured);
5. variable validation, always run so a single call reports every defect.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from flowguard.config import PipelineSettings
from flowguard.errors import CyclicGraphError
from flowguard.graph import predecessors, topological_order
from flowguard.kinds import NodeKindRegistry
from flowguard.logging_utils import child_span, log_event, log_info, log_success, log_warn
from flowguard.models import WorkflowGraph
from flowguard.repair import RepairResult, VariableReferenceRepairer
from flowguard.response_parser import WorkflowParseResult, parse_workflow_payload
from flowguard.scope import build_reaching_definitions
from flowguard.verification import (
    ValidationReport,
    has_fatal_structure_errors,
    validate_structure,
    validate_variable_ids,
)


@dataclass
class PipelineOutcome:
    """Validation report plus the (possibly repaired) graph."""

    graph: WorkflowGraph
    report: ValidationReport
    repair: Optional[RepairResult] = None
    order: List[str] = field(default_factory=list)
    short_circuited: bool = False

    @property
    def valid(self) -> bool:
        return self.report.valid

    @property
    def errors(self) -> List[str]:
        return self.report.errors

    @property
    def warnings(self) -> List[str]:
        return self.report.warnings

    def to_dict(self) -> Dict[str, Any]:
        data = self.report.to_dict()
        data["fixCount"] = self.repair.fix_count if self.repair else 0
        data["repairCompleted"] = bool(self.repair and self.repair.completed)
        data["graph"] = self.graph.to_payload()
        return data


def _resolve_oracle(is_kind_supported: Callable[[str], bool] | None) -> Callable[[str], bool]:
    if is_kind_supported is None:
        return NodeKindRegistry().is_kind_supported
    return is_kind_supported


def _prepare(
    graph: WorkflowGraph | Mapping[str, Any],
    is_kind_supported: Callable[[str], bool] | None,
    settings: PipelineSettings | None,
) -> tuple[WorkflowParseResult, Callable[[str], bool], PipelineSettings]:
    if isinstance(graph, WorkflowGraph):
        parsed = WorkflowParseResult(graph=graph)
    else:
        parsed = parse_workflow_payload(graph)
    return parsed, _resolve_oracle(is_kind_supported), settings or PipelineSettings()


def _parse_failure_report(parsed: WorkflowParseResult) -> ValidationReport:
    report = ValidationReport()
    report.error("PARSE_FAILED", parsed.error or "解析失败")
    _summarize("workflow_validation", report, parsed.graph, short_circuited=True)
    return report


def _summarize(stage: str, report: ValidationReport, graph: WorkflowGraph, **extra: Any) -> None:
    if report.valid:
        log_success(f"验证通过: {len(graph.nodes)} 个节点, {len(graph.edges)} 条连线")
    else:
        log_warn(f"验证失败: 发现 {len(report.error_issues)} 个错误")
        for message in report.errors:
            log_warn(f"  - {message}")
    for message in report.warnings:
        log_info(f"  - {message}")
    log_event(
        stage,
        {
            "valid": report.valid,
            "error_codes": report.codes("error"),
            "warning_codes": report.codes("warning"),
            "node_count": len(graph.nodes),
            "edge_count": len(graph.edges),
            **extra,
        },
    )


def validate_graph(
    graph: WorkflowGraph | Mapping[str, Any],
    is_kind_supported: Callable[[str], bool] | None = None,
    *,
    settings: PipelineSettings | None = None,
) -> ValidationReport:
    """Run every check without touching the graph.

    A raw mapping that does not fit the graph model yields a ``PARSE_FAILED``
    report instead of an exception.
    """

    parsed, oracle, settings = _prepare(graph, is_kind_supported, settings)
    with child_span("validate_graph"):
        if not parsed.success:
            return _parse_failure_report(parsed)
        graph = parsed.graph
        report = validate_structure(graph, oracle, settings=settings)
        if not has_fatal_structure_errors(report):
            try:
                topological_order(graph)
            except CyclicGraphError as exc:
                report.error("CYCLIC_GRAPH", str(exc))
        report.merge(validate_variable_ids(graph))
        _summarize("workflow_validation", report, graph)
    return report


def validate_and_repair(
    graph: WorkflowGraph | Mapping[str, Any],
    is_kind_supported: Callable[[str], bool] | None = None,
    *,
    settings: PipelineSettings | None = None,
) -> PipelineOutcome:
    """Validate ``graph``, repair its variable references and re-validate.

    Without ``settings.clone_before_repair`` the graph is repaired in place;
    a graph instance should go through this function once.
    """

    parsed, oracle, settings = _prepare(graph, is_kind_supported, settings)

    with child_span("validate_and_repair"):
        if not parsed.success:
            report = _parse_failure_report(parsed)
            return PipelineOutcome(graph=parsed.graph, report=report, short_circuited=True)
        graph = parsed.graph
        report = validate_structure(graph, oracle, settings=settings)
        if has_fatal_structure_errors(report):
            log_warn("结构存在致命错误，跳过变量引用修复")
            report.merge(validate_variable_ids(graph))
            _summarize("workflow_validation", report, graph, short_circuited=True)
            return PipelineOutcome(graph=graph, report=report, short_circuited=True)

        target = graph.clone() if settings.clone_before_repair else graph

        try:
            order = topological_order(target)
        except CyclicGraphError as exc:
            report.error("CYCLIC_GRAPH", str(exc))
            report.merge(validate_variable_ids(target))
            _summarize("workflow_validation", report, target, short_circuited=True)
            return PipelineOutcome(graph=target, report=report, short_circuited=True)

        scope = build_reaching_definitions(
            order, predecessors(target), entry_kinds=settings.entry_kinds
        )
        repair = VariableReferenceRepairer(entry_kinds=settings.entry_kinds).repair(
            target, order=order, scope=scope
        )
        if repair.failed:
            report.error("REPAIR_FAILED", repair.error or "修复变量引用失败")

        report.merge(validate_variable_ids(target))
        _summarize(
            "workflow_validation",
            report,
            target,
            fix_count=repair.fix_count,
            repair_completed=repair.completed,
        )
        return PipelineOutcome(
            graph=target,
            report=report,
            repair=repair,
            order=[node.id for node in order],
        )


__all__ = ["PipelineOutcome", "validate_graph", "validate_and_repair"]
