# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Shape checks for generated workflow graphs.

Malformed input is exactly what these checks report, so nothing here raises
for a bad graph: every finding is appended to a :class:`ValidationReport`.
"""

from __future__ import annotations

from typing import Callable, Set

from flowguard.config import PipelineSettings
from flowguard.kinds import END_KIND
from flowguard.logging_utils import log_debug
from flowguard.models import WorkflowGraph
from flowguard.verification.report import ValidationReport

# Findings after which sequencing and repair are meaningless.
FATAL_STRUCTURE_CODES = frozenset(
    {"MISSING_NODE_ID", "DUPLICATE_NODE_ID", "MALFORMED_EDGE", "DANGLING_EDGE"}
)


def validate_structure(
    graph: WorkflowGraph,
    is_kind_supported: Callable[[str], bool],
    *,
    settings: PipelineSettings | None = None,
) -> ValidationReport:
    settings = settings or PipelineSettings()
    report = ValidationReport()

    node_ids: Set[str] = set()
    has_entry = False
    has_exit = False

    for idx, node in enumerate(graph.nodes):
        node_id = node.id
        kind = node.kind

        if not node_id:
            report.error(
                "MISSING_NODE_ID",
                f"第 {idx} 个节点缺少 id 字段",
                field=f"nodes[{idx}].id",
            )
        elif node_id in node_ids:
            report.error(
                "DUPLICATE_NODE_ID",
                f"第 {idx} 个节点的 ID 重复: {node_id}",
                node_id=node_id,
                field="id",
            )
        else:
            node_ids.add(node_id)

        label = node_id or f"#{idx}"
        if not kind:
            report.error(
                "MISSING_NODE_KIND",
                f"节点 {label} 缺少 kind 字段",
                node_id=node_id,
                field="kind",
            )
            continue

        if not is_kind_supported(kind):
            report.error(
                "UNSUPPORTED_NODE_KIND",
                f"节点 {label} 使用了不支持的类型: {kind}",
                node_id=node_id,
                field="kind",
            )

        if kind in settings.entry_kinds:
            has_entry = True
        if kind in settings.exit_kinds:
            has_exit = True

    if not has_entry:
        report.error(
            "MISSING_ENTRY_OR_EXIT",
            f"流程缺少开始节点 ({' 或 '.join(settings.entry_kinds)})",
        )
    if not has_exit:
        exit_label = " 或 ".join(settings.exit_kinds) or END_KIND
        report.error("MISSING_ENTRY_OR_EXIT", f"流程至少需要一个 {exit_label} 节点")

    for idx, edge in enumerate(graph.edges):
        source = edge.source_node_id
        target = edge.target_node_id

        if not source or not target:
            missing = "sourceNodeId" if not source else "targetNodeId"
            report.error(
                "MALFORMED_EDGE",
                f"第 {idx} 条连线缺少 {missing} 字段",
                field=f"edges[{idx}].{missing}",
            )
            continue

        if source not in node_ids:
            report.error(
                "DANGLING_EDGE",
                f"第 {idx} 条连线 ({source} -> {target}) 引用了不存在的源节点: {source}",
                field=f"edges[{idx}].sourceNodeId",
            )
        if target not in node_ids:
            report.error(
                "DANGLING_EDGE",
                f"第 {idx} 条连线 ({source} -> {target}) 引用了不存在的目标节点: {target}",
                field=f"edges[{idx}].targetNodeId",
            )

    node_count = len(graph.nodes)
    if settings.max_nodes is not None and node_count > settings.max_nodes:
        report.warning(
            "TOO_MANY_NODES",
            f"节点数量 ({node_count}) 超过建议的最大值 ({settings.max_nodes})",
        )

    log_debug(
        f"结构校验完成: {node_count} 个节点, {len(graph.edges)} 条连线, "
        f"{len(report.error_issues)} 个错误"
    )
    return report


def has_fatal_structure_errors(report: ValidationReport) -> bool:
    return any(issue.code in FATAL_STRUCTURE_CODES for issue in report.error_issues)


__all__ = ["FATAL_STRUCTURE_CODES", "validate_structure", "has_fatal_structure_errors"]
