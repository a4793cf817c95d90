# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Identifier and reference checks for workflow variables.

Runs independently of the repair pass, so it can be used both on the raw
generated graph and on the repaired one. ``variableId`` is authoritative: a
reference whose ``variable`` display name disagrees with the definition only
produces a warning.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from flowguard.expressions import NodeVariableRef, iter_expressions
from flowguard.logging_utils import log_debug, log_info, log_warn
from flowguard.models import Node, VariableBinding, WorkflowGraph
from flowguard.verification.report import ValidationReport


@dataclass
class VariableDefinition:
    node_id: str | None
    node_kind: str | None
    code: str | None
    id: str
    section: str


class VariableIdValidator:
    """Collect variable definitions, then check every reference against them."""

    def validate(self, graph: WorkflowGraph) -> ValidationReport:
        report = ValidationReport()
        definitions: Dict[str, VariableDefinition] = {}

        for node in graph.nodes:
            for section, idx, binding in node.iter_bindings():
                self._collect_definition(node, section, idx, binding, definitions, report)

        for node in graph.nodes:
            for expr in iter_expressions(node):
                if isinstance(expr, NodeVariableRef):
                    self._check_reference(node, expr, definitions, report)

        log_info(
            f"变量ID验证完成: 定义 {len(definitions)} 个变量, "
            f"{len(report.error_issues)} 个错误, {len(report.warning_issues)} 个警告"
        )
        for issue in report.error_issues:
            log_warn(f"验证错误: {issue.message}")
        return report

    def _collect_definition(
        self,
        node: Node,
        section: str,
        idx: int,
        binding: VariableBinding,
        definitions: Dict[str, VariableDefinition],
        report: ValidationReport,
    ) -> None:
        node_id = node.id
        field = f"{section}[{idx}]"
        code = binding.code
        variable_id = binding.id

        if not code:
            report.error(
                "MISSING_VARIABLE_CODE",
                f"节点 {node_id} 的 {field} 中存在缺少 code 字段的变量",
                node_id=node_id,
                field=f"{field}.code",
            )

        if not variable_id:
            report.error(
                "MISSING_VARIABLE_ID",
                f"节点 {node_id} ({node.kind}) 的变量 '{code}' 缺少 id 字段",
                node_id=node_id,
                field=f"{field}.id",
            )
            return

        expected = f"{node_id}_{code}"
        if code and variable_id != expected:
            report.warning(
                "NON_CONVENTIONAL_ID",
                f"节点 {node_id} ({node.kind}) 的变量 '{code}' 的 id '{variable_id}' "
                f"不符合推荐格式 '{expected}'",
                node_id=node_id,
                field=f"{field}.id",
            )

        existing = definitions.get(variable_id)
        if existing is not None:
            report.error(
                "DUPLICATE_VARIABLE_ID",
                f"变量ID重复: '{variable_id}' 在节点 {existing.node_id} 和节点 {node_id} 中都有定义",
                node_id=node_id,
                field=f"{field}.id",
            )
            return

        definitions[variable_id] = VariableDefinition(
            node_id=node_id, node_kind=node.kind, code=code, id=variable_id, section=section
        )
        log_debug(f"收集到变量定义: id={variable_id}, nodeId={node_id}, code={code}")

    def _check_reference(
        self,
        node: Node,
        ref: NodeVariableRef,
        definitions: Dict[str, VariableDefinition],
        report: ValidationReport,
    ) -> None:
        node_id = node.id
        variable_id = ref.variable_id

        if not variable_id:
            report.error(
                "MISSING_REFERENCE_VARIABLE_ID",
                f"节点 {node_id} 的 {ref.path} 中引用变量 '{ref.variable}' "
                f"(来自 {ref.node_code}) 时缺少 variableId 字段",
                node_id=node_id,
                field=ref.path,
            )
            return

        definition = definitions.get(variable_id) if isinstance(variable_id, str) else None
        if definition is None:
            report.error(
                "UNRESOLVED_VARIABLE_REFERENCE",
                f"节点 {node_id} 的 {ref.path} 中引用了不存在的 variableId: '{variable_id}'",
                node_id=node_id,
                field=ref.path,
            )
            return

        if definition.code is not None and definition.code != ref.variable:
            report.warning(
                "VARIABLE_NAME_MISMATCH",
                f"节点 {node_id} 的 {ref.path} 中 variableId '{variable_id}' 对应的变量名应该是 "
                f"'{definition.code}'，但实际引用的是 '{ref.variable}'",
                node_id=node_id,
                field=ref.path,
            )


def validate_variable_ids(graph: WorkflowGraph) -> ValidationReport:
    return VariableIdValidator().validate(graph)


__all__ = ["VariableDefinition", "VariableIdValidator", "validate_variable_ids"]
