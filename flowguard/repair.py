# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Rewrite stale ``nodeCode`` pointers of variable references.

Generated workflows often point a reference at the node that first defined a
variable even though a later node (or an earlier assignment inside the same
node) has overwritten it. The repairer walks the graph in topological order and
re-derives every ``nodeCode`` from the node that actually owns the most recent
write visible at the point of use:

* inside a ``batchAssignValue`` node, assignments are processed in declaration
  order; a right-hand side reading a variable already assigned earlier in the
  same node points at the node itself;
* every other read resolves against the definitions reaching the node from its
  ancestors.

Only ``nodeCode`` is ever rewritten. References that cannot be resolved stay
as they are and are reported by the variable validator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Set

from flowguard.errors import ExpressionShapeError
from flowguard.expressions import (
    NODE_VARIABLE_KIND,
    NodeVariableRef,
    iter_property_expressions,
    walk_expression,
)
from flowguard.graph import predecessors, topological_order
from flowguard.kinds import BATCH_ASSIGN_KIND, END_KIND, SELECTOR_KIND, VARIABLE_DEF_KIND
from flowguard.logging_utils import log_debug, log_error, log_info, log_warn
from flowguard.models import Node, WorkflowGraph
from flowguard.scope import (
    DEFAULT_ENTRY_KINDS,
    DefinitionMap,
    ReachingDefinitions,
    build_reaching_definitions,
)


@dataclass
class ReferenceChange:
    node_id: str
    path: str
    variable_id: str
    old_node_code: Any
    new_node_code: str


@dataclass
class UnresolvedReference:
    node_id: str
    path: str
    variable_id: Any


@dataclass
class RepairResult:
    """Outcome of one repair pass.

    ``completed`` is False when the pass hit a malformed expression and stopped;
    repairs applied before that point remain in ``graph``.
    """

    graph: WorkflowGraph
    fix_count: int = 0
    changes: List[ReferenceChange] = field(default_factory=list)
    unresolved: List[UnresolvedReference] = field(default_factory=list)
    completed: bool = True
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return not self.completed


class _NodeRepairContext:
    """State for the node currently being repaired."""

    def __init__(self, node: Node, visible: DefinitionMap, result: RepairResult):
        self.node = node
        self.visible = visible
        self.result = result
        # Variables assigned earlier inside this node; they shadow ``visible``.
        self.local_writes: Set[str] = set()

    def resolve(self, ref: NodeVariableRef) -> None:
        node_id = self.node.id
        variable_id = ref.variable_id
        if variable_id is None or variable_id == "":
            self.result.unresolved.append(UnresolvedReference(node_id, ref.path, variable_id))
            return
        if not isinstance(variable_id, str):
            raise ExpressionShapeError(node_id, ref.path, "variableId 必须是字符串")

        if variable_id in self.local_writes:
            owner = self.node
        else:
            owner = self.visible.get(variable_id)
            if owner is None:
                log_warn(f"节点 {node_id} 的 {ref.path} 引用的变量 {variable_id} 没有找到定义节点")
                self.result.unresolved.append(UnresolvedReference(node_id, ref.path, variable_id))
                return

        expected = owner.node_code
        current = ref.node_code
        if current == expected:
            return

        log_info(f"修复 nodeCode: {current} -> {expected} (变量: {variable_id}, 节点: {node_id})")
        ref.node_code = expected
        self.result.fix_count += 1
        self.result.changes.append(
            ReferenceChange(node_id, ref.path, variable_id, current, expected)
        )

    def repair_value(self, value: Any, path: str) -> None:
        for expr in walk_expression(value, path, strict=True):
            if isinstance(expr, NodeVariableRef):
                self.resolve(expr)

    def record_write(self, variable_id: str) -> None:
        self.local_writes.add(variable_id)


def _require_list(node: Node, key: str) -> List[Any]:
    value = node.properties.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ExpressionShapeError(node.id, key, f"{key} 必须是数组")
    return value


def _require_mapping(node: Node, value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ExpressionShapeError(node.id, path, "必须是对象")
    return value


class VariableReferenceRepairer:
    """Repair ``nodeVariable`` references of a workflow graph in place."""

    def __init__(self, *, entry_kinds: Sequence[str] = DEFAULT_ENTRY_KINDS):
        self.entry_kinds = tuple(entry_kinds)

    def repair(
        self,
        graph: WorkflowGraph,
        *,
        order: Sequence[Node] | None = None,
        scope: ReachingDefinitions | None = None,
    ) -> RepairResult:
        """Run one repair pass.

        ``order`` and ``scope`` may be passed in when the caller already
        computed them. Without ``order`` the graph is sorted here, so a cyclic
        graph raises :class:`~flowguard.errors.CyclicGraphError`.
        """

        if order is None:
            order = topological_order(graph)
        if scope is None:
            scope = build_reaching_definitions(
                order, predecessors(graph), entry_kinds=self.entry_kinds
            )

        result = RepairResult(graph=graph)
        log_info("开始修复变量引用")
        current: Node | None = None
        try:
            for current in order:
                self._repair_node(current, scope.visible_at(current.id), result)
        except ExpressionShapeError as exc:
            exc = exc.for_node(current.id if current is not None else None)
            result.completed = False
            result.error = f"修复变量引用失败: {exc}"
            log_error(result.error)
            return result

        log_info(f"变量引用修复完成，共修复 {result.fix_count} 处")
        return result

    # Per-kind handlers --------------------------------------------------
    def _repair_node(self, node: Node, visible: DefinitionMap, result: RepairResult) -> None:
        ctx = _NodeRepairContext(node, visible, result)
        kind = node.kind
        if kind == BATCH_ASSIGN_KIND:
            self._repair_input_params(ctx)
            self._repair_batch_assign(ctx)
        elif kind == SELECTOR_KIND:
            self._repair_input_params(ctx)
            self._repair_selector(ctx)
        elif kind == END_KIND:
            self._repair_output_params(ctx)
        elif kind == VARIABLE_DEF_KIND or kind in self.entry_kinds:
            # Resolved against ancestors only, so a definition never points at itself.
            self._repair_input_params(ctx)
            self._repair_output_params(ctx)
        else:
            self._repair_input_params(ctx)
            for expr in iter_property_expressions(node, strict=True):
                if isinstance(expr, NodeVariableRef):
                    ctx.resolve(expr)
            self._repair_output_params(ctx)
        log_debug(f"节点 {node.id} ({kind}) 引用检查完成")

    def _repair_input_params(self, ctx: _NodeRepairContext) -> None:
        for idx, binding in enumerate(ctx.node.input_params):
            if binding.value_expr is not None:
                ctx.repair_value(binding.value_expr, f"inputParams[{idx}].valueExpr")

    def _repair_output_params(self, ctx: _NodeRepairContext) -> None:
        for idx, binding in enumerate(ctx.node.output_params):
            if binding.value_expr is not None:
                ctx.repair_value(binding.value_expr, f"outputParams[{idx}].valueExpr")

    def _repair_batch_assign(self, ctx: _NodeRepairContext) -> None:
        node = ctx.node
        for idx, raw in enumerate(_require_list(node, "expresses")):
            path = f"expresses[{idx}]"
            assignment = _require_mapping(node, raw, path)

            # Read first: the right-hand side sees writes of earlier assignments only.
            right = assignment.get("rightExpress")
            if right is not None:
                ctx.repair_value(right, f"{path}.rightExpress")

            left = assignment.get("leftExpress")
            if left is None:
                continue
            left = _require_mapping(node, left, f"{path}.leftExpress")
            if left.get("kind") != NODE_VARIABLE_KIND:
                continue
            variable_id = left.get("variableId")
            if variable_id is not None and not isinstance(variable_id, str):
                raise ExpressionShapeError(
                    node.id, f"{path}.leftExpress.variableId", "variableId 必须是字符串"
                )
            if variable_id:
                ctx.record_write(variable_id)
                log_debug(f"变量 {variable_id} 在节点 {node.id} 中被修改")

    def _repair_selector(self, ctx: _NodeRepairContext) -> None:
        node = ctx.node
        for idx, raw in enumerate(_require_list(node, "branches")):
            path = f"branches[{idx}]"
            branch = _require_mapping(node, raw, path)
            condition = branch.get("conditionExpr")
            if condition is None:
                continue
            _require_mapping(node, condition, f"{path}.conditionExpr")
            ctx.repair_value(condition, f"{path}.conditionExpr")


def repair_variable_references(
    graph: WorkflowGraph,
    *,
    entry_kinds: Sequence[str] = DEFAULT_ENTRY_KINDS,
) -> RepairResult:
    """Convenience wrapper around :class:`VariableReferenceRepairer`."""

    return VariableReferenceRepairer(entry_kinds=entry_kinds).repair(graph)


__all__ = [
    "ReferenceChange",
    "UnresolvedReference",
    "RepairResult",
    "VariableReferenceRepairer",
    "repair_variable_references",
]
