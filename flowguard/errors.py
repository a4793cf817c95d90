# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Exception types raised inside the validation and repair passes.

Validation itself never raises: malformed graphs are reported as issues. These
exceptions only travel between internal helpers and the pass boundaries, where
they are converted into result values.
"""

from __future__ import annotations

from typing import List, Sequence


class WorkflowGraphError(Exception):
    """Base class for internal workflow graph faults."""


class CyclicGraphError(WorkflowGraphError):
    def __init__(self, node_ids: Sequence[str]) -> None:
        self.node_ids: List[str] = list(node_ids)
        super().__init__(f"工作流包含环，无法完成拓扑排序: {self.node_ids}")


class ExpressionShapeError(WorkflowGraphError):
    """An expression container does not have the shape the repair pass expects."""

    def __init__(self, node_id: str | None, path: str, reason: str) -> None:
        self.node_id = node_id
        self.path = path
        self.reason = reason
        location = f"节点 {node_id} 的 {path}" if node_id else path
        super().__init__(f"{location} 结构非法: {reason}")

    def for_node(self, node_id: str | None) -> "ExpressionShapeError":
        if self.node_id is not None:
            return self
        return ExpressionShapeError(node_id, self.path, self.reason)


class WorkflowParseError(WorkflowGraphError):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


__all__ = [
    "WorkflowGraphError",
    "CyclicGraphError",
    "ExpressionShapeError",
    "WorkflowParseError",
]
