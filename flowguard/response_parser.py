# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Turn a model reply into a :class:`WorkflowGraph`.

Replies usually carry the graph as a JSON document, sometimes wrapped in a
markdown code fence or surrounded by prose. Parse failures are returned as a
result value; :func:`load_workflow_graph` raises instead.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping

from pydantic import ValidationError as PydanticValidationError

from flowguard.errors import WorkflowParseError
from flowguard.logging_utils import log_debug, log_error, log_info, log_json, log_warn
from flowguard.models import WorkflowGraph

_FENCE_PATTERN = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n(?P<body>.*?)```", re.DOTALL)


@dataclass
class WorkflowParseResult:
    graph: WorkflowGraph
    success: bool = True
    error: str | None = None
    details: List[str] = field(default_factory=list)


def extract_json_block(response: str | None) -> str:
    """Return the JSON text embedded in ``response``.

    Handles a reply that is entirely fenced, a fenced block inside prose, and
    bare JSON with leading/trailing chatter. Empty input yields ``"{}"``.
    """

    if response is None or not response.strip():
        return "{}"

    trimmed = response.strip()

    if trimmed.startswith("```"):
        first_newline = trimmed.find("\n")
        last_fence = trimmed.rfind("```")
        if first_newline != -1 and last_fence > first_newline:
            return trimmed[first_newline + 1 : last_fence].strip()

    match = _FENCE_PATTERN.search(trimmed)
    if match:
        return match.group("body").strip()

    if not trimmed.startswith("{"):
        start = trimmed.find("{")
        end = trimmed.rfind("}")
        if start != -1 and end > start:
            return trimmed[start : end + 1]

    return trimmed


def _format_pydantic_errors(exc: PydanticValidationError) -> List[str]:
    details: List[str] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        details.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return details


def parse_workflow_payload(payload: Any) -> WorkflowParseResult:
    """Validate an already-decoded JSON document into a graph."""

    if not isinstance(payload, Mapping):
        return WorkflowParseResult(
            graph=WorkflowGraph(),
            success=False,
            error="解析失败: 顶层 JSON 必须是对象",
        )

    if not isinstance(payload.get("nodes"), list):
        log_warn("返回的 JSON 中没有 nodes 数组")
    if not isinstance(payload.get("edges"), list):
        log_warn("返回的 JSON 中没有 edges 数组")
    log_json("工作流 JSON", payload)

    try:
        graph = WorkflowGraph.from_payload(payload)
    except PydanticValidationError as exc:
        details = _format_pydantic_errors(exc)
        log_error(f"工作流结构解析失败: {'; '.join(details)}")
        return WorkflowParseResult(
            graph=WorkflowGraph(),
            success=False,
            error="解析失败: " + "; ".join(details),
            details=details,
        )

    log_info(f"成功解析 {len(graph.nodes)} 个节点, {len(graph.edges)} 条连线")
    for node in graph.nodes:
        log_debug(f"解析节点: id={node.id}, kind={node.kind}, name={node.name}")
    return WorkflowParseResult(graph=graph)


def parse_workflow_response(response: str | None) -> WorkflowParseResult:
    json_text = extract_json_block(response)
    try:
        payload = json.loads(json_text)
    except json.JSONDecodeError as exc:
        message = f"解析失败: JSON 语法错误（行 {exc.lineno}, 列 {exc.colno}）：{exc.msg}"
        log_error(message)
        return WorkflowParseResult(graph=WorkflowGraph(), success=False, error=message)
    return parse_workflow_payload(payload)


def load_workflow_graph(response: str | None) -> WorkflowGraph:
    """Strict variant of :func:`parse_workflow_response`."""

    result = parse_workflow_response(response)
    if not result.success:
        raise WorkflowParseError(result.error or "解析失败")
    return result.graph


__all__ = [
    "WorkflowParseResult",
    "extract_json_block",
    "parse_workflow_payload",
    "parse_workflow_response",
    "load_workflow_graph",
]
