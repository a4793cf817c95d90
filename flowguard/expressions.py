# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Expression variants and the generic walk over a node's expressions.

Expressions arrive as plain dicts tagged by ``kind``. The classes below are thin
views over those dicts: reading goes straight to the wire data and writing
``NodeVariableRef.node_code`` updates the dict in place, so a repaired graph
serializes back without any conversion step.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Mapping, MutableMapping, Tuple

from flowguard.errors import ExpressionShapeError
from flowguard.models import Node

NODE_VARIABLE_KIND = "nodeVariable"

# Keys through which logic/compare/assign expressions nest sub-expressions.
_OPERAND_KEYS = ("leftExpress", "rightExpress")
_OPERAND_LIST_KEY = "expresses"

_SCALARS = (str, int, float, bool, type(None))


@dataclass
class Expression:
    raw: Any
    path: str

    @property
    def kind(self) -> str | None:
        if isinstance(self.raw, Mapping):
            kind = self.raw.get("kind")
            return kind if isinstance(kind, str) else None
        return None


@dataclass
class Literal(Expression):
    """Constant leaf; opaque to validation and repair."""


@dataclass
class Unrecognized(Expression):
    """Structured value with an unknown kind, left untouched."""


@dataclass
class NodeVariableRef(Expression):
    """``{"kind": "nodeVariable", "nodeCode", "variable", "variableId"}``."""

    @property
    def node_code(self) -> Any:
        return self.raw.get("nodeCode")

    @node_code.setter
    def node_code(self, value: str) -> None:
        self.raw["nodeCode"] = value

    @property
    def variable(self) -> Any:
        return self.raw.get("variable")

    @property
    def variable_id(self) -> Any:
        return self.raw.get("variableId")


@dataclass
class Composite(Expression):
    """Logic/compare/assignment expression nesting further expressions."""

    @property
    def operator(self) -> str | None:
        return self.kind

    def operands(self, *, strict: bool = False) -> List[Tuple[str, Any]]:
        """Return ``(path, raw)`` pairs for every nested operand.

        With ``strict`` a container of the wrong shape raises
        :class:`ExpressionShapeError`; otherwise it is skipped.
        """

        result: List[Tuple[str, Any]] = []
        for key in _OPERAND_KEYS:
            if key in self.raw and self.raw[key] is not None:
                result.append((f"{self.path}.{key}", self.raw[key]))

        nested = self.raw.get(_OPERAND_LIST_KEY)
        if nested is None:
            return result
        if not isinstance(nested, list):
            if strict:
                raise ExpressionShapeError(
                    None, f"{self.path}.{_OPERAND_LIST_KEY}", "expresses 必须是数组"
                )
            return result
        for idx, item in enumerate(nested):
            result.append((f"{self.path}.{_OPERAND_LIST_KEY}[{idx}]", item))
        return result


def _is_composite(value: Mapping[str, Any]) -> bool:
    return any(key in value for key in _OPERAND_KEYS) or _OPERAND_LIST_KEY in value


def _is_literal(value: Mapping[str, Any]) -> bool:
    kind = value.get("kind")
    if isinstance(kind, str):
        return kind.endswith("Const")
    return "value" in value


def classify_expression(value: Any, path: str = "") -> Expression:
    """Map a raw wire value onto one of the expression variants."""

    if isinstance(value, MutableMapping):
        if value.get("kind") == NODE_VARIABLE_KIND:
            return NodeVariableRef(value, path)
        if _is_composite(value):
            return Composite(value, path)
        if _is_literal(value):
            return Literal(value, path)
        return Unrecognized(value, path)
    if isinstance(value, _SCALARS):
        return Literal(value, path)
    return Unrecognized(value, path)


def walk_expression(value: Any, path: str = "", *, strict: bool = False) -> Iterator[Expression]:
    """Yield ``value`` and every nested expression, depth first."""

    expr = classify_expression(value, path)
    if strict and isinstance(expr, Unrecognized) and not isinstance(value, Mapping):
        raise ExpressionShapeError(None, path, f"无法识别的表达式: {type(value).__name__}")
    yield expr
    if isinstance(expr, Composite):
        for child_path, child in expr.operands(strict=strict):
            yield from walk_expression(child, child_path, strict=strict)


def _walk_container(value: Any, path: str, *, strict: bool) -> Iterator[Expression]:
    # Property bags mix plain containers (lists, branch objects) with expressions.
    if isinstance(value, Mapping):
        if "kind" in value or _is_composite(value):
            yield from walk_expression(value, path, strict=strict)
            return
        for key, item in value.items():
            yield from _walk_container(item, f"{path}.{key}", strict=strict)
    elif isinstance(value, list):
        for idx, item in enumerate(value):
            yield from _walk_container(item, f"{path}[{idx}]", strict=strict)


def iter_binding_expressions(node: Node, *, strict: bool = False) -> Iterator[Expression]:
    for section, idx, binding in node.iter_bindings():
        if binding.value_expr is None:
            continue
        yield from walk_expression(
            binding.value_expr, f"{section}[{idx}].valueExpr", strict=strict
        )


def iter_property_expressions(node: Node, *, strict: bool = False) -> Iterator[Expression]:
    for key, value in node.properties.items():
        yield from _walk_container(value, key, strict=strict)


def iter_expressions(node: Node, *, strict: bool = False) -> Iterator[Expression]:
    """Enumerate every expression of ``node`` without per-kind knowledge."""

    yield from iter_binding_expressions(node, strict=strict)
    yield from iter_property_expressions(node, strict=strict)


def for_each_expression(node: Node, visitor: Callable[[Expression], None]) -> None:
    for expr in iter_expressions(node):
        visitor(expr)


def iter_variable_refs(node: Node) -> Iterator[NodeVariableRef]:
    for expr in iter_expressions(node):
        if isinstance(expr, NodeVariableRef):
            yield expr


__all__ = [
    "Expression",
    "Literal",
    "Unrecognized",
    "NodeVariableRef",
    "Composite",
    "NODE_VARIABLE_KIND",
    "classify_expression",
    "walk_expression",
    "iter_expressions",
    "iter_binding_expressions",
    "iter_property_expressions",
    "for_each_expression",
    "iter_variable_refs",
]
