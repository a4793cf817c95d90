# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Typed workflow graph models backed by pydantic.

The models accept the camelCase wire shape produced by the generator (``nodes``
and ``edges`` arrays) and keep every unknown key, so kind-specific properties
such as ``branches`` or ``expresses`` survive a round trip untouched apart
from the repairs applied in place.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_identifier(value: Any) -> Any:
    # LLM output sometimes carries numeric ids; structural checks expect strings.
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class VariableBinding(BaseModel):
    """A variable declared in ``inputParams``/``outputParams``.

    ``id`` is the global key referenced by ``variableId``; by convention it is
    ``<ownerNodeId>_<code>``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    code: Optional[str] = None
    id: Optional[str] = None
    type: Any = None
    value_expr: Optional[Any] = Field(default=None, alias="valueExpr")

    coerce_identifiers = field_validator("code", "id", mode="before")(_coerce_identifier)


class Edge(BaseModel):
    """Directed control edge; the source is the parent of the target."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    source_node_id: Optional[str] = Field(default=None, alias="sourceNodeId")
    target_node_id: Optional[str] = Field(default=None, alias="targetNodeId")
    source_port: str = Field(default="output", alias="sourcePort")
    target_port: str = Field(default="input", alias="targetPort")

    coerce_identifiers = field_validator("source_node_id", "target_node_id", mode="before")(
        _coerce_identifier
    )

    @field_validator("source_port", mode="before")
    @classmethod
    def default_source_port(cls, value: Any) -> Any:
        return "output" if value is None else value

    @field_validator("target_port", mode="before")
    @classmethod
    def default_target_port(cls, value: Any) -> Any:
        return "input" if value is None else value


class Node(BaseModel):
    """Workflow node.

    Anything beyond the common fields lands in :attr:`properties` (pydantic's
    extra storage), which the repair pass mutates in place.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    kind: Optional[str] = None
    name: Optional[str] = None
    input_ports: List[str] = Field(default_factory=list, alias="inputPorts")
    output_ports: List[str] = Field(default_factory=list, alias="outputPorts")
    input_params: List[VariableBinding] = Field(default_factory=list, alias="inputParams")
    output_params: List[VariableBinding] = Field(default_factory=list, alias="outputParams")

    coerce_identifiers = field_validator("id", "kind", mode="before")(_coerce_identifier)

    @field_validator("input_ports", "output_ports", "input_params", "output_params", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def properties(self) -> Dict[str, Any]:
        """Kind-specific property bag (``branches``, ``expresses``, ...)."""

        if self.__pydantic_extra__ is None:
            self.__pydantic_extra__ = {}
        return self.__pydantic_extra__

    @property
    def node_code(self) -> str:
        """Pointer used by ``nodeVariable`` references: ``<kind>_<id>``."""

        return build_node_code(self.kind, self.id)

    def iter_bindings(self) -> Iterator[tuple[str, int, VariableBinding]]:
        for idx, binding in enumerate(self.input_params):
            yield "inputParams", idx, binding
        for idx, binding in enumerate(self.output_params):
            yield "outputParams", idx, binding


class WorkflowGraph(BaseModel):
    """All nodes and edges of one generation attempt."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)

    @field_validator("nodes", "edges", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | "WorkflowGraph") -> "WorkflowGraph":
        if isinstance(payload, cls):
            return payload
        return cls.model_validate(payload)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize back to the camelCase wire shape.

        Unset common fields are omitted; explicit nulls stored in the property
        bags are written back as ``null``.
        """

        payload = self.model_dump(by_alias=True, exclude_none=True)
        _restore_null_extras(self, payload)
        for node, node_data in zip(self.nodes, payload["nodes"]):
            _restore_null_extras(node, node_data)
            for section, idx, binding in node.iter_bindings():
                _restore_null_extras(binding, node_data[section][idx])
        for edge, edge_data in zip(self.edges, payload["edges"]):
            _restore_null_extras(edge, edge_data)
        return payload

    def node_by_id(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def clone(self) -> "WorkflowGraph":
        return self.model_copy(deep=True)


def build_node_code(kind: str | None, node_id: str | None) -> str:
    return f"{kind or ''}_{node_id or ''}"


def _restore_null_extras(model: BaseModel, data: Dict[str, Any]) -> None:
    # exclude_none also drops nulls the generator put into the property bag.
    for key, value in (model.__pydantic_extra__ or {}).items():
        if value is None:
            data[key] = None


__all__ = ["VariableBinding", "Edge", "Node", "WorkflowGraph", "build_node_code"]
