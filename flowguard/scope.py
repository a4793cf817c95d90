# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Reaching-definition analysis over the workflow tree.

A variable written by a node is visible to that node's descendants only:
sibling branches never observe each other's writes. Each node's entry state is
the exit state of its parents (merged in topological order when a node has
several), and its exit state adds the variables the node itself writes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence

from flowguard.expressions import NODE_VARIABLE_KIND
from flowguard.kinds import (
    BATCH_ASSIGN_KIND,
    DEFAULT_ENTRY_KINDS,
    END_KIND,
    SELECTOR_KIND,
    VARIABLE_DEF_KIND,
)
from flowguard.logging_utils import log_debug
from flowguard.models import Node


# variableId -> node that last wrote it
DefinitionMap = Dict[str, Node]


def _binding_ids(bindings: Iterable) -> List[str]:
    return [b.id for b in bindings if isinstance(b.id, str) and b.id]


def _assignment_targets(node: Node) -> List[str]:
    expresses = node.properties.get("expresses")
    if not isinstance(expresses, list):
        return []
    targets: List[str] = []
    for entry in expresses:
        if not isinstance(entry, Mapping):
            continue
        left = entry.get("leftExpress")
        if not isinstance(left, Mapping) or left.get("kind") != NODE_VARIABLE_KIND:
            continue
        variable_id = left.get("variableId")
        if isinstance(variable_id, str) and variable_id:
            targets.append(variable_id)
    return targets


def node_writes(node: Node, entry_kinds: Sequence[str] = DEFAULT_ENTRY_KINDS) -> List[str]:
    """Return the variable ids ``node`` writes, in declaration order."""

    kind = node.kind
    if kind in entry_kinds:
        return _binding_ids(node.input_params) + _binding_ids(node.output_params)
    if kind == VARIABLE_DEF_KIND:
        return _binding_ids(node.output_params)
    if kind == BATCH_ASSIGN_KIND:
        return _assignment_targets(node)
    if kind in (SELECTOR_KIND, END_KIND):
        return []
    # Device actions are read-only unless they declare outputs.
    return _binding_ids(node.output_params)


@dataclass
class ReachingDefinitions:
    """Per-node definition maps computed by :func:`build_reaching_definitions`."""

    entry: Dict[str, DefinitionMap] = field(default_factory=dict)
    exit: Dict[str, DefinitionMap] = field(default_factory=dict)

    def visible_at(self, node_id: str) -> DefinitionMap:
        return self.entry.get(node_id, {})

    def writer_of(self, node_id: str, variable_id: str) -> Node | None:
        return self.visible_at(node_id).get(variable_id)


def build_reaching_definitions(
    order: Sequence[Node],
    parents: Mapping[str, Sequence[str]],
    *,
    entry_kinds: Sequence[str] = DEFAULT_ENTRY_KINDS,
) -> ReachingDefinitions:
    """Walk ``order`` once and record each node's entry/exit definitions.

    ``order`` must be topological so that every parent's exit state exists
    before its children are visited.
    """

    position = {node.id: pos for pos, node in enumerate(order)}
    result = ReachingDefinitions()

    for node in order:
        incoming: DefinitionMap = {}
        node_parents = sorted(
            (p for p in parents.get(node.id, ()) if p in result.exit),
            key=position.__getitem__,
        )
        for parent_id in node_parents:
            incoming.update(result.exit[parent_id])

        outgoing = dict(incoming)
        for variable_id in node_writes(node, entry_kinds):
            outgoing[variable_id] = node

        result.entry[node.id] = incoming
        result.exit[node.id] = outgoing
        log_debug(f"节点 {node.id} 可见变量: {sorted(incoming)}")

    return result


__all__ = [
    "DEFAULT_ENTRY_KINDS",
    "DefinitionMap",
    "ReachingDefinitions",
    "build_reaching_definitions",
    "node_writes",
]
