# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Graph utilities: parent relation and deterministic topological order."""

from __future__ import annotations

import heapq
from typing import Dict, List

from flowguard.errors import CyclicGraphError
from flowguard.logging_utils import log_debug, log_warn
from flowguard.models import Node, WorkflowGraph


def _index_by_id(graph: WorkflowGraph) -> Dict[str, int]:
    # First occurrence wins; duplicates are reported by the structural validator.
    index: Dict[str, int] = {}
    for pos, node in enumerate(graph.nodes):
        if node.id and node.id not in index:
            index[node.id] = pos
    return index


def predecessors(graph: WorkflowGraph) -> Dict[str, List[str]]:
    """Map every node id to the ids of its parents, in edge order."""

    index = _index_by_id(graph)
    parents: Dict[str, List[str]] = {nid: [] for nid in index}
    for edge in graph.edges:
        src, dst = edge.source_node_id, edge.target_node_id
        if src in index and dst in index and src not in parents[dst]:
            parents[dst].append(src)
    return parents


def topological_order(graph: WorkflowGraph) -> List[Node]:
    """Return nodes so that every edge source precedes its target.

    Kahn's algorithm; among nodes that become ready at the same time the one
    declared first in ``graph.nodes`` is emitted first. Edges pointing at
    unknown nodes are ignored. Raises :class:`CyclicGraphError` instead of
    returning a partial order.
    """

    index = _index_by_id(graph)
    nodes = [graph.nodes[pos] for pos in sorted(index.values())]

    indegree: Dict[str, int] = {nid: 0 for nid in index}
    adjacency: Dict[str, List[str]] = {nid: [] for nid in index}
    for edge in graph.edges:
        src, dst = edge.source_node_id, edge.target_node_id
        if src not in index or dst not in index:
            continue
        adjacency[src].append(dst)
        indegree[dst] += 1

    ready = [index[nid] for nid, deg in indegree.items() if deg == 0]
    heapq.heapify(ready)

    ordered: List[Node] = []
    while ready:
        pos = heapq.heappop(ready)
        node = graph.nodes[pos]
        ordered.append(node)
        for neighbor in adjacency[node.id]:
            indegree[neighbor] -= 1
            if indegree[neighbor] == 0:
                heapq.heappush(ready, index[neighbor])

    if len(ordered) != len(nodes):
        emitted = {n.id for n in ordered}
        stuck = [n.id for n in nodes if n.id not in emitted]
        log_warn(f"检测到环路，无法排序的节点: {stuck}")
        raise CyclicGraphError(stuck)

    log_debug(f"拓扑排序结果: {[n.id for n in ordered]}")
    return ordered


__all__ = ["predecessors", "topological_order"]
