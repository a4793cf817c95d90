# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

from flowguard.config import PipelineSettings
from flowguard.kinds import NodeKindRegistry
from flowguard.models import WorkflowGraph
from flowguard.verification import has_fatal_structure_errors, validate_structure

REGISTRY = NodeKindRegistry()


def _graph(nodes, edges=None) -> WorkflowGraph:
    return WorkflowGraph.from_payload({"nodes": nodes, "edges": edges or []})


def _linear_nodes():
    return [
        {"id": "start_1", "kind": "start"},
        {"id": "variableDef_1", "kind": "variableDef"},
        {"id": "end_1", "kind": "end"},
    ]


def _linear_edges():
    return [
        {"sourceNodeId": "start_1", "targetNodeId": "variableDef_1"},
        {"sourceNodeId": "variableDef_1", "targetNodeId": "end_1"},
    ]


def test_valid_linear_graph_has_no_issues():
    report = validate_structure(_graph(_linear_nodes(), _linear_edges()), REGISTRY.is_kind_supported)

    assert report.valid
    assert report.issues == []


def test_missing_start_node_is_reported():
    nodes = [n for n in _linear_nodes() if n["kind"] != "start"]

    report = validate_structure(_graph(nodes), REGISTRY.is_kind_supported)

    assert not report.valid
    assert report.codes() == ["MISSING_ENTRY_OR_EXIT"]
    assert "开始节点" in report.errors[0]


def test_missing_end_node_is_reported():
    nodes = [n for n in _linear_nodes() if n["kind"] != "end"]

    report = validate_structure(_graph(nodes), REGISTRY.is_kind_supported)

    assert report.codes() == ["MISSING_ENTRY_OR_EXIT"]
    assert "end" in report.errors[0]


def test_device_event_listener_counts_as_entry():
    nodes = [
        {"id": "deviceEventListen_1", "kind": "deviceEventListen"},
        {"id": "end_1", "kind": "end"},
    ]

    report = validate_structure(_graph(nodes), REGISTRY.is_kind_supported)

    assert report.valid


def test_duplicate_node_id_is_fatal():
    nodes = _linear_nodes() + [{"id": "variableDef_1", "kind": "variableDef"}]

    report = validate_structure(_graph(nodes, _linear_edges()), REGISTRY.is_kind_supported)

    assert "DUPLICATE_NODE_ID" in report.codes()
    assert has_fatal_structure_errors(report)


def test_missing_node_id_and_kind():
    nodes = _linear_nodes() + [{"kind": "variableDef"}, {"id": "anon"}]

    report = validate_structure(_graph(nodes), REGISTRY.is_kind_supported)

    assert report.codes() == ["MISSING_NODE_ID", "MISSING_NODE_KIND"]


def test_unsupported_kind_uses_oracle():
    nodes = _linear_nodes() + [{"id": "lamp_1", "kind": "lampControl"}]

    report = validate_structure(_graph(nodes), REGISTRY.is_kind_supported)
    assert report.codes() == ["UNSUPPORTED_NODE_KIND"]
    assert "lampControl" in report.errors[0]
    assert not has_fatal_structure_errors(report)

    registry = NodeKindRegistry()
    registry.register("lampControl")
    assert validate_structure(_graph(nodes), registry.is_kind_supported).valid


def test_dangling_and_malformed_edges():
    edges = _linear_edges() + [
        {"sourceNodeId": "variableDef_1", "targetNodeId": "ghost"},
        {"sourceNodeId": "start_1"},
    ]

    report = validate_structure(_graph(_linear_nodes(), edges), REGISTRY.is_kind_supported)

    assert report.codes() == ["DANGLING_EDGE", "MALFORMED_EDGE"]
    assert "ghost" in report.errors[0]
    assert "targetNodeId" in report.errors[1]
    assert has_fatal_structure_errors(report)


def test_node_ceiling_is_a_soft_limit():
    graph = _graph(_linear_nodes(), _linear_edges())

    at_limit = validate_structure(graph, REGISTRY.is_kind_supported, settings=PipelineSettings(max_nodes=3))
    assert at_limit.warnings == []

    over_limit = validate_structure(
        graph, REGISTRY.is_kind_supported, settings=PipelineSettings(max_nodes=2)
    )
    assert over_limit.codes("warning") == ["TOO_MANY_NODES"]
    assert over_limit.valid

    disabled = validate_structure(
        graph, REGISTRY.is_kind_supported, settings=PipelineSettings(max_nodes=None)
    )
    assert disabled.warnings == []


def test_custom_entry_and_exit_kinds():
    nodes = [{"id": "trigger_1", "kind": "trigger"}, {"id": "finish_1", "kind": "finish"}]
    settings = PipelineSettings(entry_kinds="trigger", exit_kinds="finish")

    report = validate_structure(_graph(nodes), lambda kind: True, settings=settings)

    assert report.valid


def test_each_dangling_edge_is_reported():
    edges = _linear_edges() + [
        {"sourceNodeId": "start_1", "targetNodeId": "ghost"},
        {"sourceNodeId": "end_1", "targetNodeId": "ghost"},
    ]

    report = validate_structure(_graph(_linear_nodes(), edges), REGISTRY.is_kind_supported)

    assert report.codes() == ["DANGLING_EDGE", "DANGLING_EDGE"]
    assert "start_1 -> ghost" in report.errors[0]
    assert "end_1 -> ghost" in report.errors[1]


def test_each_repeated_node_id_is_reported():
    nodes = _linear_nodes() + [
        {"id": "variableDef_1", "kind": "variableDef"},
        {"id": "variableDef_1", "kind": "variableDef"},
    ]

    report = validate_structure(_graph(nodes, _linear_edges()), REGISTRY.is_kind_supported)

    assert report.codes() == ["DUPLICATE_NODE_ID", "DUPLICATE_NODE_ID"]
