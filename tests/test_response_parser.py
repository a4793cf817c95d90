# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

import json

import pytest

from flowguard.errors import WorkflowParseError
from flowguard.response_parser import (
    extract_json_block,
    load_workflow_graph,
    parse_workflow_payload,
    parse_workflow_response,
)

WORKFLOW = {
    "nodes": [{"id": "start_1", "kind": "start"}, {"id": "end_1", "kind": "end"}],
    "edges": [{"sourceNodeId": "start_1", "targetNodeId": "end_1"}],
}


def test_extract_json_from_fenced_reply():
    reply = "```json\n" + json.dumps(WORKFLOW) + "\n```"

    assert json.loads(extract_json_block(reply)) == WORKFLOW


def test_extract_json_from_fence_inside_prose():
    reply = "好的，这是生成的流程：\n```json\n" + json.dumps(WORKFLOW) + "\n```\n如需修改请告诉我。"

    assert json.loads(extract_json_block(reply)) == WORKFLOW


def test_extract_json_from_bare_object_with_chatter():
    reply = "Here you go: " + json.dumps(WORKFLOW) + " Thanks!"

    assert json.loads(extract_json_block(reply)) == WORKFLOW


def test_empty_reply_becomes_empty_object():
    assert extract_json_block("   ") == "{}"
    assert extract_json_block(None) == "{}"

    result = parse_workflow_response("")
    assert result.success
    assert result.graph.nodes == []


def test_parse_workflow_response_builds_graph():
    result = parse_workflow_response("```\n" + json.dumps(WORKFLOW) + "\n```")

    assert result.success
    assert [node.id for node in result.graph.nodes] == ["start_1", "end_1"]
    assert result.graph.edges[0].target_port == "input"


def test_invalid_json_is_reported():
    result = parse_workflow_response('{"nodes": [}')

    assert not result.success
    assert "JSON" in result.error


def test_top_level_must_be_object():
    result = parse_workflow_payload([WORKFLOW])

    assert not result.success
    assert "对象" in result.error


def test_schema_errors_are_listed():
    result = parse_workflow_payload({"nodes": "not-a-list", "edges": []})

    assert not result.success
    assert result.details
    assert result.details[0].startswith("nodes")


def test_load_workflow_graph_raises_on_failure():
    with pytest.raises(WorkflowParseError):
        load_workflow_graph("not json at all")

    assert len(load_workflow_graph(json.dumps(WORKFLOW)).nodes) == 2
