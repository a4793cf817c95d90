# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

from flowguard.models import WorkflowGraph
from flowguard.verification import VariableIdValidator, validate_variable_ids


def _ref(node_code, variable, variable_id):
    ref = {"kind": "nodeVariable", "nodeCode": node_code, "variable": variable}
    if variable_id is not None:
        ref["variableId"] = variable_id
    return ref


def _graph(nodes) -> WorkflowGraph:
    return WorkflowGraph.from_payload({"nodes": nodes, "edges": []})


def _variable_def(node_id, *params):
    return {"id": node_id, "kind": "variableDef", "outputParams": list(params)}


def test_conventional_definitions_and_references_pass():
    graph = _graph(
        [
            _variable_def("variableDef_1", {"code": "x", "id": "variableDef_1_x"}),
            {
                "id": "end_1",
                "kind": "end",
                "outputParams": [
                    {"code": "r", "id": "end_1_r", "valueExpr": _ref("variableDef_variableDef_1", "x", "variableDef_1_x")}
                ],
            },
        ]
    )

    report = validate_variable_ids(graph)

    assert report.valid
    assert report.issues == []


def test_duplicate_variable_id_reported_once_with_both_nodes():
    graph = _graph(
        [
            _variable_def("variableDef_1", {"code": "x", "id": "shared_x"}),
            _variable_def("variableDef_2", {"code": "x", "id": "shared_x"}),
        ]
    )

    report = validate_variable_ids(graph)

    duplicates = [i for i in report.error_issues if i.code == "DUPLICATE_VARIABLE_ID"]
    assert len(duplicates) == 1
    assert "variableDef_1" in duplicates[0].message
    assert "variableDef_2" in duplicates[0].message
    assert "shared_x" in duplicates[0].message


def test_missing_code_and_id():
    graph = _graph([_variable_def("variableDef_1", {"id": "variableDef_1_x"}, {"code": "y"})])

    report = validate_variable_ids(graph)

    assert report.codes("error") == ["MISSING_VARIABLE_CODE", "MISSING_VARIABLE_ID"]


def test_non_conventional_id_is_a_warning():
    graph = _graph([_variable_def("variableDef_1", {"code": "x", "id": "my_x"})])

    report = validate_variable_ids(graph)

    assert report.valid
    assert report.codes("warning") == ["NON_CONVENTIONAL_ID"]
    assert "variableDef_1_x" in report.warnings[0]


def test_unresolved_and_missing_reference_ids():
    graph = _graph(
        [
            _variable_def("variableDef_1", {"code": "x", "id": "variableDef_1_x"}),
            {
                "id": "batchAssignValue_1",
                "kind": "batchAssignValue",
                "expresses": [
                    {
                        "kind": "assignValue",
                        "leftExpress": _ref("variableDef_variableDef_1", "x", "variableDef_1_x"),
                        "rightExpress": _ref("variableDef_variableDef_1", "y", "variableDef_1_y"),
                    },
                    {
                        "kind": "assignValue",
                        "leftExpress": _ref("variableDef_variableDef_1", "x", "variableDef_1_x"),
                        "rightExpress": _ref("variableDef_variableDef_1", "x", None),
                    },
                ],
            },
        ]
    )

    report = validate_variable_ids(graph)

    assert report.codes("error") == ["UNRESOLVED_VARIABLE_REFERENCE", "MISSING_REFERENCE_VARIABLE_ID"]
    unresolved = report.error_issues[0]
    assert unresolved.node_id == "batchAssignValue_1"
    assert unresolved.field == "expresses[0].rightExpress"
    assert "variableDef_1_y" in unresolved.message


def test_variable_name_mismatch_is_a_warning():
    graph = _graph(
        [
            _variable_def("variableDef_1", {"code": "x", "id": "variableDef_1_x"}),
            {
                "id": "end_1",
                "kind": "end",
                "outputParams": [
                    {"code": "r", "id": "end_1_r", "valueExpr": _ref("variableDef_variableDef_1", "renamed", "variableDef_1_x")}
                ],
            },
        ]
    )

    report = VariableIdValidator().validate(graph)

    assert report.valid
    assert report.codes("warning") == ["VARIABLE_NAME_MISMATCH"]
    assert report.to_dict()["warnings"][0].startswith("[VARIABLE_NAME_MISMATCH]")
