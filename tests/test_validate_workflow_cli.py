# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

import json

from validate_workflow import main


def _workflow(extra_nodes=(), stale_code="stale"):
    nodes = [
        {"id": "start_1", "kind": "start"},
        {"id": "variableDef_1", "kind": "variableDef", "outputParams": [{"code": "x", "id": "variableDef_1_x"}]},
        {
            "id": "end_1",
            "kind": "end",
            "outputParams": [
                {
                    "code": "r",
                    "id": "end_1_r",
                    "valueExpr": {
                        "kind": "nodeVariable",
                        "nodeCode": stale_code,
                        "variable": "x",
                        "variableId": "variableDef_1_x",
                    },
                }
            ],
        },
    ]
    nodes.extend(extra_nodes)
    return {
        "nodes": nodes,
        "edges": [
            {"sourceNodeId": "start_1", "targetNodeId": "variableDef_1"},
            {"sourceNodeId": "variableDef_1", "targetNodeId": "end_1"},
        ],
    }


def _write(tmp_path, payload, name="workflow.json"):
    path = tmp_path / name
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
    return path


def test_cli_repairs_and_passes(tmp_path, capsys):
    path = _write(tmp_path, _workflow())

    exit_code = main([str(path)])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "workflow 校验通过。" in out
    assert "共修复 1 处变量引用。" in out


def test_cli_reads_fenced_model_reply(tmp_path):
    path = _write(tmp_path, "生成结果如下：\n```json\n" + json.dumps(_workflow()) + "\n```", name="reply.txt")

    assert main([str(path), "--validate-only"]) == 0


def test_cli_reports_unsupported_kind(tmp_path, capsys):
    path = _write(tmp_path, _workflow(extra_nodes=[{"id": "lampControl_1", "kind": "lampControl"}]))

    exit_code = main([str(path)])

    err = capsys.readouterr().err
    assert exit_code == 1
    assert "[UNSUPPORTED_NODE_KIND]" in err
    assert "node=lampControl_1" in err


def test_cli_accepts_device_kinds(tmp_path):
    path = _write(tmp_path, _workflow(extra_nodes=[{"id": "lampControl_1", "kind": "lampControl"}]))
    definitions = _write(tmp_path, [{"kind": "lampControl"}], name="devices.json")

    assert main([str(path), "--device-kind", "lampControl"]) == 0
    assert main([str(path), "--device-definitions", str(definitions)]) == 0


def test_cli_json_output(tmp_path, capsys):
    path = _write(tmp_path, _workflow())

    exit_code = main([str(path), "--json", "--print-repaired"])

    data = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert data["valid"] is True
    assert data["fixCount"] == 1
    assert data["graph"]["nodes"][2]["outputParams"][0]["valueExpr"]["nodeCode"] == "variableDef_variableDef_1"


def test_cli_max_nodes_warning_does_not_fail(tmp_path, capsys):
    path = _write(tmp_path, _workflow())

    exit_code = main([str(path), "--max-nodes", "2", "--json"])

    data = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert data["warnings"][0].startswith("[TOO_MANY_NODES]")


def test_cli_input_errors(tmp_path, capsys):
    assert main([str(tmp_path / "missing.json")]) == 2
    assert main([str(_write(tmp_path, "{not json"))]) == 2

    bad_definitions = _write(tmp_path, {"kind": "lampControl"}, name="devices.json")
    assert main([str(_write(tmp_path, _workflow())), "--device-definitions", str(bad_definitions)]) == 2

    err = capsys.readouterr().err
    assert "找不到 workflow 文件" in err
    assert "加载设备节点定义失败" in err


def test_cli_rejects_bad_node_ceiling_from_env(tmp_path, capsys, monkeypatch):
    monkeypatch.setenv("FLOWGUARD_MAX_NODES", "lots")
    path = _write(tmp_path, _workflow())

    assert main([str(path)]) == 2
    assert "加载配置失败" in capsys.readouterr().err
