import json

from topology_capacity.cli import main
from topology_capacity.config import dump_graph


def test_seed_run_prints_summary_and_writes_result(tmp_path, capsys):
    out = tmp_path / "result.json"
    assert main(["--seed", "fan-in", "--out", str(out)]) == 0

    printed = capsys.readouterr().out
    assert "svc" in printed
    assert "Bottlenecks:" in printed
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["nodeStats"]["svc"]["ingressRps"] == 300.0
    assert data["global"]["bottlenecks"] == [{"id": "svc", "reason": "Capacity exceeded"}]


def test_graph_file_with_validation(tmp_path, capsys, kafka_chain):
    path = tmp_path / "graph.json"
    dump_graph(kafka_chain, path)

    assert main(["--graph", str(path), "--validate"]) == 0
    printed = capsys.readouterr().out
    assert "validation:" not in printed
    assert "consumer" in printed


def test_engine_config_file_is_applied(tmp_path, capsys):
    cfg = tmp_path / "engine.json"
    cfg.write_text(json.dumps({"p95Multiplier": 4}), encoding="utf-8")
    out = tmp_path / "result.json"

    assert main(["--seed", "fan-in", "--engine-config", str(cfg), "--out", str(out)]) == 0
    svc = json.loads(out.read_text(encoding="utf-8"))["nodeStats"]["svc"]
    assert svc["modeledP95Ms"] == svc["modeledP50Ms"] * 4


def test_bad_graph_file_exits_with_error(tmp_path, capsys):
    path = tmp_path / "graph.json"
    path.write_text('{"nodes": [{"id": "x", "type": "Nope"}]}', encoding="utf-8")

    assert main(["--graph", str(path)]) == 2
    assert "unknown type" in capsys.readouterr().err


def test_missing_graph_file_exits_with_error(tmp_path, capsys):
    assert main(["--graph", str(tmp_path / "absent.json")]) == 2
