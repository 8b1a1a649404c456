import pytest

from topology_capacity.engine import compute_scenario
from topology_capacity.result import LIMITER_DATASTORE_CAPACITY
from topology_capacity.topology import ApiEndpointNode, DatastoreNode, Edge, GraphModel


def _writer_graph(**db_kwargs) -> GraphModel:
    return GraphModel(
        nodes=[
            ApiEndpointNode(id="api", target_qps=300),
            DatastoreNode(id="db", **db_kwargs),
        ],
        edges=[Edge(id="w", from_id="api", to_id="db", op_type="write")],
    )


def test_datastore_over_capacity_scales_egress_and_records_bottleneck():
    result = compute_scenario(_writer_graph(max_qps=1000, p95_ms=30))
    db = result.node_stats["db"]

    # 300 writes * default amplification 4 = 1200 cost units against 1000/s.
    assert db.datastore.cost_units == pytest.approx(1200.0)
    assert db.utilization == pytest.approx(1.2)
    assert db.egress_rps == pytest.approx(250.0)
    assert db.backlog_rps == pytest.approx(200.0)
    assert db.limiter.type == LIMITER_DATASTORE_CAPACITY
    assert db.warnings
    assert [(b.node_id, b.reason) for b in result.global_.bottlenecks] == [("db", "Datastore capacity limit")]
    assert result.edge_stats["w"].blocked_rps == pytest.approx(50.0)


def test_lock_contention_inflates_latency_with_write_share():
    calm = compute_scenario(_writer_graph(max_qps=5000, p95_ms=30)).node_stats["db"]
    contended = compute_scenario(
        _writer_graph(max_qps=5000, p95_ms=30, lock_contention_factor=1.0)
    ).node_stats["db"]

    assert calm.modeled_p50_ms == pytest.approx(20.0)
    # All cost comes from writes: write share = 300 / 1200.
    assert contended.datastore.write_share == pytest.approx(0.25)
    assert contended.modeled_p50_ms == pytest.approx(25.0)
    assert contended.modeled_p95_ms == pytest.approx(50.0)


def test_reads_only_datastore_under_capacity():
    graph = GraphModel(
        nodes=[ApiEndpointNode(id="api", target_qps=100), DatastoreNode(id="db", max_qps=200, p95_ms=15)],
        edges=[Edge(id="r", from_id="api", to_id="db", op_type="read")],
    )
    db = compute_scenario(graph).node_stats["db"]

    assert db.utilization == pytest.approx(0.5)
    assert db.egress_rps == pytest.approx(100.0)
    assert db.backlog_rps is None
    assert db.limiter.type == "none"
