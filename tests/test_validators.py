from topology_capacity.topology import (
    ApiEndpointNode,
    Edge,
    GraphModel,
    JoinSemantics,
    QueueTopicNode,
    ServiceNode,
)
from topology_capacity.validators import validate_graph


def test_valid_graph_has_no_warnings(kafka_chain):
    assert validate_graph(kafka_chain) == []


def test_kafka_edge_between_wrong_node_types():
    graph = GraphModel(
        nodes=[ApiEndpointNode(id="api", target_qps=1), QueueTopicNode(id="t", partitions=2, per_partition_throughput=10)],
        edges=[Edge(id="bad", from_id="api", to_id="t", protocol="Kafka")],
    )
    assert validate_graph(graph) == ["Invalid Kafka edge bad: ApiEndpoint→QueueTopic"]


def test_topic_dials_must_be_positive():
    graph = GraphModel(nodes=[QueueTopicNode(id="t", label="Orders", partitions=0, per_partition_throughput=0)])
    warnings = validate_graph(graph)
    assert "Topic Orders partitions must be positive integers" in warnings
    assert "Topic Orders per-partition throughput must be > 0" in warnings


def test_key_skew_only_valid_toward_topics():
    graph = GraphModel(
        nodes=[
            ServiceNode(id="a", concurrency=1, service_time_ms=1),
            ServiceNode(id="b", concurrency=1, service_time_ms=1),
        ],
        edges=[Edge(id="e", from_id="a", to_id="b", key_skew=0.4)],
    )
    assert validate_graph(graph) == ["Edge e sets keySkew but its target b is not a QueueTopic"]


def test_out_of_range_ratios_are_reported():
    graph = GraphModel(
        nodes=[
            ServiceNode(
                id="s",
                concurrency=1,
                service_time_ms=1,
                cache_hit_rate=1.5,
                join=JoinSemantics(type="window", match_rate=-0.1, required_streams=0),
            )
        ]
    )
    warnings = validate_graph(graph)
    assert any("cacheHitRate" in w for w in warnings)
    assert any("join.matchRate" in w for w in warnings)
    assert any("requiredStreams" in w for w in warnings)


def test_missing_nodes_and_cycles_are_reported():
    graph = GraphModel(
        nodes=[
            ServiceNode(id="a", concurrency=1, service_time_ms=1),
            ServiceNode(id="b", concurrency=1, service_time_ms=1),
        ],
        edges=[
            Edge(id="ab", from_id="a", to_id="b"),
            Edge(id="ba", from_id="b", to_id="a"),
            Edge(id="ghost", from_id="a", to_id="zzz"),
        ],
    )
    warnings = validate_graph(graph)
    assert "Edge ghost references missing node zzz" in warnings
    assert "Cycle detected in graph (Kafka cycles disabled by default)" in warnings


def test_deep_chain_is_validated_without_recursion_limits():
    depth = 1500
    nodes = [ApiEndpointNode(id="api", target_qps=10)]
    nodes += [ServiceNode(id=f"s{i}", concurrency=1, service_time_ms=1) for i in range(depth)]
    edges = [Edge(id="e-api", from_id="api", to_id="s0")]
    edges += [Edge(id=f"e{i}", from_id=f"s{i}", to_id=f"s{i + 1}") for i in range(depth - 1)]

    assert validate_graph(GraphModel(nodes=nodes, edges=edges)) == []


def test_fractional_partitions_survive_loading_and_are_reported():
    graph = GraphModel.from_dict(
        {
            "nodes": [{"id": "t", "type": "QueueTopic", "dials": {"partitions": 2.5, "perPartitionThroughput": 10}}],
            "edges": [],
        }
    )
    assert graph.nodes[0].partitions == 2.5
    assert "Topic t partitions must be positive integers" in validate_graph(graph)
