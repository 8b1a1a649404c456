"""Sample topologies for demos and smoke tests."""

from __future__ import annotations

from typing import Callable, Dict

from . import constants
from .topology import (
    JOIN_K_OF_N,
    ApiEndpointNode,
    DatastoreNode,
    Edge,
    GraphModel,
    JoinSemantics,
    Position,
    QueueTopicNode,
    ServiceNode,
)


def fan_in_join() -> GraphModel:
    """Three 300 qps entrypoints feeding a quorum join that needs all three."""
    return GraphModel(
        nodes=(
            ApiEndpointNode(id="api1", label="API A", target_qps=300, position=Position(0, 0)),
            ApiEndpointNode(id="api2", label="API B", target_qps=300, position=Position(0, 100)),
            ApiEndpointNode(id="api3", label="API C", target_qps=300, position=Position(0, 200)),
            ServiceNode(
                id="svc",
                label="Joiner",
                concurrency=4,
                service_time_ms=20,
                parallel_efficiency=1.0,
                join=JoinSemantics(type=JOIN_K_OF_N, required_streams=3, efficiency=1.0),
                position=Position(400, 100),
            ),
        ),
        edges=(
            Edge(id="e1", from_id="api1", to_id="svc"),
            Edge(id="e2", from_id="api2", to_id="svc"),
            Edge(id="e3", from_id="api3", to_id="svc"),
        ),
        metadata={"name": "Fan-in join"},
    )


def kafka_etl() -> GraphModel:
    """Producer -> topic -> ETL consumer -> warehouse writes."""
    kafka = constants.PROTOCOL_KAFKA
    return GraphModel(
        nodes=(
            ServiceNode(id="svc1", label="Producer", concurrency=4, service_time_ms=10, position=Position(0, 100)),
            QueueTopicNode(
                id="t", label="Topic", partitions=12, per_partition_throughput=150, position=Position(300, 100)
            ),
            ServiceNode(id="svc2", label="ETL", concurrency=4, service_time_ms=20, position=Position(600, 100)),
            DatastoreNode(id="db", label="Warehouse", max_qps=1200, p95_ms=50, position=Position(900, 100)),
        ),
        edges=(
            Edge(id="e1", from_id="svc1", to_id="t", protocol=kafka, key_skew=0.2),
            Edge(id="e2", from_id="t", to_id="svc2", protocol=kafka),
            Edge(id="e3", from_id="svc2", to_id="db", op_type=constants.OP_WRITE),
        ),
        metadata={"name": "Kafka ETL"},
    )


SEEDS: Dict[str, Callable[[], GraphModel]] = {
    "fan-in": fan_in_join,
    "kafka-etl": kafka_etl,
}
