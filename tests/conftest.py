import pytest

from topology_capacity.constants import OP_WRITE, PROTOCOL_KAFKA
from topology_capacity.topology import (
    ApiEndpointNode,
    DatastoreNode,
    Edge,
    GraphModel,
    QueueTopicNode,
    ServiceNode,
)


@pytest.fixture
def api_to_service():
    """Factory for the simplest topology: one entrypoint feeding one service (capacity 200/s by default)."""

    def build(target_qps: float, **service_kwargs) -> GraphModel:
        service = dict(concurrency=4, service_time_ms=20, parallel_efficiency=1.0)
        service.update(service_kwargs)
        return GraphModel(
            nodes=[
                ApiEndpointNode(id="api", target_qps=target_qps),
                ServiceNode(id="svc", **service),
            ],
            edges=[Edge(id="e1", from_id="api", to_id="svc")],
        )

    return build


@pytest.fixture
def kafka_chain():
    # api(600) -> producer -[kafka, skew .5]-> topic(6 x 100) -[kafka]-> consumer -> db (writes)
    return GraphModel(
        nodes=[
            ApiEndpointNode(id="api", target_qps=600),
            ServiceNode(id="producer", concurrency=8, service_time_ms=10),
            QueueTopicNode(id="topic", partitions=6, per_partition_throughput=100),
            ServiceNode(id="consumer", concurrency=8, service_time_ms=5),
            DatastoreNode(id="db", max_qps=1000, p95_ms=30, write_amplification=2, lock_contention_factor=0.5),
        ],
        edges=[
            Edge(id="e-api", from_id="api", to_id="producer"),
            Edge(id="e-produce", from_id="producer", to_id="topic", protocol=PROTOCOL_KAFKA, key_skew=0.5),
            Edge(id="e-consume", from_id="topic", to_id="consumer", protocol=PROTOCOL_KAFKA),
            Edge(id="e-write", from_id="consumer", to_id="db", op_type=OP_WRITE),
        ],
    )
