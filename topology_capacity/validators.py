"""
Semantic checks on a GraphModel, independent of evaluation.

validate_graph never raises; it returns human-readable warnings the editor can
show next to the graph. The engine evaluates graphs regardless of these.
"""

from __future__ import annotations

from typing import List, Optional, Set

from .dag.graph import GraphIndex
from .topology import ApiEndpointNode, GraphModel, QueueTopicNode, ServiceNode

_KAFKA_PAIRS = {
    (ServiceNode.type, QueueTopicNode.type),
    (QueueTopicNode.type, ServiceNode.type),
}


def _ratio_warning(owner: str, name: str, value: Optional[float]) -> Optional[str]:
    if value is None or 0.0 <= value <= 1.0:
        return None
    return f"{owner} {name} {value:g} is outside [0, 1]; it will be clamped"


def validate_graph(graph: GraphModel) -> List[str]:
    warnings: List[str] = []
    nodes = {n.id: n for n in graph.nodes}

    seen: Set[str] = set()
    for n in graph.nodes:
        if n.id in seen:
            warnings.append(f"Duplicate node id {n.id}")
        seen.add(n.id)

    # Edge endpoints and protocol compatibility
    for edge in graph.edges:
        src = nodes.get(edge.from_id)
        dst = nodes.get(edge.to_id)
        if src is None or dst is None:
            missing = edge.from_id if src is None else edge.to_id
            warnings.append(f"Edge {edge.id} references missing node {missing}")
            continue
        if edge.is_kafka and (src.type, dst.type) not in _KAFKA_PAIRS:
            warnings.append(f"Invalid Kafka edge {edge.id}: {src.type}→{dst.type}")
        if edge.key_skew is not None and not isinstance(dst, QueueTopicNode):
            warnings.append(f"Edge {edge.id} sets keySkew but its target {dst.id} is not a QueueTopic")
        if isinstance(dst, ApiEndpointNode):
            warnings.append(f"Edge {edge.id} targets entrypoint {dst.id}; entrypoints ignore inbound flow")
        for msg in (
            _ratio_warning(f"Edge {edge.id}", "keySkew", edge.key_skew),
            f"Edge {edge.id} weight must be >= 0" if edge.weight is not None and edge.weight < 0 else None,
        ):
            if msg:
                warnings.append(msg)

    for node in graph.nodes:
        if isinstance(node, QueueTopicNode):
            if node.partitions <= 0 or not float(node.partitions).is_integer():
                warnings.append(f"Topic {node.label or node.id} partitions must be positive integers")
            if node.per_partition_throughput <= 0:
                warnings.append(f"Topic {node.label or node.id} per-partition throughput must be > 0")
        elif isinstance(node, ServiceNode):
            owner = f"Service {node.label or node.id}"
            if node.concurrency <= 0:
                warnings.append(f"{owner} concurrency must be > 0")
            if node.service_time_ms <= 0:
                warnings.append(f"{owner} serviceTimeMs must be > 0")
            for name, value in (
                ("parallelEfficiency", node.parallel_efficiency),
                ("cacheHitRate", node.cache_hit_rate),
                ("join.efficiency", node.join.efficiency),
                ("join.matchRate", node.join.match_rate),
            ):
                msg = _ratio_warning(owner, name, value)
                if msg:
                    warnings.append(msg)
            if node.join.required_streams is not None and node.join.required_streams < 1:
                warnings.append(f"{owner} join.requiredStreams must be >= 1")

    if GraphIndex(graph).has_cycle:
        warnings.append("Cycle detected in graph (Kafka cycles disabled by default)")

    return warnings
