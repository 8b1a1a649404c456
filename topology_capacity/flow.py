from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence

from . import constants
from .dag.graph import GraphIndex
from .evaluators import effective_partitions
from .result import LIMITER_PRODUCER_PARTITIONS, EdgeStats, Limiter, NodeStats
from .topology import Edge, QueueTopicNode, ServiceNode


def edge_transport_latency_ms(edge: Edge) -> float:
    """Modeled hop latency. Both protocols are treated as free for now."""
    return 0.0


def producer_bound(edge: Edge, index: GraphIndex) -> float:
    """
    Upper bound on what a Kafka edge can push into its target topic.

    Hot keys shrink the usable partitions (see effective_partitions); a Service
    producer is further bounded by one partition's throughput per worker.
    Returns inf for edges that are not Kafka edges into a QueueTopic.
    """
    target = index.node(edge.to_id)
    if not edge.is_kafka or not isinstance(target, QueueTopicNode):
        return math.inf
    per_partition = target.per_partition_throughput
    bound = effective_partitions(target.partitions, edge.key_skew) * per_partition
    source = index.node(edge.from_id)
    if isinstance(source, ServiceNode):
        bound = min(bound, source.concurrency * per_partition)
    return bound


def distribute(
    node_id: str,
    egress_rps: float,
    index: GraphIndex,
    incoming: Dict[str, float],
    edge_stats: Dict[str, EdgeStats],
    epsilon: float = constants.EPSILON,
) -> None:
    """
    Split a node's egress over its outgoing edges and accumulate into targets.

    Edges share egress by weight (equal when unset) unless the source Service
    duplicates its output, in which case every edge carries the full egress.
    """
    outs = index.out_edges(node_id)
    if not outs:
        return
    source = index.node(node_id)
    duplicate = isinstance(source, ServiceNode) and source.fan_out == constants.FAN_OUT_DUPLICATE
    total_weight = sum(_weight(e) for e in outs) or 1.0

    for e in outs:
        offered = egress_rps if duplicate else egress_rps * (_weight(e) / total_weight)
        flow = min(offered, producer_bound(e, index))

        limiter = None
        if flow + epsilon < offered:
            limiter = Limiter(LIMITER_PRODUCER_PARTITIONS, "producer cap on Kafka edge", input_rps=offered)

        incoming[e.to_id] = incoming.get(e.to_id, 0.0) + flow
        edge_stats[e.id] = EdgeStats(
            flow_rps=flow,
            modeled_latency_ms=edge_transport_latency_ms(e),
            delivered_rps=flow,
            limiter=limiter,
        )


def _weight(edge: Edge) -> float:
    return 1.0 if edge.weight is None else max(0.0, edge.weight)


def annotate_inbound(
    stats: NodeStats,
    inbound: Sequence[Edge],
    edge_stats: Dict[str, EdgeStats],
    consumption: Optional[Sequence[float]] = None,
) -> None:
    """
    Mark each already-flowed inbound edge with delivered vs. blocked rate.

    Runs once the consuming node's egress is known. It never feeds back into
    upstream capacity; the pass stays single and forward-only.
    """
    ratio = stats.acceptance_ratio
    for i, e in enumerate(inbound):
        es = edge_stats.get(e.id)
        if es is None:
            # Edge from a node evaluated later (cycle); nothing flowed yet.
            continue
        desired = consumption[i] if consumption is not None else es.flow_rps
        delivered = min(desired, es.flow_rps) * ratio
        blocked = max(0.0, es.flow_rps - delivered)
        es.delivered_rps = delivered
        es.blocked_rps += blocked
        if blocked > 0:
            es.warnings.append(f"Target constrained: blocked {blocked:.2f}/s")


def blocked_edges(edge_stats: Dict[str, EdgeStats]) -> List[str]:
    return [edge_id for edge_id, es in edge_stats.items() if es.blocked_rps > 0]
