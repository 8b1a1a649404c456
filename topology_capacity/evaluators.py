"""
Per-node-type capacity and latency models.

Each evaluator takes one node plus the flows already computed for its inbound
edges and returns a NodeEvaluation. None of them mutate shared state; the
engine owns accumulation and edge annotation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from . import constants
from .config import EngineConfig
from .dag.graph import GraphIndex
from .joins import evaluate_join
from .result import (
    LIMITER_CONSUMER_PARALLELISM,
    LIMITER_DATASTORE_CAPACITY,
    LIMITER_JOIN_ALL,
    LIMITER_JOIN_K_OF_N,
    LIMITER_NONE,
    LIMITER_PARTITIONS,
    LIMITER_PRODUCER_PARTITIONS,
    LIMITER_SERVICE_COMPUTE,
    LIMITER_WINDOW_CORRELATION,
    DatastoreDetails,
    JoinSummary,
    Limiter,
    NodeStats,
    ServiceDetails,
    TopicDetails,
)
from .topology import (
    JOIN_ALL,
    JOIN_K_OF_N,
    JOIN_NONE,
    JOIN_WINDOW,
    NO_PENALTIES,
    ApiEndpointNode,
    DatastoreNode,
    Edge,
    Node,
    Penalties,
    QueueTopicNode,
    ServiceNode,
)
from .utils import clamp01, floored, fmt_rps

_JOIN_LIMITERS = {
    JOIN_ALL: LIMITER_JOIN_ALL,
    JOIN_K_OF_N: LIMITER_JOIN_K_OF_N,
    JOIN_WINDOW: LIMITER_WINDOW_CORRELATION,
}


@dataclass(frozen=True)
class NodeEvaluation:
    stats: NodeStats
    # Per inbound edge, what the node draws from it (join-aware). None means "everything offered".
    consumption: Optional[Tuple[float, ...]] = None
    bottleneck_reason: Optional[str] = None


# ----------------------------------------------------------------------
# Shared formulas
# ----------------------------------------------------------------------


def _penalties(node: Node) -> Penalties:
    return node.penalties or NO_PENALTIES


def _cap(value: float, penalties: Penalties) -> float:
    if penalties.fixed_rps_cap is None:
        return value
    return min(value, penalties.fixed_rps_cap)


def _shape_egress(value: float, penalties: Penalties) -> float:
    return _cap(value, penalties) * penalties.throughput_multiplier


def _apply_latency(p50_ms: float, penalties: Penalties) -> float:
    return p50_ms * penalties.latency_multiplier + penalties.latency_ms_add


def effective_time_ms(node: ServiceNode, epsilon: float = constants.EPSILON) -> float:
    """Expected per-item time blending cache hits and misses."""
    base = floored(node.service_time_ms, epsilon)
    hit_rate = clamp01(node.cache_hit_rate)
    hit_ms = max(0.0, node.cache_hit_ms)
    return floored((1 - hit_rate) * base + hit_rate * hit_ms, epsilon)


def queue_delay_ms(utilization: float, base_ms: float, threshold: float = constants.DEFAULT_QUEUE_THRESHOLD) -> float:
    """
    Cubic congestion penalty: zero up to the threshold, rho^3 * base above it.

    Not a queueing-theory solution, just a curve that stays flat under load
    and climbs steeply near and past saturation.
    """
    if utilization <= threshold:
        return 0.0
    return utilization**3 * base_ms


def effective_partitions(partitions: float, key_skew: Optional[float]) -> int:
    """Partitions usable by a producer once hot keys are accounted for (never below 1)."""
    skew = clamp01(key_skew)
    return max(1, math.floor(partitions * (1 - skew * skew)))


def _inbound_rates(inbound: Sequence[Edge], flows: Dict[str, float]) -> List[float]:
    return [flows.get(e.id, 0.0) for e in inbound]


# ----------------------------------------------------------------------
# ApiEndpoint
# ----------------------------------------------------------------------


def evaluate_api_endpoint(node: ApiEndpointNode, config: EngineConfig) -> NodeEvaluation:
    penalties = _penalties(node)
    ingress = node.target_qps * node.burst_factor
    egress = _shape_egress(ingress, penalties)
    p50 = _apply_latency(node.p50_ms or 0.0, penalties)
    p95 = node.p95_ms if node.p95_ms is not None else p50 * config.p95_multiplier
    stats = NodeStats(
        ingress_rps=ingress,
        egress_rps=egress,
        utilization=0.0,
        modeled_p50_ms=p50,
        modeled_p95_ms=p95,
        limiter=Limiter(LIMITER_NONE, "entry"),
    )
    return NodeEvaluation(stats=stats)


# ----------------------------------------------------------------------
# Service
# ----------------------------------------------------------------------


def _service_warnings(ingress: float, capacity: float, utilization: float, config: EngineConfig) -> List[str]:
    if utilization >= constants.OVERLOADED_UTILIZATION:
        return [
            f"Inbound {ingress:.1f} RPS exceeds service capacity ({capacity:.1f}). "
            f"Backlog growing by {ingress - capacity:.1f} RPS."
        ]
    if utilization >= config.high_utilization:
        return [f"High utilization (≥{config.high_utilization:.2f})"]
    if utilization >= config.elevated_utilization:
        return [f"Elevated utilization (≥{config.elevated_utilization:.2f})"]
    return []


def evaluate_service(
    node: ServiceNode,
    index: GraphIndex,
    flows: Dict[str, float],
    config: EngineConfig,
) -> NodeEvaluation:
    eps = config.epsilon
    penalties = _penalties(node)
    inbound = index.in_edges(node.id)
    rates = _inbound_rates(inbound, flows)

    join = evaluate_join(node.join, rates)
    ingress = join.ingress_rps

    # Partitioned consumption: workers beyond the available partitions sit idle.
    topics: List[QueueTopicNode] = []
    for e in inbound:
        src = index.node(e.from_id)
        if e.is_kafka and isinstance(src, QueueTopicNode):
            topics.append(src)
    available_partitions = sum(t.partitions for t in topics)
    workers = min(node.concurrency, available_partitions) if topics else node.concurrency

    efficiency = clamp01(node.parallel_efficiency, default=1.0)
    time_ms = effective_time_ms(node, eps)
    capacity = workers * efficiency * (1000.0 / time_ms)
    capacity *= penalties.capacity_multiplier
    capacity = _cap(capacity, penalties)
    if node.max_in_flight is not None:
        capacity = min(capacity, node.max_in_flight)

    consumer_cap: Optional[float] = None
    if topics:
        consumer_cap = sum(min(t.partitions, node.concurrency) * t.per_partition_throughput for t in topics)
        capacity = min(capacity, consumer_cap)

    utilization = ingress / floored(capacity, eps)
    queue_ms = queue_delay_ms(utilization, time_ms, config.queue_threshold)
    p50 = _apply_latency(time_ms + queue_ms, penalties)
    p95 = p50 * config.p95_multiplier

    egress = _shape_egress(min(ingress, capacity), penalties)
    backlog = max(0.0, ingress - capacity)

    wasted: Optional[float] = None
    if topics:
        max_partitions = max(t.partitions for t in topics)
        surplus = node.concurrency - max_partitions * efficiency
        wasted = surplus if surplus > 0 else None

    has_join = node.join.type != JOIN_NONE and bool(rates)
    if capacity <= ingress + eps:
        limiter = Limiter(LIMITER_SERVICE_COMPUTE, f"capacity {capacity:.1f}/s")
    elif has_join:
        limiter = Limiter(_JOIN_LIMITERS[node.join.type], join.reason)
    else:
        limiter = Limiter(LIMITER_NONE, "no constraint")

    summary = None
    if node.join.type != JOIN_NONE:
        summary = JoinSummary(
            required_streams=node.join.required_streams,
            efficiency=node.join.efficiency,
            match_rate=node.join.match_rate,
            active_streams_count=len(join.active),
            join_ingress_rps=ingress,
            reason=join.reason,
        )

    stats = NodeStats(
        ingress_rps=ingress,
        egress_rps=egress,
        utilization=utilization,
        modeled_p50_ms=p50,
        modeled_p95_ms=p95,
        limiter=limiter,
        backlog_rps=backlog if backlog > 0 else None,
        wasted_concurrency=wasted,
        warnings=_service_warnings(ingress, capacity, utilization, config),
        service=ServiceDetails(
            join_mode=node.join.type,
            workers=workers,
            effective_time_ms=time_ms,
            capacity=capacity,
            join_summary=summary,
            available_partitions=available_partitions if topics else None,
            consumer_cap=consumer_cap,
            queue_ms=queue_ms,
        ),
    )
    return NodeEvaluation(
        stats=stats,
        consumption=join.consumption,
        bottleneck_reason="Capacity exceeded" if backlog > 0 else None,
    )


# ----------------------------------------------------------------------
# QueueTopic
# ----------------------------------------------------------------------


def consumer_capacity_total(topic: QueueTopicNode, index: GraphIndex) -> float:
    """Sum over downstream Services of min(partitions, consumer concurrency) * per-partition throughput."""
    total = 0.0
    for e in index.out_edges(topic.id):
        down = index.node(e.to_id)
        if isinstance(down, ServiceNode):
            total += min(topic.partitions, down.concurrency) * topic.per_partition_throughput
    return total


def evaluate_queue_topic(
    node: QueueTopicNode,
    index: GraphIndex,
    ingress: float,
    config: EngineConfig,
) -> NodeEvaluation:
    penalties = _penalties(node)
    capacity = node.partitions * node.per_partition_throughput
    capacity *= penalties.capacity_multiplier
    capacity = _cap(capacity, penalties)

    consumer_total = consumer_capacity_total(node, index)
    # No consumers means nothing downstream drains the topic at a bounded rate.
    consumer_bound = consumer_total or math.inf

    egress = _shape_egress(min(ingress, capacity, consumer_bound), penalties)
    lag = max(0.0, ingress - egress)

    # Ties resolve toward the producer side.
    bounds = [
        (LIMITER_PRODUCER_PARTITIONS, ingress, f"producer total {ingress:.1f}/s"),
        (LIMITER_PARTITIONS, capacity, f"partitions cap {capacity:.1f}/s"),
        (LIMITER_CONSUMER_PARALLELISM, consumer_bound, f"consumer cap {fmt_rps(consumer_bound)}/s"),
    ]
    lowest = min(b[1] for b in bounds)
    kind, _, reason = next(b for b in bounds if b[1] == lowest)

    warnings: List[str] = []
    if lag > 0:
        warnings.append(f"Consumer lag growing by {lag:.1f} msg/s")

    stats = NodeStats(
        ingress_rps=ingress,
        egress_rps=egress,
        utilization=ingress / floored(capacity, config.epsilon),
        modeled_p50_ms=0.0,
        modeled_p95_ms=0.0,
        limiter=Limiter(kind, reason),
        consumer_lag_rps=lag if lag > 0 else None,
        warnings=warnings,
        topic=TopicDetails(partitions=node.partitions, capacity=capacity, consumer_cap_total=consumer_total),
    )
    return NodeEvaluation(stats=stats)


# ----------------------------------------------------------------------
# Datastore
# ----------------------------------------------------------------------


def costed_ingress(inbound: Sequence[Edge], rates: Sequence[float], write_amplification: float) -> Tuple[float, float, float, float]:
    """Return (reads, writes, other, cost_units) for the inbound flows."""
    reads = writes = other = 0.0
    for e, rate in zip(inbound, rates):
        if e.op_type == constants.OP_WRITE:
            writes += rate
        elif e.op_type == constants.OP_READ:
            reads += rate
        else:
            other += rate
    return reads, writes, other, reads + writes * write_amplification + other


def datastore_capacity(node: DatastoreNode) -> float:
    pool = max(1, node.pool_size) if node.pool_size is not None else None
    max_conc = max(1, node.max_concurrent) if node.max_concurrent is not None else None
    if pool is not None and max_conc is not None:
        pool_clamp = float(pool * max_conc)
    elif pool is not None:
        pool_clamp = float(pool)
    elif max_conc is not None:
        pool_clamp = float(max_conc)
    else:
        pool_clamp = math.inf

    penalties = _penalties(node)
    capacity = min(node.max_qps, pool_clamp) * penalties.capacity_multiplier
    return _cap(capacity, penalties)


def evaluate_datastore(
    node: DatastoreNode,
    index: GraphIndex,
    flows: Dict[str, float],
    config: EngineConfig,
) -> NodeEvaluation:
    eps = config.epsilon
    penalties = _penalties(node)
    inbound = index.in_edges(node.id)
    rates = _inbound_rates(inbound, flows)
    reads, writes, other, cost_units = costed_ingress(inbound, rates, node.write_amplification)

    capacity = datastore_capacity(node)
    utilization = cost_units / floored(capacity, eps)

    p50 = node.p95_ms / config.datastore_p95_ratio
    write_share = writes / floored(cost_units, eps) if writes > 0 else 0.0
    if writes > 0 and node.lock_contention_factor > 0:
        p50 *= 1 + write_share * node.lock_contention_factor
    p50 = _apply_latency(p50, penalties)
    p95 = p50 * config.p95_multiplier

    ingress = sum(rates)
    capacity_share = min(1.0, capacity / floored(cost_units, eps))
    egress = _shape_egress(ingress * capacity_share, penalties)
    backlog = max(0.0, cost_units - capacity)

    warnings: List[str] = []
    if backlog > 0:
        warnings.append(
            f"Load of {cost_units:.1f} cost units/s exceeds datastore capacity ({capacity:.1f}). "
            f"Backlog growing by {backlog:.1f} units/s."
        )

    if capacity_share < 1:
        limiter = Limiter(LIMITER_DATASTORE_CAPACITY, f"capacity {capacity:.1f} costUnits/s")
    else:
        limiter = Limiter(LIMITER_NONE, "under capacity")

    stats = NodeStats(
        ingress_rps=ingress,
        egress_rps=egress,
        utilization=utilization,
        modeled_p50_ms=p50,
        modeled_p95_ms=p95,
        limiter=limiter,
        backlog_rps=backlog if backlog > 0 else None,
        warnings=warnings,
        datastore=DatastoreDetails(
            reads=reads,
            writes=writes,
            other=other,
            cost_units=cost_units,
            capacity=capacity,
            write_share=write_share,
        ),
    )
    return NodeEvaluation(
        stats=stats,
        bottleneck_reason="Datastore capacity limit" if backlog > 0 else None,
    )


def evaluate_node(
    node: Node,
    index: GraphIndex,
    flows: Dict[str, float],
    incoming: Dict[str, float],
    config: EngineConfig,
) -> NodeEvaluation:
    if isinstance(node, ServiceNode):
        return evaluate_service(node, index, flows, config)
    if isinstance(node, QueueTopicNode):
        return evaluate_queue_topic(node, index, incoming.get(node.id, 0.0), config)
    if isinstance(node, ApiEndpointNode):
        return evaluate_api_endpoint(node, config)
    if isinstance(node, DatastoreNode):
        return evaluate_datastore(node, index, flows, config)
    raise TypeError(f"unsupported node type: {type(node).__name__}")
