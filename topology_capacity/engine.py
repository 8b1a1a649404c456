from __future__ import annotations

import logging
from typing import Dict, Optional

from .config import DEFAULT_ENGINE_CONFIG, EngineConfig
from .dag.graph import GraphIndex
from .evaluators import evaluate_node
from .flow import annotate_inbound, distribute
from .result import Bottleneck, EdgeStats, GlobalStats, NodeStats, ScenarioResult
from .topology import GraphModel

logger = logging.getLogger(__name__)

CYCLE_WARNING = "Cycle detected; results for cycle members are a single-pass approximation"


def compute_scenario(graph: GraphModel, config: Optional[EngineConfig] = None) -> ScenarioResult:
    """
    Evaluate one graph snapshot into per-node and per-edge statistics.

    Nodes are visited once in topological order. Each node's ingress comes
    from flows already pushed by its predecessors; its egress is then split
    over its outgoing edges. Inbound edges are back-annotated with delivered
    vs. blocked rate as soon as the consuming node is evaluated.

    Pure with respect to `graph`: every working map below is local to the call.
    """
    config = config or DEFAULT_ENGINE_CONFIG
    index = GraphIndex(graph)
    order = index.topological_order()

    incoming: Dict[str, float] = {node_id: 0.0 for node_id in index.node_ids}
    flows: Dict[str, float] = {}
    node_stats: Dict[str, NodeStats] = {}
    edge_stats: Dict[str, EdgeStats] = {}
    global_ = GlobalStats()

    for edge in index.dangling_edges:
        global_.warnings.append(f"Edge {edge.id} references a missing node ({edge.from_id} -> {edge.to_id}); skipped")
    if index.has_cycle:
        global_.warnings.append(CYCLE_WARNING)

    for node_id in order:
        node = index.node(node_id)
        if node is None:
            continue
        evaluation = evaluate_node(node, index, flows, incoming, config)
        stats = evaluation.stats
        node_stats[node_id] = stats

        if evaluation.bottleneck_reason:
            global_.bottlenecks.append(Bottleneck(node_id=node_id, reason=evaluation.bottleneck_reason))

        annotate_inbound(stats, index.in_edges(node_id), edge_stats, evaluation.consumption)
        distribute(node_id, stats.egress_rps, index, incoming, edge_stats, config.epsilon)
        for e in index.out_edges(node_id):
            flows[e.id] = edge_stats[e.id].flow_rps

    logger.debug(
        "scenario_computed",
        extra={
            "capacity": {
                "nodes": len(node_stats),
                "edges": len(edge_stats),
                "cycle": index.has_cycle,
                "bottlenecks": [b.node_id for b in global_.bottlenecks],
            }
        },
    )

    return ScenarioResult(node_stats=node_stats, edge_stats=edge_stats, global_=global_)
