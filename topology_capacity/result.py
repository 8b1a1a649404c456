from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Limiter kinds reported on nodes and edges.
LIMITER_NONE = "none"
LIMITER_SERVICE_COMPUTE = "service-compute"
LIMITER_JOIN_ALL = "join-all"
LIMITER_JOIN_K_OF_N = "join-kofn"
LIMITER_WINDOW_CORRELATION = "window-correlation"
LIMITER_PRODUCER_PARTITIONS = "producer-partitions"
LIMITER_PARTITIONS = "partitions"
LIMITER_CONSUMER_PARALLELISM = "consumer-parallelism"
LIMITER_DATASTORE_CAPACITY = "datastore-capacity"


@dataclass(frozen=True)
class Limiter:
    """The binding constraint behind a node's (or edge's) flow."""

    type: str
    reason: str
    input_rps: Optional[float] = None

    def to_dict(self) -> dict:
        out: Dict[str, Any] = {"type": self.type, "reason": self.reason}
        if self.input_rps is not None:
            out["inputRps"] = self.input_rps
        return out


@dataclass(frozen=True)
class Bottleneck:
    node_id: str
    reason: str

    def to_dict(self) -> dict:
        return {"id": self.node_id, "reason": self.reason}


@dataclass(frozen=True)
class JoinSummary:
    required_streams: Optional[int]
    efficiency: Optional[float]
    match_rate: Optional[float]
    active_streams_count: int
    join_ingress_rps: float
    reason: str


@dataclass(frozen=True)
class ServiceDetails:
    join_mode: str
    workers: float
    effective_time_ms: float
    capacity: float
    join_summary: Optional[JoinSummary] = None
    available_partitions: Optional[float] = None
    consumer_cap: Optional[float] = None
    queue_ms: float = 0.0


@dataclass(frozen=True)
class TopicDetails:
    partitions: float
    capacity: float
    consumer_cap_total: float


@dataclass(frozen=True)
class DatastoreDetails:
    reads: float
    writes: float
    other: float
    cost_units: float
    capacity: float
    write_share: float = 0.0


@dataclass
class NodeStats:
    ingress_rps: float
    egress_rps: float
    utilization: float
    modeled_p50_ms: float
    modeled_p95_ms: float
    limiter: Limiter
    backlog_rps: Optional[float] = None
    consumer_lag_rps: Optional[float] = None
    wasted_concurrency: Optional[float] = None
    warnings: List[str] = field(default_factory=list)
    service: Optional[ServiceDetails] = None
    topic: Optional[TopicDetails] = None
    datastore: Optional[DatastoreDetails] = None

    @property
    def acceptance_ratio(self) -> float:
        """Share of ingress that leaves the node; 1 when nothing arrives."""
        if self.ingress_rps <= 0:
            return 1.0
        return min(1.0, self.egress_rps / self.ingress_rps)

    def to_dict(self) -> dict:
        out: Dict[str, Any] = {
            "ingressRps": self.ingress_rps,
            "egressRps": self.egress_rps,
            "utilization": self.utilization,
            "modeledP50Ms": self.modeled_p50_ms,
            "modeledP95Ms": self.modeled_p95_ms,
            "warnings": list(self.warnings),
            "limiter": self.limiter.to_dict(),
        }
        for key, value in (
            ("backlogRps", self.backlog_rps),
            ("consumerLagRps", self.consumer_lag_rps),
            ("wastedConcurrency", self.wasted_concurrency),
        ):
            if value is not None:
                out[key] = value

        details: Dict[str, Any] = {}
        if self.service is not None:
            details["service"] = _details_to_dict(self.service)
        if self.topic is not None:
            details["topic"] = _details_to_dict(self.topic)
        if self.datastore is not None:
            details["datastore"] = _details_to_dict(self.datastore)
        if details:
            out["details"] = details
        return out


@dataclass
class EdgeStats:
    flow_rps: float
    modeled_latency_ms: float
    delivered_rps: float
    blocked_rps: float = 0.0
    warnings: List[str] = field(default_factory=list)
    limiter: Optional[Limiter] = None

    def to_dict(self) -> dict:
        out: Dict[str, Any] = {
            "flowRps": self.flow_rps,
            "modeledLatencyMs": self.modeled_latency_ms,
            "deliveredRps": self.delivered_rps,
            "blockedRps": self.blocked_rps,
            "warnings": list(self.warnings),
        }
        if self.limiter is not None:
            out["limiter"] = self.limiter.to_dict()
        return out


@dataclass
class GlobalStats:
    warnings: List[str] = field(default_factory=list)
    bottlenecks: List[Bottleneck] = field(default_factory=list)


@dataclass
class ScenarioResult:
    node_stats: Dict[str, NodeStats] = field(default_factory=dict)
    edge_stats: Dict[str, EdgeStats] = field(default_factory=dict)
    global_: GlobalStats = field(default_factory=GlobalStats)

    def bottleneck_ids(self) -> List[str]:
        return [b.node_id for b in self.global_.bottlenecks]

    def to_dict(self) -> dict:
        return {
            "nodeStats": {k: v.to_dict() for k, v in self.node_stats.items()},
            "edgeStats": {k: v.to_dict() for k, v in self.edge_stats.items()},
            "global": {
                "warnings": list(self.global_.warnings),
                "bottlenecks": [b.to_dict() for b in self.global_.bottlenecks],
            },
        }


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _details_to_dict(details: Any) -> dict:
    out: Dict[str, Any] = {}
    for key, value in details.__dict__.items():
        if value is None:
            continue
        if isinstance(value, JoinSummary):
            value = _details_to_dict(value)
        out[_camel(key)] = value
    return out
