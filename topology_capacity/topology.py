from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from . import constants

JOIN_NONE = "none"
JOIN_ALL = "all"
JOIN_K_OF_N = "kOfN"
JOIN_WINDOW = "window"

_JOIN_TYPES = (JOIN_NONE, JOIN_ALL, JOIN_K_OF_N, JOIN_WINDOW)
# Older saved graphs used these names for the barrier / windowed joins.
_JOIN_ALIASES = {"waitAll": JOIN_ALL, "windowed": JOIN_WINDOW}

_PROTOCOLS = (constants.PROTOCOL_GENERIC, constants.PROTOCOL_KAFKA)
_OP_TYPES = (constants.OP_READ, constants.OP_WRITE, constants.OP_BULK, constants.OP_STREAM)
_FAN_OUT_MODES = (constants.FAN_OUT_SPLIT, constants.FAN_OUT_DUPLICATE)


class GraphFormatError(ValueError):
    """Raised when a serialized graph cannot be turned into a GraphModel."""


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Penalties:
    """Node-level adjustments applied the same way regardless of node type."""

    capacity_multiplier: float = 1.0
    throughput_multiplier: float = 1.0
    latency_ms_add: float = 0.0
    latency_multiplier: float = 1.0
    fixed_rps_cap: Optional[float] = None


NO_PENALTIES = Penalties()


@dataclass(frozen=True)
class JoinSemantics:
    """
    Fan-in rule for a Service with several inbound streams.

    - none:   merge, every inbound stream is summed
    - all:    barrier, the slowest stream gates the others
    - kOfN:   quorum of `required_streams` out of N streams
    - window: quorum further scaled by `match_rate`
    """

    type: str = JOIN_NONE
    required_streams: Optional[int] = None
    efficiency: Optional[float] = None
    match_rate: Optional[float] = None
    window_ms: Optional[float] = None


NO_JOIN = JoinSemantics()


@dataclass(frozen=True)
class ApiEndpointNode:
    id: str
    target_qps: float
    label: str = ""
    burst_factor: float = 1.0
    p50_ms: Optional[float] = None
    p95_ms: Optional[float] = None
    position: Position = Position()
    notes: Optional[str] = None
    penalties: Optional[Penalties] = None

    type = "ApiEndpoint"


@dataclass(frozen=True)
class ServiceNode:
    id: str
    concurrency: int
    service_time_ms: float
    label: str = ""
    parallel_efficiency: float = 1.0
    cache_hit_rate: float = 0.0
    cache_hit_ms: float = 0.0
    max_in_flight: Optional[float] = None
    join: JoinSemantics = NO_JOIN
    fan_out: str = constants.FAN_OUT_SPLIT
    position: Position = Position()
    notes: Optional[str] = None
    penalties: Optional[Penalties] = None

    type = "Service"


@dataclass(frozen=True)
class QueueTopicNode:
    id: str
    partitions: float  # whole number; validate_graph reports fractions
    per_partition_throughput: float
    label: str = ""
    replication_factor: Optional[int] = None
    position: Position = Position()
    notes: Optional[str] = None
    penalties: Optional[Penalties] = None

    type = "QueueTopic"


@dataclass(frozen=True)
class DatastoreNode:
    id: str
    max_qps: float
    p95_ms: float
    label: str = ""
    write_amplification: float = constants.DEFAULT_WRITE_AMPLIFICATION
    lock_contention_factor: float = 0.0
    pool_size: Optional[int] = None
    max_concurrent: Optional[int] = None
    position: Position = Position()
    notes: Optional[str] = None
    penalties: Optional[Penalties] = None

    type = "Datastore"


Node = Union[ApiEndpointNode, ServiceNode, QueueTopicNode, DatastoreNode]


@dataclass(frozen=True)
class Edge:
    """
    Directed link between two nodes.

    - protocol: "Generic" or "Kafka" (partitioned message queue)
    - op_type:  read | write | bulk | stream, interpreted by Datastore targets
    - weight:   fan-out split weight (equal split when omitted)
    - key_skew: 0..1, only meaningful when the target is a QueueTopic
    """

    id: str
    from_id: str
    to_id: str
    protocol: str = constants.PROTOCOL_GENERIC
    label: Optional[str] = None
    op_type: Optional[str] = None
    weight: Optional[float] = None
    key_skew: Optional[float] = None

    @property
    def is_kafka(self) -> bool:
        return self.protocol == constants.PROTOCOL_KAFKA


@dataclass(frozen=True)
class GraphModel:
    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        # Accept lists from callers but keep the snapshot immutable.
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "GraphModel":
        if not isinstance(data, Mapping):
            raise GraphFormatError("graph must be a JSON object")
        nodes = [_node_from_dict(n) for n in data.get("nodes", [])]
        edges = [_edge_from_dict(e) for e in data.get("edges", [])]
        metadata = dict(data.get("metadata") or {})
        return GraphModel(nodes=tuple(nodes), edges=tuple(edges), metadata=metadata)

    def to_dict(self) -> dict:
        out: Dict[str, Any] = {
            "nodes": [_node_to_dict(n) for n in self.nodes],
            "edges": [_edge_to_dict(e) for e in self.edges],
        }
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        return out


# ----------------------------------------------------------------------
# Dict codec (camelCase field names of the saved graph format)
# ----------------------------------------------------------------------


def _require(dials: Mapping[str, Any], key: str, node_id: str) -> Any:
    value = dials.get(key)
    if value is None:
        raise GraphFormatError(f"node {node_id!r} is missing required dial {key!r}")
    return value


def _number(value: Any, what: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise GraphFormatError(f"{what} must be a number, got {value!r}") from exc


def _opt_number(value: Any, what: str) -> Optional[float]:
    return None if value is None else _number(value, what)


def _count(value: Any, what: str) -> float:
    # Non-integer counts are kept as given; validate_graph reports them.
    number = _number(value, what)
    return int(number) if number.is_integer() else number


def _opt_int(value: Any, what: str) -> Optional[int]:
    return None if value is None else int(_number(value, what))


def _penalties_from_dict(data: Optional[Mapping[str, Any]]) -> Optional[Penalties]:
    if not data:
        return None
    return Penalties(
        capacity_multiplier=_number(data.get("capacityMultiplier", 1.0), "capacityMultiplier"),
        throughput_multiplier=_number(data.get("throughputMultiplier", 1.0), "throughputMultiplier"),
        latency_ms_add=_number(data.get("latencyMsAdd", 0.0), "latencyMsAdd"),
        latency_multiplier=_number(data.get("latencyMultiplier", 1.0), "latencyMultiplier"),
        fixed_rps_cap=_opt_number(data.get("fixedRpsCap"), "fixedRpsCap"),
    )


def _penalties_to_dict(p: Penalties) -> dict:
    out: Dict[str, Any] = {
        "capacityMultiplier": p.capacity_multiplier,
        "throughputMultiplier": p.throughput_multiplier,
        "latencyMsAdd": p.latency_ms_add,
        "latencyMultiplier": p.latency_multiplier,
    }
    if p.fixed_rps_cap is not None:
        out["fixedRpsCap"] = p.fixed_rps_cap
    return out


def _join_from_dict(data: Optional[Mapping[str, Any]]) -> JoinSemantics:
    if not data:
        return NO_JOIN
    join_type = str(data.get("type", JOIN_NONE))
    join_type = _JOIN_ALIASES.get(join_type, join_type)
    if join_type not in _JOIN_TYPES:
        raise GraphFormatError(f"unknown join type {join_type!r}")
    return JoinSemantics(
        type=join_type,
        required_streams=_opt_int(data.get("requiredStreams"), "requiredStreams"),
        efficiency=_opt_number(data.get("efficiency", data.get("joinEfficiency")), "efficiency"),
        match_rate=_opt_number(data.get("matchRate"), "matchRate"),
        window_ms=_opt_number(data.get("windowMs"), "windowMs"),
    )


def _join_to_dict(join: JoinSemantics) -> dict:
    out: Dict[str, Any] = {"type": join.type}
    for key, value in (
        ("requiredStreams", join.required_streams),
        ("efficiency", join.efficiency),
        ("matchRate", join.match_rate),
        ("windowMs", join.window_ms),
    ):
        if value is not None:
            out[key] = value
    return out


def _common(data: Mapping[str, Any]) -> Dict[str, Any]:
    pos = data.get("position") or {}
    return {
        "label": str(data.get("label", "")),
        "position": Position(x=_number(pos.get("x", 0.0), "position.x"), y=_number(pos.get("y", 0.0), "position.y")),
        "notes": data.get("notes"),
        "penalties": _penalties_from_dict(data.get("penalties")),
    }


def _api_from_dict(node_id: str, dials: Mapping[str, Any], common: Dict[str, Any]) -> ApiEndpointNode:
    return ApiEndpointNode(
        id=node_id,
        target_qps=_number(_require(dials, "targetQps", node_id), "targetQps"),
        burst_factor=_number(dials.get("burstFactor", 1.0), "burstFactor"),
        p50_ms=_opt_number(dials.get("p50Ms"), "p50Ms"),
        p95_ms=_opt_number(dials.get("p95Ms"), "p95Ms"),
        **common,
    )


def _service_from_dict(node_id: str, dials: Mapping[str, Any], common: Dict[str, Any]) -> ServiceNode:
    fan_out = str(dials.get("fanOut", constants.FAN_OUT_SPLIT))
    if fan_out not in _FAN_OUT_MODES:
        raise GraphFormatError(f"node {node_id!r} has unknown fanOut {fan_out!r}")
    return ServiceNode(
        id=node_id,
        concurrency=int(_number(_require(dials, "concurrency", node_id), "concurrency")),
        service_time_ms=_number(_require(dials, "serviceTimeMs", node_id), "serviceTimeMs"),
        parallel_efficiency=_number(dials.get("parallelEfficiency", 1.0), "parallelEfficiency"),
        cache_hit_rate=_number(dials.get("cacheHitRate", 0.0), "cacheHitRate"),
        cache_hit_ms=_number(dials.get("cacheHitMs", 0.0), "cacheHitMs"),
        max_in_flight=_opt_number(dials.get("maxInFlight"), "maxInFlight"),
        join=_join_from_dict(dials.get("join")),
        fan_out=fan_out,
        **common,
    )


def _topic_from_dict(node_id: str, dials: Mapping[str, Any], common: Dict[str, Any]) -> QueueTopicNode:
    return QueueTopicNode(
        id=node_id,
        partitions=_count(_require(dials, "partitions", node_id), "partitions"),
        per_partition_throughput=_number(
            _require(dials, "perPartitionThroughput", node_id), "perPartitionThroughput"
        ),
        replication_factor=_opt_int(dials.get("replicationFactor"), "replicationFactor"),
        **common,
    )


def _datastore_from_dict(node_id: str, dials: Mapping[str, Any], common: Dict[str, Any]) -> DatastoreNode:
    return DatastoreNode(
        id=node_id,
        max_qps=_number(_require(dials, "maxQps", node_id), "maxQps"),
        p95_ms=_number(_require(dials, "p95Ms", node_id), "p95Ms"),
        write_amplification=_number(
            dials.get("writeAmplification", constants.DEFAULT_WRITE_AMPLIFICATION), "writeAmplification"
        ),
        lock_contention_factor=_number(dials.get("lockContentionFactor", 0.0), "lockContentionFactor"),
        pool_size=_opt_int(dials.get("poolSize"), "poolSize"),
        max_concurrent=_opt_int(dials.get("maxConcurrent"), "maxConcurrent"),
        **common,
    )


_NODE_PARSERS: Dict[str, Callable[[str, Mapping[str, Any], Dict[str, Any]], Node]] = {
    ApiEndpointNode.type: _api_from_dict,
    ServiceNode.type: _service_from_dict,
    QueueTopicNode.type: _topic_from_dict,
    DatastoreNode.type: _datastore_from_dict,
}


def _node_from_dict(data: Mapping[str, Any]) -> Node:
    node_id = data.get("id")
    if not node_id:
        raise GraphFormatError("every node needs an 'id'")
    node_type = data.get("type")
    parser = _NODE_PARSERS.get(str(node_type))
    if parser is None:
        raise GraphFormatError(f"node {node_id!r} has unknown type {node_type!r}")
    return parser(str(node_id), data.get("dials") or {}, _common(data))


def _dials_to_dict(node: Node) -> dict:
    if isinstance(node, ApiEndpointNode):
        dials: Dict[str, Any] = {"targetQps": node.target_qps, "burstFactor": node.burst_factor}
        if node.p50_ms is not None:
            dials["p50Ms"] = node.p50_ms
        if node.p95_ms is not None:
            dials["p95Ms"] = node.p95_ms
        return dials
    if isinstance(node, ServiceNode):
        dials = {
            "concurrency": node.concurrency,
            "serviceTimeMs": node.service_time_ms,
            "parallelEfficiency": node.parallel_efficiency,
            "cacheHitRate": node.cache_hit_rate,
            "cacheHitMs": node.cache_hit_ms,
            "fanOut": node.fan_out,
        }
        if node.max_in_flight is not None:
            dials["maxInFlight"] = node.max_in_flight
        if node.join != NO_JOIN:
            dials["join"] = _join_to_dict(node.join)
        return dials
    if isinstance(node, QueueTopicNode):
        dials = {"partitions": node.partitions, "perPartitionThroughput": node.per_partition_throughput}
        if node.replication_factor is not None:
            dials["replicationFactor"] = node.replication_factor
        return dials
    dials = {
        "maxQps": node.max_qps,
        "p95Ms": node.p95_ms,
        "writeAmplification": node.write_amplification,
        "lockContentionFactor": node.lock_contention_factor,
    }
    if node.pool_size is not None:
        dials["poolSize"] = node.pool_size
    if node.max_concurrent is not None:
        dials["maxConcurrent"] = node.max_concurrent
    return dials


def _node_to_dict(node: Node) -> dict:
    out: Dict[str, Any] = {
        "id": node.id,
        "type": node.type,
        "label": node.label,
        "position": {"x": node.position.x, "y": node.position.y},
        "dials": _dials_to_dict(node),
    }
    if node.notes is not None:
        out["notes"] = node.notes
    if node.penalties is not None:
        out["penalties"] = _penalties_to_dict(node.penalties)
    return out


def _edge_from_dict(data: Mapping[str, Any]) -> Edge:
    edge_id = data.get("id")
    src = data.get("from")
    dst = data.get("to")
    if not edge_id or not src or not dst:
        raise GraphFormatError(f"edge needs 'id', 'from' and 'to': {dict(data)!r}")
    protocol = str(data.get("protocol", constants.PROTOCOL_GENERIC))
    if protocol not in _PROTOCOLS:
        raise GraphFormatError(f"edge {edge_id!r} has unknown protocol {protocol!r}")
    op_type = data.get("opType")
    if op_type is not None and op_type not in _OP_TYPES:
        raise GraphFormatError(f"edge {edge_id!r} has unknown opType {op_type!r}")
    return Edge(
        id=str(edge_id),
        from_id=str(src),
        to_id=str(dst),
        protocol=protocol,
        label=data.get("label"),
        op_type=op_type,
        weight=_opt_number(data.get("weight"), "weight"),
        key_skew=_opt_number(data.get("keySkew"), "keySkew"),
    )


def _edge_to_dict(edge: Edge) -> dict:
    out: Dict[str, Any] = {"id": edge.id, "from": edge.from_id, "to": edge.to_id, "protocol": edge.protocol}
    for key, value in (
        ("label", edge.label),
        ("opType", edge.op_type),
        ("weight", edge.weight),
        ("keySkew", edge.key_skew),
    ):
        if value is not None:
            out[key] = value
    return out


__all__ = [
    "ApiEndpointNode",
    "DatastoreNode",
    "Edge",
    "GraphFormatError",
    "GraphModel",
    "JoinSemantics",
    "Node",
    "Penalties",
    "Position",
    "QueueTopicNode",
    "ServiceNode",
]
