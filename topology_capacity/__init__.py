from .config import EngineConfig, dump_graph, load_engine_config, load_graph
from .engine import compute_scenario
from .result import ScenarioResult
from .runner import ScenarioRunner
from .topology import (
    ApiEndpointNode,
    DatastoreNode,
    Edge,
    GraphFormatError,
    GraphModel,
    JoinSemantics,
    Penalties,
    QueueTopicNode,
    ServiceNode,
)
from .validators import validate_graph

__all__ = [
    "ApiEndpointNode",
    "DatastoreNode",
    "Edge",
    "EngineConfig",
    "GraphFormatError",
    "GraphModel",
    "JoinSemantics",
    "Penalties",
    "QueueTopicNode",
    "ScenarioResult",
    "ScenarioRunner",
    "ServiceNode",
    "compute_scenario",
    "dump_graph",
    "load_engine_config",
    "load_graph",
    "validate_graph",
]
