from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, List, Optional

from ..topology import Edge, GraphModel, Node

logger = logging.getLogger(__name__)


class GraphIndex:
    """
    Adjacency view over one GraphModel snapshot with helpers for:

    - looking up nodes by id
    - outgoing / incoming edges per node
    - evaluation order (topological, with a residual append for cycles)

    Tolerates structurally broken graphs:
      * edges whose endpoints are not nodes are skipped (see dangling_edges)
      * cycles do not raise; cycle members are appended after the partial order
    """

    def __init__(self, graph: GraphModel):
        self._graph = graph
        self._nodes: Dict[str, Node] = {}
        self._out_edges: Dict[str, List[Edge]] = {}
        self._in_edges: Dict[str, List[Edge]] = {}
        self._dangling: List[Edge] = []
        self._order: Optional[List[str]] = None
        self._has_cycle = False

        self._build()

    # ------------------------------------------------------------------
    # Internal construction
    # ------------------------------------------------------------------

    def _build(self) -> None:
        for n in self._graph.nodes:
            # First definition wins when ids collide.
            self._nodes.setdefault(n.id, n)
            self._out_edges.setdefault(n.id, [])
            self._in_edges.setdefault(n.id, [])

        for e in self._graph.edges:
            if e.from_id not in self._nodes or e.to_id not in self._nodes:
                logger.debug("Skipping dangling edge %s (%s -> %s)", e.id, e.from_id, e.to_id)
                self._dangling.append(e)
                continue
            self._out_edges[e.from_id].append(e)
            self._in_edges[e.to_id].append(e)

    # ------------------------------------------------------------------
    # Basic properties
    # ------------------------------------------------------------------

    @property
    def node_ids(self) -> List[str]:
        return list(self._nodes)

    @property
    def dangling_edges(self) -> List[Edge]:
        return list(self._dangling)

    @property
    def has_cycle(self) -> bool:
        self.topological_order()
        return self._has_cycle

    def node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def out_edges(self, node_id: str) -> List[Edge]:
        return self._out_edges.get(node_id, [])

    def in_edges(self, node_id: str) -> List[Edge]:
        return self._in_edges.get(node_id, [])

    # ------------------------------------------------------------------
    # Topological sort
    # ------------------------------------------------------------------

    def topological_order(self) -> List[str]:
        """
        Kahn's algorithm, FIFO, seeded in node collection order.

        If a cycle keeps some nodes from reaching in-degree zero, those nodes
        are appended in collection order. Every node id appears exactly once.
        """
        if self._order is not None:
            return list(self._order)

        in_deg = {n: len(self._in_edges[n]) for n in self._nodes}
        queue: Deque[str] = deque(n for n, deg in in_deg.items() if deg == 0)
        order: List[str] = []

        while queue:
            n = queue.popleft()
            order.append(n)
            for e in self._out_edges[n]:
                m = e.to_id
                in_deg[m] -= 1
                if in_deg[m] == 0:
                    queue.append(m)

        if len(order) < len(self._nodes):
            emitted = set(order)
            residual = [n for n in self._nodes if n not in emitted]
            logger.debug("Cycle detected; appending %d residual node(s): %s", len(residual), residual)
            order.extend(residual)
            self._has_cycle = True

        self._order = order
        return list(order)
