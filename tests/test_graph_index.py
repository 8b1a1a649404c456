from topology_capacity.dag.graph import GraphIndex
from topology_capacity.topology import ApiEndpointNode, Edge, GraphModel, ServiceNode


def _svc(node_id: str) -> ServiceNode:
    return ServiceNode(id=node_id, concurrency=1, service_time_ms=10)


def test_topological_order_respects_edges_and_collection_order():
    # Nodes deliberately listed out of dependency order.
    graph = GraphModel(
        nodes=[_svc("c"), _svc("b"), ApiEndpointNode(id="a", target_qps=1), _svc("d")],
        edges=[
            Edge(id="ab", from_id="a", to_id="b"),
            Edge(id="bc", from_id="b", to_id="c"),
            Edge(id="ac", from_id="a", to_id="c"),
        ],
    )
    index = GraphIndex(graph)
    order = index.topological_order()

    assert order == ["a", "d", "b", "c"]
    assert not index.has_cycle
    assert index.in_edges("c") == [graph.edges[1], graph.edges[2]]
    assert [e.to_id for e in index.out_edges("a")] == ["b", "c"]


def test_cycle_members_are_appended_in_collection_order():
    graph = GraphModel(
        nodes=[_svc("x"), _svc("y"), _svc("root"), _svc("z")],
        edges=[
            Edge(id="r-x", from_id="root", to_id="x"),
            Edge(id="x-y", from_id="x", to_id="y"),
            Edge(id="y-x", from_id="y", to_id="x"),
        ],
    )
    index = GraphIndex(graph)
    order = index.topological_order()

    assert order == ["root", "z", "x", "y"]
    assert sorted(order) == sorted(n.id for n in graph.nodes)
    assert index.has_cycle


def test_self_loop_is_a_cycle():
    index = GraphIndex(GraphModel(nodes=[_svc("s")], edges=[Edge(id="loop", from_id="s", to_id="s")]))
    assert index.topological_order() == ["s"]
    assert index.has_cycle


def test_dangling_edges_are_skipped():
    graph = GraphModel(
        nodes=[_svc("a")],
        edges=[Edge(id="bad", from_id="a", to_id="missing"), Edge(id="worse", from_id="nope", to_id="a")],
    )
    index = GraphIndex(graph)

    assert [e.id for e in index.dangling_edges] == ["bad", "worse"]
    assert index.out_edges("a") == []
    assert index.in_edges("a") == []
    assert index.topological_order() == ["a"]


def test_empty_graph():
    index = GraphIndex(GraphModel())
    assert index.topological_order() == []
    assert not index.has_cycle
