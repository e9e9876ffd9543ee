"""Unit tests for the graph builder, filter and analytics."""

from __future__ import annotations

import pytest

from src.graph.analytics import GraphAnalytics
from src.graph.builder import BASE_VAL, VAL_PER_EDGE, GraphBuilder
from src.graph.filter import FilterMode, FilterState, GraphFilter
from src.models.graph import GraphEdge, GraphNode, KnowledgeGraph

# ======================================================================
# GraphBuilder
# ======================================================================


class TestGraphBuilder:
    def test_neighbors_and_weights(self, chain_graph: KnowledgeGraph) -> None:
        view = GraphBuilder().build(chain_graph)

        assert [n.id for n in view.nodes] == ["A", "B", "C", "D"]
        assert view.node("B").neighbor_ids == ["A", "C"]
        assert view.node("A").degree == 1
        assert view.node("A").val == BASE_VAL + VAL_PER_EDGE
        assert view.node("B").val == BASE_VAL + 2 * VAL_PER_EDGE
        assert len(view.links) == 3
        assert view.dropped_edges == 0

    def test_edges_to_unknown_nodes_are_dropped(self) -> None:
        graph = KnowledgeGraph(
            nodes=[GraphNode(id="a", label="A"), GraphNode(id="b", label="B")],
            edges=[
                GraphEdge(source="a", target="b"),
                GraphEdge(source="a", target="ghost"),
            ],
        )

        view = GraphBuilder().build(graph)

        assert len(view.links) == 1
        assert view.dropped_edges == 1
        assert view.node("a").neighbor_ids == ["b"]

    def test_parallel_edges_repeat_neighbors(self) -> None:
        graph = KnowledgeGraph(
            nodes=[GraphNode(id="a", label="A"), GraphNode(id="b", label="B")],
            edges=[
                GraphEdge(source="a", target="b", relation="knows"),
                GraphEdge(source="b", target="a", relation="trusts"),
            ],
        )

        view = GraphBuilder().build(graph)

        assert view.node("a").neighbor_ids == ["b", "b"]
        assert view.node("a").val == BASE_VAL + 2 * VAL_PER_EDGE
        assert view.links[0] is not view.links[1]
        assert len(set(view.links)) == 2

    def test_repeated_node_id_keeps_first_occurrence(self) -> None:
        graph = KnowledgeGraph(
            nodes=[
                GraphNode(id="a", label="Alpha"),
                GraphNode(id="b", label="Beta"),
                GraphNode(id="a", label="Alpha again"),
            ],
            edges=[GraphEdge(source="a", target="b")],
        )

        view = GraphBuilder().build(graph)

        assert [n.id for n in view.nodes] == ["a", "b"]
        assert view.node("a").label == "Alpha"
        assert view.node("a").neighbor_ids == ["b"]
        assert view.node_ids() == {"a", "b"}

    def test_source_graph_is_not_mutated(self, chain_graph: KnowledgeGraph) -> None:
        before = chain_graph.model_dump()
        view = GraphBuilder().build(chain_graph)
        view.nodes[0].x = 10.0

        assert chain_graph.model_dump() == before

    def test_empty_graph(self) -> None:
        view = GraphBuilder().build(KnowledgeGraph())
        assert view.is_empty
        assert view.links == []


# ======================================================================
# GraphFilter
# ======================================================================


class TestGraphFilter:
    @pytest.fixture()
    def view(self, chain_graph: KnowledgeGraph):
        return GraphBuilder().build(chain_graph)

    def test_no_filter_shows_everything(self, view) -> None:
        visible = GraphFilter().apply(view, FilterState())

        assert [n.id for n in visible.nodes] == ["A", "B", "C", "D"]
        assert len(visible.links) == 3

    def test_focus_keeps_node_and_neighbors(self, view) -> None:
        visible = GraphFilter().apply(view, FilterState(focus_node_id="B"))

        assert [n.id for n in visible.nodes] == ["A", "B", "C"]
        assert [(link.source.id, link.target.id) for link in visible.links] == [("A", "B"), ("B", "C")]

    def test_prune_hides_leaves(self, view) -> None:
        visible = GraphFilter().apply(view, FilterState(prune_leaves=True))

        assert [n.id for n in visible.nodes] == ["B", "C"]
        assert [(link.source.id, link.target.id) for link in visible.links] == [("B", "C")]

    def test_focus_overrides_prune(self, view) -> None:
        state = FilterState(prune_leaves=True).with_focus("A")

        visible = GraphFilter().apply(view, state)

        assert [n.id for n in visible.nodes] == ["A", "B"]
        assert GraphFilter().effective_mode(view, state) == FilterMode.FOCUS

    def test_clearing_focus_restores_prune_preference(self, view) -> None:
        state = FilterState().with_prune_leaves(True).with_focus("A").clear_focus()

        visible = GraphFilter().apply(view, state)

        assert state.mode == FilterMode.PRUNE
        assert [n.id for n in visible.nodes] == ["B", "C"]

    def test_unknown_focus_acts_as_no_focus(self, view) -> None:
        state = FilterState(focus_node_id="missing")

        visible = GraphFilter().apply(view, state)

        assert len(visible.nodes) == 4
        assert GraphFilter().effective_mode(view, state) == FilterMode.ALL

    def test_focus_on_repeated_id_keeps_neighbors(self) -> None:
        graph = KnowledgeGraph(
            nodes=[GraphNode(id="a", label="A"), GraphNode(id="b", label="B"), GraphNode(id="a", label="A")],
            edges=[GraphEdge(source="a", target="b")],
        )
        view = GraphBuilder().build(graph)

        visible = GraphFilter().apply(view, FilterState(focus_node_id="a"))

        assert [n.id for n in visible.nodes] == ["a", "b"]
        assert len(visible.links) == 1

    def test_visible_view_shares_node_objects(self, view) -> None:
        visible = GraphFilter().apply(view, FilterState(focus_node_id="B"))
        assert visible.node("B") is view.node("B")


# ======================================================================
# GraphAnalytics
# ======================================================================


class TestGraphAnalytics:
    def test_chain_metrics(self, chain_graph: KnowledgeGraph) -> None:
        metrics = GraphAnalytics().compute(GraphBuilder().build(chain_graph))

        assert metrics.node_count == 4
        assert metrics.edge_count == 3
        assert metrics.density == pytest.approx(0.5)
        assert metrics.avg_degree == pytest.approx(1.5)

    def test_top_nodes_by_weight_with_stable_ties(self, chain_graph: KnowledgeGraph) -> None:
        metrics = GraphAnalytics().compute(GraphBuilder().build(chain_graph), top_n=3)

        assert [n.id for n in metrics.top_nodes] == ["B", "C", "A"]

    def test_empty_and_single_node(self) -> None:
        builder = GraphBuilder()
        empty = GraphAnalytics().compute(builder.build(KnowledgeGraph()))
        single = GraphAnalytics().compute(
            builder.build(KnowledgeGraph(nodes=[GraphNode(id="a", label="A")]))
        )

        assert (empty.density, empty.avg_degree) == (0.0, 0.0)
        assert (single.density, single.avg_degree) == (0.0, 0.0)
        assert [n.id for n in single.top_nodes] == ["a"]

    def test_metrics_follow_visible_subgraph(self, chain_graph: KnowledgeGraph) -> None:
        view = GraphBuilder().build(chain_graph)
        visible = GraphFilter().apply(view, FilterState(prune_leaves=True))

        metrics = GraphAnalytics().compute(visible)

        assert metrics.node_count == 2
        assert metrics.edge_count == 1
        assert metrics.density == pytest.approx(1.0)
