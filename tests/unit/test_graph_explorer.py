"""Unit tests for the highlight engine and the GraphExplorer session."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from src.graph.builder import GraphBuilder
from src.graph.explorer import GraphExplorer, node_category
from src.graph.filter import FilterMode
from src.graph.highlight import HighlightEngine, compute_highlights
from src.graph.layout import CLUSTER_FORCE, ForceSimulation
from src.interfaces.force_simulation import IForceSimulation
from src.models.graph import KnowledgeGraph

# ======================================================================
# Highlights
# ======================================================================


class TestComputeHighlights:
    def test_focal_node_neighbors_and_links(self, chain_graph: KnowledgeGraph) -> None:
        view = GraphBuilder().build(chain_graph)

        hl = compute_highlights("B", view.links)

        assert hl.node_ids == {"A", "B", "C"}
        assert {(link.source.id, link.target.id) for link in hl.links} == {("A", "B"), ("B", "C")}

    def test_none_is_empty(self, chain_graph: KnowledgeGraph) -> None:
        view = GraphBuilder().build(chain_graph)
        assert compute_highlights(None, view.links).is_empty


class TestHighlightEngine:
    @pytest.fixture()
    def engine(self, chain_graph: KnowledgeGraph) -> HighlightEngine:
        view = GraphBuilder().build(chain_graph)
        engine = HighlightEngine()
        engine.refresh(view.links, view.node_ids())
        return engine

    def test_nothing_dimmed_when_idle(self, engine: HighlightEngine) -> None:
        assert engine.is_active is False
        assert engine.is_node_dimmed("D") is False

    def test_selection_dims_everything_else(self, engine: HighlightEngine) -> None:
        engine.select("A")

        assert engine.is_node_dimmed("A") is False
        assert engine.is_node_dimmed("B") is False
        assert engine.is_node_dimmed("C") is True

    def test_selection_wins_over_hover(self, engine: HighlightEngine) -> None:
        engine.hover("D")
        engine.select("A")

        assert engine.focal == "A"
        assert engine.highlights.node_ids == {"A", "B"}
        # The hovered node itself is never dimmed.
        assert engine.is_node_dimmed("D") is False

    def test_hover_alone_drives_highlight(self, engine: HighlightEngine) -> None:
        engine.hover("D")
        assert engine.highlights.node_ids == {"C", "D"}

    def test_refresh_drops_invisible_selection(self, engine: HighlightEngine) -> None:
        engine.select("D")

        engine.refresh([], {"A", "B"})

        assert engine.selected is None
        assert engine.highlights.is_empty

    def test_clear(self, engine: HighlightEngine) -> None:
        engine.select("A")
        engine.hover("B")
        engine.clear()

        assert engine.is_active is False


# ======================================================================
# GraphExplorer
# ======================================================================


class TestNodeCategory:
    @pytest.mark.parametrize(
        ("node_type", "expected"),
        [("Person", "person"), ("ORGANIZATION", "organization"), ("City location", "location"), ("Concept", "other"), (None, "other")],
    )
    def test_categories(self, node_type, expected) -> None:
        assert node_category(node_type) == expected


class TestGraphExplorer:
    @pytest.fixture()
    def explorer(self, chain_graph: KnowledgeGraph) -> GraphExplorer:
        return GraphExplorer(chain_graph, simulation=ForceSimulation(seed=7), top_n=2)

    def test_initial_view_and_metrics(self, explorer: GraphExplorer) -> None:
        assert explorer.mode == FilterMode.ALL
        assert len(explorer.view.nodes) == 4
        assert explorer.metrics.density == pytest.approx(0.5)
        assert [n.id for n in explorer.metrics.top_nodes] == ["B", "C"]

    def test_focus_then_clear_restores_prune(self, explorer: GraphExplorer) -> None:
        explorer.set_prune_leaves(True)
        explorer.focus("A")

        assert explorer.mode == FilterMode.FOCUS
        assert [n.id for n in explorer.view.nodes] == ["A", "B"]

        explorer.clear_focus()

        assert explorer.mode == FilterMode.PRUNE
        assert [n.id for n in explorer.view.nodes] == ["B", "C"]
        assert explorer.metrics.node_count == 2

    def test_full_view_ignores_filter(self, explorer: GraphExplorer) -> None:
        explorer.focus("A")

        assert explorer.filter_state.focus_node_id == "A"
        assert len(explorer.full_view.nodes) == 4
        assert len(explorer.view.nodes) == 2

    def test_clear_selection(self, explorer: GraphExplorer) -> None:
        explorer.select("B")
        explorer.hover("C")

        hl = explorer.clear_selection()

        assert hl.is_empty
        assert explorer.highlight.selected is None
        assert explorer.highlight.hovered is None

    def test_unknown_focus_reports_all_mode(self, explorer: GraphExplorer) -> None:
        explorer.focus("nope")

        assert explorer.mode == FilterMode.ALL
        assert len(explorer.view.nodes) == 4

    def test_selecting_hidden_node_clears_selection(self, explorer: GraphExplorer) -> None:
        explorer.select("A")
        explorer.set_prune_leaves(True)

        assert explorer.highlight.selected is None

        explorer.select("D")
        assert explorer.highlight.selected is None

    def test_search_selects_first_visible_match(self, explorer: GraphExplorer) -> None:
        match = explorer.search("  ACME ")

        assert match is not None
        assert match.id == "B"
        assert explorer.highlight.selected == "B"

    def test_search_ignores_hidden_nodes(self, explorer: GraphExplorer) -> None:
        explorer.set_prune_leaves(True)

        assert explorer.search("alice") is None
        assert explorer.search("   ") is None

    def test_connections_of_visible_node(self, explorer: GraphExplorer) -> None:
        connections = [(relation, node.id) for relation, node in explorer.connections("B")]
        assert connections == [("works at", "A"), ("based in", "C")]

    def test_connections_follow_filter(self, explorer: GraphExplorer) -> None:
        explorer.focus("A")
        assert [node.id for _, node in explorer.connections("B")] == ["A"]

    def test_physics_and_cluster_reach_simulation(self, explorer: GraphExplorer) -> None:
        sim: ForceSimulation = explorer.layout.simulation

        explorer.set_physics(charge=-250.0, link_distance=80.0)
        explorer.set_cluster_by_type(True)

        assert sim.charge_strength == -250.0
        assert sim.link_distance == 80.0
        assert sim.has_force(CLUSTER_FORCE)

    def test_filter_change_reheats_layout(self, explorer: GraphExplorer) -> None:
        sim: ForceSimulation = explorer.layout.simulation
        explorer.tick(50)
        assert sim.alpha < 1.0

        explorer.set_prune_leaves(True)

        assert sim.alpha == 1.0

    def test_tick_requires_builtin_simulation(self, chain_graph: KnowledgeGraph) -> None:
        explorer = GraphExplorer(chain_graph, simulation=MagicMock(spec=IForceSimulation))
        with pytest.raises(TypeError):
            explorer.tick()

    def test_set_graph_keeps_filter_settings(self, explorer: GraphExplorer, chain_graph: KnowledgeGraph) -> None:
        explorer.set_prune_leaves(True)

        explorer.set_graph(chain_graph)

        assert explorer.mode == FilterMode.PRUNE
        assert len(explorer.view.nodes) == 2

    def test_to_dict_shape(self, explorer: GraphExplorer) -> None:
        explorer.select("A")

        data = explorer.to_dict()

        assert data["mode"] == "all"
        assert data["selected"] == "A"
        assert data["physics"] == {"charge": -100.0, "linkDistance": 50.0, "particleSpeed": 0.0}
        assert data["metrics"]["nodeCount"] == 4
        assert data["metrics"]["avgDegree"] == pytest.approx(1.5)
        nodes = {n["id"]: n for n in data["nodes"]}
        assert nodes["A"]["category"] == "person"
        assert nodes["B"]["highlighted"] is True
        assert nodes["C"]["dimmed"] is True
        assert nodes["A"]["x"] is not None
        links = {(link["source"], link["target"]): link for link in data["links"]}
        assert links[("A", "B")]["highlighted"] is True
        assert links[("C", "D")]["dimmed"] is True
        assert data["droppedEdges"] == 0
