"""Interactive exploration session over one knowledge graph.

Composes the builder, filter, analytics, highlight engine and layout
controller.  Every filter change recomputes the visible view and its
metrics, drops a selection or hover that is no longer visible, and pushes
the visible snapshot into the layout simulation.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from src.graph.analytics import DEFAULT_TOP_N, GraphAnalytics, GraphMetrics
from src.graph.builder import GraphBuilder, GraphView, NodeView
from src.graph.filter import FilterMode, FilterState, GraphFilter
from src.graph.highlight import HighlightEngine, Highlights
from src.graph.layout import (
    CLUSTER_STRENGTH,
    DEFAULT_CENTROIDS,
    ForceSimulation,
    LayoutForceController,
    PhysicsParams,
    Point,
)
from src.interfaces.force_simulation import IForceSimulation
from src.models.graph import KnowledgeGraph

logger = structlog.get_logger(logger_name=__name__)

# Colour buckets used by renderers; same substring rule as the centroids.
_CATEGORIES = ("person", "organization", "location")


def node_category(node_type: str | None) -> str:
    lowered = (node_type or "").lower()
    for category in _CATEGORIES:
        if category in lowered:
            return category
    return "other"


class GraphExplorer:
    """Stateful view of a :class:`KnowledgeGraph` for one client.

    Parameters
    ----------
    graph:
        The source graph.  It is copied into view objects and never mutated.
    simulation:
        Layout engine; defaults to the built-in :class:`ForceSimulation`.
    top_n:
        How many nodes :attr:`metrics` ranks.
    """

    def __init__(
        self,
        graph: KnowledgeGraph,
        simulation: IForceSimulation | None = None,
        top_n: int = DEFAULT_TOP_N,
        params: PhysicsParams | None = None,
        centroids: Mapping[str, Point] | None = None,
        cluster_strength: float = CLUSTER_STRENGTH,
    ) -> None:
        self._builder = GraphBuilder()
        self._filter = GraphFilter()
        self._analytics = GraphAnalytics()
        self._highlight = HighlightEngine()
        self._sim = simulation or ForceSimulation()
        self._layout = LayoutForceController(
            self._sim,
            params=params,
            centroids=centroids or DEFAULT_CENTROIDS,
            strength=cluster_strength,
        )
        self._top_n = top_n
        self._state = FilterState()
        self._full = GraphView()
        self._view = GraphView()
        self._metrics = self._analytics.compute(self._view, top_n)
        self.set_graph(graph)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def view(self) -> GraphView:
        return self._view

    @property
    def full_view(self) -> GraphView:
        return self._full

    @property
    def metrics(self) -> GraphMetrics:
        return self._metrics

    @property
    def filter_state(self) -> FilterState:
        return self._state

    @property
    def mode(self) -> FilterMode:
        return self._filter.effective_mode(self._full, self._state)

    @property
    def highlight(self) -> HighlightEngine:
        return self._highlight

    @property
    def layout(self) -> LayoutForceController:
        return self._layout

    def set_graph(self, graph: KnowledgeGraph) -> None:
        """Replace the source graph, keeping filter and layout settings."""
        self._full = self._builder.build(graph)
        self._recompute()

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def focus(self, node_id: str) -> GraphView:
        self._state = self._state.with_focus(node_id)
        return self._recompute()

    def clear_focus(self) -> GraphView:
        self._state = self._state.clear_focus()
        return self._recompute()

    def set_prune_leaves(self, enabled: bool) -> GraphView:
        self._state = self._state.with_prune_leaves(enabled)
        return self._recompute()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, node_id: str | None) -> Highlights:
        """Select a visible node; ids outside the view clear the selection."""
        return self._highlight.select(self._visible_or_none(node_id))

    def hover(self, node_id: str | None) -> Highlights:
        return self._highlight.hover(self._visible_or_none(node_id))

    def clear_selection(self) -> Highlights:
        return self._highlight.clear()

    def search(self, query: str) -> NodeView | None:
        """Select the first visible node whose label contains *query*."""
        needle = query.strip().lower()
        if not needle:
            return None
        for node in self._view.nodes:
            if needle in node.label.lower():
                self._highlight.select(node.id)
                return node
        logger.debug("graph_search_no_match", query=query)
        return None

    def connections(self, node_id: str) -> list[tuple[str, NodeView]]:
        """``(relation, other node)`` for each visible link of *node_id*."""
        return [
            (link.relation, link.other(node_id))
            for link in self._view.links
            if link.touches(node_id)
        ]

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def set_physics(
        self,
        charge: float | None = None,
        link_distance: float | None = None,
        particle_speed: float | None = None,
    ) -> PhysicsParams:
        return self._layout.set_physics(charge, link_distance, particle_speed)

    def set_cluster_by_type(self, enabled: bool) -> None:
        self._layout.set_cluster_by_type(enabled)

    def tick(self, steps: int = 1) -> float:
        """Advance the built-in simulation; returns its alpha."""
        if not isinstance(self._sim, ForceSimulation):
            raise TypeError("tick() requires the built-in ForceSimulation")
        alpha = self._sim.alpha
        for _ in range(steps):
            alpha = self._sim.tick()
        return alpha

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Render-ready snapshot of the visible graph and session state."""
        hl = self._highlight
        params = self._layout.params
        return {
            "mode": self.mode.value,
            "focusNodeId": self._state.focus_node_id,
            "pruneLeaves": self._state.prune_leaves,
            "selected": hl.selected,
            "hovered": hl.hovered,
            "clusterByType": self._layout.cluster_by_type,
            "physics": {
                "charge": params.charge,
                "linkDistance": params.link_distance,
                "particleSpeed": params.particle_speed,
            },
            "metrics": {
                "nodeCount": self._metrics.node_count,
                "edgeCount": self._metrics.edge_count,
                "density": self._metrics.density,
                "avgDegree": self._metrics.avg_degree,
                "topNodes": [
                    {"id": n.id, "label": n.label, "val": n.val}
                    for n in self._metrics.top_nodes
                ],
            },
            "nodes": [
                {
                    "id": n.id,
                    "label": n.label,
                    "type": n.type,
                    "category": node_category(n.type),
                    "val": n.val,
                    "x": n.x,
                    "y": n.y,
                    "highlighted": n.id in hl.highlights.node_ids,
                    "dimmed": hl.is_node_dimmed(n.id),
                }
                for n in self._view.nodes
            ],
            "links": [
                {
                    "source": link.source.id,
                    "target": link.target.id,
                    "relation": link.relation,
                    "highlighted": link in hl.highlights.links,
                    "dimmed": hl.is_link_dimmed(link),
                }
                for link in self._view.links
            ],
            "droppedEdges": self._full.dropped_edges,
        }

    def _visible_or_none(self, node_id: str | None) -> str | None:
        if node_id is None or self._view.node(node_id) is None:
            return None
        return node_id

    def _recompute(self) -> GraphView:
        self._view = self._filter.apply(self._full, self._state)
        self._metrics = self._analytics.compute(self._view, self._top_n)
        self._highlight.refresh(self._view.links, self._view.node_ids())
        self._layout.update_graph(self._view.nodes, self._view.links)
        logger.debug(
            "graph_view_recomputed",
            mode=self.mode.value,
            nodes=self._metrics.node_count,
            edges=self._metrics.edge_count,
        )
        return self._view
