"""Graph analytics and layout: adjacency view, filtering, metrics,
force layout, highlighting and the interactive explorer."""

from src.graph.analytics import GraphAnalytics, GraphMetrics
from src.graph.builder import GraphBuilder, GraphView, LinkView, NodeView
from src.graph.explorer import GraphExplorer, node_category
from src.graph.filter import FilterMode, FilterState, GraphFilter
from src.graph.highlight import HighlightEngine, Highlights, compute_highlights
from src.graph.layout import (
    ForceSimulation,
    LayoutForceController,
    PhysicsParams,
    centroid_for_type,
    compute_cluster_force,
)

__all__ = [
    "FilterMode",
    "FilterState",
    "ForceSimulation",
    "GraphAnalytics",
    "GraphBuilder",
    "GraphExplorer",
    "GraphFilter",
    "GraphMetrics",
    "GraphView",
    "HighlightEngine",
    "Highlights",
    "LayoutForceController",
    "LinkView",
    "NodeView",
    "PhysicsParams",
    "centroid_for_type",
    "compute_cluster_force",
    "compute_highlights",
    "node_category",
]
