"""Metrics over the currently visible subgraph."""

from __future__ import annotations

from dataclasses import dataclass

from src.graph.builder import GraphView, NodeView

DEFAULT_TOP_N = 5


@dataclass(frozen=True)
class GraphMetrics:
    node_count: int
    edge_count: int
    density: float
    avg_degree: float
    top_nodes: tuple[NodeView, ...] = ()


class GraphAnalytics:
    """Density, average degree and the top-N nodes by visual weight."""

    def compute(self, view: GraphView, top_n: int = DEFAULT_TOP_N) -> GraphMetrics:
        """Compute metrics for *view*.

        ``density = 2E / (N(N-1))`` (0 when N <= 1) and
        ``avg_degree = 2E / N`` (0 when N == 0).  Top nodes are ordered by
        ``val`` descending; ties keep input order.
        """
        n = len(view.nodes)
        e = len(view.links)
        density = (2 * e) / (n * (n - 1)) if n > 1 else 0.0
        avg_degree = (2 * e) / n if n else 0.0
        # sorted() is stable, so equal weights keep input order.
        ranked = sorted(view.nodes, key=lambda node: -node.val)
        return GraphMetrics(
            node_count=n,
            edge_count=e,
            density=density,
            avg_degree=avg_degree,
            top_nodes=tuple(ranked[:top_n]),
        )
