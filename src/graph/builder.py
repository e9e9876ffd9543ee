"""Adjacency-aware view over a flat knowledge graph.

:class:`GraphBuilder` copies the caller's nodes and edges into fresh
:class:`NodeView` / :class:`LinkView` objects, so the source
:class:`KnowledgeGraph` is never touched.  Every edge whose endpoints both
resolve makes the two nodes neighbors and adds :data:`VAL_PER_EDGE` to each
one's visual weight.  Edges that reference unknown ids are dropped, and a
node id repeated in the input keeps only its first occurrence.

Degree is computed on the *unfiltered* graph; the filter reads it later to
decide which nodes are leaves.

Views are ephemeral: rebuild them whenever the source graph changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from src.models.graph import KnowledgeGraph

logger = structlog.get_logger(logger_name=__name__)

BASE_VAL = 1.0
VAL_PER_EDGE = 0.5


@dataclass(eq=False)
class NodeView:
    """A node plus its neighbors, visual weight and layout state.

    Compared and hashed by identity.  ``neighbors`` gets one entry per
    incident edge, so parallel edges repeat a neighbor and a self-loop
    lists the node twice.
    """

    id: str
    label: str
    type: str = ""
    neighbors: list[NodeView] = field(default_factory=list, repr=False)
    val: float = BASE_VAL
    x: float | None = None
    y: float | None = None
    vx: float | None = None
    vy: float | None = None

    @property
    def degree(self) -> int:
        return len(self.neighbors)

    @property
    def neighbor_ids(self) -> list[str]:
        return [n.id for n in self.neighbors]


@dataclass(frozen=True, eq=False)
class LinkView:
    """A resolved edge.  Hashed by identity, so parallel edges stay distinct."""

    source: NodeView
    target: NodeView
    relation: str = ""

    def touches(self, node_id: str) -> bool:
        return self.source.id == node_id or self.target.id == node_id

    def other(self, node_id: str) -> NodeView:
        """The endpoint that is not *node_id* (the node itself for self-loops)."""
        return self.target if self.source.id == node_id else self.source


@dataclass
class GraphView:
    """Nodes and links of one render pass, in input order.

    Node ids are unique within a view; :meth:`node` looks them up by index.
    """

    nodes: list[NodeView] = field(default_factory=list)
    links: list[LinkView] = field(default_factory=list)
    dropped_edges: int = 0
    _index: dict[str, NodeView] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._index = {}
        for n in self.nodes:
            self._index.setdefault(n.id, n)

    def node(self, node_id: str) -> NodeView | None:
        return self._index.get(node_id)

    def node_ids(self) -> set[str]:
        return set(self._index)

    @property
    def is_empty(self) -> bool:
        return not self.nodes


class GraphBuilder:
    """Builds a :class:`GraphView` from a :class:`KnowledgeGraph`."""

    def build(self, graph: KnowledgeGraph) -> GraphView:
        # Model output may repeat an id; the first occurrence is kept.
        index: dict[str, NodeView] = {}
        duplicates = 0
        for n in graph.nodes:
            if n.id in index:
                duplicates += 1
                continue
            index[n.id] = NodeView(id=n.id, label=n.label, type=n.type)
        if duplicates:
            logger.warning("graph_nodes_deduplicated", count=duplicates)

        links: list[LinkView] = []
        dropped = 0
        for edge in graph.edges:
            source = index.get(edge.source)
            target = index.get(edge.target)
            if source is None or target is None:
                dropped += 1
                continue
            source.neighbors.append(target)
            target.neighbors.append(source)
            source.val += VAL_PER_EDGE
            target.val += VAL_PER_EDGE
            links.append(LinkView(source=source, target=target, relation=edge.relation))

        if dropped:
            logger.warning("graph_edges_dropped", count=dropped, reason="unknown_endpoint")

        return GraphView(nodes=list(index.values()), links=links, dropped_edges=dropped)
