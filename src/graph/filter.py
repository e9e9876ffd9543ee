"""Visible-subgraph filter: focus isolation and leaf pruning.

The two modes are mutually exclusive.  A focus overrides pruning for as
long as it is set, but the pruning preference is stored separately, so
clearing the focus brings back exactly the pruning state chosen before.

A focus id that is not in the view behaves as no focus at all.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from src.graph.builder import GraphView


class FilterMode(str, Enum):  # noqa: UP042
    ALL = "all"
    FOCUS = "focus"
    PRUNE = "prune"


@dataclass(frozen=True)
class FilterState:
    focus_node_id: str | None = None
    prune_leaves: bool = False

    @property
    def mode(self) -> FilterMode:
        if self.focus_node_id:
            return FilterMode.FOCUS
        if self.prune_leaves:
            return FilterMode.PRUNE
        return FilterMode.ALL

    def with_focus(self, node_id: str) -> FilterState:
        return replace(self, focus_node_id=node_id)

    def clear_focus(self) -> FilterState:
        return replace(self, focus_node_id=None)

    def with_prune_leaves(self, enabled: bool) -> FilterState:
        return replace(self, prune_leaves=enabled)


class GraphFilter:
    """Derives the visible :class:`GraphView` from the full one.

    The returned view shares :class:`NodeView` / :class:`LinkView` objects
    with the input so layout positions and link identity carry over.
    """

    def apply(self, view: GraphView, state: FilterState) -> GraphView:
        focus = view.node(state.focus_node_id) if state.focus_node_id else None

        if focus is not None:
            allowed = {focus.id, *focus.neighbor_ids}
        elif state.prune_leaves:
            allowed = {n.id for n in view.nodes if n.degree > 1}
        else:
            return GraphView(nodes=list(view.nodes), links=list(view.links))

        nodes = [n for n in view.nodes if n.id in allowed]
        links = [
            link for link in view.links
            if link.source.id in allowed and link.target.id in allowed
        ]
        return GraphView(nodes=nodes, links=links)

    def effective_mode(self, view: GraphView, state: FilterState) -> FilterMode:
        """The mode :meth:`apply` actually used (unknown focus -> not FOCUS)."""
        if state.focus_node_id and view.node(state.focus_node_id) is not None:
            return FilterMode.FOCUS
        return FilterMode.PRUNE if state.prune_leaves else FilterMode.ALL
