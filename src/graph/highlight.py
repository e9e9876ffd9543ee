"""Selection, hover and the highlight/dim state they imply."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from src.graph.builder import LinkView


@dataclass(frozen=True)
class Highlights:
    node_ids: frozenset[str] = field(default_factory=frozenset)
    links: frozenset[LinkView] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not self.node_ids and not self.links


EMPTY_HIGHLIGHTS = Highlights()


def compute_highlights(node_id: str | None, visible_links: Iterable[LinkView]) -> Highlights:
    """Focal node, its one-hop visible neighbors and the incident visible links.

    ``None`` yields empty sets.
    """
    if node_id is None:
        return EMPTY_HIGHLIGHTS
    node_ids = {node_id}
    links = set()
    for link in visible_links:
        if link.touches(node_id):
            links.add(link)
            node_ids.add(link.other(node_id).id)
    return Highlights(node_ids=frozenset(node_ids), links=frozenset(links))


class HighlightEngine:
    """Tracks the selected and hovered node over the visible links.

    A selection wins over a hover when choosing the focal node.  Anything
    is dimmed only while something is active (a selection, a hover or a
    non-empty highlight) and it is not part of the highlight.
    """

    def __init__(self) -> None:
        self._selected: str | None = None
        self._hovered: str | None = None
        self._links: list[LinkView] = []
        self._highlights = EMPTY_HIGHLIGHTS

    @property
    def selected(self) -> str | None:
        return self._selected

    @property
    def hovered(self) -> str | None:
        return self._hovered

    @property
    def focal(self) -> str | None:
        return self._selected if self._selected is not None else self._hovered

    @property
    def highlights(self) -> Highlights:
        return self._highlights

    def select(self, node_id: str | None) -> Highlights:
        self._selected = node_id
        return self._recompute()

    def hover(self, node_id: str | None) -> Highlights:
        self._hovered = node_id
        return self._recompute()

    def clear(self) -> Highlights:
        self._selected = None
        self._hovered = None
        return self._recompute()

    def refresh(self, visible_links: Iterable[LinkView], visible_ids: set[str] | None = None) -> Highlights:
        """Rebind to a new visible snapshot.

        Selection or hover pointing at a node outside *visible_ids* is
        dropped.
        """
        self._links = list(visible_links)
        if visible_ids is not None:
            if self._selected not in visible_ids:
                self._selected = None
            if self._hovered not in visible_ids:
                self._hovered = None
        return self._recompute()

    @property
    def is_active(self) -> bool:
        return (
            self._selected is not None
            or self._hovered is not None
            or not self._highlights.is_empty
        )

    def is_node_dimmed(self, node_id: str) -> bool:
        return (
            self.is_active
            and node_id not in self._highlights.node_ids
            and node_id != self._selected
            and node_id != self._hovered
        )

    def is_link_dimmed(self, link: LinkView) -> bool:
        return self.is_active and link not in self._highlights.links

    def _recompute(self) -> Highlights:
        self._highlights = compute_highlights(self.focal, self._links)
        return self._highlights
