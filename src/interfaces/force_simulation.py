"""Abstract interface for the physics simulation behind the graph layout.

The layout controller only talks to this interface, so the same controller
drives the built-in :class:`~src.graph.layout.ForceSimulation` or an
external renderer's engine wrapped in an adapter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

# A custom force receives the current cooling factor (alpha) and adjusts
# node velocities in place.
ForceFn = Callable[[float], None]


class IForceSimulation(ABC):
    """Minimal surface of a d3-style force simulation."""

    @abstractmethod
    def set_graph(self, nodes: list, links: list) -> None:
        """Replace the simulated nodes/links with the visible snapshot.

        Nodes keep their positions across calls; new nodes are placed by
        the implementation.
        """

    @abstractmethod
    def set_charge_strength(self, strength: float) -> None:
        """Set the many-body strength (negative = repulsion)."""

    @abstractmethod
    def set_link_distance(self, distance: float) -> None:
        """Set the target length of link springs."""

    @abstractmethod
    def set_force(self, name: str, force: ForceFn | None) -> None:
        """Install a named custom force; ``None`` removes it."""

    @abstractmethod
    def has_force(self, name: str) -> bool:
        """Return ``True`` if a custom force with *name* is installed."""

    @abstractmethod
    def reheat(self) -> None:
        """Re-energize the simulation so the layout moves again."""
