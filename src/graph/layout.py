"""Force layout: physics parameters, the type-clustering force and a
renderer-free d3-style simulation.

:func:`compute_cluster_force` is a pure function of one node and the
current cooling factor, so the clustering vector field can be tested
without any simulation.  :class:`LayoutForceController` wires it into an
:class:`IForceSimulation` as the ``"cluster"`` force and re-energizes the
simulation on every parameter, toggle or graph change.

:class:`ForceSimulation` follows d3-force: alpha cooling towards zero,
many-body repulsion, link springs and velocity decay.  Its tick loop is
independent of the pipeline; it only reads the visible snapshot it was
last given.
"""

from __future__ import annotations

import math
import random
from collections.abc import Mapping
from dataclasses import dataclass, replace

import structlog

from src.graph.builder import LinkView, NodeView
from src.interfaces.force_simulation import ForceFn, IForceSimulation

logger = structlog.get_logger(logger_name=__name__)

Point = tuple[float, float]

# Matched case-insensitively as substrings of the node type, in this order.
DEFAULT_CENTROIDS: dict[str, Point] = {
    "person": (-150.0, -100.0),
    "organization": (150.0, -100.0),
    "location": (0.0, 150.0),
}
ORIGIN: Point = (0.0, 0.0)
CLUSTER_STRENGTH = 0.1
CLUSTER_FORCE = "cluster"


@dataclass(frozen=True)
class PhysicsParams:
    charge: float = -100.0
    link_distance: float = 50.0
    # Directional particles on links; a rendering hint, 0 disables them.
    particle_speed: float = 0.0


# ---------------------------------------------------------------------------
# Clustering vector field
# ---------------------------------------------------------------------------

def centroid_for_type(node_type: str | None, centroids: Mapping[str, Point] | None = None) -> Point:
    """Centroid for *node_type*; unrecognized types map to the origin."""
    lowered = (node_type or "").lower()
    for key, point in (centroids or DEFAULT_CENTROIDS).items():
        if key.lower() in lowered:
            return point
    return ORIGIN


def compute_cluster_force(
    node: NodeView,
    alpha: float,
    strength: float = CLUSTER_STRENGTH,
    centroids: Mapping[str, Point] | None = None,
) -> Point:
    """Velocity nudge ``(dvx, dvy)`` pulling *node* towards its type centroid.

    Proportional to the distance from the centroid, the cooling factor and
    *strength*.  Nodes without a position get ``(0, 0)``.
    """
    if node.x is None or node.y is None:
        return ORIGIN
    cx, cy = centroid_for_type(node.type, centroids)
    return ((cx - node.x) * alpha * strength, (cy - node.y) * alpha * strength)


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

_INITIAL_RADIUS = 10.0
_INITIAL_ANGLE = math.pi * (3 - math.sqrt(5))


class ForceSimulation(IForceSimulation):
    """Minimal d3-force style simulation over :class:`NodeView` objects.

    Parameters
    ----------
    seed:
        Seed for the jiggle applied to coincident nodes.
    """

    def __init__(
        self,
        charge: float = PhysicsParams.charge,
        link_distance: float = PhysicsParams.link_distance,
        alpha_min: float = 0.001,
        velocity_decay: float = 0.4,
        seed: int | None = None,
    ) -> None:
        self._nodes: list[NodeView] = []
        self._links: list[LinkView] = []
        self._forces: dict[str, ForceFn] = {}
        self._charge = charge
        self._link_distance = link_distance
        self._alpha = 1.0
        self._alpha_min = alpha_min
        self._alpha_target = 0.0
        self._alpha_decay = 1 - alpha_min ** (1 / 300)
        self._velocity_decay = velocity_decay
        self._rng = random.Random(seed)
        self.reheat_count = 0

    # -- IForceSimulation ---------------------------------------------------

    def set_graph(self, nodes: list, links: list) -> None:
        self._nodes = list(nodes)
        self._links = list(links)
        for i, node in enumerate(self._nodes):
            if node.x is None or node.y is None:
                radius = _INITIAL_RADIUS * math.sqrt(0.5 + i)
                angle = i * _INITIAL_ANGLE
                node.x = radius * math.cos(angle)
                node.y = radius * math.sin(angle)
            if node.vx is None or node.vy is None:
                node.vx = 0.0
                node.vy = 0.0

    def set_charge_strength(self, strength: float) -> None:
        self._charge = strength

    def set_link_distance(self, distance: float) -> None:
        self._link_distance = distance

    def set_force(self, name: str, force: ForceFn | None) -> None:
        if force is None:
            self._forces.pop(name, None)
        else:
            self._forces[name] = force

    def has_force(self, name: str) -> bool:
        return name in self._forces

    def reheat(self) -> None:
        self._alpha = 1.0
        self.reheat_count += 1

    # -- stepping -----------------------------------------------------------

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def charge_strength(self) -> float:
        return self._charge

    @property
    def link_distance(self) -> float:
        return self._link_distance

    @property
    def is_settled(self) -> bool:
        return self._alpha < self._alpha_min

    def tick(self) -> float:
        """Advance one step; returns the new alpha."""
        self._alpha += (self._alpha_target - self._alpha) * self._alpha_decay
        alpha = self._alpha

        self._apply_links(alpha)
        self._apply_charge(alpha)
        for force in self._forces.values():
            force(alpha)

        keep = 1 - self._velocity_decay
        for node in self._nodes:
            node.vx *= keep
            node.vy *= keep
            node.x += node.vx
            node.y += node.vy
        return alpha

    def run(self, max_ticks: int = 300) -> int:
        """Tick until settled or *max_ticks*; returns the ticks taken."""
        ticks = 0
        while not self.is_settled and ticks < max_ticks:
            self.tick()
            ticks += 1
        return ticks

    def _jiggle(self) -> float:
        return (self._rng.random() - 0.5) * 1e-6

    def _apply_links(self, alpha: float) -> None:
        if not self._links:
            return
        count: dict[int, int] = {}
        for link in self._links:
            count[id(link.source)] = count.get(id(link.source), 0) + 1
            count[id(link.target)] = count.get(id(link.target), 0) + 1

        for link in self._links:
            source, target = link.source, link.target
            if source is target:
                continue
            cs, ct = count[id(source)], count[id(target)]
            strength = 1 / min(cs, ct)
            bias = cs / (cs + ct)
            dx = (target.x + target.vx) - (source.x + source.vx) or self._jiggle()
            dy = (target.y + target.vy) - (source.y + source.vy) or self._jiggle()
            dist = math.sqrt(dx * dx + dy * dy)
            k = (dist - self._link_distance) / dist * alpha * strength
            dx *= k
            dy *= k
            target.vx -= dx * bias
            target.vy -= dy * bias
            source.vx += dx * (1 - bias)
            source.vy += dy * (1 - bias)

    def _apply_charge(self, alpha: float) -> None:
        nodes = self._nodes
        for i, node in enumerate(nodes):
            for j, other in enumerate(nodes):
                if i == j:
                    continue
                dx = other.x - node.x or self._jiggle()
                dy = other.y - node.y or self._jiggle()
                l2 = dx * dx + dy * dy
                if l2 < 1:
                    l2 = math.sqrt(l2)
                w = self._charge * alpha / l2
                node.vx += dx * w
                node.vy += dy * w


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class LayoutForceController:
    """Applies physics parameters and the cluster toggle to a simulation.

    Every change re-energizes the simulation so the layout moves to the new
    equilibrium instead of staying frozen.
    """

    def __init__(
        self,
        simulation: IForceSimulation,
        params: PhysicsParams | None = None,
        centroids: Mapping[str, Point] | None = None,
        strength: float = CLUSTER_STRENGTH,
    ) -> None:
        self._sim = simulation
        self._params = params or PhysicsParams()
        self._centroids = dict(centroids or DEFAULT_CENTROIDS)
        self._strength = strength
        self._cluster_by_type = False
        self._nodes: list[NodeView] = []
        self._apply()

    @property
    def params(self) -> PhysicsParams:
        return self._params

    @property
    def cluster_by_type(self) -> bool:
        return self._cluster_by_type

    @property
    def simulation(self) -> IForceSimulation:
        return self._sim

    def set_physics(
        self,
        charge: float | None = None,
        link_distance: float | None = None,
        particle_speed: float | None = None,
    ) -> PhysicsParams:
        updates = {
            k: v
            for k, v in (
                ("charge", charge),
                ("link_distance", link_distance),
                ("particle_speed", particle_speed),
            )
            if v is not None
        }
        self._params = replace(self._params, **updates)
        self._apply()
        return self._params

    def set_cluster_by_type(self, enabled: bool) -> None:
        self._cluster_by_type = enabled
        self._apply()

    def update_graph(self, nodes: list[NodeView], links: list[LinkView]) -> None:
        """Push the visible snapshot into the simulation."""
        self._nodes = list(nodes)
        self._sim.set_graph(self._nodes, list(links))
        self._apply()

    def _cluster_force(self, alpha: float) -> None:
        for node in self._nodes:
            if node.vx is None or node.vy is None:
                continue
            fx, fy = compute_cluster_force(node, alpha, self._strength, self._centroids)
            node.vx += fx
            node.vy += fy

    def _apply(self) -> None:
        self._sim.set_charge_strength(self._params.charge)
        self._sim.set_link_distance(self._params.link_distance)
        self._sim.set_force(CLUSTER_FORCE, self._cluster_force if self._cluster_by_type else None)
        self._sim.reheat()
        logger.debug(
            "layout_reheated",
            charge=self._params.charge,
            link_distance=self._params.link_distance,
            cluster_by_type=self._cluster_by_type,
            nodes=len(self._nodes),
        )
