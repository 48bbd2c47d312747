"""Force-directed layout simulation as an explicit state machine.

State is ``{ids, positions, velocities, pins, alpha}``; ``tick()`` advances
it by one step. Nothing here schedules itself: a LayoutRunner (or a test,
or an offline script) decides when to tick.
"""

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import numpy as np

from memograph.config import settings
from memograph.layout.forces import CenterForce, CollideForce, Force, LinkForce, ManyBodyForce

logger = logging.getLogger(__name__)

Point = tuple[float, float]

INITIAL_RADIUS = 10.0
INITIAL_ANGLE = math.pi * (3 - math.sqrt(5))


@dataclass(frozen=True)
class LayoutNode:
    """Snapshot of one node: simulated position plus optional user pin."""

    id: str
    x: float
    y: float
    pin: Point | None = None


def phyllotaxis(count: int, center: Point = (0.0, 0.0)) -> np.ndarray:
    """Evenly spread seed positions on a sunflower spiral around ``center``."""
    index = np.arange(count, dtype=float)
    radius = INITIAL_RADIUS * np.sqrt(0.5 + index)
    angle = index * INITIAL_ANGLE
    return np.column_stack(
        (center[0] + radius * np.cos(angle), center[1] + radius * np.sin(angle))
    )


class Simulation:
    """
    Spring/repulsion/centering/collision layout for the visible note set.

    Each tick:
    1. alpha moves toward alpha_target by alpha_decay
    2. every force adjusts velocities (centering shifts positions)
    3. free nodes: velocity *= 1 - velocity_decay, position += velocity
    4. pinned nodes sit exactly on their pin with zero velocity

    Pinned nodes keep exerting forces on others.
    """

    def __init__(
        self,
        center: Point | None = None,
        link_distance: float | None = None,
        link_distance_range: tuple[float, float] | None = None,
        charge_strength: float | None = None,
        charge_distance_min: float | None = None,
        charge_distance_max: float | None = None,
        center_strength: float | None = None,
        collide_radius: float | None = None,
        collide_strength: float | None = None,
        alpha_decay: float | None = None,
        alpha_min: float | None = None,
        velocity_decay: float | None = None,
        seed: int | None = None,
    ) -> None:
        if center is None:
            center = (settings.viewport_width / 2, settings.viewport_height / 2)
        self.alpha = 1.0
        self.alpha_target = 0.0
        self.alpha_decay = settings.alpha_decay if alpha_decay is None else alpha_decay
        self.alpha_min = settings.alpha_min if alpha_min is None else alpha_min
        self.velocity_decay = settings.velocity_decay if velocity_decay is None else velocity_decay
        self.rng = np.random.default_rng(settings.layout_seed if seed is None else seed)
        self.tick_count = 0
        self.link_distance_range = (
            (settings.link_distance_min, settings.link_distance_max)
            if link_distance_range is None
            else link_distance_range
        )

        self.link = LinkForce(
            self._clamp_distance(settings.link_distance if link_distance is None else link_distance)
        )
        self.charge = ManyBodyForce(
            strength=settings.charge_strength if charge_strength is None else charge_strength,
            distance_min=settings.charge_distance_min if charge_distance_min is None else charge_distance_min,
            distance_max=settings.charge_distance_max if charge_distance_max is None else charge_distance_max,
        )
        self.center = CenterForce(
            center[0],
            center[1],
            strength=settings.center_strength if center_strength is None else center_strength,
        )
        self.collide = CollideForce(
            radius=settings.collide_radius if collide_radius is None else collide_radius,
            strength=settings.collide_strength if collide_strength is None else collide_strength,
        )
        self._forces: dict[str, Force] = {
            "link": self.link,
            "charge": self.charge,
            "center": self.center,
            "collide": self.collide,
        }

        self.ids: list[str] = []
        self._index: dict[str, int] = {}
        self.edges: list[tuple[str, str]] = []
        self.edge_index = np.empty((0, 2), dtype=np.intp)
        self.positions = np.empty((0, 2))
        self.velocities = np.empty((0, 2))
        self.pins = np.empty((0, 2))
        self.radii: np.ndarray | None = None

    # ==========================================================================
    # Structure
    # ==========================================================================

    @property
    def size(self) -> int:
        return len(self.ids)

    def set_graph(
        self,
        node_ids: Sequence[str],
        edges: Sequence[tuple[str, str]],
        radii: Mapping[str, float] | None = None,
    ) -> None:
        """
        Replace the simulated node and edge sets and restart.

        Positions and pins reset when the id set changes; when only the
        edges change, nodes keep where they are.
        """
        ids = list(dict.fromkeys(node_ids))
        if set(ids) != set(self.ids):
            self.positions = phyllotaxis(len(ids), (self.center.x, self.center.y))
            self.velocities = np.zeros((len(ids), 2))
            self.pins = np.full((len(ids), 2), np.nan)
            logger.debug(f"Node set changed, seeded {len(ids)} positions")
        else:
            order = [self._index[node_id] for node_id in ids]
            self.positions = self.positions[order]
            self.velocities = self.velocities[order]
            self.pins = self.pins[order]

        self.ids = ids
        self._index = {node_id: i for i, node_id in enumerate(ids)}
        self.edges = [
            (source_id, target_id)
            for source_id, target_id in edges
            if source_id in self._index and target_id in self._index and source_id != target_id
        ]
        if len(self.edges) != len(edges):
            logger.debug(f"Ignored {len(edges) - len(self.edges)} edges outside the node set")
        self.edge_index = np.array(
            [(self._index[s], self._index[t]) for s, t in self.edges], dtype=np.intp
        ).reshape(-1, 2)
        self.radii = (
            np.array([radii.get(node_id, self.collide.radius) for node_id in ids], dtype=float)
            if radii is not None
            else None
        )
        self._initialize_forces()
        self.restart(1.0)

    def _initialize_forces(self) -> None:
        for force in self._forces.values():
            force.initialize(self)

    # ==========================================================================
    # Parameters
    # ==========================================================================

    def _clamp_distance(self, distance: float) -> float:
        low, high = self.link_distance_range
        return min(max(distance, low), high)

    @property
    def link_distance(self) -> float:
        return self.link.distance

    def set_link_distance(self, distance: float) -> float:
        """Set the spring length (clamped to the configured range); no restart."""
        self.link.distance = self._clamp_distance(distance)
        return self.link.distance

    def set_center(self, x: float, y: float) -> None:
        self.center.x = x
        self.center.y = y

    # ==========================================================================
    # Pins
    # ==========================================================================

    def pin(self, node_id: str, point: Point) -> None:
        """Fix a node at ``point``; the integrator will not move it."""
        i = self._index[node_id]
        self.pins[i] = point
        self.positions[i] = point
        self.velocities[i] = 0.0

    def unpin(self, node_id: str) -> None:
        i = self._index.get(node_id)
        if i is not None:
            self.pins[i] = np.nan

    def pin_of(self, node_id: str) -> Point | None:
        i = self._index.get(node_id)
        if i is None or np.isnan(self.pins[i, 0]):
            return None
        return float(self.pins[i, 0]), float(self.pins[i, 1])

    # ==========================================================================
    # Stepping
    # ==========================================================================

    @property
    def active(self) -> bool:
        """False once motion has decayed below the perceptible threshold."""
        return self.alpha >= self.alpha_min or self.alpha_target > 0

    def restart(self, alpha: float | None = 1.0) -> None:
        """Reheat the simulation; ``None`` keeps the current alpha."""
        if alpha is not None:
            self.alpha = alpha

    def stop(self) -> None:
        """Freeze in place: drop alpha below the threshold and clear the target."""
        self.alpha_target = 0.0
        self.alpha = 0.0
        self.velocities[:] = 0.0

    def tick(self) -> float:
        """Advance one step and return the new alpha."""
        self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay
        for force in self._forces.values():
            force.apply(self, self.alpha)

        if self.size:
            pinned = ~np.isnan(self.pins[:, 0])
            free = ~pinned
            self.velocities[free] *= 1 - self.velocity_decay
            self.positions[free] += self.velocities[free]
            self.positions[pinned] = self.pins[pinned]
            self.velocities[pinned] = 0.0

        self.tick_count += 1
        return self.alpha

    def settle(self, max_ticks: int = 10_000) -> int:
        """Tick until inactive or ``max_ticks``; returns ticks performed."""
        ticks = 0
        while self.active and ticks < max_ticks:
            self.tick()
            ticks += 1
        return ticks

    # ==========================================================================
    # Output
    # ==========================================================================

    def position_of(self, node_id: str) -> Point | None:
        i = self._index.get(node_id)
        if i is None:
            return None
        return float(self.positions[i, 0]), float(self.positions[i, 1])

    def nodes(self) -> list[LayoutNode]:
        return [
            LayoutNode(
                id=node_id,
                x=float(self.positions[i, 0]),
                y=float(self.positions[i, 1]),
                pin=self.pin_of(node_id),
            )
            for i, node_id in enumerate(self.ids)
        ]

    def mean_edge_length(self) -> float:
        """Average distance between related nodes (0.0 without edges)."""
        if len(self.edge_index) == 0:
            return 0.0
        delta = self.positions[self.edge_index[:, 1]] - self.positions[self.edge_index[:, 0]]
        return float(np.hypot(delta[:, 0], delta[:, 1]).mean())

    def mean_pairwise_distance(self) -> float:
        """Average distance over all node pairs (0.0 below two nodes)."""
        if self.size < 2:
            return 0.0
        i, j = np.triu_indices(self.size, k=1)
        delta = self.positions[j] - self.positions[i]
        return float(np.hypot(delta[:, 0], delta[:, 1]).mean())
