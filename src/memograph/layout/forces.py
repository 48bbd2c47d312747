"""Forces composed by the layout simulation.

Each force reads and writes the simulation's numpy arrays in place:
``positions`` and ``velocities`` of shape (n, 2). Semantics follow the
d3-force defaults so layouts look the way users already know them.
"""

from typing import TYPE_CHECKING, Protocol

import numpy as np

if TYPE_CHECKING:
    from memograph.layout.simulation import Simulation

JIGGLE_SCALE = 1e-6


def jiggle(rng: np.random.Generator, shape: tuple[int, ...]) -> np.ndarray:
    """Tiny random offsets used to separate exactly coincident nodes."""
    return (rng.random(shape) - 0.5) * JIGGLE_SCALE


class Force(Protocol):
    """A force is initialized on a node/edge set and applied once per tick."""

    def initialize(self, sim: "Simulation") -> None: ...

    def apply(self, sim: "Simulation", alpha: float) -> None: ...


class LinkForce:
    """
    Spring between related nodes pulling them toward ``distance``.

    Strength defaults to 1 / min(degree(source), degree(target)) so hubs are
    not torn apart; the correction is split between both endpoints in
    proportion to their degrees.
    """

    def __init__(self, distance: float) -> None:
        self.distance = distance
        self._edges = np.empty((0, 2), dtype=np.intp)
        self._strength = np.empty(0)
        self._bias = np.empty(0)

    def initialize(self, sim: "Simulation") -> None:
        self._edges = sim.edge_index
        if len(self._edges) == 0:
            self._strength = np.empty(0)
            self._bias = np.empty(0)
            return
        count = np.bincount(self._edges.ravel(), minlength=sim.size).astype(float)
        source_count = count[self._edges[:, 0]]
        target_count = count[self._edges[:, 1]]
        self._strength = 1.0 / np.minimum(source_count, target_count)
        self._bias = source_count / (source_count + target_count)

    def apply(self, sim: "Simulation", alpha: float) -> None:
        if len(self._edges) == 0:
            return
        source, target = self._edges[:, 0], self._edges[:, 1]
        predicted = sim.positions + sim.velocities
        delta = predicted[target] - predicted[source]
        zero = delta == 0
        if zero.any():
            delta[zero] = jiggle(sim.rng, (int(zero.sum()),))
        length = np.hypot(delta[:, 0], delta[:, 1])
        scale = (length - self.distance) / length * alpha * self._strength
        delta *= scale[:, None]
        np.add.at(sim.velocities, target, -delta * self._bias[:, None])
        np.add.at(sim.velocities, source, delta * (1 - self._bias)[:, None])


class ManyBodyForce:
    """
    Pairwise repulsion (negative strength) or attraction (positive).

    Pairs further apart than ``distance_max`` do not interact; distances
    below ``distance_min`` are softened to avoid huge impulses.
    """

    def __init__(
        self,
        strength: float,
        distance_min: float = 1.0,
        distance_max: float = float("inf"),
    ) -> None:
        self.strength = strength
        self.distance_min = distance_min
        self.distance_max = distance_max

    def initialize(self, sim: "Simulation") -> None:
        pass

    def apply(self, sim: "Simulation", alpha: float) -> None:
        n = sim.size
        if n < 2:
            return
        # diff[i, j] points from node i to node j
        diff = sim.positions[None, :, :] - sim.positions[:, None, :]
        off_diagonal = ~np.eye(n, dtype=bool)
        zero = (diff == 0) & off_diagonal[:, :, None]
        if zero.any():
            diff[zero] = jiggle(sim.rng, (int(zero.sum()),))

        dist2 = np.einsum("ijk,ijk->ij", diff, diff)
        in_range = off_diagonal & (dist2 < self.distance_max**2)
        min2 = self.distance_min**2
        dist2 = np.where(dist2 < min2, np.sqrt(min2 * dist2), dist2)

        factor = np.zeros_like(dist2)
        np.divide(self.strength * alpha, dist2, out=factor, where=in_range & (dist2 > 0))
        sim.velocities += np.einsum("ijk,ij->ik", diff, factor)


class CenterForce:
    """Translates the whole layout so its mean position sits on (x, y)."""

    def __init__(self, x: float, y: float, strength: float = 1.0) -> None:
        self.x = x
        self.y = y
        self.strength = strength

    def initialize(self, sim: "Simulation") -> None:
        pass

    def apply(self, sim: "Simulation", alpha: float) -> None:
        if sim.size == 0:
            return
        shift = (sim.positions.mean(axis=0) - np.array([self.x, self.y])) * self.strength
        sim.positions -= shift


class CollideForce:
    """
    Keeps node circles from overlapping.

    Overlaps are measured on predicted positions and resolved along the line
    between centres, the smaller node moving more.
    """

    def __init__(self, radius: float, strength: float = 1.0) -> None:
        self.radius = radius
        self.strength = strength
        self._radii = np.empty(0)

    def initialize(self, sim: "Simulation") -> None:
        if sim.radii is not None:
            self._radii = np.asarray(sim.radii, dtype=float)
        else:
            self._radii = np.full(sim.size, float(self.radius))

    def apply(self, sim: "Simulation", alpha: float) -> None:
        n = sim.size
        if n < 2:
            return
        i, j = np.triu_indices(n, k=1)
        predicted = sim.positions + sim.velocities
        delta = predicted[i] - predicted[j]
        reach = self._radii[i] + self._radii[j]
        dist2 = np.einsum("ij,ij->i", delta, delta)
        overlap = dist2 < reach**2
        if not overlap.any():
            return

        i, j, delta, reach = i[overlap], j[overlap], delta[overlap], reach[overlap]
        zero = delta == 0
        if zero.any():
            delta[zero] = jiggle(sim.rng, (int(zero.sum()),))
        length = np.hypot(delta[:, 0], delta[:, 1])
        delta *= ((reach - length) / length * self.strength)[:, None]

        ri2 = self._radii[i] ** 2
        rj2 = self._radii[j] ** 2
        weight = (rj2 / (ri2 + rj2))[:, None]
        np.add.at(sim.velocities, i, delta * weight)
        np.add.at(sim.velocities, j, -delta * (1 - weight))
