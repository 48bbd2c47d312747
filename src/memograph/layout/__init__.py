"""Force-directed layout: forces, simulation state machine and scheduler."""

from memograph.layout.forces import CenterForce, CollideForce, Force, LinkForce, ManyBodyForce
from memograph.layout.runner import Debouncer, LayoutRunner
from memograph.layout.simulation import LayoutNode, Point, Simulation, phyllotaxis

__all__ = [
    # Forces
    "Force",
    "LinkForce",
    "ManyBodyForce",
    "CenterForce",
    "CollideForce",
    # Simulation
    "Simulation",
    "LayoutNode",
    "Point",
    "phyllotaxis",
    # Scheduling
    "LayoutRunner",
    "Debouncer",
]
