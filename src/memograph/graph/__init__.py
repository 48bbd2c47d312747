"""In-memory graph of notes and symmetric relations."""

from memograph.graph.model import ChangeKind, GraphChange, GraphListener, GraphModel

__all__ = [
    "GraphModel",
    "GraphChange",
    "GraphListener",
    "ChangeKind",
]
