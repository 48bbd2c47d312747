"""Single-node selection and ego-network highlighting."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

Edge = tuple[str, str]


def _edge_key(edge: Edge) -> Edge:
    source_id, target_id = edge
    return (source_id, target_id) if source_id <= target_id else (target_id, source_id)


@dataclass(frozen=True)
class Highlight:
    """Partition of the visible graph into emphasized and dimmed parts."""

    selected: str | None
    emphasized: frozenset[str]
    dimmed: frozenset[str]
    emphasized_edges: frozenset[Edge]
    dimmed_edges: frozenset[Edge]

    def is_emphasized(self, note_id: str) -> bool:
        return note_id in self.emphasized

    def is_edge_emphasized(self, edge: Edge) -> bool:
        return _edge_key(edge) in self.emphasized_edges


def compute_highlight(
    selected: str | None,
    visible_ids: Iterable[str],
    visible_edges: Iterable[Edge],
    neighbors_of: Callable[[str], Iterable[str]],
) -> Highlight:
    """
    Emphasize the selected note, its direct neighbours and the edges joining them.

    Edges between two neighbours that do not touch the selected note stay
    dimmed. With nothing selected everything is emphasized.
    """
    visible = frozenset(visible_ids)
    edges = frozenset(_edge_key(edge) for edge in visible_edges)

    if selected is None or selected not in visible:
        return Highlight(
            selected=None,
            emphasized=visible,
            dimmed=frozenset(),
            emphasized_edges=edges,
            dimmed_edges=frozenset(),
        )

    emphasized = frozenset({selected, *neighbors_of(selected)}) & visible
    ego_edges = frozenset(
        edge for edge in edges if selected in edge and (edge[0] in emphasized and edge[1] in emphasized)
    )
    return Highlight(
        selected=selected,
        emphasized=emphasized,
        dimmed=visible - emphasized,
        emphasized_edges=ego_edges,
        dimmed_edges=edges - ego_edges,
    )


class SelectionState:
    """At most one selected note; a new selection replaces the old one."""

    def __init__(self) -> None:
        self.selected: str | None = None

    def select(self, note_id: str, visible_ids: Iterable[str]) -> str | None:
        """Select ``note_id`` if visible, otherwise clear the selection."""
        if note_id in set(visible_ids):
            self.selected = note_id
        else:
            logger.debug(f"Ignoring selection of non-visible note {note_id}")
            self.selected = None
        return self.selected

    def clear(self) -> None:
        self.selected = None

    def prune(self, visible_ids: Iterable[str]) -> bool:
        """Drop a selection whose note is no longer visible; True if cleared."""
        if self.selected is not None and self.selected not in set(visible_ids):
            self.selected = None
            return True
        return False

    def highlight(
        self,
        visible_ids: Iterable[str],
        visible_edges: Iterable[Edge],
        neighbors_of: Callable[[str], Iterable[str]],
    ) -> Highlight:
        return compute_highlight(self.selected, visible_ids, visible_edges, neighbors_of)
