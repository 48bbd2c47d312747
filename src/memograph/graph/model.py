"""In-memory graph of one owner's notes and their symmetric relations.

The storage layer keeps every relation as two directed records. This model
never exposes that directionality: an edge between ``a`` and ``b`` is added
and retracted as a pair, so ``b in neighbors_of(a)`` always implies
``a in neighbors_of(b)``.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Literal

from memograph.errors import ValidationError
from memograph.models import Note, Relation

logger = logging.getLogger(__name__)

ChangeKind = Literal["load", "upsert", "remove", "relations"]
RelationInput = Relation | tuple[str, str]


@dataclass(frozen=True)
class GraphChange:
    """Notification emitted after a mutation has fully completed."""

    kind: ChangeKind
    note_ids: frozenset[str]
    revision: int
    structural: bool = True  # False when only note fields changed


GraphListener = Callable[[GraphChange], None]


def _as_pair(relation: RelationInput) -> tuple[str, str]:
    if isinstance(relation, Relation):
        return relation.source_id, relation.target_id
    source_id, target_id = relation
    return source_id, target_id


class GraphModel:
    """
    Authoritative notes and relations for a single owner.

    Adjacency maps note id -> set of related ids and is kept in lockstep
    with the edge set, so neighbourhood queries are O(1).
    """

    def __init__(self, owner_id: str) -> None:
        self.owner_id = owner_id
        self._notes: dict[str, Note] = {}
        self._adjacency: dict[str, set[str]] = {}
        self._revision = 0
        self._listeners: list[GraphListener] = []

    # ==========================================================================
    # Queries
    # ==========================================================================

    @property
    def revision(self) -> int:
        """Monotonic counter bumped by every mutation."""
        return self._revision

    def __contains__(self, note_id: object) -> bool:
        return note_id in self._notes

    def __len__(self) -> int:
        return len(self._notes)

    def get(self, note_id: str) -> Note | None:
        return self._notes.get(note_id)

    def notes(self) -> list[Note]:
        """All notes in the order they were loaded or inserted."""
        return list(self._notes.values())

    def neighbors_of(self, note_id: str) -> frozenset[str]:
        """Directly related note ids; empty for unknown or isolated notes."""
        return frozenset(self._adjacency.get(note_id, ()))

    def degree(self, note_id: str) -> int:
        return len(self._adjacency.get(note_id, ()))

    def directed_edges(self) -> Iterator[tuple[str, str]]:
        """Both directions of every relation, as storage would hold them."""
        for source_id, targets in self._adjacency.items():
            for target_id in targets:
                yield source_id, target_id

    def undirected_edges(self) -> list[tuple[str, str]]:
        """Each logical relation once, as a sorted pair."""
        return sorted(
            (source_id, target_id)
            for source_id, target_id in self.directed_edges()
            if source_id < target_id
        )

    def edges_within(self, note_ids: Iterable[str]) -> list[tuple[str, str]]:
        """Relations whose two endpoints are both in ``note_ids``."""
        allowed = set(note_ids)
        return [
            (source_id, target_id)
            for source_id, target_id in self.undirected_edges()
            if source_id in allowed and target_id in allowed
        ]

    # ==========================================================================
    # Change notification
    # ==========================================================================

    def subscribe(self, listener: GraphListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, kind: ChangeKind, note_ids: Iterable[str], structural: bool = True) -> None:
        self._revision += 1
        change = GraphChange(
            kind=kind, note_ids=frozenset(note_ids), revision=self._revision, structural=structural
        )
        for listener in list(self._listeners):
            listener(change)

    # ==========================================================================
    # Mutations
    # ==========================================================================

    def load(
        self, notes: Iterable[Note], relations: Iterable[RelationInput]
    ) -> list[ValidationError]:
        """
        Replace the whole model.

        Bad records (foreign owner, invalid note, relation to a missing note,
        self-loop) are dropped and reported; everything valid still loads.

        Returns:
            The rejected items, one ValidationError each
        """
        rejected: list[ValidationError] = []
        loaded: dict[str, Note] = {}

        for note in notes:
            try:
                self._check_note(note)
                if note.id in loaded:
                    raise ValidationError("Duplicate note id", note.id)
            except ValidationError as e:
                logger.warning(f"Dropping note during load: {e}")
                rejected.append(e)
                continue
            loaded[note.id] = note

        adjacency: dict[str, set[str]] = {note_id: set() for note_id in loaded}
        for relation in relations:
            source_id, target_id = _as_pair(relation)
            try:
                self._check_edge(source_id, target_id, loaded)
            except ValidationError as e:
                logger.warning(f"Dropping relation during load: {e}")
                rejected.append(e)
                continue
            # Mirror records arrive as duplicates; the set absorbs them
            adjacency[source_id].add(target_id)
            adjacency[target_id].add(source_id)

        self._notes = loaded
        self._adjacency = adjacency
        logger.info(
            f"Loaded {len(loaded)} notes and {len(self.undirected_edges())} relations "
            f"for owner {self.owner_id} ({len(rejected)} rejected)"
        )
        self._commit("load", loaded.keys())
        return rejected

    def upsert_note(self, note: Note) -> None:
        """Insert or replace a note by id. Adjacency is left untouched."""
        self._check_note(note)
        is_new = note.id not in self._notes
        self._notes[note.id] = note
        self._adjacency.setdefault(note.id, set())
        logger.debug(f"{'Inserted' if is_new else 'Updated'} note {note.id}")
        self._commit("upsert", [note.id], structural=is_new)

    def remove_note(self, note_id: str) -> bool:
        """Remove a note and every relation incident to it, both directions."""
        if note_id not in self._notes:
            return False
        neighbors = self._adjacency.pop(note_id, set())
        for neighbor_id in neighbors:
            self._adjacency[neighbor_id].discard(note_id)
        del self._notes[note_id]
        logger.debug(f"Removed note {note_id} and {len(neighbors)} relations")
        self._commit("remove", {note_id, *neighbors})
        return True

    def add_relation(self, source_id: str, target_id: str) -> None:
        """Insert one symmetric relation."""
        self._check_edge(source_id, target_id, self._notes)
        self._adjacency[source_id].add(target_id)
        self._adjacency[target_id].add(source_id)
        self._commit("relations", [source_id, target_id])

    def remove_relation(self, source_id: str, target_id: str) -> bool:
        """Retract one symmetric relation; returns False if it did not exist."""
        if target_id not in self._adjacency.get(source_id, ()):
            return False
        self._adjacency[source_id].discard(target_id)
        self._adjacency[target_id].discard(source_id)
        self._commit("relations", [source_id, target_id])
        return True

    def set_relations(self, note_id: str, target_ids: Iterable[str]) -> list[ValidationError]:
        """
        Replace every relation of ``note_id`` with relations to ``target_ids``.

        Existing edges touching the note are retracted in both directions,
        then a symmetric pair is inserted per valid target. Invalid targets
        are rejected individually.

        Raises:
            ValidationError: if ``note_id`` itself is unknown
        """
        if note_id not in self._notes:
            raise ValidationError("Unknown note", note_id)

        rejected: list[ValidationError] = []
        accepted: list[str] = []
        for target_id in target_ids:
            try:
                self._check_edge(note_id, target_id, self._notes)
            except ValidationError as e:
                logger.warning(f"Rejecting relation target: {e}")
                rejected.append(e)
                continue
            if target_id not in accepted:
                accepted.append(target_id)

        previous = self._adjacency.get(note_id, set())
        for neighbor_id in previous:
            self._adjacency[neighbor_id].discard(note_id)
        self._adjacency[note_id] = set(accepted)
        for target_id in accepted:
            self._adjacency[target_id].add(note_id)

        self._commit("relations", {note_id, *previous, *accepted})
        return rejected

    # ==========================================================================
    # Validation
    # ==========================================================================

    def _check_note(self, note: Note) -> None:
        if note.owner_id != self.owner_id:
            raise ValidationError("Note belongs to another owner", note.id)
        note.validate()

    @staticmethod
    def _check_edge(source_id: str, target_id: str, known: dict[str, Note]) -> None:
        if source_id == target_id:
            raise ValidationError("Self-relation is not allowed", source_id)
        for endpoint in (source_id, target_id):
            if endpoint not in known:
                raise ValidationError("Relation references unknown note", endpoint)
