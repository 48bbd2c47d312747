"""Contract between the engine and whatever persists notes."""

from collections.abc import Sequence
from typing import Protocol

from memograph.models import Category, Note, NoteDraft, NotePatch, Relation


class NoteRepository(Protocol):
    """
    Async data access for one owner's notes, categories and relations.

    Implementations raise ``AdapterError`` (or ``NotFoundError``) on any
    failure. Relations are stored as two directed records per logical edge.
    """

    async def list_notes(self, owner_id: str) -> list[Note]:
        """Notes with their category name joined in."""
        ...

    async def list_relations(self, owner_id: str) -> list[Relation]: ...

    async def list_categories(self, owner_id: str) -> list[Category]: ...

    async def create_note(self, draft: NoteDraft, owner_id: str) -> Note:
        """Persist a draft; the repository assigns id and created_at."""
        ...

    async def update_note(self, note_id: str, patch: NotePatch) -> None: ...

    async def delete_note(self, note_id: str) -> None:
        """Delete a note and every relation record touching it."""
        ...

    async def replace_relations(self, note_id: str, target_ids: Sequence[str]) -> None:
        """Delete all relations of ``note_id`` then insert both directions per target."""
        ...
