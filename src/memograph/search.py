"""Incremental free-text search over the note collection.

Matching is a case-insensitive substring test against title, content and
category name. Results are always re-derived from the current model state.
"""

import logging
from collections.abc import Sequence

from memograph.graph import GraphModel
from memograph.models import Note

logger = logging.getLogger(__name__)


def _contains(field: str | None, needle: str) -> bool:
    return field is not None and needle in field.lower()


def matches(note: Note, query: str) -> bool:
    """True if the lower-cased ``query`` occurs in title, content or category name."""
    return (
        _contains(note.title, query)
        or _contains(note.content, query)
        or _contains(note.category_name, query)
    )


def filter_notes(notes: Sequence[Note], query: str) -> list[Note]:
    """
    Filter notes by a free-text query.

    An empty (or whitespace) query returns every note in the order given.

    Args:
        notes: Working collection, in display order
        query: Raw text typed by the user

    Returns:
        Matching notes, original order preserved
    """
    needle = query.strip().lower()
    if not needle:
        return list(notes)
    return [note for note in notes if matches(note, needle)]


def truncate_text(text: str, max_length: int) -> str:
    """Collapse lines into one and cut to ``max_length`` characters with an ellipsis."""
    flattened = " ".join(line.strip() for line in text.split("\n"))
    if len(flattened) <= max_length:
        return flattened
    return f"{flattened[:max_length]}..."


def preview_content(text: str, limit: int = 100) -> str:
    """First ``limit`` characters of a note, keeping its line breaks."""
    preview = ""
    count = 0
    for line in text.split("\n"):
        if count + len(line) > limit:
            preview += line[: limit - count]
            break
        preview += line + "\n"
        count += len(line) + 1
        if count >= limit:
            break
    return preview.strip()


class SearchIndex:
    """
    Current search query plus its results over a GraphModel.

    Results are memoized on ``(model.revision, query)``; any note added,
    edited or removed bumps the revision, so a cached result never outlives
    the data it was derived from.
    """

    def __init__(self, model: GraphModel, query: str = "") -> None:
        self.model = model
        self._query = query
        self._cache_key: tuple[int, str] | None = None
        self._cache: list[Note] = []

    @property
    def query(self) -> str:
        return self._query

    def set_query(self, query: str) -> list[Note]:
        """Replace the query and return the refreshed results."""
        self._query = query
        return self.results

    @property
    def results(self) -> list[Note]:
        key = (self.model.revision, self._query)
        if key != self._cache_key:
            self._cache = filter_notes(self.model.notes(), self._query)
            self._cache_key = key
            logger.debug(
                f"Search '{self._query}' matched {len(self._cache)} of {len(self.model)} notes"
            )
        return list(self._cache)
