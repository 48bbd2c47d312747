"""Memograph data models."""

from memograph.models.chat import ChatMessage, ChatRole
from memograph.models.note import (
    MAX_IMPORTANCE,
    MIN_IMPORTANCE,
    Category,
    Note,
    NoteDraft,
    NotePatch,
    Relation,
    parse_datetime,
)

__all__ = [
    "Note",
    "NoteDraft",
    "NotePatch",
    "Category",
    "Relation",
    "ChatMessage",
    "ChatRole",
    "MIN_IMPORTANCE",
    "MAX_IMPORTANCE",
    "parse_datetime",
]
