"""Note, category and relation models - the nodes and edges of a memory graph."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from memograph.errors import ValidationError

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 5


def parse_datetime(value: Any) -> datetime | None:
    """Parse datetime from various formats (string, Neo4j DateTime, or native datetime)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    # Neo4j DateTime object - convert to Python datetime
    if hasattr(value, "to_native"):
        return value.to_native()
    return datetime.fromisoformat(str(value))


def validate_importance(importance: Any) -> int:
    """Return importance as an int in 1..5 or raise ValidationError."""
    if isinstance(importance, bool) or not isinstance(importance, int):
        raise ValidationError("Importance must be an integer", importance)
    if not MIN_IMPORTANCE <= importance <= MAX_IMPORTANCE:
        raise ValidationError(
            f"Importance must be between {MIN_IMPORTANCE} and {MAX_IMPORTANCE}", importance
        )
    return importance


@dataclass
class Category:
    """A user-defined grouping of notes."""

    id: str
    name: str
    owner_id: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for Neo4j storage."""
        return {"id": self.id, "name": self.name, "owner_id": self.owner_id}

    @classmethod
    def from_dict(cls, data: dict) -> "Category":
        """Create from dictionary (Neo4j record)."""
        return cls(id=data["id"], name=data["name"], owner_id=data.get("owner_id", ""))


@dataclass
class NotePatch:
    """Partial update of a note's mutable fields. None means unchanged."""

    title: str | None = None
    content: str | None = None
    category_id: str | None = None
    importance: int | None = None

    def to_dict(self) -> dict:
        """Only the fields being changed."""
        return {
            key: value
            for key, value in (
                ("title", self.title),
                ("content", self.content),
                ("category_id", self.category_id),
                ("importance", self.importance),
            )
            if value is not None
        }


@dataclass
class NoteDraft:
    """A note not yet persisted; the repository assigns id and created_at."""

    content: str
    category_id: str
    title: str = ""
    importance: int = 1
    related_ids: list[str] = field(default_factory=list)

    def validate(self) -> "NoteDraft":
        if not self.content or not self.content.strip():
            raise ValidationError("Note content must not be empty")
        if not self.category_id:
            raise ValidationError("Note must reference a category")
        validate_importance(self.importance)
        return self


@dataclass
class Note:
    """
    A user-authored memory, the node type of the graph.

    Title may be empty until the external summarizer generates one.
    """

    id: str
    content: str
    category_id: str
    owner_id: str
    title: str = ""
    importance: int = 1

    # Joined from the category for search and display
    category_name: str | None = None

    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime | None = None

    def validate(self) -> "Note":
        """Raise ValidationError unless required fields are present and in range."""
        if not self.id:
            raise ValidationError("Note id must not be empty", self)
        if not self.content or not self.content.strip():
            raise ValidationError("Note content must not be empty", self.id)
        if not self.category_id:
            raise ValidationError("Note must reference a category", self.id)
        validate_importance(self.importance)
        return self

    def apply_patch(self, patch: NotePatch, category_name: str | None = None) -> "Note":
        """Return a copy with the patch applied and validated."""
        updated = Note(
            id=self.id,
            content=self.content if patch.content is None else patch.content,
            category_id=self.category_id if patch.category_id is None else patch.category_id,
            owner_id=self.owner_id,
            title=self.title if patch.title is None else patch.title,
            importance=self.importance if patch.importance is None else patch.importance,
            category_name=self.category_name,
            created_at=self.created_at,
            updated_at=datetime.utcnow(),
        )
        if patch.category_id is not None and patch.category_id != self.category_id:
            updated.category_name = category_name
        return updated.validate()

    def to_dict(self) -> dict:
        """Convert to dictionary for Neo4j storage."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "importance": self.importance,
            "category_id": self.category_id,
            "owner_id": self.owner_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Note":
        """Create from dictionary (Neo4j record).

        Raises:
            ValidationError: Missing id, or a field that cannot be converted
        """
        try:
            return cls(
                id=data["id"],
                title=data.get("title") or "",
                content=data.get("content") or "",
                importance=int(data.get("importance", 1)),
                category_id=data.get("category_id") or "",
                owner_id=data.get("owner_id") or "",
                category_name=data.get("category_name"),
                created_at=parse_datetime(data.get("created_at")) or datetime.utcnow(),
                updated_at=parse_datetime(data.get("updated_at")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed note record ({e})", data.get("id")) from e


@dataclass
class Relation:
    """
    One directed record of a symmetric relation.

    Storage keeps (a, b) and (b, a); the graph model treats them as one edge.
    """

    source_id: str
    target_id: str
    created_at: datetime | None = None

    @property
    def pair(self) -> tuple[str, str]:
        """Order-independent key of the logical edge."""
        return (self.source_id, self.target_id) if self.source_id <= self.target_id else (
            self.target_id,
            self.source_id,
        )

    def reversed(self) -> "Relation":
        return Relation(source_id=self.target_id, target_id=self.source_id, created_at=self.created_at)

    def to_dict(self) -> dict:
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Relation":
        try:
            return cls(
                source_id=data["source_id"],
                target_id=data["target_id"],
                created_at=parse_datetime(data.get("created_at")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed relation record ({e})", dict(data)) from e
