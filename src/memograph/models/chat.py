"""Chat message model - conversation turns that can be condensed into notes."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from memograph.models.note import parse_datetime

ChatRole = Literal["user", "assistant"]


@dataclass
class ChatMessage:
    """A single turn of a conversation with the assistant."""

    role: ChatRole
    content: str
    id: str | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChatMessage":
        return cls(
            id=data.get("id"),
            role=data["role"],
            content=data.get("content") or "",
            created_at=parse_datetime(data.get("created_at")) or datetime.utcnow(),
        )
