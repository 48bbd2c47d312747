"""Turning a conversation into a note draft.

Summarizing and titling are done by an external assistant service; this
module only prepares its input and validates the result.
"""

from collections.abc import Iterable, Sequence

from memograph.config import settings
from memograph.models import ChatMessage, NoteDraft


def conversation_excerpt(messages: Sequence[ChatMessage], limit: int | None = None) -> str:
    """Render the trailing ``limit`` messages as ``role: content`` blocks."""
    limit = settings.chat_excerpt_messages if limit is None else limit
    if limit <= 0:
        return ""
    return "\n\n".join(f"{message.role}: {message.content}" for message in messages[-limit:])


def build_draft(
    summary: str,
    title: str,
    category_id: str,
    importance: int = 1,
    related_ids: Iterable[str] = (),
) -> NoteDraft:
    """Validated draft for a summarized conversation."""
    return NoteDraft(
        content=summary.strip(),
        category_id=category_id,
        title=title.strip(),
        importance=importance,
        related_ids=list(dict.fromkeys(related_ids)),
    ).validate()
