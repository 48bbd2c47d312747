"""API routes for Memograph.

Provides:
- /graph endpoints: render snapshot plus the interactive inputs
  (select, filter, distance, fit, resize, drag, zoom, pan, reload)
- /notes endpoints: search and create/update/delete/relate notes
- /chat/excerpt and /notes/from-chat: turning a conversation into a note
- /health
"""

import logging
from typing import Literal, NoReturn

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from memograph import __version__
from memograph.drafts import build_draft, conversation_excerpt
from memograph.engine import MemoryGraphEngine, MutationResult
from memograph.errors import AdapterError, NotFoundError, ValidationError
from memograph.models import ChatMessage, Note, NoteDraft, NotePatch
from memograph.search import preview_content
from memograph.storage.neo4j_client import Neo4jClient

logger = logging.getLogger(__name__)

router = APIRouter()


def get_engine(request: Request) -> MemoryGraphEngine:
    """Get the graph engine from app state."""
    return request.app.state.engine


def get_db(request: Request) -> Neo4jClient:
    """Get database client from app state."""
    return request.app.state.db


def raise_http_error(e: Exception) -> NoReturn:
    """Translate engine errors into HTTP status codes."""
    if isinstance(e, ValidationError):
        raise HTTPException(status_code=422, detail=str(e)) from e
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=str(e)) from e
    if isinstance(e, AdapterError):
        logger.error(f"Storage failure: {e}")
        raise HTTPException(status_code=502, detail=str(e)) from e
    raise e


# ============================================================================
# Graph Models
# ============================================================================


class TransformInfo(BaseModel):
    x: float
    y: float
    k: float


class NodeInfo(BaseModel):
    """A visible note with its live position."""

    id: str
    label: str
    category_id: str
    category_name: str | None = None
    color: str
    radius: float
    x: float
    y: float
    pinned: bool
    emphasized: bool


class EdgeInfo(BaseModel):
    source_id: str
    target_id: str
    emphasized: bool


class GraphResponse(BaseModel):
    """Render snapshot of the visible graph."""

    nodes: list[NodeInfo]
    edges: list[EdgeInfo]
    transform: TransformInfo
    selected: str | None = None
    category_filter: str | None = None
    link_distance: float
    alpha: float


class SelectRequest(BaseModel):
    """Select a node; ``None`` is a background click."""

    note_id: str | None = None


class CategoryFilterRequest(BaseModel):
    category_id: str = "all"


class DistanceRequest(BaseModel):
    distance: float


class FitRequest(BaseModel):
    animate: bool = True


class ResizeRequest(BaseModel):
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class DragRequest(BaseModel):
    """One drag event in screen coordinates."""

    note_id: str
    phase: Literal["start", "move", "end"]
    x: float
    y: float


class ZoomRequest(BaseModel):
    factor: float = Field(gt=0)
    x: float | None = None
    y: float | None = None


class PanRequest(BaseModel):
    dx: float
    dy: float


class ReloadResponse(BaseModel):
    notes_count: int
    relations_count: int
    rejected: list[str] = []


# ============================================================================
# Note Models
# ============================================================================


class NoteInfo(BaseModel):
    """Note as shown in the list view."""

    id: str
    title: str
    content: str
    preview: str
    importance: int
    category_id: str
    category_name: str | None = None
    created_at: str
    updated_at: str | None = None
    related_ids: list[str] = []


class CreateNoteRequest(BaseModel):
    title: str = ""
    content: str
    category_id: str
    importance: int = 1
    related_ids: list[str] = []


class UpdateNoteRequest(BaseModel):
    title: str | None = None
    content: str | None = None
    category_id: str | None = None
    importance: int | None = None
    related_ids: list[str] | None = None


class RelationsRequest(BaseModel):
    target_ids: list[str]


class NoteMutationResponse(BaseModel):
    note: NoteInfo | None = None
    rejected: list[str] = []


class ChatMessageInfo(BaseModel):
    role: Literal["user", "assistant"]
    content: str

    def to_message(self) -> ChatMessage:
        return ChatMessage(role=self.role, content=self.content)


class ExcerptRequest(BaseModel):
    messages: list[ChatMessageInfo]
    limit: int | None = Field(default=None, ge=0)


class ExcerptResponse(BaseModel):
    excerpt: str
    message_count: int


class ChatNoteRequest(BaseModel):
    """A note condensed from a conversation.

    ``summary`` and ``title`` come from the external assistant; without a
    summary the conversation excerpt itself becomes the content.
    """

    messages: list[ChatMessageInfo] = []
    summary: str = ""
    title: str = ""
    category_id: str
    importance: int = 1
    related_ids: list[str] = []


def note_info(engine: MemoryGraphEngine, note: Note) -> NoteInfo:
    return NoteInfo(
        id=note.id,
        title=note.title,
        content=note.content,
        preview=preview_content(note.content, engine.settings.preview_max_chars),
        importance=note.importance,
        category_id=note.category_id,
        category_name=note.category_name,
        created_at=note.created_at.isoformat(),
        updated_at=note.updated_at.isoformat() if note.updated_at else None,
        related_ids=sorted(engine.model.neighbors_of(note.id)),
    )


def mutation_response(engine: MemoryGraphEngine, result: MutationResult) -> NoteMutationResponse:
    return NoteMutationResponse(
        note=note_info(engine, result.note) if result.note is not None else None,
        rejected=[str(e) for e in result.rejected],
    )


def graph_response(engine: MemoryGraphEngine) -> GraphResponse:
    return GraphResponse.model_validate(engine.visible_graph().to_dict())


# ============================================================================
# Health
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    neo4j_connected: bool
    version: str = __version__


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint."""
    try:
        db = get_db(request)
        # Try a simple query to verify connection
        await db.execute_query("RETURN 1 as n")
        neo4j_connected = True
    except AdapterError:
        neo4j_connected = False

    return HealthResponse(
        status="healthy" if neo4j_connected else "degraded",
        neo4j_connected=neo4j_connected,
    )


# ============================================================================
# Graph Endpoints
# ============================================================================


@router.get("/graph", response_model=GraphResponse)
async def get_graph(request: Request) -> GraphResponse:
    """Current visible graph with live positions."""
    return graph_response(get_engine(request))


@router.post("/graph/select", response_model=GraphResponse)
async def select_node(request: Request, body: SelectRequest) -> GraphResponse:
    engine = get_engine(request)
    if body.note_id is None:
        engine.on_background_click()
    else:
        engine.on_node_click(body.note_id)
    return graph_response(engine)


@router.post("/graph/category", response_model=GraphResponse)
async def set_category(request: Request, body: CategoryFilterRequest) -> GraphResponse:
    """Show one category, or ``all``."""
    engine = get_engine(request)
    try:
        engine.set_category_filter(body.category_id)
    except ValidationError as e:
        raise_http_error(e)
    return graph_response(engine)


@router.post("/graph/distance", response_model=GraphResponse)
async def set_distance(request: Request, body: DistanceRequest) -> GraphResponse:
    engine = get_engine(request)
    engine.set_link_distance(body.distance)
    return graph_response(engine)


@router.post("/graph/fit", response_model=GraphResponse)
async def fit_to_view(request: Request, body: FitRequest | None = None) -> GraphResponse:
    engine = get_engine(request)
    engine.fit_to_view(animate=body.animate if body else True)
    return graph_response(engine)


@router.post("/graph/resize", response_model=GraphResponse)
async def resize(request: Request, body: ResizeRequest) -> GraphResponse:
    engine = get_engine(request)
    engine.resize(body.width, body.height)
    return graph_response(engine)


@router.post("/graph/drag", response_model=GraphResponse)
async def drag_node(request: Request, body: DragRequest) -> GraphResponse:
    engine = get_engine(request)
    point = (body.x, body.y)
    try:
        if body.phase == "start":
            engine.on_node_drag_start(body.note_id, point)
        elif body.phase == "move":
            engine.on_node_drag_move(body.note_id, point)
        else:
            engine.on_node_drag_end(body.note_id, point)
    except ValidationError as e:
        raise_http_error(e)
    return graph_response(engine)


@router.post("/graph/zoom", response_model=GraphResponse)
async def zoom(request: Request, body: ZoomRequest) -> GraphResponse:
    engine = get_engine(request)
    anchor = (body.x, body.y) if body.x is not None and body.y is not None else None
    engine.zoom(body.factor, anchor)
    return graph_response(engine)


@router.post("/graph/pan", response_model=GraphResponse)
async def pan(request: Request, body: PanRequest) -> GraphResponse:
    engine = get_engine(request)
    engine.pan(body.dx, body.dy)
    return graph_response(engine)


@router.post("/graph/reload", response_model=ReloadResponse)
async def reload_graph(request: Request) -> ReloadResponse:
    """Refetch everything from storage."""
    engine = get_engine(request)
    try:
        rejected = await engine.reload()
    except AdapterError as e:
        raise_http_error(e)
    return ReloadResponse(
        notes_count=len(engine.model),
        relations_count=len(engine.model.undirected_edges()),
        rejected=[str(e) for e in rejected],
    )


# ============================================================================
# Note Endpoints
# ============================================================================


@router.get("/notes/search", response_model=list[NoteInfo])
async def search_notes(request: Request, q: str = "") -> list[NoteInfo]:
    """Notes whose title, content or category name contains ``q``."""
    engine = get_engine(request)
    return [note_info(engine, note) for note in engine.set_search_query(q)]


@router.post("/notes", response_model=NoteMutationResponse, status_code=201)
async def create_note(request: Request, body: CreateNoteRequest) -> NoteMutationResponse:
    engine = get_engine(request)
    draft = NoteDraft(
        content=body.content,
        category_id=body.category_id,
        title=body.title,
        importance=body.importance,
        related_ids=body.related_ids,
    )
    try:
        result = await engine.create_note(draft)
    except (ValidationError, AdapterError) as e:
        raise_http_error(e)
    return mutation_response(engine, result)


@router.post("/chat/excerpt", response_model=ExcerptResponse)
async def chat_excerpt(request: Request, body: ExcerptRequest) -> ExcerptResponse:
    """The conversation tail handed to the external summarizer."""
    messages = [message.to_message() for message in body.messages]
    limit = get_engine(request).settings.chat_excerpt_messages if body.limit is None else body.limit
    return ExcerptResponse(
        excerpt=conversation_excerpt(messages, limit=limit),
        message_count=min(limit, len(messages)),
    )


@router.post("/notes/from-chat", response_model=NoteMutationResponse, status_code=201)
async def create_note_from_chat(request: Request, body: ChatNoteRequest) -> NoteMutationResponse:
    """Save a summarized conversation as a note."""
    engine = get_engine(request)
    summary = body.summary or conversation_excerpt([m.to_message() for m in body.messages])
    try:
        draft = build_draft(
            summary,
            body.title,
            body.category_id,
            importance=body.importance,
            related_ids=body.related_ids,
        )
        result = await engine.create_note(draft)
    except (ValidationError, AdapterError) as e:
        raise_http_error(e)
    return mutation_response(engine, result)


@router.patch("/notes/{note_id}", response_model=NoteMutationResponse)
async def update_note(
    request: Request, note_id: str, body: UpdateNoteRequest
) -> NoteMutationResponse:
    engine = get_engine(request)
    patch = NotePatch(
        title=body.title,
        content=body.content,
        category_id=body.category_id,
        importance=body.importance,
    )
    try:
        result = await engine.update_note(note_id, patch, related_ids=body.related_ids)
    except (ValidationError, AdapterError) as e:
        raise_http_error(e)
    return mutation_response(engine, result)


@router.delete("/notes/{note_id}", status_code=204)
async def delete_note(request: Request, note_id: str) -> None:
    engine = get_engine(request)
    try:
        await engine.delete_note(note_id)
    except AdapterError as e:
        raise_http_error(e)


@router.put("/notes/{note_id}/relations", response_model=NoteMutationResponse)
async def replace_relations(
    request: Request, note_id: str, body: RelationsRequest
) -> NoteMutationResponse:
    """Make ``target_ids`` the complete set of related notes."""
    engine = get_engine(request)
    try:
        rejected = await engine.replace_relations(note_id, body.target_ids)
    except (ValidationError, AdapterError) as e:
        raise_http_error(e)
    note = engine.model.get(note_id)
    return mutation_response(engine, MutationResult(note=note, rejected=rejected))
