"""Memory graph engine: wires storage, model, search, layout, viewport and selection.

Every change follows the same order: adapter call, model mutation, visible
set and simulation refresh, render notification. Listeners therefore never
observe a half-applied change.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import asdict, dataclass, field
from typing import Literal

from memograph.config import Settings
from memograph.config import settings as default_settings
from memograph.errors import AdapterError, NotFoundError, StaleRequestError, ValidationError
from memograph.graph import GraphChange, GraphModel
from memograph.layout import Debouncer, LayoutRunner, Point, Simulation
from memograph.models import Category, Note, NoteDraft, NotePatch
from memograph.search import SearchIndex, truncate_text
from memograph.selection import Highlight, SelectionState
from memograph.storage.base import NoteRepository
from memograph.viewport import Bounds, Transform, ViewportController

logger = logging.getLogger(__name__)

RenderEvent = Literal["tick", "structure", "selection", "viewport"]
RenderListener = Callable[[RenderEvent], None]

# d3.schemePaired, assigned to categories in name order
CATEGORY_PALETTE = [
    "#a6cee3",
    "#1f78b4",
    "#b2df8a",
    "#33a02c",
    "#fb9a99",
    "#e31a1c",
    "#fdbf6f",
    "#ff7f00",
    "#cab2d6",
    "#6a3d9a",
    "#ffff99",
    "#b15928",
]

ALL_CATEGORIES = "all"


@dataclass(frozen=True)
class VisibleNode:
    """A note as the renderer should draw it right now."""

    id: str
    label: str
    category_id: str
    category_name: str | None
    color: str
    radius: float
    x: float
    y: float
    pinned: bool
    emphasized: bool


@dataclass(frozen=True)
class VisibleEdge:
    source_id: str
    target_id: str
    emphasized: bool


@dataclass(frozen=True)
class VisibleGraph:
    """Render snapshot: nodes, edges and the current view transform."""

    nodes: list[VisibleNode]
    edges: list[VisibleEdge]
    transform: Transform
    selected: str | None = None
    category_filter: str | None = None
    link_distance: float = 0.0
    alpha: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MutationResult:
    """Outcome of a note mutation; ``rejected`` lists dropped relation targets."""

    note: Note | None = None
    rejected: list[ValidationError] = field(default_factory=list)


class MemoryGraphEngine:
    """
    Interactive graph over one owner's notes.

    Usage:
        engine = MemoryGraphEngine(client, owner_id="alice")
        await engine.reload()
        engine.start()
        ...
        await engine.stop()
    """

    def __init__(
        self,
        repository: NoteRepository,
        owner_id: str,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or default_settings
        s = self.settings
        self.repository = repository
        self.owner_id = owner_id

        self.model = GraphModel(owner_id)
        self.search = SearchIndex(self.model)
        self.selection = SelectionState()
        self.viewport = ViewportController(
            width=s.viewport_width,
            height=s.viewport_height,
            zoom_min=s.zoom_min,
            zoom_max=s.zoom_max,
            clock=clock,
        )
        self.simulation = Simulation(
            center=self.viewport.center,
            link_distance=s.link_distance,
            link_distance_range=(s.link_distance_min, s.link_distance_max),
            charge_strength=s.charge_strength,
            charge_distance_min=s.charge_distance_min,
            charge_distance_max=s.charge_distance_max,
            center_strength=s.center_strength,
            collide_radius=s.collide_radius,
            collide_strength=s.collide_strength,
            alpha_decay=s.alpha_decay,
            alpha_min=s.alpha_min,
            velocity_decay=s.velocity_decay,
            seed=s.layout_seed,
        )
        self.runner = LayoutRunner(self.simulation, interval=s.tick_interval)
        self._restart_alpha: float | None = 1.0
        self._debounced_restart = Debouncer(self._restart_now, delay=s.restart_debounce)

        self.categories: list[Category] = []
        self._colors: dict[str, str] = {}
        self.category_filter: str | None = None

        self._generation = 0
        self._visible_ids: list[str] = []
        self._visible_edges: list[tuple[str, str]] = []
        self._visible_radii: dict[str, float] = {}
        self._drags: dict[str, Point] = {}
        self._listeners: list[RenderListener] = []

        self.model.subscribe(self._on_model_change)
        self.runner.add_listener(lambda _sim: self._notify("tick"))

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    def start(self) -> None:
        """Start the layout loop on the running event loop."""
        self.runner.start()

    async def stop(self) -> None:
        """Halt the layout loop; no tick happens after this returns."""
        self._debounced_restart.cancel()
        await self.runner.stop()

    def subscribe(self, listener: RenderListener) -> Callable[[], None]:
        """Receive render notifications; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: RenderEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    # ==========================================================================
    # Loading
    # ==========================================================================

    async def reload(self) -> list[ValidationError]:
        """
        Fetch categories, notes and relations and replace the model.

        When a newer reload starts before this one finishes, this result
        (or failure) is discarded and the newer one wins.

        Returns:
            Records rejected while loading
        """
        self._generation += 1
        generation = self._generation
        logger.info(f"Reloading graph for {self.owner_id} (generation {generation})")

        try:
            categories, notes, relations = await asyncio.gather(
                self.repository.list_categories(self.owner_id),
                self.repository.list_notes(self.owner_id),
                self.repository.list_relations(self.owner_id),
            )
        except AdapterError:
            if generation != self._generation:
                logger.warning(f"Superseded reload {generation} failed, ignoring")
                return []
            raise

        try:
            self._ensure_current(generation)
        except StaleRequestError as e:
            logger.warning(f"Discarding reload: {e}")
            return []

        self.categories = list(categories)
        self._colors = {
            category.id: CATEGORY_PALETTE[i % len(CATEGORY_PALETTE)]
            for i, category in enumerate(self.categories)
        }
        if self.category_filter is not None and self.category_filter not in self._colors:
            logger.info(f"Category {self.category_filter} no longer exists, showing all")
            self.category_filter = None
        return self.model.load(notes, relations)

    def _ensure_current(self, generation: int) -> None:
        if generation != self._generation:
            raise StaleRequestError(generation, self._generation)

    # ==========================================================================
    # Visible graph
    # ==========================================================================

    @property
    def visible_ids(self) -> list[str]:
        return list(self._visible_ids)

    @property
    def visible_edges(self) -> list[tuple[str, str]]:
        return list(self._visible_edges)

    def _is_visible(self, note: Note) -> bool:
        return self.category_filter is None or note.category_id == self.category_filter

    def _on_model_change(self, change: GraphChange) -> None:
        logger.debug(f"Model change {change.kind} at revision {change.revision}")
        self._refresh_visible()

    def _refresh_visible(self) -> None:
        notes = [note for note in self.model.notes() if self._is_visible(note)]
        ids = [note.id for note in notes]
        edges = self.model.edges_within(ids)
        radii = {note.id: self.collide_radius_of(note) for note in notes}
        if (
            set(ids) != set(self._visible_ids)
            or edges != self._visible_edges
            or radii != self._visible_radii
        ):
            self._visible_ids = ids
            self._visible_edges = edges
            self._visible_radii = radii
            visible = set(ids)
            self._drags = {k: v for k, v in self._drags.items() if k in visible}
            self.simulation.set_graph(ids, edges, radii)
            self.runner.wake()
        if self.selection.prune(self._visible_ids):
            logger.debug("Selected note left the visible set")
        self._notify("structure")

    def color_of(self, category_id: str) -> str:
        """Ordinal palette colour; unseen categories extend the domain."""
        if category_id not in self._colors:
            self._colors[category_id] = CATEGORY_PALETTE[len(self._colors) % len(CATEGORY_PALETTE)]
        return self._colors[category_id]

    def label_of(self, note: Note) -> str:
        return truncate_text(note.title or note.content, self.settings.label_max_length)

    def radius_of(self, note: Note) -> float:
        return min(note.importance * self.settings.node_radius_per_importance,
                   self.settings.node_radius_max)

    def collide_radius_of(self, note: Note) -> float:
        """Minimum clearance around a node: its drawn radius, at least ``collide_radius``."""
        return max(self.radius_of(note), self.settings.collide_radius)

    def highlight(self) -> Highlight:
        return self.selection.highlight(
            self._visible_ids, self._visible_edges, self.model.neighbors_of
        )

    def visible_graph(self) -> VisibleGraph:
        """Snapshot of what should be drawn, with live positions."""
        highlight = self.highlight()
        nodes = []
        for note_id in self._visible_ids:
            note = self.model.get(note_id)
            position = self.simulation.position_of(note_id)
            if note is None or position is None:
                continue
            nodes.append(
                VisibleNode(
                    id=note.id,
                    label=self.label_of(note),
                    category_id=note.category_id,
                    category_name=note.category_name,
                    color=self.color_of(note.category_id),
                    radius=self.radius_of(note),
                    x=position[0],
                    y=position[1],
                    pinned=self.simulation.pin_of(note_id) is not None,
                    emphasized=highlight.is_emphasized(note_id),
                )
            )
        edges = [
            VisibleEdge(source_id, target_id, highlight.is_edge_emphasized((source_id, target_id)))
            for source_id, target_id in self._visible_edges
        ]
        return VisibleGraph(
            nodes=nodes,
            edges=edges,
            transform=self.viewport.transform,
            selected=highlight.selected,
            category_filter=self.category_filter,
            link_distance=self.simulation.link_distance,
            alpha=self.simulation.alpha,
        )

    # ==========================================================================
    # Filtering and search
    # ==========================================================================

    def set_category_filter(self, category_id: str | None) -> None:
        """Show one category, or every category for ``None`` / ``"all"``."""
        if category_id == ALL_CATEGORIES:
            category_id = None
        if category_id is not None and category_id not in {c.id for c in self.categories}:
            raise ValidationError("Unknown category", category_id)
        if category_id == self.category_filter:
            return
        self.category_filter = category_id
        logger.info(f"Category filter set to {category_id or ALL_CATEGORIES}")
        self._refresh_visible()

    def set_search_query(self, query: str) -> list[Note]:
        return self.search.set_query(query)

    @property
    def search_results(self) -> list[Note]:
        return self.search.results

    # ==========================================================================
    # Selection
    # ==========================================================================

    def on_node_click(self, note_id: str) -> str | None:
        selected = self.selection.select(note_id, self._visible_ids)
        self._notify("selection")
        return selected

    def on_background_click(self) -> None:
        self.selection.clear()
        self._notify("selection")

    # ==========================================================================
    # Layout parameters
    # ==========================================================================

    def _request_restart(self, alpha: float | None) -> None:
        self._restart_alpha = alpha
        self._debounced_restart()

    def _restart_now(self) -> None:
        self.runner.request_restart(self._restart_alpha)

    def set_link_distance(self, distance: float) -> float:
        """Change the spring length now; the reheat is debounced."""
        applied = self.simulation.set_link_distance(distance)
        logger.debug(f"Link distance set to {applied}")
        self._request_restart(1.0)
        return applied

    def resize(self, width: float, height: float) -> None:
        """New viewport extent: recentre the layout and reheat it."""
        self.viewport.resize(width, height)
        self.simulation.set_center(width / 2, height / 2)
        self._request_restart(self.settings.resize_alpha)
        self._notify("viewport")

    # ==========================================================================
    # Viewport
    # ==========================================================================

    def zoom(self, factor: float, anchor: Point | None = None) -> Transform:
        transform = self.viewport.zoom(factor, anchor)
        self._notify("viewport")
        return transform

    def pan(self, dx: float, dy: float) -> Transform:
        transform = self.viewport.pan(dx, dy)
        self._notify("viewport")
        return transform

    def visible_bounds(self) -> Bounds | None:
        circles = []
        for node_id in self._visible_ids:
            note = self.model.get(node_id)
            position = self.simulation.position_of(node_id)
            if note is not None and position is not None:
                circles.append((position[0], position[1], self.radius_of(note)))
        return Bounds.from_circles(circles)

    def fit_to_view(self, animate: bool = True) -> Transform:
        """Frame every visible node; with nothing visible the view is unchanged."""
        target = self.viewport.fit_bounds(self.visible_bounds(), animate=animate)
        self._notify("viewport")
        return target

    # ==========================================================================
    # Dragging
    # ==========================================================================

    def on_node_drag_start(self, note_id: str, point: Point) -> None:
        """Pin a node under the pointer and keep the layout warm while dragging."""
        position = self.simulation.position_of(note_id)
        if position is None:
            raise ValidationError("Cannot drag a note that is not visible", note_id)
        world = self.viewport.to_world(point)
        self._drags[note_id] = (position[0] - world[0], position[1] - world[1])
        self.simulation.pin(note_id, position)
        self.simulation.alpha_target = self.settings.drag_alpha_target
        self.runner.request_restart(None)

    def on_node_drag_move(self, note_id: str, point: Point) -> None:
        offset = self._drags.get(note_id)
        if offset is None:
            return
        world = self.viewport.to_world(point)
        self.simulation.pin(note_id, (world[0] + offset[0], world[1] + offset[1]))
        self._notify("tick")

    def on_node_drag_end(self, note_id: str, point: Point | None = None) -> None:
        if note_id not in self._drags:
            return
        if point is not None:
            self.on_node_drag_move(note_id, point)
        del self._drags[note_id]
        if not self._drags:
            self.simulation.alpha_target = 0.0
        if self.settings.release_pin_on_drag_end:
            self.simulation.unpin(note_id)

    # ==========================================================================
    # Pointer routing
    # ==========================================================================

    def on_pointer_down(self, point: Point, node_id: str | None = None) -> None:
        """Press on a node starts a drag; on the background it starts a pan."""
        if node_id is not None and self.simulation.position_of(node_id) is None:
            node_id = None
        self.viewport.pointer_down(point, node_id)
        if node_id is not None:
            self.on_node_drag_start(node_id, point)

    def on_pointer_move(self, point: Point) -> None:
        gesture = self.viewport.pointer_move(point)
        if gesture is None:
            return
        if gesture.kind == "node" and gesture.node_id is not None:
            self.on_node_drag_move(gesture.node_id, point)
        elif gesture.moved:
            self._notify("viewport")

    def on_pointer_up(self, point: Point) -> None:
        """Finish the gesture; an unmoved press is a click."""
        gesture = self.viewport.pointer_up(point)
        if gesture is None:
            return
        if gesture.kind == "node" and gesture.node_id is not None:
            self.on_node_drag_end(gesture.node_id, point)
            if gesture.is_click:
                self.on_node_click(gesture.node_id)
        elif gesture.is_click:
            self.on_background_click()

    # ==========================================================================
    # Mutations
    # ==========================================================================

    def _require_note(self, operation: str, note_id: str) -> Note:
        note = self.model.get(note_id)
        if note is None:
            raise NotFoundError(operation, f"note {note_id} is not loaded")
        return note

    def _category_name(self, category_id: str) -> str | None:
        for category in self.categories:
            if category.id == category_id:
                return category.name
        return None

    def _partition_targets(
        self, note_id: str | None, target_ids: Iterable[str]
    ) -> tuple[list[str], list[ValidationError]]:
        """Split relation targets into loadable ids and per-target rejections."""
        accepted: list[str] = []
        rejected: list[ValidationError] = []
        for target_id in target_ids:
            if target_id == note_id:
                rejected.append(ValidationError("Self-relation is not allowed", target_id))
            elif target_id not in self.model:
                rejected.append(ValidationError("Relation references unknown note", target_id))
            elif target_id not in accepted:
                accepted.append(target_id)
        for error in rejected:
            logger.warning(f"Rejecting relation target: {error}")
        return accepted, rejected

    async def create_note(self, draft: NoteDraft) -> MutationResult:
        """Persist a new note, then relate it to ``draft.related_ids``."""
        draft.validate()
        targets, rejected = self._partition_targets(None, draft.related_ids)

        note = await self.repository.create_note(draft, self.owner_id)
        if targets:
            try:
                await self.repository.replace_relations(note.id, targets)
            except AdapterError:
                logger.warning(f"Relating new note {note.id} failed, removing it")
                await self.repository.delete_note(note.id)
                raise

        if note.category_name is None:
            note.category_name = self._category_name(note.category_id)
        self.model.upsert_note(note)
        if targets:
            rejected += self.model.set_relations(note.id, targets)
        logger.info(f"Created note {note.id} with {len(targets)} relations")
        return MutationResult(note=note, rejected=rejected)

    async def update_note(
        self, note_id: str, patch: NotePatch, related_ids: Sequence[str] | None = None
    ) -> MutationResult:
        """Apply an edit; ``related_ids`` (if given) replaces the note's relations."""
        current = self._require_note("update_note", note_id)
        if patch.category_id is not None and self._category_name(patch.category_id) is None:
            raise ValidationError("Unknown category", patch.category_id)
        updated = current.apply_patch(
            patch,
            category_name=self._category_name(patch.category_id) if patch.category_id else None,
        )

        await self.repository.update_note(note_id, patch)
        self.model.upsert_note(updated)

        result = MutationResult(note=updated)
        if related_ids is not None:
            result.rejected = await self.replace_relations(note_id, related_ids)
        return result

    async def delete_note(self, note_id: str) -> None:
        self._require_note("delete_note", note_id)
        await self.repository.delete_note(note_id)
        self._drags.pop(note_id, None)
        self.model.remove_note(note_id)
        logger.info(f"Deleted note {note_id}")

    async def replace_relations(
        self, note_id: str, target_ids: Iterable[str]
    ) -> list[ValidationError]:
        """
        Make ``target_ids`` the complete set of notes related to ``note_id``.

        Targets unknown to the model (or the note itself) are rejected
        before storage is touched; the rest are written in both directions.
        """
        self._require_note("replace_relations", note_id)
        targets, rejected = self._partition_targets(note_id, target_ids)
        await self.repository.replace_relations(note_id, targets)
        rejected += self.model.set_relations(note_id, targets)
        return rejected
