"""Unit tests for the memory graph engine."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from memograph.engine import CATEGORY_PALETTE, MemoryGraphEngine
from memograph.errors import AdapterError, NotFoundError, ValidationError
from memograph.models import NoteDraft, NotePatch
from memograph.viewport import IDENTITY


@pytest.fixture
def engine(mock_repository, test_settings) -> MemoryGraphEngine:
    return MemoryGraphEngine(mock_repository, owner_id="test-owner", settings=test_settings)


@pytest.fixture
async def loaded(engine) -> MemoryGraphEngine:
    await engine.reload()
    return engine


class TestReload:
    """Tests for loading from the repository."""

    @pytest.mark.asyncio
    async def test_reload_builds_visible_graph(self, engine, mock_repository) -> None:
        rejected = await engine.reload()

        assert rejected == []
        mock_repository.list_notes.assert_awaited_once_with("test-owner")
        assert engine.visible_ids == ["n1", "n2", "n3", "n4"]
        assert engine.visible_edges == [("n1", "n2"), ("n2", "n4")]
        assert engine.simulation.size == 4
        assert engine.simulation.active

    @pytest.mark.asyncio
    async def test_reload_reports_rejections(self, engine, mock_repository, note_factory) -> None:
        mock_repository.list_notes.return_value = [
            note_factory("n1"),
            note_factory("bad", content=""),
        ]
        rejected = await engine.reload()
        # The empty note, plus all three relation records that reference n2
        assert len(rejected) == 4
        assert engine.visible_ids == ["n1"]

    @pytest.mark.asyncio
    async def test_superseded_reload_is_discarded(
        self, engine, mock_repository, note_factory
    ) -> None:
        release = asyncio.Event()
        calls = 0

        async def list_notes(owner_id: str):
            nonlocal calls
            calls += 1
            if calls == 1:
                await release.wait()
                return [note_factory("old")]
            return [note_factory("new")]

        mock_repository.list_notes = AsyncMock(side_effect=list_notes)
        mock_repository.list_relations.return_value = []

        first = asyncio.create_task(engine.reload())
        await asyncio.sleep(0)
        await engine.reload()
        release.set()

        assert await first == []
        assert [note.id for note in engine.model.notes()] == ["new"]

    @pytest.mark.asyncio
    async def test_superseded_failure_is_ignored(self, engine, mock_repository, note_factory) -> None:
        release = asyncio.Event()
        calls = 0

        async def list_notes(owner_id: str):
            nonlocal calls
            calls += 1
            if calls == 1:
                await release.wait()
                raise AdapterError("list_notes", "connection reset")
            return [note_factory("new")]

        mock_repository.list_notes = AsyncMock(side_effect=list_notes)
        mock_repository.list_relations.return_value = []

        first = asyncio.create_task(engine.reload())
        await asyncio.sleep(0)
        await engine.reload()
        release.set()

        assert await first == []
        assert "new" in engine.model

    @pytest.mark.asyncio
    async def test_current_failure_propagates(self, engine, mock_repository) -> None:
        mock_repository.list_relations.side_effect = AdapterError("list_relations", "down")
        with pytest.raises(AdapterError):
            await engine.reload()
        assert len(engine.model) == 0


class TestVisibleGraph:
    """Tests for the render snapshot."""

    @pytest.mark.asyncio
    async def test_node_attributes(self, loaded) -> None:
        graph = loaded.visible_graph()
        nodes = {node.id: node for node in graph.nodes}

        assert nodes["n1"].label == "Docker set..."
        assert nodes["n2"].label == "Meeting"
        assert nodes["n1"].radius == 7.5
        assert nodes["n4"].radius == 12.5
        # Categories are coloured in name order: Ideas, Work
        assert nodes["n4"].color == CATEGORY_PALETTE[0]
        assert nodes["n1"].color == CATEGORY_PALETTE[1]
        assert all(node.emphasized for node in graph.nodes)
        assert graph.transform == IDENTITY

    @pytest.mark.asyncio
    async def test_radius_capped(self, loaded, note_factory, test_settings) -> None:
        test_settings.node_radius_per_importance = 5.0
        assert loaded.radius_of(note_factory("x", importance=5)) == 15.0

    @pytest.mark.asyncio
    async def test_collision_radius_defaults_to_constant(self, loaded) -> None:
        assert loaded.simulation.radii.tolist() == [25.0, 25.0, 25.0, 25.0]

    @pytest.mark.asyncio
    async def test_collision_radius_follows_importance(self, engine, test_settings) -> None:
        test_settings.collide_radius = 0.0
        await engine.reload()
        assert engine.simulation.radii.tolist() == [7.5, 2.5, 2.5, 12.5]

        positions = engine.simulation.positions.copy()
        await engine.update_note("n3", NotePatch(importance=5))
        assert engine.simulation.radii.tolist() == [7.5, 2.5, 12.5, 12.5]
        assert (engine.simulation.positions == positions).all()

    @pytest.mark.asyncio
    async def test_to_dict(self, loaded) -> None:
        data = loaded.visible_graph().to_dict()
        assert set(data["transform"]) == {"x", "y", "k"}
        assert len(data["nodes"]) == 4
        assert data["edges"][0] == {"source_id": "n1", "target_id": "n2", "emphasized": True}


class TestFilteringAndSelection:
    """Tests for category filter, search and selection."""

    @pytest.mark.asyncio
    async def test_category_filter_restricts_nodes_and_edges(self, loaded) -> None:
        loaded.set_category_filter("cat-work")
        assert loaded.visible_ids == ["n1", "n2", "n3"]
        assert loaded.visible_edges == [("n1", "n2")]
        assert loaded.simulation.size == 3

        loaded.set_category_filter("all")
        assert loaded.visible_ids == ["n1", "n2", "n3", "n4"]

    @pytest.mark.asyncio
    async def test_unknown_category_rejected(self, loaded) -> None:
        with pytest.raises(ValidationError):
            loaded.set_category_filter("cat-nope")

    @pytest.mark.asyncio
    async def test_search_is_independent_of_graph_filter(self, loaded) -> None:
        loaded.set_category_filter("cat-ideas")
        assert [n.id for n in loaded.set_search_query("docker")] == ["n1", "n2"]
        assert [n.id for n in loaded.search_results] == ["n1", "n2"]

    @pytest.mark.asyncio
    async def test_select_emphasizes_ego_network(self, loaded) -> None:
        loaded.on_node_click("n2")
        graph = loaded.visible_graph()

        emphasized = {node.id for node in graph.nodes if node.emphasized}
        assert emphasized == {"n1", "n2", "n4"}
        assert graph.selected == "n2"

        loaded.on_background_click()
        assert all(node.emphasized for node in loaded.visible_graph().nodes)

    @pytest.mark.asyncio
    async def test_filter_prunes_hidden_selection(self, loaded) -> None:
        loaded.on_node_click("n4")
        loaded.set_category_filter("cat-work")
        assert loaded.selection.selected is None


class TestMutations:
    """Tests for adapter-first note mutations."""

    @pytest.mark.asyncio
    async def test_create_note_with_relations(self, loaded, mock_repository, note_factory) -> None:
        created = note_factory("n5", title="New", category_name=None)
        mock_repository.create_note.return_value = created
        draft = NoteDraft(content="Body", category_id="cat-work", related_ids=["n1", "ghost"])

        result = await loaded.create_note(draft)

        mock_repository.create_note.assert_awaited_once_with(draft, "test-owner")
        mock_repository.replace_relations.assert_awaited_once_with("n5", ["n1"])
        assert [e.item for e in result.rejected] == ["ghost"]
        assert result.note.category_name == "Work"
        assert loaded.model.neighbors_of("n5") == {"n1"}
        assert "n5" in loaded.visible_ids

    @pytest.mark.asyncio
    async def test_create_rolls_back_when_relating_fails(
        self, loaded, mock_repository, note_factory
    ) -> None:
        mock_repository.create_note.return_value = note_factory("n9")
        mock_repository.replace_relations.side_effect = AdapterError("replace_relations", "timeout")
        revision = loaded.model.revision

        with pytest.raises(AdapterError):
            await loaded.create_note(
                NoteDraft(content="Body", category_id="cat-work", related_ids=["n1"])
            )

        mock_repository.delete_note.assert_awaited_once_with("n9")
        assert "n9" not in loaded.model
        assert "n9" not in loaded.visible_ids
        assert loaded.model.revision == revision

    @pytest.mark.asyncio
    async def test_create_invalid_draft_never_reaches_storage(self, loaded, mock_repository) -> None:
        with pytest.raises(ValidationError):
            await loaded.create_note(NoteDraft(content="", category_id="cat-work"))
        mock_repository.create_note.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_note(self, loaded, mock_repository) -> None:
        patch = NotePatch(title="Standup", category_id="cat-ideas")
        result = await loaded.update_note("n2", patch)

        mock_repository.update_note.assert_awaited_once_with("n2", patch)
        assert result.note.title == "Standup"
        assert loaded.model.get("n2").category_name == "Ideas"
        assert loaded.model.neighbors_of("n2") == {"n1", "n4"}

    @pytest.mark.asyncio
    async def test_update_with_relations(self, loaded, mock_repository) -> None:
        await loaded.update_note("n3", NotePatch(), related_ids=["n1"])
        mock_repository.replace_relations.assert_awaited_once_with("n3", ["n1"])
        assert loaded.model.neighbors_of("n1") == {"n2", "n3"}

    @pytest.mark.asyncio
    async def test_update_unknown_note(self, loaded, mock_repository) -> None:
        with pytest.raises(NotFoundError):
            await loaded.update_note("ghost", NotePatch(title="x"))
        mock_repository.update_note.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_to_unknown_category_rejected(self, loaded, mock_repository) -> None:
        with pytest.raises(ValidationError):
            await loaded.update_note("n1", NotePatch(category_id="no-such-category"))
        mock_repository.update_note.assert_not_awaited()
        assert loaded.model.get("n1").category_id == "cat-work"

    @pytest.mark.asyncio
    async def test_failed_update_leaves_model_unchanged(self, loaded, mock_repository) -> None:
        mock_repository.update_note.side_effect = AdapterError("update_note", "timeout")
        revision = loaded.model.revision
        with pytest.raises(AdapterError):
            await loaded.update_note("n1", NotePatch(title="Lost"))
        assert loaded.model.get("n1").title == "Docker setup"
        assert loaded.model.revision == revision

    @pytest.mark.asyncio
    async def test_delete_note(self, loaded, mock_repository) -> None:
        await loaded.delete_note("n2")
        mock_repository.delete_note.assert_awaited_once_with("n2")
        assert "n2" not in loaded.visible_ids
        assert loaded.model.neighbors_of("n1") == frozenset()
        assert loaded.model.neighbors_of("n4") == frozenset()

    @pytest.mark.asyncio
    async def test_failed_delete_leaves_model_unchanged(self, loaded, mock_repository) -> None:
        mock_repository.delete_note.side_effect = AdapterError("delete_note", "denied")
        with pytest.raises(AdapterError):
            await loaded.delete_note("n2")
        assert "n2" in loaded.model
        assert loaded.model.neighbors_of("n1") == {"n2"}

    @pytest.mark.asyncio
    async def test_replace_relations_validates_before_storage(self, loaded, mock_repository) -> None:
        rejected = await loaded.replace_relations("n1", ["n3", "n1", "ghost", "n3"])

        mock_repository.replace_relations.assert_awaited_once_with("n1", ["n3"])
        assert sorted(e.item for e in rejected) == ["ghost", "n1"]
        assert loaded.model.neighbors_of("n1") == {"n3"}
        assert loaded.model.neighbors_of("n2") == {"n4"}
        assert loaded.visible_edges == [("n1", "n3"), ("n2", "n4")]

    @pytest.mark.asyncio
    async def test_replace_relations_unknown_note(self, loaded, mock_repository) -> None:
        with pytest.raises(NotFoundError):
            await loaded.replace_relations("ghost", ["n1"])
        mock_repository.replace_relations.assert_not_awaited()


class TestInteraction:
    """Tests for dragging, pointer routing and layout parameters."""

    @pytest.mark.asyncio
    async def test_drag_pins_and_releases(self, loaded) -> None:
        start = loaded.simulation.position_of("n1")
        loaded.on_node_drag_start("n1", start)
        assert loaded.simulation.alpha_target == pytest.approx(0.3)

        loaded.on_node_drag_move("n1", (500.0, 400.0))
        assert loaded.simulation.pin_of("n1") == pytest.approx((500.0, 400.0))
        loaded.simulation.tick()
        assert loaded.simulation.position_of("n1") == pytest.approx((500.0, 400.0))

        loaded.on_node_drag_end("n1")
        assert loaded.simulation.alpha_target == 0.0
        assert loaded.simulation.pin_of("n1") is None

    @pytest.mark.asyncio
    async def test_drag_keeps_pin_when_configured(self, loaded, test_settings) -> None:
        test_settings.release_pin_on_drag_end = False
        start = loaded.simulation.position_of("n1")
        loaded.on_node_drag_start("n1", start)
        loaded.on_node_drag_end("n1", (10.0, 10.0))
        assert loaded.simulation.pin_of("n1") == pytest.approx((10.0, 10.0))

    @pytest.mark.asyncio
    async def test_drag_hidden_note_rejected(self, loaded) -> None:
        loaded.set_category_filter("cat-ideas")
        with pytest.raises(ValidationError):
            loaded.on_node_drag_start("n1", (0.0, 0.0))

    @pytest.mark.asyncio
    async def test_pointer_click_on_node_selects(self, loaded) -> None:
        position = loaded.simulation.position_of("n3")
        loaded.on_pointer_down(position, node_id="n3")
        loaded.on_pointer_up(position)
        assert loaded.selection.selected == "n3"
        assert loaded.viewport.transform == IDENTITY

    @pytest.mark.asyncio
    async def test_pointer_background_click_clears(self, loaded) -> None:
        loaded.on_node_click("n1")
        loaded.on_pointer_down((5.0, 5.0))
        loaded.on_pointer_up((5.0, 5.0))
        assert loaded.selection.selected is None

    @pytest.mark.asyncio
    async def test_pointer_background_drag_pans(self, loaded) -> None:
        loaded.on_pointer_down((100.0, 100.0))
        loaded.on_pointer_move((140.0, 100.0))
        loaded.on_pointer_up((140.0, 100.0))
        assert loaded.viewport.transform.x == 40.0

    @pytest.mark.asyncio
    async def test_link_distance_reheats(self, loaded) -> None:
        loaded.simulation.settle()
        assert loaded.set_link_distance(20.0) == 50.0
        assert loaded.simulation.alpha == 1.0

    @pytest.mark.asyncio
    async def test_resize_recentres(self, loaded) -> None:
        loaded.simulation.settle()
        loaded.resize(1000, 500)
        assert (loaded.simulation.center.x, loaded.simulation.center.y) == (500, 250)
        assert loaded.viewport.width == 1000
        assert loaded.simulation.active

    @pytest.mark.asyncio
    async def test_fit_to_view(self, loaded) -> None:
        loaded.simulation.settle()
        target = loaded.fit_to_view(animate=False)
        assert loaded.viewport.transform == target
        bounds = loaded.visible_bounds()
        screen = target.apply(bounds.center)
        assert screen == pytest.approx(loaded.viewport.center)

    @pytest.mark.asyncio
    async def test_fit_empty_is_noop(self, engine) -> None:
        assert engine.fit_to_view() == IDENTITY
        assert not engine.viewport.animating

    @pytest.mark.asyncio
    async def test_zoom_and_pan(self, loaded) -> None:
        loaded.zoom(2.0, (0.0, 0.0))
        loaded.pan(10.0, 0.0)
        assert loaded.viewport.transform.k == 2.0
        assert loaded.viewport.transform.x == 10.0


class TestNotificationsAndLifecycle:
    """Tests for render notifications and the layout loop."""

    @pytest.mark.asyncio
    async def test_events(self, engine) -> None:
        events: list[str] = []
        unsubscribe = engine.subscribe(events.append)

        await engine.reload()
        engine.on_node_click("n1")
        engine.pan(1.0, 1.0)
        unsubscribe()
        engine.pan(1.0, 1.0)

        assert events == ["structure", "selection", "viewport"]

    @pytest.mark.asyncio
    async def test_start_ticks_and_stop_halts(self, loaded) -> None:
        ticks: list[str] = []
        loaded.subscribe(lambda event: ticks.append(event) if event == "tick" else None)

        loaded.start()
        await asyncio.sleep(0.05)
        await loaded.stop()

        count = loaded.simulation.tick_count
        assert count > 0
        assert len(ticks) == count

        loaded.set_link_distance(150.0)
        await asyncio.sleep(0.02)
        assert loaded.simulation.tick_count == count
