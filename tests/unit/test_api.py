"""Unit tests for API endpoints."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from memograph.api.main import create_app
from memograph.api.routes import (
    CreateNoteRequest,
    DragRequest,
    HealthResponse,
    UpdateNoteRequest,
)
from memograph.errors import AdapterError


@pytest.fixture
def client(mock_repository):
    """Test client whose lifespan connects to the mock repository."""
    with (
        patch("memograph.api.main.Neo4jClient") as mock_client_cls,
        patch("memograph.api.main.settings.owner_id", "test-owner"),
    ):
        mock_client_cls.return_value = mock_repository
        app = create_app()
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client


class TestRequestModels:
    """Tests for request/response models."""

    def test_create_note_request_defaults(self) -> None:
        req = CreateNoteRequest(content="Body", category_id="c1")
        assert req.title == ""
        assert req.importance == 1
        assert req.related_ids == []

    def test_update_note_request_all_optional(self) -> None:
        req = UpdateNoteRequest()
        assert req.related_ids is None

    def test_drag_request_phase(self) -> None:
        with pytest.raises(ValueError):
            DragRequest(note_id="n1", phase="fling", x=0, y=0)

    def test_health_response(self) -> None:
        resp = HealthResponse(status="healthy", neo4j_connected=True)
        assert resp.version == "0.1.0"


class TestLifespan:
    """Tests for startup and shutdown."""

    def test_startup_loads_and_shutdown_closes(self, mock_repository) -> None:
        with (
            patch("memograph.api.main.Neo4jClient") as mock_client_cls,
            patch("memograph.api.main.settings.owner_id", "test-owner"),
        ):
            mock_client_cls.return_value = mock_repository
            with TestClient(create_app()) as test_client:
                assert test_client.app.state.engine.runner.running
            mock_repository.connect.assert_awaited_once()
            mock_repository.setup_schema.assert_awaited_once()
            mock_repository.list_notes.assert_awaited_once_with("test-owner")
            mock_repository.close.assert_awaited_once()


class TestHealth:
    """Tests for /health."""

    def test_healthy(self, client) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_degraded(self, client, mock_repository) -> None:
        mock_repository.execute_query.side_effect = AdapterError("execute_query", "down")
        data = client.get("/health").json()
        assert data["status"] == "degraded"
        assert data["neo4j_connected"] is False


class TestGraphEndpoints:
    """Tests for /graph endpoints."""

    def test_get_graph(self, client) -> None:
        data = client.get("/graph").json()
        assert {node["id"] for node in data["nodes"]} == {"n1", "n2", "n3", "n4"}
        assert len(data["edges"]) == 2
        assert data["transform"] == {"x": 0.0, "y": 0.0, "k": 1.0}

    def test_select_and_clear(self, client) -> None:
        data = client.post("/graph/select", json={"note_id": "n2"}).json()
        emphasized = {node["id"] for node in data["nodes"] if node["emphasized"]}
        assert data["selected"] == "n2"
        assert emphasized == {"n1", "n2", "n4"}

        data = client.post("/graph/select", json={}).json()
        assert data["selected"] is None

    def test_category_filter(self, client) -> None:
        data = client.post("/graph/category", json={"category_id": "cat-ideas"}).json()
        assert [node["id"] for node in data["nodes"]] == ["n4"]
        assert data["category_filter"] == "cat-ideas"

    def test_unknown_category_is_422(self, client) -> None:
        response = client.post("/graph/category", json={"category_id": "nope"})
        assert response.status_code == 422

    def test_distance_clamped(self, client) -> None:
        data = client.post("/graph/distance", json={"distance": 500}).json()
        assert data["link_distance"] == 200.0

    def test_resize_validates(self, client) -> None:
        assert client.post("/graph/resize", json={"width": 0, "height": 10}).status_code == 422
        assert client.post("/graph/resize", json={"width": 900, "height": 600}).status_code == 200

    def test_zoom_and_pan(self, client) -> None:
        client.post("/graph/zoom", json={"factor": 2, "x": 0, "y": 0})
        data = client.post("/graph/pan", json={"dx": 5, "dy": -5}).json()
        assert data["transform"] == {"x": 5.0, "y": -5.0, "k": 2.0}

    def test_fit(self, client) -> None:
        response = client.post("/graph/fit", json={"animate": False})
        assert response.status_code == 200

    def test_drag_cycle(self, client) -> None:
        client.post("/graph/drag", json={"note_id": "n1", "phase": "start", "x": 0, "y": 0})
        data = client.post(
            "/graph/drag", json={"note_id": "n1", "phase": "move", "x": 10, "y": 10}
        ).json()
        assert next(n for n in data["nodes"] if n["id"] == "n1")["pinned"] is True

        data = client.post(
            "/graph/drag", json={"note_id": "n1", "phase": "end", "x": 10, "y": 10}
        ).json()
        assert next(n for n in data["nodes"] if n["id"] == "n1")["pinned"] is False

    def test_drag_unknown_note_is_422(self, client) -> None:
        response = client.post(
            "/graph/drag", json={"note_id": "ghost", "phase": "start", "x": 0, "y": 0}
        )
        assert response.status_code == 422

    def test_reload(self, client) -> None:
        data = client.post("/graph/reload").json()
        assert data == {"notes_count": 4, "relations_count": 2, "rejected": []}

    def test_reload_failure_is_502(self, client, mock_repository) -> None:
        mock_repository.list_notes.side_effect = AdapterError("list_notes", "down")
        assert client.post("/graph/reload").status_code == 502


class TestNoteEndpoints:
    """Tests for /notes endpoints."""

    def test_search(self, client) -> None:
        data = client.get("/notes/search", params={"q": "DOCKER"}).json()
        assert [note["id"] for note in data] == ["n1", "n2"]
        assert data[0]["related_ids"] == ["n2"]

    def test_search_empty_returns_all(self, client) -> None:
        assert len(client.get("/notes/search").json()) == 4

    def test_create(self, client, mock_repository, note_factory) -> None:
        mock_repository.create_note.return_value = note_factory("n5", title="New")
        response = client.post(
            "/notes",
            json={"content": "Body", "category_id": "cat-work", "related_ids": ["n1", "ghost"]},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["note"]["id"] == "n5"
        assert data["note"]["related_ids"] == ["n1"]
        assert len(data["rejected"]) == 1

    def test_create_invalid_is_422(self, client, mock_repository) -> None:
        response = client.post("/notes", json={"content": "x", "category_id": "c", "importance": 7})
        assert response.status_code == 422
        mock_repository.create_note.assert_not_awaited()

    def test_update(self, client) -> None:
        response = client.patch("/notes/n3", json={"title": "Shopping", "related_ids": ["n4"]})
        data = response.json()
        assert data["note"]["title"] == "Shopping"
        assert data["note"]["related_ids"] == ["n4"]

    def test_update_to_unknown_category_is_422(self, client, mock_repository) -> None:
        response = client.patch("/notes/n1", json={"category_id": "no-such-category"})
        assert response.status_code == 422
        mock_repository.update_note.assert_not_awaited()

    def test_update_unknown_is_404(self, client) -> None:
        assert client.patch("/notes/ghost", json={"title": "x"}).status_code == 404

    def test_delete(self, client, mock_repository) -> None:
        assert client.delete("/notes/n2").status_code == 204
        mock_repository.delete_note.assert_awaited_once_with("n2")
        ids = {node["id"] for node in client.get("/graph").json()["nodes"]}
        assert "n2" not in ids

    def test_delete_storage_failure_is_502(self, client, mock_repository) -> None:
        mock_repository.delete_note.side_effect = AdapterError("delete_note", "denied")
        assert client.delete("/notes/n2").status_code == 502
        ids = {node["id"] for node in client.get("/graph").json()["nodes"]}
        assert "n2" in ids

    def test_replace_relations(self, client, mock_repository) -> None:
        response = client.put("/notes/n1/relations", json={"target_ids": ["n3", "n1"]})
        data = response.json()
        mock_repository.replace_relations.assert_awaited_once_with("n1", ["n3"])
        assert data["note"]["related_ids"] == ["n3"]
        assert len(data["rejected"]) == 1


class TestChatEndpoints:
    """Tests for turning a conversation into a note."""

    MESSAGES = [
        {"role": "user", "content": "How do I pin a node?"},
        {"role": "assistant", "content": "Drag it."},
        {"role": "user", "content": "Thanks"},
    ]

    def test_excerpt_keeps_trailing_messages(self, client) -> None:
        data = client.post("/chat/excerpt", json={"messages": self.MESSAGES, "limit": 2}).json()
        assert data == {"excerpt": "assistant: Drag it.\n\nuser: Thanks", "message_count": 2}

    def test_excerpt_rejects_unknown_role(self, client) -> None:
        response = client.post(
            "/chat/excerpt", json={"messages": [{"role": "system", "content": "x"}]}
        )
        assert response.status_code == 422

    def test_create_from_summary(self, client, mock_repository, note_factory) -> None:
        mock_repository.create_note.return_value = note_factory("n5", title="Pinning")
        response = client.post(
            "/notes/from-chat",
            json={
                "messages": self.MESSAGES,
                "summary": "  Drag a node to pin it.  ",
                "title": " Pinning ",
                "category_id": "cat-work",
                "related_ids": ["n1", "n1"],
            },
        )
        assert response.status_code == 201
        draft = mock_repository.create_note.await_args.args[0]
        assert draft.content == "Drag a node to pin it."
        assert draft.title == "Pinning"
        assert draft.related_ids == ["n1"]
        assert response.json()["note"]["related_ids"] == ["n1"]

    def test_create_without_summary_uses_excerpt(self, client, mock_repository, note_factory) -> None:
        mock_repository.create_note.return_value = note_factory("n5")
        client.post("/notes/from-chat", json={"messages": self.MESSAGES, "category_id": "cat-work"})
        draft = mock_repository.create_note.await_args.args[0]
        assert draft.content.startswith("user: How do I pin a node?")
        assert draft.title == ""

    def test_create_from_empty_chat_is_422(self, client, mock_repository) -> None:
        response = client.post("/notes/from-chat", json={"category_id": "cat-work"})
        assert response.status_code == 422
        mock_repository.create_note.assert_not_awaited()
