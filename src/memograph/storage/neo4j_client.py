"""Neo4j client implementing the note repository."""

import logging
import uuid
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncSession
from neo4j.exceptions import DriverError, Neo4jError

from memograph.config import settings
from memograph.errors import AdapterError, NotFoundError, ValidationError
from memograph.models import Category, Note, NoteDraft, NotePatch, Relation
from memograph.storage.schema import get_all_schema_queries

logger = logging.getLogger(__name__)


class Neo4jClient:
    """Async Neo4j client for memograph note operations."""

    def __init__(
        self,
        uri: str | None = None,
        user: str | None = None,
        password: str | None = None,
        database: str | None = None,
    ) -> None:
        self.uri = uri or settings.neo4j_uri
        self.user = user or settings.neo4j_user
        self.password = password or settings.neo4j_password
        self.database = database or settings.neo4j_database
        self._driver: AsyncDriver | None = None

    async def connect(self) -> None:
        """Establish connection to Neo4j."""
        if self._driver is None:
            self._driver = AsyncGraphDatabase.driver(
                self.uri,
                auth=(self.user, self.password),
            )
            # Verify connectivity
            try:
                await self._driver.verify_connectivity()
                logger.info(f"Connected to Neo4j at {self.uri}")
            except DriverError as e:
                logger.error(f"Failed to connect to Neo4j: {e}")
                raise AdapterError("connect", str(e)) from e

    async def close(self) -> None:
        """Close the database connection."""
        if self._driver is not None:
            await self._driver.close()
            self._driver = None
            logger.info("Disconnected from Neo4j")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session."""
        if self._driver is None:
            await self.connect()
        assert self._driver is not None
        async with self._driver.session(database=self.database) as session:
            yield session

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncGenerator[AsyncSession, None]:
        """Session whose driver failures surface as AdapterError."""
        try:
            async with self.session() as session:
                yield session
        except (Neo4jError, DriverError) as e:
            logger.error(f"{name} failed: {e}")
            raise AdapterError(name, str(e)) from e

    async def setup_schema(self) -> None:
        """Create all constraints and indexes."""
        queries = get_all_schema_queries()
        async with self.session() as session:
            for query in queries:
                try:
                    await session.run(query)
                    logger.debug(f"Executed schema query: {query[:50]}...")
                except Neo4jError as e:
                    # Some indexes might already exist, that's ok
                    logger.warning(f"Schema query warning: {e}")
        logger.info("Schema setup completed")

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def list_notes(self, owner_id: str) -> list[Note]:
        """All notes of an owner, newest first, with category names joined."""
        query = """
        MATCH (n:Note {owner_id: $owner_id})
        OPTIONAL MATCH (n)-[:IN_CATEGORY]->(c:Category)
        RETURN n, c.name AS category_name
        ORDER BY n.created_at DESC
        """
        notes: list[Note] = []
        async with self._operation("list_notes") as session:
            result = await session.run(query, owner_id=owner_id)
            async for record in result:
                data = dict(record["n"])
                data["category_name"] = record["category_name"]
                try:
                    notes.append(Note.from_dict(data))
                except ValidationError as e:
                    logger.warning(f"Skipping stored note: {e}")
        logger.debug(f"Fetched {len(notes)} notes for {owner_id}")
        return notes

    async def list_relations(self, owner_id: str) -> list[Relation]:
        """Every directed relation record between the owner's notes."""
        query = """
        MATCH (s:Note {owner_id: $owner_id})-[r:RELATES_TO]->(t:Note {owner_id: $owner_id})
        RETURN s.id AS source_id, t.id AS target_id, r.created_at AS created_at
        """
        relations: list[Relation] = []
        async with self._operation("list_relations") as session:
            result = await session.run(query, owner_id=owner_id)
            async for record in result:
                try:
                    relations.append(Relation.from_dict(dict(record)))
                except ValidationError as e:
                    logger.warning(f"Skipping stored relation: {e}")
        return relations

    async def list_categories(self, owner_id: str) -> list[Category]:
        query = """
        MATCH (c:Category {owner_id: $owner_id})
        RETURN c
        ORDER BY c.name
        """
        async with self._operation("list_categories") as session:
            result = await session.run(query, owner_id=owner_id)
            return [Category.from_dict(dict(record["c"])) async for record in result]

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def create_note(self, draft: NoteDraft, owner_id: str) -> Note:
        """Create a note in an existing category; assigns id and created_at."""
        note = Note(
            id=str(uuid.uuid4()),
            title=draft.title,
            content=draft.content,
            importance=draft.importance,
            category_id=draft.category_id,
            owner_id=owner_id,
            created_at=datetime.utcnow(),
        )
        query = """
        MATCH (c:Category {id: $category_id})
        CREATE (n:Note $props)-[:IN_CATEGORY]->(c)
        RETURN c.name AS category_name
        """
        async with self._operation("create_note") as session:
            result = await session.run(query, category_id=note.category_id, props=note.to_dict())
            record = await result.single()
        if record is None:
            raise NotFoundError("create_note", f"category {note.category_id} does not exist")
        note.category_name = record["category_name"]
        logger.info(f"Created note {note.id}")
        return note

    async def update_note(self, note_id: str, patch: NotePatch) -> None:
        """Apply a partial update; moves the note if its category changes."""
        props = patch.to_dict()
        props["updated_at"] = datetime.utcnow().isoformat()
        category_query = """
        MATCH (c:Category {id: $category_id})
        RETURN c.id AS id
        """
        query = """
        MATCH (n:Note {id: $id})
        SET n += $props
        RETURN n.id AS id
        """
        move_query = """
        MATCH (n:Note {id: $id})
        MATCH (c:Category {id: $category_id})
        OPTIONAL MATCH (n)-[old:IN_CATEGORY]->()
        DELETE old
        WITH DISTINCT n, c
        MERGE (n)-[:IN_CATEGORY]->(c)
        """
        async with self._operation("update_note") as session:
            if patch.category_id is not None:
                result = await session.run(category_query, category_id=patch.category_id)
                if await result.single() is None:
                    raise NotFoundError(
                        "update_note", f"category {patch.category_id} does not exist"
                    )
            result = await session.run(query, id=note_id, props=props)
            record = await result.single()
            if record is None:
                raise NotFoundError("update_note", f"note {note_id} does not exist")
            if patch.category_id is not None:
                await session.run(move_query, id=note_id, category_id=patch.category_id)

    async def delete_note(self, note_id: str) -> None:
        """Delete a note together with both directions of its relations."""
        query = """
        MATCH (n:Note {id: $id})
        DETACH DELETE n
        RETURN count(*) AS deleted
        """
        async with self._operation("delete_note") as session:
            result = await session.run(query, id=note_id)
            record = await result.single()
        if record is None or record["deleted"] == 0:
            raise NotFoundError("delete_note", f"note {note_id} does not exist")
        logger.info(f"Deleted note {note_id}")

    async def replace_relations(self, note_id: str, target_ids: Sequence[str]) -> None:
        """Delete every relation of a note, then insert both directions per target."""
        delete_query = """
        MATCH (n:Note {id: $id})-[r:RELATES_TO]-()
        DELETE r
        """
        insert_query = """
        MATCH (n:Note {id: $id})
        UNWIND $targets AS target_id
        MATCH (t:Note {id: target_id, owner_id: n.owner_id})
        WHERE t.id <> n.id
        MERGE (n)-[a:RELATES_TO]->(t)
        ON CREATE SET a.created_at = $now
        MERGE (t)-[b:RELATES_TO]->(n)
        ON CREATE SET b.created_at = $now
        """
        async with self._operation("replace_relations") as session:
            await session.run(delete_query, id=note_id)
            if target_ids:
                await session.run(
                    insert_query,
                    id=note_id,
                    targets=list(target_ids),
                    now=datetime.utcnow().isoformat(),
                )
        logger.debug(f"Replaced relations of {note_id} with {len(target_ids)} targets")

    # ==========================================================================
    # Utility operations
    # ==========================================================================

    async def execute_query(self, query: str, **params: Any) -> list[dict[str, Any]]:
        """Execute a raw Cypher query."""
        results: list[dict[str, Any]] = []
        async with self._operation("execute_query") as session:
            result = await session.run(query, **params)
            async for record in result:
                results.append(dict(record))
        return results


# Global client instance
_client: Neo4jClient | None = None


async def get_client() -> Neo4jClient:
    """Get or create the global Neo4j client."""
    global _client
    if _client is None:
        _client = Neo4jClient()
        await _client.connect()
    return _client


async def close_client() -> None:
    """Close the global Neo4j client."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None
