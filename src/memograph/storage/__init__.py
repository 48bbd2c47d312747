"""Persistence adapters for notes, categories and relations."""

from memograph.storage.base import NoteRepository
from memograph.storage.neo4j_client import Neo4jClient, close_client, get_client

__all__ = [
    "NoteRepository",
    "Neo4jClient",
    "get_client",
    "close_client",
]
