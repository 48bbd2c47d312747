"""Neo4j schema setup - constraints, indexes, and graph structure."""

# Schema setup queries
SCHEMA_QUERIES = [
    # Uniqueness constraints
    "CREATE CONSTRAINT note_id IF NOT EXISTS FOR (n:Note) REQUIRE n.id IS UNIQUE",
    "CREATE CONSTRAINT category_id IF NOT EXISTS FOR (c:Category) REQUIRE c.id IS UNIQUE",
    # Owner scoping
    "CREATE INDEX note_owner IF NOT EXISTS FOR (n:Note) ON (n.owner_id)",
    "CREATE INDEX category_owner IF NOT EXISTS FOR (c:Category) ON (c.owner_id)",
    "CREATE INDEX note_created IF NOT EXISTS FOR (n:Note) ON (n.created_at)",
]

# Relationship types used in the graph:
# (n:Note)-[:IN_CATEGORY]->(c:Category)
# (a:Note)-[:RELATES_TO {created_at}]->(b:Note)   always paired with (b)-[:RELATES_TO]->(a)


def get_all_schema_queries() -> list[str]:
    """Get all schema setup queries."""
    return SCHEMA_QUERIES.copy()
