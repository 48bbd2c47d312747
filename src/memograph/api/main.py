"""FastAPI application for the Memograph API.

Serves one owner's memory graph: the engine is built, loaded and started
on startup and stopped on shutdown.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from memograph import __version__
from memograph.api.routes import router
from memograph.config import settings
from memograph.engine import MemoryGraphEngine
from memograph.storage.neo4j_client import Neo4jClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan - startup and shutdown."""
    # Startup
    logger.info("Starting Memograph API...")

    db = Neo4jClient()
    await db.connect()
    await db.setup_schema()
    logger.info("Connected to Neo4j")

    engine = MemoryGraphEngine(db, owner_id=settings.owner_id)
    rejected = await engine.reload()
    if rejected:
        logger.warning(f"Skipped {len(rejected)} invalid records while loading")
    engine.start()

    app.state.db = db
    app.state.engine = engine

    yield

    # Shutdown
    logger.info("Shutting down Memograph API...")
    await engine.stop()
    await db.close()
    logger.info("Disconnected from Neo4j")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Memograph",
        description="Interactive memory graph with force layout and live search",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "memograph.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
