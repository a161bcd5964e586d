"""FastMCP server with lifespan management and tool registration."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from knowledge_engine.config import (
    get_db_path,
    get_embedding_dim,
    get_log_level,
    get_maintenance_workers,
    get_project_root,
    is_decay_guard_enabled,
    is_manager_mode,
)
from knowledge_engine.confidence.maintenance import ConfidenceMaintainer
from knowledge_engine.db.connection import create_connection
from knowledge_engine.search.embeddings import EmbeddingClient
from knowledge_engine.search.retrieval import RetrievalEngine
from knowledge_engine.store.knowledge_store import KnowledgeStore
from knowledge_engine.store.usage import UsageTracker
from knowledge_engine.tools.kb_get import register_kb_get
from knowledge_engine.tools.kb_maintain import register_kb_maintain
from knowledge_engine.tools.kb_search import register_kb_search
from knowledge_engine.tools.kb_store import register_kb_store


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage database connection and embedding client lifecycle."""
    # Configure logging to stderr (stdout is MCP stdio transport)
    logging.basicConfig(
        level=getattr(logging, get_log_level()),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    db_path = get_db_path()
    logger.info("Opening database at %s", db_path)
    db = await create_connection(db_path, embedding_dim=get_embedding_dim())

    embedder = EmbeddingClient()
    store = KnowledgeStore(db, embedder)
    tracker = UsageTracker(db)
    engine = RetrievalEngine(db, embedder, tracker)
    project_root = get_project_root()
    maintainer = ConfidenceMaintainer(
        db,
        project_root,
        max_workers=get_maintenance_workers(),
        decay_guard=is_decay_guard_enabled(),
    )

    # Pre-check Ollama availability (non-blocking, just logs)
    if await embedder.is_available():
        logger.info("Ollama available; semantic search enabled")
    else:
        logger.warning("Ollama unavailable; search and store will fail until it is reachable")

    try:
        yield {
            "db": db,
            "store": store,
            "embedder": embedder,
            "tracker": tracker,
            "engine": engine,
            "maintainer": maintainer,
            "project_root": project_root,
        }
    finally:
        await embedder.close()
        await db.close()
        logger.info("Database connection closed")


_INSTRUCTIONS = """\
This server holds the knowledge an AI agent accumulates while working tickets \
in a repository: patterns, verified truths, principles, architecture notes and \
gotchas, each optionally citing the source files it was learned from.

- kb_search: Semantic search. Filter by namespace, category, ticket_type, tags \
(any match), author, or branch. Set with_stable=True to search your working \
branch together with the stable branch.
- kb_get: Full details for one or more entry IDs, including provenance, \
usage and citations.
- kb_store: Create or update an entry. Pass citations as path:line; the cited \
files are hashed so later validation can detect drift.

Confidence rises with use and decays when entries go unused or their cited \
files disappear. Managers can run kb_maintain to recalculate confidence, \
validate citations, list and health-check entries, and promote entries to \
the stable branch.
"""


def create_server() -> FastMCP:
    """Create and configure the MCP server with all tools."""
    mcp = FastMCP(
        "knowledge-engine",
        instructions=_INSTRUCTIONS,
        lifespan=lifespan,
    )

    register_kb_store(mcp)
    register_kb_search(mcp)
    register_kb_get(mcp)

    if is_manager_mode():
        register_kb_maintain(mcp)

    return mcp
