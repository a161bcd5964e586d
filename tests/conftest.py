"""Shared test fixtures."""

import hashlib
import math
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest_asyncio

from knowledge_engine.confidence.maintenance import ConfidenceMaintainer
from knowledge_engine.db.connection import create_connection
from knowledge_engine.db.queries import insert_entry
from knowledge_engine.models.entry import KnowledgeEntry
from knowledge_engine.search.embeddings import EmbeddingError
from knowledge_engine.search.retrieval import RetrievalEngine
from knowledge_engine.store.knowledge_store import KnowledgeStore
from knowledge_engine.store.usage import UsageTracker

TEST_DIM = 8


def vec(*components: float, dim: int = TEST_DIM) -> list[float]:
    """Build a test vector from leading components, zero-padded to ``dim``."""
    values = list(components) + [0.0] * (dim - len(components))
    return values[:dim]


class FakeEmbedder:
    """Deterministic fake embedder for testing.

    Registered texts map to fixed vectors; anything else gets a vector
    derived from a SHA-256 of the text, so identical texts always get
    identical vectors.
    """

    def __init__(self, dim: int = TEST_DIM):
        self.dim = dim
        self.vectors: dict[str, list[float]] = {}
        self.fail = False
        self.calls: list[tuple[str, bool]] = []

    def register(self, text: str, vector: list[float]) -> None:
        self.vectors[text] = vector

    async def is_available(self) -> bool:
        return not self.fail

    async def embed(self, text: str, *, is_query: bool = False) -> list[float]:
        self.calls.append((text, is_query))
        if self.fail:
            raise EmbeddingError("fake embedder offline")
        if text in self.vectors:
            return self.vectors[text]
        digest = hashlib.sha256(text.encode()).digest()
        raw = [(digest[i % len(digest)] / 255.0) * 2 - 1 for i in range(self.dim)]
        norm = math.sqrt(sum(v * v for v in raw)) or 1.0
        return [v / norm for v in raw]

    async def close(self) -> None:
        pass


def make_entry(entry_id: str, embedding: list[float] | None = None, **kwargs) -> KnowledgeEntry:
    """Build an entry with sensible defaults for direct insertion."""
    now = datetime.now(UTC)
    defaults: dict[str, object] = {
        "id": entry_id,
        "title": f"Entry {entry_id}",
        "content": f"Content for {entry_id}",
        "embedding": embedding,
        "created_at": now,
        "updated_at": now,
    }
    defaults.update(kwargs)
    return KnowledgeEntry(**defaults)


async def add_entry(db, entry_id: str, embedding: list[float] | None = None, **kwargs):
    """Insert an entry built by make_entry and return it."""
    entry = make_entry(entry_id, embedding, **kwargs)
    await insert_entry(db, entry)
    return entry


@pytest_asyncio.fixture
async def db():
    """In-memory database with full schema and sqlite-vec."""
    conn = await create_connection(":memory:", embedding_dim=TEST_DIM)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def scan_db():
    """In-memory database without the vector index."""
    conn = await create_connection(":memory:", embedding_dim=TEST_DIM, enable_vec=False)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def fake_embedder():
    """Fake embedding client for tests."""
    return FakeEmbedder()


@pytest_asyncio.fixture
async def store(db, fake_embedder):
    """Knowledge store backed by in-memory DB and the fake embedder."""
    return KnowledgeStore(db, fake_embedder)


def capture_tools(register) -> dict:
    """Run a register_* function against a mock server and return the tool functions."""
    tools = {}

    def capture_tool():
        def decorator(func):
            tools[func.__name__] = func
            return func

        return decorator

    mcp = MagicMock()
    mcp.tool = capture_tool
    register(mcp)
    return tools


@pytest_asyncio.fixture
async def tool_context(db, fake_embedder, tmp_path):
    """Mock MCP context carrying the same lifespan objects as the server."""
    store = KnowledgeStore(db, fake_embedder)
    tracker = UsageTracker(db)
    lifespan = {
        "db": db,
        "store": store,
        "embedder": fake_embedder,
        "tracker": tracker,
        "engine": RetrievalEngine(db, fake_embedder, tracker),
        "maintainer": ConfidenceMaintainer(db, tmp_path),
        "project_root": tmp_path,
    }
    ctx = MagicMock()
    ctx.lifespan_context = lifespan
    return ctx, lifespan
