"""Tests for the knowledge store."""

import pytest

from knowledge_engine.db.queries import get_entry
from knowledge_engine.models.entry import (
    Citation,
    DecisionScope,
    KnowledgeCategory,
    KnowledgeSource,
    TicketType,
)
from knowledge_engine.search.embeddings import EmbeddingError
from knowledge_engine.store.knowledge_store import KnowledgeStore
from tests.conftest import add_entry, vec


@pytest.mark.asyncio
async def test_create_entry(store, db, fake_embedder):
    entry = await store.create_entry(
        title="Retry idempotent calls",
        content="Wrap outbound HTTP calls in a retry with jitter.",
        namespace="api",
        category=KnowledgeCategory.PATTERN,
        tags=["http", "retry"],
    )

    assert entry.id.startswith("KNOWLEDGE-")
    assert entry.confidence == 0.8
    assert entry.source == KnowledgeSource.MANUAL
    assert entry.branch == "draft"
    assert entry.usage_count == 0
    assert entry.active is True
    assert entry.embedding is not None
    assert fake_embedder.calls == [
        (
            "Retry idempotent calls Wrap outbound HTTP calls in a retry with jitter. http retry",
            False,
        )
    ]

    stored = await get_entry(db, entry.id)
    assert stored is not None
    assert stored.title == "Retry idempotent calls"
    assert stored.tags == ["http", "retry"]
    assert stored.has_embedding


@pytest.mark.asyncio
async def test_create_from_ticket_defaults_source(store):
    entry = await store.create_entry(
        title="Null check",
        content="The parser returns None on empty input.",
        origin_ticket_id="TICKET-42",
        origin_ticket_type=TicketType.BUGFIX,
        decision_scope=DecisionScope.NEW_ONLY,
    )
    assert entry.source == KnowledgeSource.TICKET
    assert entry.origin_ticket_type == TicketType.BUGFIX
    assert entry.decision_scope == DecisionScope.NEW_ONLY


@pytest.mark.asyncio
async def test_create_clamps_confidence(store):
    high = await store.create_entry(title="a", content="b", confidence=5.0)
    low = await store.create_entry(title="c", content="d", confidence=0.0)
    assert high.confidence == 1.0
    assert low.confidence == 0.1


@pytest.mark.asyncio
async def test_create_uses_configured_author_and_branch(store, monkeypatch):
    monkeypatch.setenv("KE_AUTHOR", "dana")
    monkeypatch.setenv("KE_BRANCH", "feature-x")

    entry = await store.create_entry(title="a", content="b")
    assert entry.author == "dana"
    assert entry.branch == "feature-x"

    explicit = await store.create_entry(title="c", content="d", author="lee", branch="main")
    assert explicit.author == "lee"
    assert explicit.branch == "main"


@pytest.mark.asyncio
async def test_create_without_embedder(db):
    entry = await KnowledgeStore(db).create_entry(title="a", content="b")
    assert entry.embedding is None


@pytest.mark.asyncio
async def test_create_fails_when_embedding_fails(store, db, fake_embedder):
    fake_embedder.fail = True
    with pytest.raises(EmbeddingError, match="offline"):
        await store.create_entry(title="a", content="b")

    cursor = await db.execute("SELECT COUNT(*) FROM knowledge")
    assert (await cursor.fetchone())[0] == 0


@pytest.mark.asyncio
async def test_update_reembeds_on_content_change(store, fake_embedder):
    entry = await store.create_entry(title="Title", content="Old content")
    fake_embedder.calls.clear()

    updated = await store.update_entry(entry.id, content="New content", confidence=0.95)

    assert updated.content == "New content"
    assert updated.confidence == 0.95
    assert fake_embedder.calls == [("Title New content", False)]
    assert updated.embedding != entry.embedding


@pytest.mark.asyncio
async def test_update_metadata_only_keeps_embedding(store, db, fake_embedder):
    entry = await store.create_entry(title="Title", content="Content")
    before = await get_entry(db, entry.id)
    fake_embedder.calls.clear()

    updated = await store.update_entry(entry.id, category=KnowledgeCategory.TRUTH)

    assert updated.category == KnowledgeCategory.TRUTH
    assert fake_embedder.calls == []
    assert (await get_entry(db, entry.id)).embedding == before.embedding


@pytest.mark.asyncio
async def test_update_preserves_usage(store, db):
    entry = await store.create_entry(title="Title", content="Content")
    await db.execute("UPDATE knowledge SET usage_count = 7 WHERE id = ?", (entry.id,))
    await db.commit()

    await store.update_entry(entry.id, content="Changed")

    assert (await get_entry(db, entry.id)).usage_count == 7


@pytest.mark.asyncio
async def test_update_without_embedder_clears_stale_vector(db):
    await add_entry(db, "K-001", vec(1), title="Old", content="Body")
    store = KnowledgeStore(db)

    updated = await store.update_entry("K-001", title="New")

    assert updated.embedding is None
    assert (await get_entry(db, "K-001")).embedding is None


@pytest.mark.asyncio
async def test_update_missing_entry(store):
    with pytest.raises(ValueError, match="not found"):
        await store.update_entry("KNOWLEDGE-nope", content="x")


@pytest.mark.asyncio
async def test_update_inactive_entry_rejected(store):
    entry = await store.create_entry(title="a", content="b")
    await store.deactivate_entry(entry.id)
    with pytest.raises(ValueError, match="inactive"):
        await store.update_entry(entry.id, content="c")


@pytest.mark.asyncio
async def test_update_citations_replaces_hashes(store, db):
    entry = await store.create_entry(
        title="a",
        content="b",
        citations=[Citation(path="src/a.py:1", file_hash="aaaaaaaaaaaaaaaa")],
    )

    await store.update_citations(
        entry.id, [Citation(path="src/a.py:1", file_hash="bbbbbbbbbbbbbbbb")]
    )

    stored = await get_entry(db, entry.id)
    assert [c.file_hash for c in stored.citations] == ["bbbbbbbbbbbbbbbb"]


@pytest.mark.asyncio
async def test_deactivate_and_activate(store):
    entry = await store.create_entry(title="a", content="b")

    assert (await store.deactivate_entry(entry.id)).active is False
    assert await store.get_active_entries() == []
    assert (await store.activate_entry(entry.id)).active is True
    assert [e.id for e in await store.get_active_entries()] == [entry.id]


@pytest.mark.asyncio
async def test_lifecycle_missing_entry(store):
    with pytest.raises(ValueError, match="not found"):
        await store.deactivate_entry("KNOWLEDGE-nope")
    with pytest.raises(ValueError, match="not found"):
        await store.promote_entry("KNOWLEDGE-nope")


@pytest.mark.asyncio
async def test_promote_moves_to_stable_branch(store, monkeypatch):
    monkeypatch.setenv("KE_STABLE_BRANCH", "trunk")
    entry = await store.create_entry(title="a", content="b", branch="feature-x")

    promoted = await store.promote_entry(entry.id)

    assert promoted.branch == "trunk"


@pytest.mark.asyncio
async def test_rebuild_embeddings(db, fake_embedder):
    await add_entry(db, "K-001", None)
    await add_entry(db, "K-002", vec(1))
    await add_entry(db, "K-003", None, active=False)
    store = KnowledgeStore(db, fake_embedder)

    assert await store.rebuild_embeddings() == (1, 0)
    assert (await get_entry(db, "K-001")).has_embedding
    assert not (await get_entry(db, "K-003")).has_embedding

    assert await store.rebuild_embeddings(force=True) == (2, 0)


@pytest.mark.asyncio
async def test_rebuild_embeddings_counts_failures(db, fake_embedder):
    await add_entry(db, "K-001", None)
    fake_embedder.fail = True

    assert await KnowledgeStore(db, fake_embedder).rebuild_embeddings() == (0, 1)


@pytest.mark.asyncio
async def test_rebuild_embeddings_requires_embedder(db):
    with pytest.raises(RuntimeError):
        await KnowledgeStore(db).rebuild_embeddings()
