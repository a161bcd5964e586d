"""CRUD operations for knowledge entries."""

import logging
from datetime import UTC, datetime

from knowledge_engine.config import get_author, get_default_branch, get_stable_branch
from knowledge_engine.db.backend import Database
from knowledge_engine.db.queries import (
    get_active_entries,
    get_all_active_entry_ids,
    get_entry,
    insert_entry,
    set_active,
    set_branch,
    update_entry,
)
from knowledge_engine.models.entry import (
    Citation,
    DecisionScope,
    KnowledgeCategory,
    KnowledgeEntry,
    KnowledgeSource,
    TicketType,
    clamp_confidence,
)
from knowledge_engine.search.embeddings import Embedder
from knowledge_engine.store.ids import generate_id

logger = logging.getLogger(__name__)


class KnowledgeStore:
    """CRUD operations for knowledge entries.

    When an embedder is attached, embeddings are computed on create and
    recomputed whenever title, content or tags change. Embedding failures
    propagate: an entry is never written with a stale vector.
    """

    def __init__(self, db: Database, embedder: Embedder | None = None):
        """Initialize with a database connection and optional embedder."""
        self.db = db
        self.embedder = embedder

    async def create_entry(
        self,
        title: str,
        content: str,
        namespace: str = "global",
        category: KnowledgeCategory | None = None,
        tags: list[str] | None = None,
        source: KnowledgeSource | None = None,
        origin_ticket_id: str | None = None,
        origin_ticket_type: TicketType | None = None,
        confidence: float = 0.8,
        decision_scope: DecisionScope = DecisionScope.GLOBAL,
        citations: list[Citation] | None = None,
        author: str | None = None,
        branch: str | None = None,
    ) -> KnowledgeEntry:
        """Create a new knowledge entry."""
        now = datetime.now(UTC)
        if source is None:
            source = KnowledgeSource.TICKET if origin_ticket_id else KnowledgeSource.MANUAL

        entry = KnowledgeEntry(
            id=generate_id("KNOWLEDGE"),
            namespace=namespace,
            title=title,
            content=content,
            category=category,
            tags=tags or [],
            source=source,
            origin_ticket_id=origin_ticket_id,
            origin_ticket_type=origin_ticket_type,
            confidence=clamp_confidence(confidence),
            decision_scope=decision_scope,
            citations=citations or [],
            author=author or get_author(),
            branch=branch or get_default_branch(),
            created_at=now,
            updated_at=now,
        )
        if self.embedder is not None:
            entry.embedding = await self.embedder.embed(entry.embedding_text)

        await insert_entry(self.db, entry)
        logger.info("Created entry %s: %s", entry.id, title)
        return entry

    async def update_entry(
        self,
        entry_id: str,
        title: str | None = None,
        content: str | None = None,
        tags: list[str] | None = None,
        category: KnowledgeCategory | None = None,
        confidence: float | None = None,
        decision_scope: DecisionScope | None = None,
        namespace: str | None = None,
    ) -> KnowledgeEntry:
        """Update an existing entry. Re-embeds when title, content or tags change."""
        existing = await get_entry(self.db, entry_id)
        if existing is None:
            raise ValueError(f"Knowledge {entry_id} not found")
        if not existing.active:
            raise ValueError(f"Knowledge {entry_id} is inactive and cannot be updated")

        changes: dict[str, object] = {"updated_at": datetime.now(UTC)}
        if title is not None:
            changes["title"] = title
        if content is not None:
            changes["content"] = content
        if tags is not None:
            changes["tags"] = tags
        if category is not None:
            changes["category"] = category
        if confidence is not None:
            changes["confidence"] = clamp_confidence(confidence)
        if decision_scope is not None:
            changes["decision_scope"] = decision_scope
        if namespace is not None:
            changes["namespace"] = namespace

        updated = existing.model_copy(update=changes)
        if updated.embedding_text != existing.embedding_text or not existing.has_embedding:
            if self.embedder is not None:
                updated.embedding = await self.embedder.embed(updated.embedding_text)
            elif updated.embedding_text != existing.embedding_text:
                updated.embedding = None  # Stale vector; needs re-embedding

        await update_entry(self.db, updated)
        logger.info("Updated entry %s", entry_id)
        return updated

    async def update_citations(self, entry_id: str, citations: list[Citation]) -> KnowledgeEntry:
        """Replace an entry's citations. The only path that changes recorded file hashes."""
        existing = await get_entry(self.db, entry_id)
        if existing is None:
            raise ValueError(f"Knowledge {entry_id} not found")
        updated = existing.model_copy(
            update={"citations": citations, "updated_at": datetime.now(UTC)}
        )
        await update_entry(self.db, updated)
        logger.info("Updated %d citation(s) on %s", len(citations), entry_id)
        return updated

    async def get_entry(self, entry_id: str) -> KnowledgeEntry | None:
        """Get a single entry by ID."""
        return await get_entry(self.db, entry_id)

    async def get_active_entries(self) -> list[KnowledgeEntry]:
        """All active entries ordered by ID."""
        return await get_active_entries(self.db)

    async def deactivate_entry(self, entry_id: str) -> KnowledgeEntry:
        """Soft-delete an entry. It drops out of retrieval and maintenance."""
        return await self._set_active(entry_id, False)

    async def activate_entry(self, entry_id: str) -> KnowledgeEntry:
        """Undo a deactivation."""
        return await self._set_active(entry_id, True)

    async def promote_entry(self, entry_id: str) -> KnowledgeEntry:
        """Move an entry from its working branch to the stable branch marker."""
        if not await set_branch(self.db, entry_id, get_stable_branch()):
            raise ValueError(f"Knowledge {entry_id} not found")
        entry = await get_entry(self.db, entry_id)
        if entry is None:
            raise ValueError(f"Knowledge {entry_id} not found")
        logger.info("Promoted entry %s to %s", entry_id, entry.branch)
        return entry

    async def rebuild_embeddings(self, force: bool = False) -> tuple[int, int]:
        """Embed active entries missing a vector (all of them with ``force``).

        Returns (succeeded, failed). Failures are logged per entry.
        """
        if self.embedder is None:
            raise RuntimeError("No embedding model configured")

        succeeded = 0
        failed = 0
        for eid in await get_all_active_entry_ids(self.db):
            entry = await get_entry(self.db, eid)
            if entry is None or (entry.has_embedding and not force):
                continue
            try:
                entry.embedding = await self.embedder.embed(entry.embedding_text)
                await update_entry(self.db, entry)
                succeeded += 1
            except Exception:
                logger.warning("Failed to embed %s", eid, exc_info=True)
                failed += 1
        return succeeded, failed

    async def _set_active(self, entry_id: str, active: bool) -> KnowledgeEntry:
        if not await set_active(self.db, entry_id, active):
            raise ValueError(f"Knowledge {entry_id} not found")
        entry = await get_entry(self.db, entry_id)
        if entry is None:
            raise ValueError(f"Knowledge {entry_id} not found")
        logger.info("%s entry %s", "Activated" if active else "Deactivated", entry_id)
        return entry
