"""Semantic retrieval over knowledge entries.

Two strategies produce the same ranking:

- ``indexed``: over-fetch ``2 * limit`` nearest neighbours from the sqlite-vec
  index (which knows nothing about filters), then filter and rank.
- ``scan``: pre-filter rows in SQL and rank every remaining candidate.

Both hand their candidates to ``rank_candidates``, which applies the canonical
FilterSpec predicate, recomputes cosine distance from the stored row embedding,
sorts by ``(distance, id)``, truncates to ``limit`` and then drops results
below ``min_score``. The index only decides which rows are considered.

A call starts in the indexed state and moves to scan at most once, on any
index failure. It never goes back.
"""

import logging
import math

from knowledge_engine.db.backend import Database, IndexUnavailableError
from knowledge_engine.db.queries import get_entries, scan_candidates
from knowledge_engine.models.entry import KnowledgeEntry
from knowledge_engine.models.search import FilterSpec, SearchResponse, SearchResult
from knowledge_engine.search.embeddings import Embedder, EmbeddingError
from knowledge_engine.search.similarity import cosine_distance
from knowledge_engine.store.usage import UsageTracker

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
OVERFETCH_FACTOR = 2


def normalize_limit(limit: float | None) -> int:
    """Clamp a requested limit to [1, MAX_LIMIT]; invalid values become DEFAULT_LIMIT."""
    if limit is None or not math.isfinite(limit) or limit < 1:
        return DEFAULT_LIMIT
    return min(int(limit), MAX_LIMIT)


def rank_candidates(
    query_embedding: list[float],
    candidates: list[KnowledgeEntry],
    search_filter: FilterSpec,
    limit: int,
) -> list[SearchResult]:
    """Filter, score, order and truncate candidates. Shared by both strategies."""
    scored: list[SearchResult] = []
    seen: set[str] = set()
    for entry in candidates:
        if entry.id in seen or entry.embedding is None or not search_filter.matches(entry):
            continue
        seen.add(entry.id)
        try:
            distance = cosine_distance(query_embedding, entry.embedding)
        except ValueError:
            logger.warning("Skipping %s: embedding dimension mismatch", entry.id)
            continue
        scored.append(SearchResult(entry=entry, distance=distance, score=1.0 - distance))

    scored.sort(key=lambda r: (r.distance, r.entry.id))
    top = scored[:limit]
    return [r for r in top if r.score >= search_filter.min_score]


class RetrievalEngine:
    """Ranks knowledge entries against a query embedding and records usage."""

    def __init__(
        self,
        db: Database,
        embedder: Embedder | None = None,
        tracker: UsageTracker | None = None,
        *,
        use_index: bool = True,
    ):
        """Initialize with a database, an optional embedder and usage tracker."""
        self.db = db
        self.embedder = embedder
        self.tracker = tracker if tracker is not None else UsageTracker(db)
        self.use_index = use_index

    async def search(
        self,
        query: str,
        search_filter: FilterSpec | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> SearchResponse:
        """Embed a text query and search. Embedding failures propagate to the caller."""
        if self.embedder is None:
            raise EmbeddingError("No embedding model configured")
        query_embedding = await self.embedder.embed(query, is_query=True)
        return await self.search_embedding(query_embedding, search_filter, limit)

    async def search_embedding(
        self,
        query_embedding: list[float],
        search_filter: FilterSpec | None = None,
        limit: int = DEFAULT_LIMIT,
        *,
        track_usage: bool = True,
    ) -> SearchResponse:
        """Return entries ranked by cosine distance to ``query_embedding``."""
        search_filter = search_filter or FilterSpec()
        limit = normalize_limit(limit)

        results: list[SearchResult] | None = None
        strategy = "scan"
        if self.use_index:
            try:
                results = await self._search_indexed(query_embedding, search_filter, limit)
                strategy = "indexed"
            except IndexUnavailableError as e:
                logger.info("Vector index unavailable (%s); falling back to full scan", e)
            except Exception:
                logger.warning("Indexed search failed; falling back to full scan", exc_info=True)

        if results is None:
            results = await self._search_scan(query_embedding, search_filter, limit)

        usage_tracked = False
        if track_usage and results:
            usage_tracked = await self._track([r.entry.id for r in results])

        return SearchResponse(results=results, strategy=strategy, usage_tracked=usage_tracked)

    async def _search_indexed(
        self, query_embedding: list[float], search_filter: FilterSpec, limit: int
    ) -> list[SearchResult]:
        neighbours = await self.db.vector_search(query_embedding, limit=limit * OVERFETCH_FACTOR)
        ids = [entry_id for entry_id, _distance in neighbours]
        entries = await get_entries(self.db, ids)
        candidates = [entries[eid] for eid in ids if eid in entries]
        return rank_candidates(query_embedding, candidates, search_filter, limit)

    async def _search_scan(
        self, query_embedding: list[float], search_filter: FilterSpec, limit: int
    ) -> list[SearchResult]:
        candidates = await scan_candidates(self.db, search_filter)
        return rank_candidates(query_embedding, candidates, search_filter, limit)

    async def _track(self, entry_ids: list[str]) -> bool:
        try:
            return await self.tracker.track(entry_ids)
        except Exception:
            logger.warning("Usage tracking raised; ignoring", exc_info=True)
            return False
