"""Query helpers for common database operations."""

import json
import logging
import struct
from datetime import UTC, datetime
from typing import Any

from knowledge_engine.db.backend import Database, Row
from knowledge_engine.db.vectors import deserialize_f32, serialize_f32
from knowledge_engine.models.entry import (
    Citation,
    DecisionScope,
    KnowledgeCategory,
    KnowledgeEntry,
    KnowledgeSource,
    TicketType,
)
from knowledge_engine.models.search import FilterSpec

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, namespace, title, content, embedding, category, tags, citations, source,"
    " origin_ticket_id, origin_ticket_type, confidence, active, decision_scope,"
    " usage_count, last_used_at, author, branch, created_at, updated_at,"
    " confidence_adjusted_at"
)


def rows_to_entries(rows: list[Row], skipped: list[str] | None = None) -> list[KnowledgeEntry]:
    """Convert rows one at a time, dropping any that fail to parse.

    IDs of dropped rows are appended to ``skipped`` when given.
    """
    entries: list[KnowledgeEntry] = []
    for row in rows:
        try:
            entries.append(row_to_entry(row))
        except (ValueError, TypeError, struct.error) as e:
            logger.warning("Skipping malformed knowledge row %s: %s", row["id"], e)
            if skipped is not None:
                skipped.append(row["id"])
    return entries


def row_to_entry(row: Row) -> KnowledgeEntry:
    """Convert a database row to a KnowledgeEntry."""
    return KnowledgeEntry(
        id=row["id"],
        namespace=row["namespace"],
        title=row["title"],
        content=row["content"],
        embedding=deserialize_f32(row["embedding"]),
        category=KnowledgeCategory(row["category"]) if row["category"] else None,
        tags=_parse_json_list(row["tags"]),
        source=KnowledgeSource(row["source"]),
        origin_ticket_id=row["origin_ticket_id"],
        origin_ticket_type=(
            TicketType(row["origin_ticket_type"]) if row["origin_ticket_type"] else None
        ),
        confidence=row["confidence"],
        active=bool(row["active"]),
        decision_scope=DecisionScope(row["decision_scope"]),
        usage_count=row["usage_count"] or 0,
        last_used_at=_parse_dt(row["last_used_at"]),
        citations=[Citation(**c) for c in _parse_json_list(row["citations"])],
        author=row["author"],
        branch=row["branch"],
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
        confidence_adjusted_at=_parse_dt(row["confidence_adjusted_at"]),
    )


async def insert_entry(db: Database, entry: KnowledgeEntry) -> None:
    """Insert a new knowledge entry and index its embedding."""
    await db.execute(
        f"INSERT INTO knowledge ({_COLUMNS})"  # noqa: S608
        " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            entry.id,
            entry.namespace,
            entry.title,
            entry.content,
            serialize_f32(entry.embedding) if entry.embedding else None,
            entry.category.value if entry.category else None,
            json.dumps(entry.tags),
            _dump_citations(entry.citations),
            entry.source.value,
            entry.origin_ticket_id,
            entry.origin_ticket_type.value if entry.origin_ticket_type else None,
            entry.confidence,
            int(entry.active),
            entry.decision_scope.value,
            entry.usage_count,
            _iso(entry.last_used_at),
            entry.author,
            entry.branch,
            entry.created_at.isoformat() if entry.created_at else _now_iso(),
            entry.updated_at.isoformat() if entry.updated_at else _now_iso(),
            _iso(entry.confidence_adjusted_at),
        ),
    )
    if entry.embedding:
        await db.vector_store(entry.id, entry.embedding)
    await db.commit()


async def update_entry(db: Database, entry: KnowledgeEntry) -> None:
    """Update the editable fields of an entry and re-index its embedding.

    Usage counters are not written here; they belong to the usage tracker.
    """
    await db.execute(
        """UPDATE knowledge SET
        namespace=?, title=?, content=?, embedding=?, category=?, tags=?, citations=?,
        source=?, origin_ticket_id=?, origin_ticket_type=?, confidence=?, active=?,
        decision_scope=?, author=?, branch=?, updated_at=?
        WHERE id=?""",
        (
            entry.namespace,
            entry.title,
            entry.content,
            serialize_f32(entry.embedding) if entry.embedding else None,
            entry.category.value if entry.category else None,
            json.dumps(entry.tags),
            _dump_citations(entry.citations),
            entry.source.value,
            entry.origin_ticket_id,
            entry.origin_ticket_type.value if entry.origin_ticket_type else None,
            entry.confidence,
            int(entry.active),
            entry.decision_scope.value,
            entry.author,
            entry.branch,
            entry.updated_at.isoformat() if entry.updated_at else _now_iso(),
            entry.id,
        ),
    )
    if entry.embedding:
        await db.vector_store(entry.id, entry.embedding)
    else:
        await db.vector_delete(entry.id)
    await db.commit()


async def get_entry(db: Database, entry_id: str) -> KnowledgeEntry | None:
    """Get a single entry by ID."""
    cursor = await db.execute(
        f"SELECT {_COLUMNS} FROM knowledge WHERE id = ?",  # noqa: S608
        (entry_id,),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return row_to_entry(row)


async def get_entries(db: Database, entry_ids: list[str]) -> dict[str, KnowledgeEntry]:
    """Batch-load entries by ID. Missing IDs are absent from the result."""
    if not entry_ids:
        return {}
    placeholders = ",".join("?" for _ in entry_ids)
    cursor = await db.execute(
        f"SELECT {_COLUMNS} FROM knowledge WHERE id IN ({placeholders})",  # noqa: S608
        list(entry_ids),
    )
    entries = rows_to_entries(await cursor.fetchall())
    return {entry.id: entry for entry in entries}


async def get_active_entries(
    db: Database, skipped: list[str] | None = None
) -> list[KnowledgeEntry]:
    """All active entries ordered by ID. Malformed rows are skipped (see rows_to_entries)."""
    cursor = await db.execute(
        f"SELECT {_COLUMNS} FROM knowledge WHERE active = 1 ORDER BY id"  # noqa: S608
    )
    return rows_to_entries(await cursor.fetchall(), skipped)


async def list_entries(
    db: Database,
    *,
    status: str = "active",
    namespace: str | None = None,
    category: KnowledgeCategory | None = None,
    decision_scope: DecisionScope | None = None,
    source: KnowledgeSource | None = None,
    author: str | None = None,
    branch: str | None = None,
    limit: int = 20,
) -> list[KnowledgeEntry]:
    """List entries newest first. ``status`` is active, inactive or all."""
    if status not in ("active", "inactive", "all"):
        raise ValueError(f"Invalid status '{status}'. Use: active, inactive, all")

    conditions: list[str] = []
    params: list[Any] = []
    if status == "active":
        conditions.append("active = 1")
    elif status == "inactive":
        conditions.append("active = 0")
    for column, value in (
        ("namespace", namespace),
        ("category", category.value if category else None),
        ("decision_scope", decision_scope.value if decision_scope else None),
        ("source", source.value if source else None),
        ("author", author),
        ("branch", branch),
    ):
        if value:
            conditions.append(f"{column} = ?")
            params.append(value)

    sql = f"SELECT {_COLUMNS} FROM knowledge"  # noqa: S608
    if conditions:
        sql += " WHERE " + " AND ".join(conditions)
    sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
    params.append(limit)

    cursor = await db.execute(sql, params)
    return rows_to_entries(await cursor.fetchall())


async def get_all_active_entry_ids(db: Database) -> list[str]:
    """Get all active entry IDs."""
    cursor = await db.execute("SELECT id FROM knowledge WHERE active = 1 ORDER BY id")
    rows = await cursor.fetchall()
    return [row["id"] for row in rows]


async def scan_candidates(db: Database, search_filter: FilterSpec) -> list[KnowledgeEntry]:
    """Load every active, embedded row matching the exact-match filter fields.

    Tags are JSON-encoded, so the tag filter is left to FilterSpec.matches.
    """
    sql = (
        f"SELECT {_COLUMNS} FROM knowledge"  # noqa: S608
        " WHERE active = 1 AND embedding IS NOT NULL"
    )
    params: list[Any] = []

    if search_filter.namespace:
        sql += " AND namespace = ?"
        params.append(search_filter.namespace)
    if search_filter.category:
        sql += " AND category = ?"
        params.append(search_filter.category.value)
    if search_filter.ticket_type:
        sql += " AND origin_ticket_type = ?"
        params.append(search_filter.ticket_type.value)
    if search_filter.author:
        sql += " AND author = ?"
        params.append(search_filter.author)
    if search_filter.branches:
        placeholders = ", ".join("?" for _ in search_filter.branches)
        sql += f" AND branch IN ({placeholders})"
        params.extend(search_filter.branches)
    elif search_filter.branch:
        sql += " AND branch = ?"
        params.append(search_filter.branch)

    cursor = await db.execute(sql, params)
    return rows_to_entries(await cursor.fetchall())


async def set_active(db: Database, entry_id: str, active: bool) -> bool:
    """Set the active flag. Returns False if the entry does not exist."""
    cursor = await db.execute(
        "UPDATE knowledge SET active = ?, updated_at = ? WHERE id = ?",
        (int(active), _now_iso(), entry_id),
    )
    await db.commit()
    return cursor.rowcount > 0


async def set_branch(db: Database, entry_id: str, branch: str) -> bool:
    """Move an entry to another branch. Returns False if the entry does not exist."""
    cursor = await db.execute(
        "UPDATE knowledge SET branch = ?, updated_at = ? WHERE id = ?",
        (branch, _now_iso(), entry_id),
    )
    await db.commit()
    return cursor.rowcount > 0


async def update_confidence(
    db: Database, entry_id: str, confidence: float, adjusted_at: datetime
) -> None:
    """Persist a maintenance-computed confidence value."""
    await db.execute(
        "UPDATE knowledge SET confidence = ?, confidence_adjusted_at = ? WHERE id = ?",
        (confidence, adjusted_at.isoformat(), entry_id),
    )
    await db.commit()


async def increment_usage(db: Database, entry_ids: list[str], now: datetime) -> None:
    """Batch-increment usage_count and set last_used_at for the given entry IDs."""
    placeholders = ",".join("?" for _ in entry_ids)
    await db.execute(
        "UPDATE knowledge SET usage_count = usage_count + 1, last_used_at = ?"  # noqa: S608
        " WHERE id IN (" + placeholders + ")",
        [now.isoformat(), *entry_ids],
    )
    await db.commit()


async def get_db_stats(db: Database) -> dict[str, Any]:
    """Return entry counts by status, category, namespace and branch."""
    stats: dict[str, Any] = {}

    cursor = await db.execute(
        "SELECT COUNT(*) as total,"
        " SUM(active) as active,"
        " COUNT(*) - SUM(active) as inactive"
        " FROM knowledge"
    )
    row = await cursor.fetchone()
    if row is None:
        raise RuntimeError("COUNT query returned no rows")
    stats["total_entries"] = row["total"]
    stats["active_entries"] = row["active"] or 0
    stats["inactive_entries"] = row["inactive"] or 0

    cursor = await db.execute(
        "SELECT COALESCE(category, '(none)') as cat, COUNT(*) as cnt"
        " FROM knowledge WHERE active = 1"
        " GROUP BY category ORDER BY cat"
    )
    stats["by_category"] = {row["cat"]: row["cnt"] for row in await cursor.fetchall()}

    cursor = await db.execute(
        "SELECT namespace, COUNT(*) as cnt"
        " FROM knowledge WHERE active = 1"
        " GROUP BY namespace ORDER BY cnt DESC, namespace"
    )
    stats["by_namespace"] = {row["namespace"]: row["cnt"] for row in await cursor.fetchall()}

    cursor = await db.execute(
        "SELECT branch, COUNT(*) as cnt"
        " FROM knowledge WHERE active = 1"
        " GROUP BY branch ORDER BY cnt DESC, branch"
    )
    stats["by_branch"] = {row["branch"]: row["cnt"] for row in await cursor.fetchall()}

    cursor = await db.execute(
        "SELECT SUM(embedding IS NOT NULL) as with_emb,"
        " SUM(embedding IS NULL) as without_emb,"
        " AVG(confidence) as avg_conf"
        " FROM knowledge WHERE active = 1"
    )
    row = await cursor.fetchone()
    if row is None:
        raise RuntimeError("COUNT query returned no rows")
    stats["with_embeddings"] = row["with_emb"] or 0
    stats["without_embeddings"] = row["without_emb"] or 0
    stats["avg_confidence"] = row["avg_conf"] or 0.0

    return stats


def _dump_citations(citations: list[Citation]) -> str:
    return json.dumps([c.model_dump() for c in citations])


def _parse_json_list(raw: str | None) -> list[Any]:
    """Parse a JSON-encoded list column. Empty or NULL means no items."""
    if not raw:
        return []
    value = json.loads(raw)
    return value if isinstance(value, list) else []


def _parse_dt(raw: str | None) -> datetime | None:
    if not raw:
        return None
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()
