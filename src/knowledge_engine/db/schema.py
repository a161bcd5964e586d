"""DDL and migrations for the knowledge database."""

from knowledge_engine.db.backend import Database

SCHEMA_VERSION = 2

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS knowledge (
    id TEXT PRIMARY KEY,
    namespace TEXT NOT NULL DEFAULT 'global',
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    embedding BLOB,
    category TEXT,
    tags TEXT NOT NULL DEFAULT '[]',
    citations TEXT NOT NULL DEFAULT '[]',
    source TEXT NOT NULL DEFAULT 'manual',
    origin_ticket_id TEXT,
    origin_ticket_type TEXT,
    confidence REAL NOT NULL DEFAULT 0.8,
    active INTEGER NOT NULL DEFAULT 1,
    decision_scope TEXT NOT NULL DEFAULT 'global',
    usage_count INTEGER NOT NULL DEFAULT 0,
    last_used_at TEXT,
    author TEXT NOT NULL DEFAULT 'unknown',
    branch TEXT NOT NULL DEFAULT 'draft',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_knowledge_namespace ON knowledge(namespace);
CREATE INDEX IF NOT EXISTS idx_knowledge_category ON knowledge(category);
CREATE INDEX IF NOT EXISTS idx_knowledge_active ON knowledge(active);
CREATE INDEX IF NOT EXISTS idx_knowledge_author ON knowledge(author);
CREATE INDEX IF NOT EXISTS idx_knowledge_branch ON knowledge(branch);
"""


def _vec_table_sql(dim: int) -> str:
    return f"""
CREATE VIRTUAL TABLE IF NOT EXISTS knowledge_vec USING vec0(
    entry_id TEXT PRIMARY KEY,
    embedding FLOAT[{dim}] distance_metric=cosine
);
"""


async def apply_schema(db: Database) -> None:
    """Apply the database schema."""
    await db.executescript(SCHEMA_SQL)

    cursor = await db.execute("SELECT version FROM schema_version")
    row = await cursor.fetchone()
    if row is None:
        await db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

    # Migration: v2 adds confidence_adjusted_at (nullable, default NULL)
    await _migrate_add_confidence_adjusted_at(db)
    await db.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))

    await db.commit()


async def apply_vec_schema(db: Database, dim: int = 384) -> None:
    """Create the vec0 virtual table. Requires sqlite-vec extension loaded."""
    await db.executescript(_vec_table_sql(dim))
    await db.commit()


async def _migrate_add_confidence_adjusted_at(db: Database) -> None:
    """Add confidence_adjusted_at column to knowledge if it doesn't exist."""
    cursor = await db.execute("PRAGMA table_info(knowledge)")
    columns = {row[1] for row in await cursor.fetchall()}
    if "confidence_adjusted_at" not in columns:
        await db.execute("ALTER TABLE knowledge ADD COLUMN confidence_adjusted_at TEXT")
