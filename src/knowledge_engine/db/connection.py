"""Database connection management with sqlite-vec."""

import logging
from pathlib import Path

import aiosqlite
import sqlite_vec

from knowledge_engine.config import get_db_path, get_embedding_dim
from knowledge_engine.db.backend import Database
from knowledge_engine.db.sqlite_backend import SQLiteBackend

logger = logging.getLogger(__name__)


async def create_connection(
    db_path: Path | str | None = None,
    *,
    embedding_dim: int | None = None,
    enable_vec: bool = True,
) -> Database:
    """Create and initialize a database connection.

    For in-memory databases, pass ":memory:". ``enable_vec=False`` skips the
    sqlite-vec extension entirely, leaving vector search to the full-scan path.
    """
    db_path = str(db_path or get_db_path())
    if embedding_dim is None:
        embedding_dim = get_embedding_dim()

    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row

    # Enable WAL mode for better concurrent read performance
    await conn.execute("PRAGMA journal_mode=WAL")

    vec_enabled = False
    if enable_vec:
        # Load sqlite-vec extension using its native load() API
        try:

            def _load_vec() -> None:
                conn._conn.enable_load_extension(True)
                sqlite_vec.load(conn._conn)
                conn._conn.enable_load_extension(False)

            await conn._execute(_load_vec)  # type: ignore[no-untyped-call]
            vec_enabled = True
            logger.debug("sqlite-vec extension loaded")
        except Exception:
            logger.warning("sqlite-vec extension not available; using full-scan search")

    db = SQLiteBackend(conn, vec_enabled=vec_enabled)
    await db.apply_schema(embedding_dim=embedding_dim)

    return db
