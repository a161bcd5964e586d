"""SQLite implementation of the Database protocol.

Thin wrapper around aiosqlite.Connection. The sqlite-vec ``knowledge_vec``
table is the approximate vector index; when the extension failed to load or
the table is gone, vector calls raise IndexUnavailableError.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from typing import TYPE_CHECKING, Any

from knowledge_engine.db.backend import IndexUnavailableError
from knowledge_engine.db.vectors import serialize_f32

if TYPE_CHECKING:
    import aiosqlite

    from knowledge_engine.db.backend import Cursor, Row

logger = logging.getLogger(__name__)

_INDEX_ERROR_MARKERS = ("knowledge_vec", "vec0", "no such module", "no such table")


def _is_index_error(exc: sqlite3.Error) -> bool:
    msg = str(exc).lower()
    return any(marker in msg for marker in _INDEX_ERROR_MARKERS)


class SQLiteCursor:
    """Wraps aiosqlite.Cursor to satisfy the Cursor protocol."""

    def __init__(self, cursor: aiosqlite.Cursor) -> None:
        """Initialize with an aiosqlite cursor."""
        self._cursor = cursor

    @property
    def rowcount(self) -> int:
        """Number of rows affected by the last operation."""
        rc = self._cursor.rowcount
        return rc if rc is not None else -1

    async def fetchone(self) -> Row | None:
        """Fetch the next row, or None if exhausted."""
        return await self._cursor.fetchone()

    async def fetchall(self) -> list[Row]:
        """Fetch all remaining rows."""
        return list(await self._cursor.fetchall())


class SQLiteBackend:
    """SQLite implementation of the Database protocol.

    Passes all calls through to the underlying aiosqlite.Connection.
    ``vec_enabled`` records whether sqlite-vec loaded and its schema applied.
    """

    def __init__(self, conn: aiosqlite.Connection, *, vec_enabled: bool = True) -> None:
        """Initialize with an aiosqlite connection."""
        self._conn = conn
        self.vec_enabled = vec_enabled

    async def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Cursor:
        """Execute a single SQL statement and return a cursor."""
        cursor = await self._conn.execute(sql, params)
        return SQLiteCursor(cursor)

    async def executemany(self, sql: str, params_seq: list[tuple[Any, ...] | list[Any]]) -> None:
        """Execute a SQL statement for each set of parameters."""
        await self._conn.executemany(sql, params_seq)

    async def executescript(self, sql: str) -> None:
        """Execute multiple SQL statements (DDL, migrations, VACUUM)."""
        await self._conn.executescript(sql)

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self._conn.commit()

    async def close(self) -> None:
        """Close the database connection."""
        await self._conn.close()

    # -- Vector operations (sqlite-vec) --

    async def vector_store(self, entry_id: str, embedding: list[float]) -> None:
        """Upsert an embedding in the vec0 table. No-op when the index is disabled."""
        if not self.vec_enabled:
            return
        blob = serialize_f32(embedding)
        try:
            # vec0 doesn't support ON CONFLICT; delete then insert
            await self._conn.execute("DELETE FROM knowledge_vec WHERE entry_id = ?", (entry_id,))
            await self._conn.execute(
                "INSERT INTO knowledge_vec (entry_id, embedding) VALUES (?, ?)",
                (entry_id, blob),
            )
        except sqlite3.Error:
            logger.warning("Failed to index embedding for %s", entry_id, exc_info=True)

    async def vector_search(
        self, embedding: list[float], limit: int = 20
    ) -> list[tuple[str, float]]:
        """KNN search via sqlite-vec cosine distance. Returns (entry_id, distance) pairs."""
        if not self.vec_enabled:
            raise IndexUnavailableError("sqlite-vec index is not enabled")
        blob = serialize_f32(embedding)
        try:
            cursor = await self._conn.execute(
                """SELECT entry_id, distance
                FROM knowledge_vec
                WHERE embedding MATCH ?
                ORDER BY distance
                LIMIT ?""",
                (blob, limit),
            )
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            if _is_index_error(e):
                raise IndexUnavailableError(str(e)) from e
            raise
        return [(row[0], row[1]) for row in rows]

    async def vector_delete(self, entry_id: str) -> None:
        """Delete the indexed embedding for an entry."""
        if not self.vec_enabled:
            return
        await self._conn.execute("DELETE FROM knowledge_vec WHERE entry_id = ?", (entry_id,))

    async def vector_count(self) -> int | None:
        """Number of indexed embeddings, or None when the index is unavailable."""
        if not self.vec_enabled:
            return None
        try:
            cursor = await self._conn.execute("SELECT COUNT(*) FROM knowledge_vec")
            row = await cursor.fetchone()
        except sqlite3.Error:
            return None
        return row[0] if row else 0

    # -- Maintenance --

    async def vacuum(self) -> str:
        """Run PRAGMA optimize and VACUUM. Returns status string."""
        await self._conn.execute("PRAGMA optimize")
        await self._conn.executescript("VACUUM;")

        size_info = ""
        cursor = await self._conn.execute("PRAGMA database_list")
        db_row = await cursor.fetchone()
        if db_row and db_row[2]:
            try:
                size = os.path.getsize(db_row[2])
                if size < 1024 * 1024:
                    size_info = f" Database size: {size / 1024:.1f} KB"
                else:
                    size_info = f" Database size: {size / (1024 * 1024):.1f} MB"
            except OSError:
                pass

        return f"Vacuum complete.{size_info}"

    # -- Schema --

    async def apply_schema(self, *, embedding_dim: int = 384) -> None:
        """Apply the knowledge table DDL and, when sqlite-vec is loaded, the vec0 index."""
        from knowledge_engine.db.schema import apply_schema, apply_vec_schema

        await apply_schema(self)

        if not self.vec_enabled:
            return
        try:
            await apply_vec_schema(self, dim=embedding_dim)
        except sqlite3.Error:
            logger.warning("sqlite-vec schema not applied; vector index disabled")
            self.vec_enabled = False
