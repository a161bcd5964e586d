"""Database backend protocol: thin abstraction over async DB connections.

Application code programs against these protocols. The SQLite backend is the
only concrete implementation; the approximate vector index lives in the
backend too, so index availability is a backend concern.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


class IndexUnavailableError(RuntimeError):
    """The vector index is missing or unusable. Callers fall back to a full scan."""


@runtime_checkable
class Row(Protocol):
    """A database row supporting both named and positional access."""

    def __getitem__(self, key: str | int) -> Any:
        """Get a column value by name or position."""
        ...

    def keys(self) -> Any:
        """Return column names."""
        ...


@runtime_checkable
class Cursor(Protocol):
    """Async cursor returned by Database.execute()."""

    @property
    def rowcount(self) -> int:
        """Number of rows affected by the last operation."""
        ...

    async def fetchone(self) -> Row | None:
        """Fetch the next row, or None if exhausted."""
        ...

    async def fetchall(self) -> list[Row]:
        """Fetch all remaining rows."""
        ...


@runtime_checkable
class Database(Protocol):
    """Async database backend with an optional vector index."""

    async def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Cursor:
        """Execute a single SQL statement and return a cursor."""
        ...

    async def executemany(self, sql: str, params_seq: list[tuple[Any, ...] | list[Any]]) -> None:
        """Execute a SQL statement for each set of parameters."""
        ...

    async def executescript(self, sql: str) -> None:
        """Execute multiple SQL statements (DDL, migrations, VACUUM)."""
        ...

    async def commit(self) -> None:
        """Commit the current transaction."""
        ...

    async def close(self) -> None:
        """Close the database connection."""
        ...

    async def vector_store(self, entry_id: str, embedding: list[float]) -> None:
        """Upsert an embedding in the vector index."""
        ...

    async def vector_search(
        self, embedding: list[float], limit: int = 20
    ) -> list[tuple[str, float]]:
        """KNN search. Raises IndexUnavailableError when the index cannot be used."""
        ...

    async def vector_delete(self, entry_id: str) -> None:
        """Remove an entry from the vector index."""
        ...
