"""Database connection and schema management."""

from knowledge_engine.db.backend import Cursor, Database, IndexUnavailableError, Row
from knowledge_engine.db.sqlite_backend import SQLiteBackend

__all__ = ["Cursor", "Database", "IndexUnavailableError", "Row", "SQLiteBackend"]
