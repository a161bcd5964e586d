"""Environment-variable-based configuration."""

import os
from pathlib import Path


def get_db_path() -> Path:
    """Return the database file path from KE_DB_PATH."""
    raw = os.environ.get("KE_DB_PATH", "~/.local/share/knowledge_engine/knowledge.db")
    return Path(raw).expanduser()


def get_ollama_url() -> str:
    """Return the Ollama API URL from KE_OLLAMA_URL."""
    return os.environ.get("KE_OLLAMA_URL", "http://localhost:11434")


def get_embedding_model() -> str:
    """Return the embedding model name from KE_EMBEDDING_MODEL."""
    return os.environ.get("KE_EMBEDDING_MODEL", "all-minilm")


def get_embedding_dim() -> int:
    """Return the embedding vector dimensions from KE_EMBEDDING_DIM."""
    return int(os.environ.get("KE_EMBEDDING_DIM", "384"))


def get_ollama_timeout() -> float:
    """Return the Ollama timeout in seconds from KE_OLLAMA_TIMEOUT."""
    return float(os.environ.get("KE_OLLAMA_TIMEOUT", "10.0"))


def get_query_prefix() -> str:
    """Return the instruction prefix prepended to search queries before embedding."""
    return os.environ.get("KE_QUERY_PREFIX", "")


def get_log_level() -> str:
    """Return the logging level from KE_LOG_LEVEL."""
    return os.environ.get("KE_LOG_LEVEL", "WARNING")


def is_manager_mode() -> bool:
    """Return True if KE_MANAGER is set to TRUE."""
    return os.environ.get("KE_MANAGER", "").upper() == "TRUE"


def get_project_root() -> Path:
    """Return the directory citation paths are resolved against (KE_PROJECT_ROOT)."""
    raw = os.environ.get("KE_PROJECT_ROOT")
    return Path(raw).expanduser() if raw else Path.cwd()


def get_author() -> str:
    """Return the author recorded on new entries from KE_AUTHOR."""
    return os.environ.get("KE_AUTHOR", "unknown")


def get_default_branch() -> str:
    """Return the working branch new entries are recorded on (KE_BRANCH)."""
    return os.environ.get("KE_BRANCH", "draft")


def get_stable_branch() -> str:
    """Return the stable branch marker entries are promoted to (KE_STABLE_BRANCH)."""
    return os.environ.get("KE_STABLE_BRANCH", "main")


def is_decay_guard_enabled() -> bool:
    """Return True if KE_DECAY_GUARD limits confidence maintenance to once per day."""
    return os.environ.get("KE_DECAY_GUARD", "").upper() == "TRUE"


def get_maintenance_workers() -> int:
    """Return the worker pool size for batch maintenance from KE_MAINTENANCE_WORKERS."""
    return max(1, int(os.environ.get("KE_MAINTENANCE_WORKERS", "4")))
