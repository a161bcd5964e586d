"""Ollama embedding client."""

import logging
from collections import OrderedDict
from typing import Protocol, runtime_checkable

import httpx

from knowledge_engine.config import (
    get_embedding_dim,
    get_embedding_model,
    get_ollama_timeout,
    get_ollama_url,
    get_query_prefix,
)

logger = logging.getLogger(__name__)

MAX_CACHE_SIZE = 100


class EmbeddingError(RuntimeError):
    """The embedding model could not produce a vector."""


@runtime_checkable
class Embedder(Protocol):
    """Anything that turns text into a fixed-length vector."""

    async def embed(self, text: str, *, is_query: bool = False) -> list[float]:
        """Embed text. Raises EmbeddingError on failure."""
        ...

    async def close(self) -> None:
        """Release resources."""
        ...


class EmbeddingClient:
    """Generates embeddings via Ollama.

    Created once per process and injected into the store and retrieval engine.
    Call ``close()`` on shutdown.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        model: str | None = None,
        dim: int | None = None,
        query_prefix: str | None = None,
    ):
        """Initialize with an optional HTTP client; model settings default to config."""
        self._http = http_client
        self.model = model or get_embedding_model()
        self.dim = dim or get_embedding_dim()
        self.query_prefix = query_prefix if query_prefix is not None else get_query_prefix()
        self._available: bool | None = None
        self._cache: OrderedDict[str, list[float]] = OrderedDict()

    async def is_available(self) -> bool:
        """Check if Ollama is reachable. Only caches success; retries on failure."""
        if self._available is True:
            return True
        try:
            client = self._get_client()
            resp = await client.get(f"{get_ollama_url()}/api/tags", timeout=get_ollama_timeout())
            resp.raise_for_status()
            self._available = True
        except Exception:
            logger.warning("Ollama not available; embeddings disabled")
            self._available = None  # Will retry next call
        return self._available is True

    async def embed(self, text: str, *, is_query: bool = False) -> list[float]:
        """Generate an embedding vector for the given text.

        Queries get the configured instruction prefix. Results are cached
        in memory (LRU, up to MAX_CACHE_SIZE texts).
        """
        payload = f"{self.query_prefix}{text}" if is_query else text
        cached = self._cache.get(payload)
        if cached is not None:
            self._cache.move_to_end(payload)
            return list(cached)

        try:
            client = self._get_client()
            resp = await client.post(
                f"{get_ollama_url()}/api/embed",
                json={"model": self.model, "input": payload},
                timeout=get_ollama_timeout(),
            )
            resp.raise_for_status()
            data = resp.json()
            # Ollama /api/embed returns {"embeddings": [[...]]}
            result: list[float] = data["embeddings"][0]
        except Exception as e:
            self._available = None
            raise EmbeddingError(f"Embedding generation failed: {e}") from e

        if len(result) != self.dim:
            raise EmbeddingError(
                f"Model {self.model} returned {len(result)} dimensions, expected {self.dim}"
            )

        if len(self._cache) >= MAX_CACHE_SIZE:
            self._cache.popitem(last=False)
        self._cache[payload] = list(result)
        return result

    def _get_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def close(self) -> None:
        """Close the HTTP client if open and drop cached vectors."""
        self._cache.clear()
        if self._http is not None:
            await self._http.aclose()
            self._http = None
