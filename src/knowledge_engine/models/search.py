"""Search-related models."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from knowledge_engine.models.entry import KnowledgeCategory, KnowledgeEntry, TicketType


class FilterSpec(BaseModel):
    """Retrieval filters.

    Fields combine with AND. ``tags`` and ``branches`` match if the entry has at
    least one of the listed values. ``branch`` and ``branches`` are mutually
    exclusive. Inactive entries never match.
    """

    namespace: str | None = None
    category: KnowledgeCategory | None = None
    ticket_type: TicketType | None = None
    tags: list[str] | None = None
    author: str | None = None
    branch: str | None = None
    branches: list[str] | None = None
    min_score: float = 0.0

    @model_validator(mode="after")
    def _branch_or_branches(self) -> "FilterSpec":
        if self.branch and self.branches:
            raise ValueError("branch and branches are mutually exclusive")
        return self

    def matches(self, entry: KnowledgeEntry) -> bool:
        """Canonical predicate shared by every retrieval strategy."""
        if not entry.active or not entry.has_embedding:
            return False
        if self.namespace and entry.namespace != self.namespace:
            return False
        if self.category and entry.category != self.category:
            return False
        if self.ticket_type and entry.origin_ticket_type != self.ticket_type:
            return False
        if self.author and entry.author != self.author:
            return False
        if self.branches:
            if entry.branch not in self.branches:
                return False
        elif self.branch and entry.branch != self.branch:
            return False
        if self.tags and not set(self.tags) & set(entry.tags):
            return False
        return True


class SearchResult(BaseModel):
    """A single ranked result. ``score`` is ``1 - distance``."""

    entry: KnowledgeEntry
    distance: float
    score: float


class SearchResponse(BaseModel):
    """Ranked results plus the outcome of the usage-tracking side effect."""

    results: list[SearchResult] = Field(default_factory=list)
    strategy: Literal["indexed", "scan"] = "indexed"
    usage_tracked: bool = False

    @property
    def ids(self) -> list[str]:
        """Result entry IDs in rank order."""
        return [r.entry.id for r in self.results]
