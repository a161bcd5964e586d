"""Knowledge entry models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0


class KnowledgeCategory(StrEnum):
    """Classification of knowledge entries. Affects the staleness decay rate."""

    PATTERN = "pattern"
    TRUTH = "truth"
    PRINCIPLE = "principle"
    ARCHITECTURE = "architecture"
    GOTCHA = "gotcha"


class KnowledgeSource(StrEnum):
    """Where an entry came from."""

    TICKET = "ticket"
    DISCOVERY = "discovery"
    MANUAL = "manual"


class TicketType(StrEnum):
    """Kind of ticket an entry was derived from."""

    FEATURE = "feature"
    BUGFIX = "bugfix"
    REFACTOR = "refactor"
    DOCS = "docs"
    CHORE = "chore"
    TEST = "test"


class DecisionScope(StrEnum):
    """How broadly an entry's guidance applies. Informational only."""

    NEW_ONLY = "new-only"
    BACKWARD_COMPATIBLE = "backward-compatible"
    GLOBAL = "global"
    LEGACY_FROZEN = "legacy-frozen"


class Citation(BaseModel):
    """A provenance link from an entry to source code.

    ``path`` is ``relative/file:line``. ``file_hash`` is the digest of the whole
    file when the citation was recorded; the line is a navigation hint only.
    """

    path: str
    file_hash: str


def clamp_confidence(value: float) -> float:
    """Clamp a confidence value into the allowed range."""
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, value))


class KnowledgeEntry(BaseModel):
    """A single knowledge entry with provenance, usage and citation metadata."""

    id: str
    namespace: str = "global"
    title: str
    content: str
    embedding: list[float] | None = None
    category: KnowledgeCategory | None = None
    tags: list[str] = Field(default_factory=list)
    source: KnowledgeSource = KnowledgeSource.MANUAL
    origin_ticket_id: str | None = None
    origin_ticket_type: TicketType | None = None
    confidence: float = Field(default=0.8, ge=MIN_CONFIDENCE, le=MAX_CONFIDENCE)
    active: bool = True
    decision_scope: DecisionScope = DecisionScope.GLOBAL
    usage_count: int = Field(default=0, ge=0)
    last_used_at: datetime | None = None
    citations: list[Citation] = Field(default_factory=list)
    author: str = "unknown"
    branch: str = "draft"
    created_at: datetime | None = None
    updated_at: datetime | None = None
    confidence_adjusted_at: datetime | None = None

    @property
    def embedding_text(self) -> str:
        """Text used for generating embeddings: title, content and tags."""
        tags_text = " " + " ".join(self.tags) if self.tags else ""
        return f"{self.title} {self.content}{tags_text}"

    @property
    def has_embedding(self) -> bool:
        """Whether the entry can be found by vector search."""
        return bool(self.embedding)
