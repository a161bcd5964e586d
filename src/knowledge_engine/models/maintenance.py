"""Citation validation and confidence maintenance report models."""

from enum import StrEnum

from pydantic import BaseModel, Field


class CitationStatus(StrEnum):
    """Result of comparing a citation's recorded hash with the file on disk."""

    VALID = "valid"
    CHANGED = "changed"
    MISSING = "missing"


class CitationCheck(BaseModel):
    """Validation result for a single citation."""

    path: str
    status: CitationStatus
    current_file_hash: str | None = None


class EntryCitationReport(BaseModel):
    """Citation health for one knowledge entry."""

    entry_id: str
    title: str = ""
    total: int = 0
    valid: int = 0
    changed: int = 0
    missing: int = 0
    checks: list[CitationCheck] = Field(default_factory=list)

    @property
    def missing_ratio(self) -> float:
        """Fraction of citations whose file is gone."""
        return self.missing / self.total if self.total else 0.0


class CitationValidationReport(BaseModel):
    """Aggregate citation health across a batch of entries."""

    total_entries: int = 0
    cited_entries: int = 0
    uncited_entries: int = 0
    errored: int = 0
    total_citations: int = 0
    valid: int = 0
    changed: int = 0
    missing: int = 0
    entries: list[EntryCitationReport] = Field(default_factory=list)


class ConfidenceAdjustment(BaseModel):
    """A confidence change computed (and, unless dry-run, applied) for one entry."""

    id: str
    title: str
    old_confidence: float
    new_confidence: float
    adjustment: float
    reasons: list[str] = Field(default_factory=list)
    citations: EntryCitationReport | None = None


class RecalculationReport(BaseModel):
    """Outcome of one confidence maintenance run."""

    dry_run: bool
    total: int = 0
    adjusted: int = 0
    skipped: int = 0
    errored: int = 0
    guarded: int = 0
    adjustments: list[ConfidenceAdjustment] = Field(default_factory=list)


class UsageHealth(StrEnum):
    """How an entry's usage is trending."""

    RISING = "rising"
    STABLE = "stable"
    DECAYING = "decaying"


class CitationHealth(StrEnum):
    """Citation problems worth a reviewer's attention."""

    NEEDS_VALIDATION = "needs_validation"
    MISSING = "missing"


class HealthEntry(BaseModel):
    """Summary of one entry in a health report."""

    id: str
    title: str
    category: str
    confidence: float


class HealthReport(BaseModel):
    """Entries bucketed by usage trend, and by citation problem where they have one."""

    total: int = 0
    by_usage: dict[UsageHealth, list[HealthEntry]] = Field(
        default_factory=lambda: {status: [] for status in UsageHealth}
    )
    by_citation: dict[CitationHealth, list[HealthEntry]] = Field(
        default_factory=lambda: {status: [] for status in CitationHealth}
    )
