"""Knowledge health: usage trend and citation problems per entry."""

from datetime import UTC, datetime

from knowledge_engine.integrity.citations import CitationValidator
from knowledge_engine.models.entry import KnowledgeEntry
from knowledge_engine.models.maintenance import (
    CitationHealth,
    EntryCitationReport,
    HealthEntry,
    HealthReport,
    UsageHealth,
)

DECAY_QUIET_DAYS = 7
RISING_VELOCITY = 2.0  # uses per day
RISING_MIN_USES = 3
RISING_MIN_AGE_DAYS = 1


def _days_since(when: datetime | None, now: datetime) -> float:
    if when is None:
        return 0.0
    return (now - when).total_seconds() / 86400


def usage_health(entry: KnowledgeEntry, now: datetime) -> UsageHealth:
    """Decaying once used but quiet for a week; rising when used more than twice a day."""
    quiet_days = _days_since(entry.last_used_at, now)
    if entry.usage_count > 0 and quiet_days > DECAY_QUIET_DAYS:
        return UsageHealth.DECAYING

    age_days = _days_since(entry.created_at, now)
    if (
        age_days >= RISING_MIN_AGE_DAYS
        and entry.usage_count >= RISING_MIN_USES
        and entry.usage_count / age_days > RISING_VELOCITY
    ):
        return UsageHealth.RISING
    return UsageHealth.STABLE


def citation_health(
    report: EntryCitationReport | None, usage_count: int
) -> CitationHealth | None:
    """Missing wins over changed; changed only matters for entries in use."""
    if report is None:
        return None
    if report.missing:
        return CitationHealth.MISSING
    if report.changed and usage_count > 0:
        return CitationHealth.NEEDS_VALIDATION
    return None


def classify_health(
    entries: list[KnowledgeEntry],
    validator: CitationValidator,
    now: datetime | None = None,
) -> HealthReport:
    """Bucket entries by usage trend and citation health.

    Every entry gets a usage bucket. Only entries with a citation problem
    appear in a citation bucket. Blocking: run it in a worker thread.
    """
    if now is None:
        now = datetime.now(UTC)

    report = HealthReport(total=len(entries))
    for entry in entries:
        summary = HealthEntry(
            id=entry.id,
            title=entry.title,
            category=entry.category.value if entry.category else "uncategorized",
            confidence=entry.confidence,
        )
        citations = validator.validate_entry(entry) if entry.citations else None
        problem = citation_health(citations, entry.usage_count)
        if problem is not None:
            report.by_citation[problem].append(summary)
        report.by_usage[usage_health(entry, now)].append(summary)
    return report
