"""Batch recalculation of entry confidence from usage, staleness and citation health."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from knowledge_engine.confidence.decay import citation_penalty, staleness_decay, usage_growth
from knowledge_engine.db.backend import Database
from knowledge_engine.db.queries import get_active_entries, update_confidence
from knowledge_engine.integrity.citations import CitationValidator
from knowledge_engine.models.entry import KnowledgeEntry, clamp_confidence
from knowledge_engine.models.maintenance import (
    ConfidenceAdjustment,
    EntryCitationReport,
    RecalculationReport,
)

logger = logging.getLogger(__name__)

# Changes smaller than this are treated as "already at a bound"
MIN_EFFECTIVE_CHANGE = 0.001

Outcome = Literal["adjusted", "skipped", "guarded", "errored"]


@dataclass
class _EntryOutcome:
    status: Outcome
    adjustment: ConfidenceAdjustment | None = None


def compute_adjustment(
    entry: KnowledgeEntry,
    citations: EntryCitationReport | None,
    now: datetime,
) -> tuple[float, list[str]]:
    """Sum the rule deltas for one entry, with reasons in rule order."""
    adjustment = 0.0
    reasons: list[str] = []
    for delta, reason in (
        usage_growth(entry.usage_count),
        staleness_decay(entry.category, entry.last_used_at, entry.created_at, now),
        citation_penalty(citations),
    ):
        if reason is not None:
            adjustment += delta
            reasons.append(reason)
    return round(adjustment, 4), reasons


def adjusted_on_same_day(entry: KnowledgeEntry, now: datetime) -> bool:
    """True if maintenance already changed this entry's confidence on ``now``'s UTC day."""
    if entry.confidence_adjusted_at is None:
        return False
    return entry.confidence_adjusted_at.astimezone(UTC).date() == now.astimezone(UTC).date()


class ConfidenceMaintainer:
    """Recalculates confidence for every active entry.

    Staleness is measured from ``now``, so by default running twice before any
    new usage applies the same penalty twice. ``decay_guard=True`` skips
    entries whose confidence was already adjusted on the same UTC day. It only
    limits penalties to one per day: a daily job still lowers an unused stale
    entry every day until it reaches the floor.
    """

    def __init__(
        self,
        db: Database,
        cwd: Path | str,
        *,
        max_workers: int = 4,
        decay_guard: bool = False,
    ):
        """Initialize with a database and the directory citations are relative to."""
        self.db = db
        self.cwd = Path(cwd)
        self.max_workers = max(1, max_workers)
        self.decay_guard = decay_guard

    async def recalculate(
        self, dry_run: bool = False, now: datetime | None = None
    ) -> RecalculationReport:
        """Recompute confidence for all active entries. Persists unless ``dry_run``."""
        if now is None:
            now = datetime.now(UTC)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=UTC)

        malformed: list[str] = []
        entries = await get_active_entries(self.db, skipped=malformed)
        # One validator (and hash cache) per run, shared by all workers
        validator = CitationValidator(self.cwd)
        semaphore = asyncio.Semaphore(self.max_workers)

        outcomes = await asyncio.gather(
            *(self._process(entry, validator, now, dry_run, semaphore) for entry in entries)
        )

        # Rows that could not be loaded count as errored entries
        report = RecalculationReport(
            dry_run=dry_run, total=len(entries) + len(malformed), errored=len(malformed)
        )
        for outcome in outcomes:
            if outcome.status == "adjusted" and outcome.adjustment is not None:
                report.adjustments.append(outcome.adjustment)
            elif outcome.status == "guarded":
                report.guarded += 1
            elif outcome.status == "errored":
                report.errored += 1
            else:
                report.skipped += 1
        report.adjusted = len(report.adjustments)

        logger.info(
            "Confidence recalculation%s: %d entries, %d adjusted, %d skipped, %d errored",
            " (dry run)" if dry_run else "",
            report.total,
            report.adjusted,
            report.skipped,
            report.errored,
        )
        return report

    async def _process(
        self,
        entry: KnowledgeEntry,
        validator: CitationValidator,
        now: datetime,
        dry_run: bool,
        semaphore: asyncio.Semaphore,
    ) -> _EntryOutcome:
        async with semaphore:
            try:
                return await self._evaluate(entry, validator, now, dry_run)
            except Exception:
                logger.warning("Confidence recalculation failed for %s", entry.id, exc_info=True)
                return _EntryOutcome("errored")

    async def _evaluate(
        self,
        entry: KnowledgeEntry,
        validator: CitationValidator,
        now: datetime,
        dry_run: bool,
    ) -> _EntryOutcome:
        if self.decay_guard and adjusted_on_same_day(entry, now):
            return _EntryOutcome("guarded")

        citations: EntryCitationReport | None = None
        if entry.citations:
            citations = await asyncio.to_thread(validator.validate_entry, entry)

        adjustment, reasons = compute_adjustment(entry, citations, now)
        if adjustment == 0:
            return _EntryOutcome("skipped")

        old_confidence = entry.confidence
        new_confidence = round(clamp_confidence(old_confidence + adjustment), 4)
        if abs(new_confidence - old_confidence) < MIN_EFFECTIVE_CHANGE:
            return _EntryOutcome("skipped")

        if not dry_run:
            await update_confidence(self.db, entry.id, new_confidence, now)

        return _EntryOutcome(
            "adjusted",
            ConfidenceAdjustment(
                id=entry.id,
                title=entry.title[:50],
                old_confidence=old_confidence,
                new_confidence=new_confidence,
                adjustment=adjustment,
                reasons=reasons,
                citations=citations,
            ),
        )
