"""Confidence adjustment rules: usage growth, staleness decay, citation penalty.

Each rule returns ``(delta, reason)``; a zero delta means the rule did not fire
and its reason is None.
"""

import math
from datetime import UTC, datetime

from knowledge_engine.models.entry import KnowledgeCategory
from knowledge_engine.models.maintenance import EntryCitationReport

HIGH_USAGE_THRESHOLD = 10
GOOD_USAGE_THRESHOLD = 5
HIGH_USAGE_BONUS = 0.10
GOOD_USAGE_BONUS = 0.05

VERY_STALE_DAYS = 180
STALE_DAYS = 90

# (very stale, stale) penalties
DEFAULT_DECAY = (0.20, 0.10)
SLOW_DECAY = (0.05, 0.02)
SLOW_DECAY_CATEGORIES = frozenset({KnowledgeCategory.TRUTH, KnowledgeCategory.ARCHITECTURE})

MISSING_CITATION_WEIGHT = 0.15

Rule = tuple[float, str | None]


def usage_growth(usage_count: int) -> Rule:
    """Reward entries that keep getting retrieved."""
    if usage_count > HIGH_USAGE_THRESHOLD:
        return HIGH_USAGE_BONUS, f"high usage ({usage_count}): +{HIGH_USAGE_BONUS:.2f}"
    if usage_count > GOOD_USAGE_THRESHOLD:
        return GOOD_USAGE_BONUS, f"good usage ({usage_count}): +{GOOD_USAGE_BONUS:.2f}"
    return 0.0, None


def days_since(reference: datetime, now: datetime) -> int:
    """Whole days elapsed between ``reference`` and ``now`` (floored)."""
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return math.floor((now - reference).total_seconds() / 86400.0)


def staleness_decay(
    category: KnowledgeCategory | None,
    last_used_at: datetime | None,
    created_at: datetime | None,
    now: datetime,
) -> Rule:
    """Penalize entries nobody has retrieved in a long time.

    Truths and architecture entries describe durable facts and decay slowly.
    """
    reference = last_used_at or created_at
    if reference is None:
        return 0.0, None

    days = days_since(reference, now)
    slow = category in SLOW_DECAY_CATEGORIES
    very_stale, stale = SLOW_DECAY if slow else DEFAULT_DECAY
    label = "slow decay, " if slow else ""

    if days > VERY_STALE_DAYS:
        return -very_stale, f"very stale ({label}{days}d): -{very_stale:.2f}"
    if days > STALE_DAYS:
        return -stale, f"stale ({label}{days}d): -{stale:.2f}"
    return 0.0, None


def citation_penalty(report: EntryCitationReport | None) -> Rule:
    """Penalize in proportion to citations whose file no longer exists.

    Changed files don't count: the code moved on but is still there.
    """
    if report is None or report.total == 0 or report.missing == 0:
        return 0.0, None
    penalty = report.missing_ratio * MISSING_CITATION_WEIGHT
    return (
        -penalty,
        f"missing citations ({report.missing}/{report.total}): -{penalty:.2f}",
    )
