"""Tests for the confidence adjustment rules."""

from datetime import UTC, datetime, timedelta

import pytest

from knowledge_engine.confidence.decay import (
    citation_penalty,
    days_since,
    staleness_decay,
    usage_growth,
)
from knowledge_engine.models.entry import KnowledgeCategory
from knowledge_engine.models.maintenance import EntryCitationReport

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    ("count", "delta"),
    [(0, 0.0), (5, 0.0), (6, 0.05), (10, 0.05), (11, 0.10), (500, 0.10)],
)
def test_usage_growth_thresholds(count, delta):
    assert usage_growth(count)[0] == delta


def test_usage_growth_reason():
    assert usage_growth(12) == (0.10, "high usage (12): +0.10")
    assert usage_growth(7) == (0.05, "good usage (7): +0.05")
    assert usage_growth(3) == (0.0, None)


def test_days_since_floors():
    assert days_since(NOW - timedelta(days=90, hours=23), NOW) == 90
    assert days_since(NOW - timedelta(hours=1), NOW) == 0


def test_days_since_naive_reference_is_utc():
    naive = datetime(2026, 5, 31, 12, 0)
    assert days_since(naive, NOW) == 1


@pytest.mark.parametrize(
    ("days", "delta"),
    [(0, 0.0), (90, 0.0), (91, -0.10), (180, -0.10), (181, -0.20), (400, -0.20)],
)
def test_default_decay_buckets(days, delta):
    last_used = NOW - timedelta(days=days)
    assert staleness_decay(KnowledgeCategory.PATTERN, last_used, None, NOW)[0] == delta


@pytest.mark.parametrize("category", [KnowledgeCategory.TRUTH, KnowledgeCategory.ARCHITECTURE])
def test_slow_decay_categories(category):
    very_stale = staleness_decay(category, NOW - timedelta(days=200), None, NOW)
    stale = staleness_decay(category, NOW - timedelta(days=100), None, NOW)
    assert very_stale == (-0.05, "very stale (slow decay, 200d): -0.05")
    assert stale == (-0.02, "stale (slow decay, 100d): -0.02")


def test_uncategorized_uses_default_decay():
    delta, reason = staleness_decay(None, NOW - timedelta(days=200), None, NOW)
    assert delta == -0.20
    assert reason == "very stale (200d): -0.20"


def test_last_used_takes_precedence_over_created():
    created = NOW - timedelta(days=365)
    assert staleness_decay(None, NOW - timedelta(days=3), created, NOW) == (0.0, None)
    assert staleness_decay(None, None, created, NOW)[0] == -0.20


def test_no_reference_date_no_decay():
    assert staleness_decay(None, None, None, NOW) == (0.0, None)


def test_citation_penalty_proportional_to_missing():
    report = EntryCitationReport(entry_id="K-001", total=3, valid=1, changed=1, missing=1)
    delta, reason = citation_penalty(report)
    assert delta == pytest.approx(-0.05)
    assert reason == "missing citations (1/3): -0.05"


def test_changed_citations_not_penalized():
    report = EntryCitationReport(entry_id="K-001", total=2, valid=0, changed=2, missing=0)
    assert citation_penalty(report) == (0.0, None)


def test_no_citations_no_penalty():
    assert citation_penalty(None) == (0.0, None)
    assert citation_penalty(EntryCitationReport(entry_id="K-001")) == (0.0, None)
