"""Tests for compact output formatters."""

from knowledge_engine.models.entry import Citation, KnowledgeCategory
from knowledge_engine.models.maintenance import (
    CitationCheck,
    CitationStatus,
    CitationValidationReport,
    ConfidenceAdjustment,
    EntryCitationReport,
    RecalculationReport,
)
from knowledge_engine.models.search import SearchResult
from knowledge_engine.tools.formatters import (
    format_citation_report,
    format_entry_compact,
    format_entry_detail,
    format_entry_full,
    format_entry_header,
    format_entry_meta,
    format_recalculation,
    format_result_list,
    format_search_results,
)
from tests.conftest import make_entry, vec


def test_header_with_score():
    entry = make_entry(
        "KNOWLEDGE-20260101-000000000",
        title="Use cursors",
        category=KnowledgeCategory.PATTERN,
        confidence=0.8,
    )
    assert (
        format_entry_header(entry, 0.9123)
        == "[KNOWLEDGE-20260101-000000000] pattern | Use cursors (80%) score 0.912"
    )


def test_header_uncategorized_without_score():
    entry = make_entry("K-001", title="Loose note", confidence=1.0)
    assert format_entry_header(entry) == "[K-001] uncategorized | Loose note (100%)"


def test_meta_tags_namespace_branch():
    entry = make_entry("K-001", tags=["http", "retry"], namespace="api", branch="main")
    assert format_entry_meta(entry) == "#http #retry | api | branch:main"


def test_meta_inactive_marker():
    entry = make_entry("K-001", active=False)
    assert format_entry_meta(entry).endswith("[INACTIVE]")


def test_compact_has_no_content():
    entry = make_entry("K-001", content="secret body")
    assert "secret body" not in format_entry_compact(entry)


def test_full_includes_citations_and_content():
    entry = make_entry(
        "K-001",
        content="the body",
        citations=[Citation(path="src/a.py:3", file_hash="0" * 16)],
    )
    out = format_entry_full(entry)
    assert "cites: src/a.py:3" in out
    assert out.endswith("  the body")


def test_result_list_empty():
    assert format_result_list([]) == "No results found."


def test_search_results_with_note():
    entry = make_entry("K-001", vec(1))
    out = format_search_results(
        [SearchResult(entry=entry, distance=0.25, score=0.75)], note="full scan"
    )
    lines = out.splitlines()
    assert lines[0] == "1 result(s)"
    assert lines[1] == "Note: full scan"
    assert "score 0.750" in out


def test_recalculation_summary():
    report = RecalculationReport(
        dry_run=True,
        total=3,
        adjusted=1,
        skipped=1,
        guarded=1,
        adjustments=[
            ConfidenceAdjustment(
                id="K-001",
                title="t",
                old_confidence=0.8,
                new_confidence=0.55,
                adjustment=-0.25,
                reasons=["very stale (200d): -0.20", "missing citations (1/1): -0.15"],
            )
        ],
    )
    out = format_recalculation(report)
    assert out.splitlines()[0] == (
        "Confidence recalculation (dry run): 3 active, 1 adjusted, 1 unchanged,"
        " 1 already adjusted today"
    )
    assert "K-001 0.80 -> 0.55 (very stale (200d): -0.20; missing citations (1/1): -0.15)" in out


def test_citation_report_hides_healthy_entries():
    healthy = EntryCitationReport(
        entry_id="K-001",
        title="ok",
        total=1,
        valid=1,
        checks=[CitationCheck(path="a.py:1", status=CitationStatus.VALID)],
    )
    broken = EntryCitationReport(
        entry_id="K-002",
        title="drifted",
        total=2,
        valid=1,
        missing=1,
        checks=[
            CitationCheck(path="b.py:1", status=CitationStatus.VALID),
            CitationCheck(path="gone.py:1", status=CitationStatus.MISSING),
        ],
    )
    report = CitationValidationReport(
        total_entries=3,
        cited_entries=2,
        uncited_entries=1,
        total_citations=3,
        valid=2,
        missing=1,
        entries=[healthy, broken],
    )

    out = format_citation_report(report)
    assert out.splitlines()[0] == "Citations: 3 across 2 entries (2 valid, 0 changed, 1 missing)"
    assert "[K-001]" not in out
    assert "[K-002] drifted: 1/2 valid, 0 changed, 1 missing" in out
    assert "missing: gone.py:1" in out
    assert "valid: b.py:1" not in out

    verbose = format_citation_report(report, verbose=True)
    assert "[K-001]" in verbose
    assert "valid: b.py:1" in verbose


def test_entry_detail_without_ticket_or_usage():
    entry = make_entry("K-001", title="Loose note", content="Body", author="lee", created_at=None)
    text = format_entry_detail(entry)
    assert text.splitlines()[2] == "  source:manual | scope:global | by lee | used 0x"
    assert text.endswith("  Body")
