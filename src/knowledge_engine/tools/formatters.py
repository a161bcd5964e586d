"""Compact output formatters for MCP tool responses."""

from knowledge_engine.models.entry import KnowledgeEntry
from knowledge_engine.models.maintenance import (
    CitationStatus,
    CitationValidationReport,
    HealthReport,
    RecalculationReport,
    UsageHealth,
)
from knowledge_engine.models.search import SearchResult


def format_entry_header(entry: KnowledgeEntry, score: float | None = None) -> str:
    """Format: [KNOWLEDGE-...] pattern | Title (80%) score 0.912."""
    category = entry.category.value if entry.category else "uncategorized"
    line = f"[{entry.id}] {category} | {entry.title} ({entry.confidence:.0%})"
    if score is not None:
        line += f" score {score:.3f}"
    return line


def format_entry_meta(entry: KnowledgeEntry) -> str:
    """Format: #tag1 #tag2 | namespace | branch  [INACTIVE]."""
    parts: list[str] = []
    if entry.tags:
        parts.append(" ".join(f"#{t}" for t in entry.tags))
    parts.append(entry.namespace)
    parts.append(f"branch:{entry.branch}")
    line = " | ".join(parts)
    if not entry.active:
        line = f"{line}  [INACTIVE]"
    return line


def format_entry_compact(entry: KnowledgeEntry, score: float | None = None) -> str:
    """Header + meta, no content. For kb_search and kb_store."""
    return "\n".join([format_entry_header(entry, score), f"  {format_entry_meta(entry)}"])


def format_entry_full(entry: KnowledgeEntry, score: float | None = None) -> str:
    """Header + meta + citations + content."""
    lines = [format_entry_header(entry, score), f"  {format_entry_meta(entry)}"]
    if entry.citations:
        lines.append("  cites: " + ", ".join(c.path for c in entry.citations))
    lines.append(f"  {entry.content}")
    return "\n".join(lines)


def format_result_list(
    formatted_entries: list[str],
    header: str | None = None,
    note: str | None = None,
) -> str:
    """Count + note + entries joined by blank lines."""
    if not formatted_entries:
        return "No results found."

    lines: list[str] = []
    if header:
        lines.append(header)
    lines.append(f"{len(formatted_entries)} result(s)")
    if note:
        lines.append(f"Note: {note}")
    lines.append("")
    lines.append("\n\n".join(formatted_entries))
    return "\n".join(lines)


def format_search_results(
    results: list[SearchResult], note: str | None = None, full: bool = False
) -> str:
    """Format ranked search results."""
    fmt = format_entry_full if full else format_entry_compact
    return format_result_list([fmt(r.entry, r.score) for r in results], note=note)


def format_recalculation(report: RecalculationReport) -> str:
    """Summary line plus one line per adjusted entry."""
    mode = " (dry run)" if report.dry_run else ""
    lines = [
        f"Confidence recalculation{mode}: {report.total} active,"
        f" {report.adjusted} adjusted, {report.skipped} unchanged"
    ]
    if report.guarded:
        lines[0] += f", {report.guarded} already adjusted today"
    if report.errored:
        lines[0] += f", {report.errored} errored"
    for adj in report.adjustments:
        lines.append(
            f"  {adj.id} {adj.old_confidence:.2f} -> {adj.new_confidence:.2f}"
            f" ({'; '.join(adj.reasons)})"
        )
    return "\n".join(lines)


def format_citation_report(report: CitationValidationReport, verbose: bool = False) -> str:
    """Aggregate counts plus the entries with changed or missing citations."""
    lines = [
        f"Citations: {report.total_citations} across {report.cited_entries} entries"
        f" ({report.valid} valid, {report.changed} changed, {report.missing} missing)",
        f"Uncited entries: {report.uncited_entries}",
    ]
    if report.errored:
        lines.append(f"Errored entries: {report.errored}")
    for entry in report.entries:
        if not verbose and entry.valid == entry.total:
            continue
        lines.append(
            f"  [{entry.entry_id}] {entry.title}: {entry.valid}/{entry.total} valid,"
            f" {entry.changed} changed, {entry.missing} missing"
        )
        for check in entry.checks:
            if verbose or check.status is not CitationStatus.VALID:
                lines.append(f"    {check.status.value}: {check.path}")
    return "\n".join(lines)


def format_entry_detail(entry: KnowledgeEntry) -> str:
    """Full entry plus provenance and usage. For kb_get."""
    origin = entry.source.value
    if entry.origin_ticket_id:
        ticket_type = f" ({entry.origin_ticket_type.value})" if entry.origin_ticket_type else ""
        origin += f" {entry.origin_ticket_id}{ticket_type}"
    usage = f"used {entry.usage_count}x"
    if entry.last_used_at:
        usage += f", last {entry.last_used_at:%Y-%m-%d}"
    details = [
        f"source:{origin}",
        f"scope:{entry.decision_scope.value}",
        f"by {entry.author}",
        usage,
    ]
    if entry.created_at:
        details.append(f"created {entry.created_at:%Y-%m-%d}")

    lines = [format_entry_header(entry), f"  {format_entry_meta(entry)}"]
    lines.append("  " + " | ".join(details))
    if entry.citations:
        lines.append("  cites: " + ", ".join(c.path for c in entry.citations))
    lines.append(f"  {entry.content}")
    return "\n".join(lines)


def format_health(report: HealthReport, branch: str) -> str:
    """Bucket counts, then the entries in each non-empty bucket."""
    usage = ", ".join(f"{len(v)} {k.value}" for k, v in report.by_usage.items())
    citations = ", ".join(f"{len(v)} {k.value}" for k, v in report.by_citation.items())
    lines = [
        f"Knowledge health ({branch}): {report.total} active entries",
        f"Usage: {usage}",
        f"Citations: {citations}",
    ]
    for buckets in (report.by_citation, report.by_usage):
        for status, entries in buckets.items():
            if not entries or status is UsageHealth.STABLE:
                continue
            lines.append(f"\n{status.value}:")
            for entry in entries:
                lines.append(
                    f"  [{entry.id}] {entry.category} | {entry.title} ({entry.confidence:.0%})"
                )
    return "\n".join(lines)
