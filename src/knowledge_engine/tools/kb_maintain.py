"""kb_maintain MCP tool: confidence, citation and lifecycle maintenance."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from knowledge_engine.confidence.maintenance import ConfidenceMaintainer
from knowledge_engine.config import get_stable_branch
from knowledge_engine.db.backend import Database
from knowledge_engine.db.queries import get_db_stats, list_entries
from knowledge_engine.db.sqlite_backend import SQLiteBackend
from knowledge_engine.integrity.citations import CitationValidator
from knowledge_engine.integrity.health import classify_health
from knowledge_engine.models.entry import DecisionScope, KnowledgeCategory, KnowledgeSource
from knowledge_engine.store.knowledge_store import KnowledgeStore
from knowledge_engine.tools.formatters import (
    format_citation_report,
    format_entry_compact,
    format_health,
    format_recalculation,
    format_result_list,
)

logger = logging.getLogger(__name__)

_ACTIONS = {
    "stats",
    "list",
    "health",
    "recalculate",
    "validate_citations",
    "deactivate",
    "activate",
    "promote",
    "rebuild_embeddings",
    "vacuum",
}

_NEEDS_ENTRY_ID = {"deactivate", "activate", "promote"}

_MAX_LIST = 100


def register_kb_maintain(mcp: FastMCP) -> None:
    """Register the kb_maintain tool with the MCP server."""

    @mcp.tool()
    async def kb_maintain(
        action: Annotated[
            str,
            Field(
                description=(
                    "Maintenance action: stats, list, health, recalculate, validate_citations, "
                    "deactivate, activate, promote, rebuild_embeddings, vacuum"
                ),
            ),
        ],
        entry_id: Annotated[
            str | None,
            Field(description="Required for deactivate, activate, promote"),
        ] = None,
        dry_run: Annotated[
            bool, Field(description="For recalculate: preview without writing")
        ] = False,
        verbose: Annotated[
            bool, Field(description="For validate_citations: list valid citations too")
        ] = False,
        force: Annotated[
            bool,
            Field(description="For rebuild_embeddings: re-embed ALL (not just missing)"),
        ] = False,
        status: Annotated[
            str, Field(description="For list: active, inactive or all")
        ] = "active",
        namespace: Annotated[str | None, Field(description="For list: filter by namespace")] = None,
        category: Annotated[
            KnowledgeCategory | None, Field(description="For list: filter by category")
        ] = None,
        scope: Annotated[
            DecisionScope | None, Field(description="For list: filter by decision scope")
        ] = None,
        source: Annotated[
            KnowledgeSource | None, Field(description="For list: filter by source")
        ] = None,
        author: Annotated[str | None, Field(description="For list: filter by author")] = None,
        branch: Annotated[
            str | None,
            Field(description="For list: filter by branch. For health: defaults to stable"),
        ] = None,
        limit: Annotated[int, Field(description="For list: max entries (max 100)")] = 20,
        ctx: Context | None = None,
    ) -> str:
        """Administrative maintenance operations for the knowledge base.

        Requires KE_MANAGER=TRUE environment variable.

        Actions:
        - stats: Entry counts by status, category, namespace and branch
        - list: Newest entries, filtered by status, namespace, category, scope,
          source, author and branch
        - health: Usage trend (rising/stable/decaying) and citation problems
          for active entries on one branch
        - recalculate: Adjust confidence from usage, staleness and citation health
        - validate_citations: Check cited files still exist and are unchanged
        - deactivate / activate: Soft-delete or restore an entry (requires entry_id)
        - promote: Move an entry to the stable branch (requires entry_id)
        - rebuild_embeddings: Re-embed entries (force=True for all)
        - vacuum: Optimize database (PRAGMA optimize + VACUUM)
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        if action not in _ACTIONS:
            return f"Unknown action '{action}'. Use: {', '.join(sorted(_ACTIONS))}"
        if action in _NEEDS_ENTRY_ID and not entry_id:
            return f"Error: entry_id is required for {action} action."

        lifespan = ctx.lifespan_context
        db: Database = lifespan["db"]
        store: KnowledgeStore = lifespan["store"]
        maintainer: ConfidenceMaintainer = lifespan["maintainer"]
        project_root: Path = lifespan["project_root"]

        if action == "stats":
            return await _action_stats(db)
        elif action == "list":
            try:
                entries = await list_entries(
                    db,
                    status=status,
                    namespace=namespace,
                    category=category,
                    decision_scope=scope,
                    source=source,
                    author=author,
                    branch=branch,
                    limit=max(1, min(limit, _MAX_LIST)),
                )
            except ValueError as e:
                return f"Error: {e}"
            return format_result_list([format_entry_compact(e) for e in entries])
        elif action == "health":
            return await _action_health(store, project_root, branch or get_stable_branch())
        elif action == "recalculate":
            return await _action_recalculate(maintainer, dry_run)
        elif action == "validate_citations":
            return await _action_validate_citations(store, project_root, verbose)
        elif action in _NEEDS_ENTRY_ID:
            return await _action_lifecycle(store, action, entry_id or "")
        elif action == "rebuild_embeddings":
            return await _action_rebuild_embeddings(store, force)
        elif action == "vacuum":
            return await _action_vacuum(db)

        return "Action not implemented."


async def _action_stats(db: Database) -> str:
    """Database overview with counts."""
    stats = await get_db_stats(db)

    lines = ["Knowledge Base Statistics\n"]
    lines.append(
        f"Entries: {stats['total_entries']} total"
        f" ({stats['active_entries']} active, {stats['inactive_entries']} inactive)"
    )
    lines.append(f"Average confidence: {stats['avg_confidence']:.0%}")

    for label, key in (
        ("category", "by_category"),
        ("namespace", "by_namespace"),
        ("branch", "by_branch"),
    ):
        counts = stats.get(key, {})
        if counts:
            lines.append(f"\nActive entries by {label}:")
            for name, count in counts.items():
                lines.append(f"  {name}: {count}")

    lines.append(
        f"\nEmbeddings: {stats['with_embeddings']} with, {stats['without_embeddings']} without"
    )
    if isinstance(db, SQLiteBackend):
        indexed = await db.vector_count()
        lines.append(
            "Vector index: unavailable (full-scan search)"
            if indexed is None
            else f"Vector index: {indexed} indexed"
        )

    return "\n".join(lines)


async def _action_recalculate(maintainer: ConfidenceMaintainer, dry_run: bool) -> str:
    report = await maintainer.recalculate(dry_run=dry_run)
    return format_recalculation(report)


async def _action_validate_citations(
    store: KnowledgeStore, project_root: Path, verbose: bool
) -> str:
    entries = await store.get_active_entries()
    validator = CitationValidator(project_root)
    report = await asyncio.to_thread(validator.validate_entries, entries)
    return format_citation_report(report, verbose=verbose)


async def _action_health(store: KnowledgeStore, project_root: Path, branch: str) -> str:
    """Classify active entries on one branch, sharing one hash cache across citations."""
    entries = [e for e in await store.get_active_entries() if e.branch == branch]
    validator = CitationValidator(project_root)
    report = await asyncio.to_thread(classify_health, entries, validator)
    return format_health(report, branch)


async def _action_lifecycle(store: KnowledgeStore, action: str, entry_id: str) -> str:
    try:
        if action == "deactivate":
            entry = await store.deactivate_entry(entry_id)
            return f"Deactivated entry {entry.id}: {entry.title}"
        if action == "activate":
            entry = await store.activate_entry(entry_id)
            return f"Activated entry {entry.id}: {entry.title}"
        entry = await store.promote_entry(entry_id)
        return f"Promoted entry {entry.id} to {entry.branch}: {entry.title}"
    except ValueError as e:
        return f"Error: {e}"


async def _action_rebuild_embeddings(store: KnowledgeStore, force: bool) -> str:
    """Re-embed entries. force=True re-embeds all, otherwise only missing."""
    if store.embedder is None:
        return "No embedding model configured. Cannot rebuild embeddings."
    succeeded, failed = await store.rebuild_embeddings(force=force)
    if succeeded == 0 and failed == 0:
        return "No entries need embedding."
    mode = "all entries" if force else "entries without embeddings"
    return f"Rebuild embeddings ({mode}): {succeeded} succeeded, {failed} failed"


async def _action_vacuum(db: Database) -> str:
    if isinstance(db, SQLiteBackend):
        return await db.vacuum()
    return "Vacuum not supported by this backend."
