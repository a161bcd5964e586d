"""kb_store MCP tool: create and update knowledge entries."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from knowledge_engine.integrity.citations import make_citation
from knowledge_engine.models.entry import (
    Citation,
    DecisionScope,
    KnowledgeCategory,
    KnowledgeEntry,
    KnowledgeSource,
    TicketType,
)
from knowledge_engine.search.embeddings import EmbeddingError
from knowledge_engine.store.knowledge_store import KnowledgeStore
from knowledge_engine.tools.formatters import format_entry_compact

logger = logging.getLogger(__name__)


def format_store_result(entry: KnowledgeEntry, is_update: bool = False) -> str:
    """Format the result of a store operation for the MCP response."""
    action = "Updated" if is_update else "Created"
    line = f"{action} {entry.id}\n{format_entry_compact(entry)}"
    if not entry.has_embedding:
        line += "\n  Note: Entry has no embedding and will not appear in search"
    return line


def record_citations(paths: list[str], project_root: str) -> tuple[list[Citation], list[str]]:
    """Hash each cited file now. Returns (citations, paths that could not be read)."""
    citations: list[Citation] = []
    unreadable: list[str] = []
    for path in paths:
        try:
            citations.append(make_citation(path, project_root))
        except OSError:
            unreadable.append(path)
    return citations, unreadable


def register_kb_store(mcp: FastMCP) -> None:
    """Register the kb_store tool with the MCP server."""

    @mcp.tool()
    async def kb_store(
        title: Annotated[str, Field(description="Short descriptive title")] = "",
        content: Annotated[str, Field(description="Full content of the knowledge entry")] = "",
        namespace: Annotated[str, Field(description="Project or domain grouping")] = "global",
        category: Annotated[
            KnowledgeCategory | None,
            Field(description="pattern, truth, principle, architecture, gotcha"),
        ] = None,
        tags: Annotated[list[str] | None, Field(description="Short tags")] = None,
        source: Annotated[
            KnowledgeSource | None, Field(description="ticket, discovery, manual")
        ] = None,
        origin_ticket_id: Annotated[
            str | None, Field(description="Ticket this knowledge came from")
        ] = None,
        origin_ticket_type: Annotated[
            TicketType | None, Field(description="Type of the origin ticket")
        ] = None,
        confidence: Annotated[
            float | None,
            Field(description="Confidence 0.1-1.0 (0.7-0.8 for patterns, 1.0 for invariants)"),
        ] = None,
        decision_scope: Annotated[
            DecisionScope | None,
            Field(description="new-only, backward-compatible, global, legacy-frozen"),
        ] = None,
        citations: Annotated[
            list[str] | None,
            Field(description="Code citations as relative/path:line; files are hashed now"),
        ] = None,
        update_entry_id: Annotated[
            str | None, Field(description="ID of an existing entry to update")
        ] = None,
        ctx: Context | None = None,
    ) -> str:
        """Store or update a knowledge entry.

        New entries are embedded from title, content and tags. Updating any of
        those recomputes the embedding. Citations record the digest of the whole
        cited file so later validation can detect drift.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")
        lifespan = ctx.lifespan_context
        store: KnowledgeStore = lifespan["store"]
        project_root = str(lifespan["project_root"])

        recorded: list[Citation] | None = None
        unreadable: list[str] = []
        if citations is not None:
            recorded, unreadable = record_citations(citations, project_root)

        try:
            if update_entry_id:
                entry = await store.update_entry(
                    entry_id=update_entry_id,
                    title=title or None,
                    content=content or None,
                    tags=tags,
                    category=category,
                    confidence=confidence,
                    decision_scope=decision_scope,
                )
                if recorded is not None:
                    entry = await store.update_citations(update_entry_id, recorded)
                result = format_store_result(entry, is_update=True)
            else:
                if not title or not content:
                    return "Error: title and content are required when creating a new entry."
                entry = await store.create_entry(
                    title=title,
                    content=content,
                    namespace=namespace,
                    category=category,
                    tags=tags,
                    source=source,
                    origin_ticket_id=origin_ticket_id,
                    origin_ticket_type=origin_ticket_type,
                    confidence=confidence if confidence is not None else 0.8,
                    decision_scope=decision_scope or DecisionScope.GLOBAL,
                    citations=recorded,
                )
                result = format_store_result(entry)
        except ValueError as e:
            return f"Error: {e}"
        except EmbeddingError as e:
            logger.warning("Store failed: %s", e)
            return f"Error: {e}"

        if unreadable:
            result += "\n  Skipped unreadable citations: " + ", ".join(unreadable)
        return result
