"""kb_get MCP tool: full entry retrieval by ID."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from knowledge_engine.store.knowledge_store import KnowledgeStore
from knowledge_engine.tools.formatters import format_entry_detail, format_result_list

logger = logging.getLogger(__name__)

_MAX_IDS = 20


def register_kb_get(mcp: FastMCP) -> None:
    """Register the kb_get tool with the MCP server."""

    @mcp.tool()
    async def kb_get(
        entry_id: Annotated[
            str | list[str],
            Field(description="Single entry ID or list of IDs (max 20)"),
        ],
        ctx: Context | None = None,
    ) -> str:
        """Retrieve full details for one or more knowledge entries by ID.

        Use after kb_search to read an entry in full, including its
        provenance, usage and citations. Reading an entry does not count
        as usage; only search results do.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        store: KnowledgeStore = ctx.lifespan_context["store"]

        ids = [entry_id] if isinstance(entry_id, str) else list(entry_id)
        if len(ids) > _MAX_IDS:
            return f"Error: Maximum {_MAX_IDS} IDs per request (got {len(ids)})."

        formatted: list[str] = []
        for eid in ids:
            try:
                entry = await store.get_entry(eid)
            except ValueError as e:
                logger.warning("Entry %s could not be loaded: %s", eid, e)
                formatted.append(f"[{eid}] unreadable: {e}")
                continue
            if entry is None or not entry.active:
                formatted.append(f"[{eid}] not found")
            else:
                formatted.append(format_entry_detail(entry))

        return format_result_list(formatted)
