"""kb_search MCP tool: semantic search with filters and branch-aware scope."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field, ValidationError

from knowledge_engine.config import get_stable_branch
from knowledge_engine.models.entry import KnowledgeCategory, TicketType
from knowledge_engine.models.search import FilterSpec
from knowledge_engine.search.embeddings import EmbeddingError
from knowledge_engine.search.retrieval import RetrievalEngine
from knowledge_engine.tools.formatters import format_search_results

logger = logging.getLogger(__name__)


def build_filter(
    namespace: str | None = None,
    category: KnowledgeCategory | None = None,
    ticket_type: TicketType | None = None,
    tags: list[str] | None = None,
    author: str | None = None,
    branch: str | None = None,
    with_stable: bool = False,
    min_score: float = 0.0,
) -> FilterSpec:
    """Build a FilterSpec. ``with_stable`` searches ``branch`` plus the stable branch."""
    branches: list[str] | None = None
    if with_stable and branch:
        branches = sorted({get_stable_branch(), branch})
        branch = None
    return FilterSpec(
        namespace=namespace,
        category=category,
        ticket_type=ticket_type,
        tags=tags,
        author=author,
        branch=branch,
        branches=branches,
        min_score=min_score,
    )


def register_kb_search(mcp: FastMCP) -> None:
    """Register the kb_search tool with the MCP server."""

    @mcp.tool()
    async def kb_search(
        query: Annotated[str, Field(description="Natural language search query")],
        namespace: Annotated[str | None, Field(description="Filter to a namespace")] = None,
        category: Annotated[
            KnowledgeCategory | None,
            Field(description="pattern, truth, principle, architecture, gotcha"),
        ] = None,
        ticket_type: Annotated[
            TicketType | None,
            Field(description="Filter by the type of ticket the entry came from"),
        ] = None,
        tags: Annotated[
            list[str] | None, Field(description="Filter by tags (any may match)")
        ] = None,
        author: Annotated[str | None, Field(description="Filter by author")] = None,
        branch: Annotated[str | None, Field(description="Filter by branch")] = None,
        with_stable: Annotated[
            bool,
            Field(description="Also include the stable branch when a branch is given"),
        ] = False,
        min_score: Annotated[
            float, Field(description="Minimum similarity score", ge=-1.0, le=1.0)
        ] = 0.0,
        limit: Annotated[
            int, Field(description="Maximum results to return (1-100)", ge=1, le=100)
        ] = 10,
        full: Annotated[bool, Field(description="Include entry content")] = False,
        ctx: Context | None = None,
    ) -> str:
        """Search knowledge entries by semantic similarity.

        Results are ranked by cosine similarity to the query. Returned entries
        have their usage recorded, which feeds confidence maintenance.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")
        engine: RetrievalEngine = ctx.lifespan_context["engine"]

        try:
            search_filter = build_filter(
                namespace, category, ticket_type, tags, author, branch, with_stable, min_score
            )
        except ValidationError as e:
            return f"Error: invalid filter: {e.errors()[0]['msg']}"

        try:
            response = await engine.search(query, search_filter, limit)
        except EmbeddingError as e:
            logger.warning("Search failed: %s", e)
            return f"Error: {e}"

        note = None
        if response.strategy == "scan":
            note = "Vector index unavailable. Results come from a full scan."
        return format_search_results(response.results, note, full=full)
