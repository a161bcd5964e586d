"""Tests for the kb_get MCP tool."""

from datetime import UTC, datetime

import pytest

from knowledge_engine.db.queries import get_entry
from knowledge_engine.models.entry import Citation, DecisionScope, KnowledgeSource, TicketType
from knowledge_engine.tools.kb_get import register_kb_get
from tests.conftest import add_entry, capture_tools, vec


@pytest.mark.asyncio
async def test_get_single_entry(db, tool_context):
    ctx, _ = tool_context
    await add_entry(
        db,
        "K-001",
        vec(1),
        title="Retry with jitter",
        content="Wrap outbound calls in a retry.",
        source=KnowledgeSource.TICKET,
        origin_ticket_id="TICKET-7",
        origin_ticket_type=TicketType.BUGFIX,
        decision_scope=DecisionScope.NEW_ONLY,
        author="dana",
        usage_count=3,
        last_used_at=datetime(2026, 5, 2, tzinfo=UTC),
        created_at=datetime(2026, 1, 15, tzinfo=UTC),
        citations=[Citation(path="src/http.py:12", file_hash="0123456789abcdef")],
    )
    tools = capture_tools(register_kb_get)

    result = await tools["kb_get"](entry_id="K-001", ctx=ctx)

    assert result.startswith("1 result(s)")
    assert "[K-001] uncategorized | Retry with jitter (80%)" in result
    assert (
        "source:ticket TICKET-7 (bugfix) | scope:new-only | by dana"
        " | used 3x, last 2026-05-02 | created 2026-01-15"
    ) in result
    assert "cites: src/http.py:12" in result
    assert "Wrap outbound calls in a retry." in result


@pytest.mark.asyncio
async def test_get_multiple_with_missing_and_inactive(db, tool_context):
    ctx, _ = tool_context
    await add_entry(db, "K-001", vec(1))
    await add_entry(db, "K-002", vec(1), active=False)
    tools = capture_tools(register_kb_get)

    result = await tools["kb_get"](entry_id=["K-001", "K-002", "K-404"], ctx=ctx)

    assert result.startswith("3 result(s)")
    assert "[K-001] uncategorized" in result
    assert "[K-002] not found" in result
    assert "[K-404] not found" in result


@pytest.mark.asyncio
async def test_get_does_not_count_usage(db, tool_context):
    ctx, _ = tool_context
    await add_entry(db, "K-001", vec(1))
    tools = capture_tools(register_kb_get)

    await tools["kb_get"](entry_id="K-001", ctx=ctx)

    assert (await get_entry(db, "K-001")).usage_count == 0


@pytest.mark.asyncio
async def test_get_malformed_entry(db, tool_context):
    ctx, _ = tool_context
    await add_entry(db, "K-001", vec(1))
    await add_entry(db, "K-002", vec(1))
    await db.execute("UPDATE knowledge SET category = 'legacy' WHERE id = 'K-002'")
    await db.commit()
    tools = capture_tools(register_kb_get)

    result = await tools["kb_get"](entry_id=["K-001", "K-002"], ctx=ctx)

    assert "[K-001] uncategorized" in result
    assert "[K-002] unreadable:" in result


@pytest.mark.asyncio
async def test_get_too_many_ids(tool_context):
    ctx, _ = tool_context
    tools = capture_tools(register_kb_get)

    result = await tools["kb_get"](entry_id=[f"K-{i:03d}" for i in range(21)], ctx=ctx)

    assert result == "Error: Maximum 20 IDs per request (got 21)."
