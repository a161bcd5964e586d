"""Tests for server construction."""

from fastmcp import FastMCP

import knowledge_engine.server as server


def _record_registrations(monkeypatch) -> list[str]:
    registered: list[str] = []
    for name in (
        "register_kb_store",
        "register_kb_search",
        "register_kb_get",
        "register_kb_maintain",
    ):
        monkeypatch.setattr(server, name, lambda mcp, name=name: registered.append(name))
    return registered


def test_create_server(monkeypatch):
    monkeypatch.delenv("KE_MANAGER", raising=False)
    registered = _record_registrations(monkeypatch)

    mcp = server.create_server()

    assert isinstance(mcp, FastMCP)
    assert mcp.name == "knowledge-engine"
    assert registered == ["register_kb_store", "register_kb_search", "register_kb_get"]


def test_manager_mode_registers_maintenance(monkeypatch):
    monkeypatch.setenv("KE_MANAGER", "TRUE")
    registered = _record_registrations(monkeypatch)

    server.create_server()

    assert "register_kb_maintain" in registered
