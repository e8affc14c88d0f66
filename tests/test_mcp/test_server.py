"""Tests for MCP server globals and protocol handlers."""

import mcp.types as types
import pytest

from blackbook.mcp import server
from blackbook.mcp.lifespan import ServerSession
from blackbook.mcp.tools import ALL_SPECS, ToolRegistry


@pytest.fixture
def installed():
    server.set_session(ServerSession())
    server.set_registry(ToolRegistry(ALL_SPECS, read_only=True))
    yield
    server.set_session(None)
    server.set_registry(None)


class TestAccessors:
    def test_uninitialized(self):
        with pytest.raises(RuntimeError):
            server.get_session()
        with pytest.raises(RuntimeError):
            server.get_registry()


class TestHandlers:
    async def test_list_tools_respects_read_only(self, installed):
        names = [t.name for t in await server.handle_list_tools()]
        assert "sync_check" in names
        assert "sync_apply" not in names

    async def test_filtered_tool_is_unknown(self, installed):
        result = await server.handle_call_tool("sync_apply", {})
        assert result.isError
        content = result.content[0]
        assert isinstance(content, types.TextContent)
        assert content.text.startswith("Error (unknown_tool)")

    async def test_call_dispatches(self, installed):
        result = await server.handle_call_tool("sync_check", None)
        assert not result.isError
        assert result.structuredContent["summary"]["ok"] == 0
