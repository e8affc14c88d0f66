"""Tests for mcp/tools/errors.py response builders."""

import mcp.types as types

from blackbook.mcp.tools.errors import build_error_response, text_result


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class TestBuildErrorResponse:
    def test_shape(self):
        result = build_error_response("not_found", "No entry 'x'", "Use sync_check.")
        assert result.isError is True
        assert len(result.content) == 1
        assert _text(result) == "Error (not_found): No entry 'x'\n\nAction: Use sync_check."


class TestTextResult:
    def test_plain(self):
        result = text_result("done")
        assert not result.isError
        assert _text(result) == "done"
        assert result.structuredContent is None

    def test_structured(self):
        result = text_result("done", {"removed": 2})
        assert result.structuredContent == {"removed": 2}
