"""ToolSpec and ToolRegistry for read-only tool filtering.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, whether the tool
  writes to disk, and an async handler with standardized signature
  (session, args) -> CallToolResult.
- ToolRegistry: Drops mutating specs at construction time when running
  read-only, then provides list_tools() and call_tool() dispatch with error
  translation.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import mcp.types as types

from ...file_handler import LockTimeoutError

if TYPE_CHECKING:
    from ..lifespan import ServerSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable description of a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        mutating: True if the tool may change files, state or backups.
        handler: Async handler with signature (session, args) -> CallToolResult.
    """

    tool: types.Tool
    mutating: bool
    handler: Callable[[ServerSession, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs, optionally restricted to non-mutating tools."""

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if read_only and spec.mutating:
                logger.debug("Read-only: skipping %s", spec.tool.name)
                continue
            self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        session: ServerSession,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Lock timeouts, validation errors and unexpected exceptions are
        translated into structured CallToolResult responses with corrective
        actions.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(session, args)
        except LockTimeoutError as e:
            logger.warning("Lock timeout in %s: %s", name, e)
            return build_error_response(
                "lock_timeout",
                str(e),
                "Another sync is running. Retry in a few seconds.",
            )
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and the blackbook config, then retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log for details and retry.",
            )
