"""MCP server for blackbook using stdio transport.

Exposes the sync operations (check, apply, diff, cleanup, backup listing)
as MCP tools so an agent can keep its own instructions and skills in sync.

Transport: stdio (for MCP client integration)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..logger import setup_logging
from .lifespan import ServerSession, server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response

logger = logging.getLogger(__name__)

server = Server("blackbook")

# Initialized in main()
_session: ServerSession | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_session() -> ServerSession:
    """Get the global ServerSession.

    Raises:
        RuntimeError: If the session is not initialized
    """
    if _session is None:
        raise RuntimeError("ServerSession not initialized. Server lifespan not started.")
    return _session


def set_session(session: ServerSession | None) -> None:
    global _session
    _session = session


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry.

    Raises:
        RuntimeError: If the registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List the registered (and, in read-only mode, non-mutating) tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    session = get_session()
    try:
        return await get_registry().call_tool(name, arguments, session)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Logging is set up for MCP mode (file only, never stdout) before the
    stdio transport starts.

    Args:
        config_overrides: Optional dict with config, cache_dir, read_only,
            log_file and debug overrides
    """
    overrides = config_overrides or {}

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    read_only = bool(overrides.get("read_only", False))
    registry = ToolRegistry(ALL_SPECS, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(ALL_SPECS),
    )
    set_registry(registry)

    async with server_lifespan(config_overrides=overrides) as ctx:
        set_session(ctx["session"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="blackbook",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_session(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="blackbook MCP server - declared file sync over the Model Context Protocol",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with the default config (<config dir>/config.yaml)
  blackbook-mcp

  # Explicit config and cache directory
  blackbook-mcp --config ~/dotfiles/blackbook.yaml --cache-dir /tmp/bb-cache

  # Only expose tools that never write
  blackbook-mcp --read-only

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--cache-dir", help="Directory holding state.json and backups")
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Disable sync_apply and cleanup with apply=true",
    )
    parser.add_argument(
        "--log-file",
        help="Log file path (default: $BLACKBOOK_LOG_FILE or <cache dir>/blackbook.log)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--version",
        action="version",
        version=f"blackbook-mcp version {__version__}",
    )

    args = parser.parse_args()

    config_overrides: dict = {}
    if args.config:
        config_overrides["config"] = args.config
    if args.cache_dir:
        config_overrides["cache_dir"] = args.cache_dir
    if args.read_only:
        config_overrides["read_only"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.debug:
        config_overrides["debug"] = True

    if config_overrides:
        print(
            f"Config overrides from CLI: {', '.join(config_overrides)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
