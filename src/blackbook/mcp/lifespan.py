"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config_loader import load_config
from ..config_schema import BlackbookConfig, ToolInstance, resolve_tool_instances
from ..sync.context import SyncContext

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@dataclass
class ServerSession:
    """Where tool calls read configuration and state from.

    Configuration is reloaded on every call so edits to ``config.yaml`` are
    picked up without restarting the server.
    """

    config_path: Path | None = None
    cache_dir: Path | None = None
    read_only: bool = False

    def load(self) -> tuple[BlackbookConfig, list[ToolInstance], SyncContext]:
        """Load config, resolve instances and build a fresh sync context.

        Raises:
            ValueError: If the configuration has errors.
        """
        result = load_config(self.config_path)
        if result.errors:
            messages = "; ".join(str(e) for e in result.errors)
            raise ValueError(f"Config at {result.config_path} is invalid: {messages}")
        config = result.config
        context = SyncContext.create(
            cache_dir=self.cache_dir,
            retention=config.settings.backup_retention,
        )
        return config, resolve_tool_instances(config), context


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for ``${VAR}`` interpolation)
    - Load and validate the config once, failing fast on errors

    Args:
        config_overrides: Optional dict from CLI (config, cache_dir, read_only)

    Yields:
        Dict with 'session' key containing the ServerSession

    Raises:
        RuntimeError: If the configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("blackbook MCP server starting...")

    overrides = config_overrides or {}
    load_dotenv()
    session = ServerSession(
        config_path=Path(overrides["config"]) if overrides.get("config") else None,
        cache_dir=Path(overrides["cache_dir"]) if overrides.get("cache_dir") else None,
        read_only=bool(overrides.get("read_only", False)),
    )

    try:
        config, instances, context = session.load()
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    enabled = sum(1 for i in instances if i.enabled)
    logger.info(
        "Loaded %d declared entries, %d enabled tool instance(s), cache %s",
        len(config.declared_entries()),
        enabled,
        context.cache_dir,
    )
    _stderr_print(f"  Cache directory: {context.cache_dir}")
    if session.read_only:
        _stderr_print("  Read-only mode: mutating tools disabled")

    try:
        yield {"session": session}
    finally:
        logger.info("MCP server shutting down")
