"""Async utilities for running blocking filesystem work off the event loop."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Used for hashing and copying large files so that a hosting UI or MCP
    server stays responsive.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        digest = await run_sync(hash_file, path)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def yield_control() -> None:
    """Give other tasks on the event loop a chance to run."""
    await asyncio.sleep(0)
