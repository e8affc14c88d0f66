"""MCP tool handlers for checking and applying declared file sync.

Defines five tools:

- ``sync_check`` -- status of every planned step (read-only).
- ``sync_apply`` -- reconcile missing or drifted steps, optionally filtered.
- ``sync_diff`` -- line counts and hunks for differing mappings.
- ``sync_cleanup`` -- list orphaned state entries, removing them with ``apply``.
- ``backup_list`` -- backup owners, or one owner's backups.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.cleanup import apply_cleanup, check_cleanup
from ...sync.orchestrator import run_apply, run_check
from ...sync.planner import plan_diffs, plan_steps
from ...sync.reporter import (
    cleanup_to_json,
    diffs_to_json,
    format_cleanup_report,
    format_diff,
    format_orchestrator_result,
    result_to_json,
)
from .errors import build_error_response, text_result
from .registry import ToolSpec

if TYPE_CHECKING:
    from ..lifespan import ServerSession

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_CHECK_TOOL = types.Tool(
    name="sync_check",
    description=(
        "Check every declared file mapping against each enabled tool instance. "
        "Reports ok, missing, drifted or failed per step without changing anything."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
    inputSchema={"type": "object", "properties": {}, "required": []},
)

SYNC_APPLY_TOOL = types.Tool(
    name="sync_apply",
    description=(
        "Reconcile missing or drifted steps. Overwritten targets are backed up "
        "first. Use 'only' with step labels from sync_check to limit the run."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "only": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Step labels to apply; all pending steps when omitted",
            },
        },
        "required": [],
    },
)

SYNC_DIFF_TOOL = types.Tool(
    name="sync_diff",
    description=(
        "Show differences between declared sources and installed targets, "
        "with a suggested sync direction per mapping."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "name": {
                "type": "string",
                "description": "Only diff this declared entry",
            },
            "stat": {
                "type": "boolean",
                "default": False,
                "description": "Line counts only, without hunks",
            },
        },
        "required": [],
    },
)

SYNC_CLEANUP_TOOL = types.Tool(
    name="sync_cleanup",
    description=(
        "List tracked targets whose entry, tool or instance is no longer "
        "declared. With apply=true, back them up and remove them."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=True,
        openWorldHint=False,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "apply": {
                "type": "boolean",
                "default": False,
                "description": "Remove orphaned targets and state entries",
            },
        },
        "required": [],
    },
)

BACKUP_LIST_TOOL = types.Tool(
    name="backup_list",
    description=(
        "List backup owners, or the backups kept for one owner (newest first)."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "owner": {
                "type": "string",
                "description": "Backup owner (declared entry name)",
            },
        },
        "required": [],
    },
)


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def _string_list(value: Any, field: str) -> list[str] | None:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{field} must be a list of strings")
    return value


async def _handle_sync_check(
    session: ServerSession, args: dict[str, Any]
) -> types.CallToolResult:
    config, instances, context = await run_sync(session.load)
    steps = plan_steps(config, instances, context)
    result = await run_check(steps)
    return text_result(format_orchestrator_result(result), result_to_json(result))


async def _handle_sync_apply(
    session: ServerSession, args: dict[str, Any]
) -> types.CallToolResult:
    only = _string_list(args.get("only"), "only")
    config, instances, context = await run_sync(session.load)
    steps = plan_steps(config, instances, context)

    if only is not None:
        known = {step.label for step in steps}
        unknown = sorted(set(only) - known)
        if unknown:
            return build_error_response(
                "not_found",
                f"Unknown step label(s): {', '.join(unknown)}",
                "Use sync_check to list valid step labels.",
            )

    result = await run_apply(steps, only=only)
    return text_result(format_orchestrator_result(result), result_to_json(result))


async def _handle_sync_diff(
    session: ServerSession, args: dict[str, Any]
) -> types.CallToolResult:
    name = args.get("name")
    config, instances, context = await run_sync(session.load)

    if name is not None and config.find_entry(name) is None:
        return build_error_response(
            "not_found",
            f"No declared entry named '{name}'",
            "Use sync_check to see declared entries.",
        )

    diffs = await run_sync(plan_diffs, config, instances, context, name)
    text = format_diff(diffs, hunks=not args.get("stat", False))
    return text_result(text, {"diffs": diffs_to_json(diffs)})


async def _handle_sync_cleanup(
    session: ServerSession, args: dict[str, Any]
) -> types.CallToolResult:
    apply = bool(args.get("apply", False))
    if apply and session.read_only:
        return build_error_response(
            "read_only",
            "Cleanup with apply=true is disabled in read-only mode",
            "Call sync_cleanup without 'apply' to list orphaned entries.",
        )

    config, instances, context = await run_sync(session.load)
    check = await run_sync(check_cleanup, config, instances, context.state)
    applied = None
    if apply and check.orphaned:
        applied = await run_sync(
            apply_cleanup, check.orphaned, context.state, context.backups
        )
        logger.info("Cleanup removed %d entr(ies)", applied.removed)

    text = format_cleanup_report(
        check, applied, apply_hint="Call sync_cleanup with apply=true to remove them."
    )
    return text_result(text, cleanup_to_json(check, applied))


async def _handle_backup_list(
    session: ServerSession, args: dict[str, Any]
) -> types.CallToolResult:
    owner = args.get("owner")
    _, _, context = await run_sync(session.load)
    backups = context.backups

    if not owner:
        owners = backups.list_owners()
        text = "\n".join(owners) if owners else "No backups."
        return text_result(text, {"owners": owners})

    entries = []
    for backup_dir in backups.list_backups(owner):
        meta = backups.read_metadata(backup_dir)
        entries.append(
            {
                "path": str(backup_dir),
                "original_path": meta.original_path if meta else None,
                "created_at": meta.created_at if meta else None,
                "is_directory": meta.is_directory if meta else None,
            }
        )

    if not entries:
        text = f"No backups for {owner}."
    else:
        text = "\n".join(
            [f"Backups for {owner} (newest first):"]
            + [f"  {e['path']}" for e in entries]
        )
    return text_result(text, {"owner": owner, "backups": entries})


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(tool=SYNC_CHECK_TOOL, mutating=False, handler=_handle_sync_check),
    ToolSpec(tool=SYNC_APPLY_TOOL, mutating=True, handler=_handle_sync_apply),
    ToolSpec(tool=SYNC_DIFF_TOOL, mutating=False, handler=_handle_sync_diff),
    ToolSpec(tool=SYNC_CLEANUP_TOOL, mutating=False, handler=_handle_sync_cleanup),
    ToolSpec(tool=BACKUP_LIST_TOOL, mutating=False, handler=_handle_backup_list),
]

SYNC_TOOLS: list[types.Tool] = [spec.tool for spec in SYNC_SPECS]
