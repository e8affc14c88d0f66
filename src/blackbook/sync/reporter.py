"""Report formatting for orchestrator, diff and cleanup results.

Provides human-readable and machine-readable output:

- ``format_orchestrator_result`` -- one line per step plus totals.
- ``format_diff`` -- per-target line counts, direction hint and hunks.
- ``format_cleanup_report`` -- orphan listing (and removal outcome).
- ``result_to_json`` / ``diffs_to_json`` / ``cleanup_to_json`` --
  structured dicts for ``--json`` and MCP ``structuredContent`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .diff import compute_file_detail
from .models import DiffFileStatus, ModuleStatus

if TYPE_CHECKING:
    from .models import (
        CleanupApplyResult,
        CleanupCheckResult,
        OrchestratorResult,
    )
    from .planner import PlannedDiff

_STATUS_MARKERS = {
    ModuleStatus.OK: "ok",
    ModuleStatus.MISSING: "MISSING",
    ModuleStatus.DRIFTED: "DRIFTED",
    ModuleStatus.FAILED: "FAILED",
}

# ------------------------------------------------------------------
# Orchestrator results
# ------------------------------------------------------------------


def format_orchestrator_result(result: OrchestratorResult) -> str:
    """Format a check or apply run as human-readable text.

    Each step shows its check status and message; applied steps add the
    apply outcome on an indented line.

    Args:
        result: The orchestrator result.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    for step in result.steps:
        marker = _STATUS_MARKERS[step.check.status]
        line = f"[{marker}] {step.label}: {step.check.message}"
        if step.check.drift_kind is not None:
            line += f" ({step.check.drift_kind.value})"
        lines.append(line)
        if step.check.error and step.check.error != step.check.message:
            lines.append(f"    error: {step.check.error}")
        if step.apply is not None:
            verb = "changed" if step.apply.changed else "unchanged"
            lines.append(f"    -> {verb}: {step.apply.message}")
            if step.apply.backup:
                lines.append(f"       backup: {step.apply.backup}")
            if step.apply.error and step.apply.error != step.apply.message:
                lines.append(f"       error: {step.apply.error}")

    if not result.steps:
        lines.append("Nothing to sync.")

    s = result.summary
    lines.append("")
    lines.append(
        f"{len(result.steps)} step(s): {s.ok} ok, {s.missing} missing, "
        f"{s.drifted} drifted, {s.failed} failed, {s.changed} changed"
    )
    return "\n".join(lines)


def result_to_json(result: OrchestratorResult) -> dict:
    """Convert an orchestrator result to a structured dict.

    Suitable for MCP ``structuredContent`` output.
    """
    steps = []
    for step in result.steps:
        item: dict = {
            "label": step.label,
            "check": step.check.model_dump(mode="json", exclude_none=True),
        }
        if step.apply is not None:
            item["apply"] = step.apply.model_dump(mode="json", exclude_none=True)
        steps.append(item)
    return {
        "summary": result.summary.model_dump(),
        "steps": steps,
    }


# ------------------------------------------------------------------
# Diffs
# ------------------------------------------------------------------


def format_diff(diffs: list[PlannedDiff], hunks: bool = True) -> str:
    """Format planned diffs with line counts and, optionally, hunks."""
    if not diffs:
        return "No differences."

    lines: list[str] = []
    for planned in diffs:
        target = planned.target
        lines.append(
            f"{planned.label}  +{target.total_added} -{target.total_removed}"
            f"  (suggested: {planned.direction.value})"
        )
        for f in target.files:
            lines.append(
                f"  {f.status.value:<8} {f.display_path}  "
                f"+{f.lines_added} -{f.lines_removed}"
            )
            if not hunks or f.status == DiffFileStatus.BINARY:
                continue
            for hunk in compute_file_detail(f).hunks:
                lines.append(f"    {hunk.header}")
                for dl in hunk.lines:
                    prefix = {"add": "+", "remove": "-"}.get(dl.type, " ")
                    lines.append(f"    {prefix}{dl.content}")
        lines.append("")
    return "\n".join(lines).rstrip()


def diffs_to_json(diffs: list[PlannedDiff]) -> list[dict]:
    return [
        {
            "label": planned.label,
            "direction": planned.direction.value,
            "target": planned.target.model_dump(mode="json"),
        }
        for planned in diffs
    ]


# ------------------------------------------------------------------
# Cleanup
# ------------------------------------------------------------------


def format_cleanup_report(
    check: CleanupCheckResult,
    applied: CleanupApplyResult | None = None,
    apply_hint: str = "Run with --apply to remove them.",
) -> str:
    """Format orphaned entries and, when given, the removal outcome."""
    lines: list[str] = []
    if not check.orphaned:
        lines.append("No orphaned entries.")
    else:
        lines.append(f"Orphaned entries ({len(check.orphaned)}):")
        for orphan in check.orphaned:
            lines.append(f"  {orphan.state_key}")
            lines.append(f"    target: {orphan.entry.target_path}")
            lines.append(f"    reason: {orphan.reason}")

    if applied is not None:
        lines.append("")
        lines.append(f"Removed {applied.removed} state entr{'y' if applied.removed == 1 else 'ies'}")
        if applied.errors:
            lines.append("Errors:")
            for error in applied.errors:
                lines.append(f"  {error}")
    elif check.orphaned:
        lines.append("")
        lines.append(apply_hint)

    return "\n".join(lines)


def cleanup_to_json(
    check: CleanupCheckResult,
    applied: CleanupApplyResult | None = None,
) -> dict:
    data: dict = {"orphaned": [o.model_dump(mode="json", by_alias=True) for o in check.orphaned]}
    if applied is not None:
        data["applied"] = applied.model_dump()
    return data
