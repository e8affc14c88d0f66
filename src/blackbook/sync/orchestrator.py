"""Sequential driver for batches of check/apply steps.

``run_check`` only ever inspects.  ``run_apply`` checks every step first
and calls ``apply()`` only for ``missing``/``drifted`` steps that pass the
optional label filter; ``ok`` steps need nothing and ``failed`` steps are
surfaced, never blindly "fixed".

Steps run strictly one after another: several steps may share a backup
owner, and backup retention is not safe under concurrent mutation of one
owner directory.

Error handling is per-step: an exception escaping a module is logged and
recorded as a failure for that step, and the batch continues.  Nothing is
rolled back when a later step fails.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .models import (
    ApplyResult,
    CheckResult,
    ModuleStatus,
    OrchestratorResult,
    OrchestratorSummary,
    StepResult,
)
from .modules.base import Module

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrchestratorStep:
    """One unit of work: a module plus the parameters only it understands."""

    label: str
    module: Module[Any]
    params: Any


async def _safe_check(step: OrchestratorStep) -> CheckResult:
    try:
        return await step.module.check(step.params)
    except Exception as exc:
        logger.exception("Check crashed for %s (%s)", step.label, step.module.name)
        return CheckResult(
            status=ModuleStatus.FAILED,
            message=f"{step.module.name} check raised {type(exc).__name__}",
            error=str(exc),
        )


async def _safe_apply(step: OrchestratorStep) -> ApplyResult:
    try:
        return await step.module.apply(step.params)
    except Exception as exc:
        logger.exception("Apply crashed for %s (%s)", step.label, step.module.name)
        return ApplyResult(
            changed=False,
            message=f"{step.module.name} apply raised {type(exc).__name__}",
            error=str(exc),
        )


def summarize(results: Iterable[StepResult]) -> OrchestratorSummary:
    counts = {status.value: 0 for status in ModuleStatus}
    changed = 0
    for result in results:
        counts[result.check.status.value] += 1
        if result.apply is not None and result.apply.changed:
            changed += 1
    return OrchestratorSummary(**counts, changed=changed)


async def run_check(steps: Iterable[OrchestratorStep]) -> OrchestratorResult:
    """Check every step in order.  Never calls ``apply()``."""
    results: list[StepResult] = []
    for step in steps:
        check = await _safe_check(step)
        logger.debug("%s: %s (%s)", step.label, check.status.value, check.message)
        results.append(StepResult(label=step.label, check=check))
    return OrchestratorResult(steps=results, summary=summarize(results))


async def run_apply(
    steps: Iterable[OrchestratorStep],
    only: Iterable[str] | None = None,
) -> OrchestratorResult:
    """Check each step, then apply it if it is missing or drifted.

    Args:
        steps: Steps to process, in order.
        only: When given, steps whose label is not in this collection are
            checked but never applied.
    """
    selected = set(only) if only is not None else None
    results: list[StepResult] = []

    for step in steps:
        check = await _safe_check(step)
        needs_apply = check.status in (ModuleStatus.MISSING, ModuleStatus.DRIFTED)
        if not needs_apply or (selected is not None and step.label not in selected):
            logger.debug("%s: %s, not applying", step.label, check.status.value)
            results.append(StepResult(label=step.label, check=check))
            continue

        applied = await _safe_apply(step)
        if applied.error:
            logger.error("%s: apply failed: %s", step.label, applied.error)
        elif applied.changed:
            logger.info("%s: %s", step.label, applied.message)
        results.append(StepResult(label=step.label, check=check, apply=applied))

    return OrchestratorResult(steps=results, summary=summarize(results))
