"""``file-copy``: a single target file whose bytes equal the source's.

With a ``state_ref`` the check reports a three-way ``DriftKind``.  With
``pullback`` enabled, a target that changed on its own since the last sync
is copied back into the source instead of being overwritten.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ...file_handler import atomic_copy_file, is_binary_file, read_text
from ..diff import render_unified_diff
from ..hashing import hash_file_async
from ..models import ApplyResult, CheckResult, DriftKind, ModuleStatus
from .base import FileSystemModule, TargetParams, failed_apply, failed_check

logger = logging.getLogger(__name__)


class FileCopyParams(TargetParams):
    source_path: Path
    target_path: Path
    pullback: bool = False


def _text_diff(old: Path, new: Path, old_label: str, new_label: str) -> str | None:
    if is_binary_file(old) or is_binary_file(new):
        return None
    try:
        return render_unified_diff(read_text(old), read_text(new), old_label, new_label)
    except OSError:
        return None


class FileCopyModule(FileSystemModule[FileCopyParams]):
    name = "file-copy"

    async def check(self, params: FileCopyParams) -> CheckResult:
        source, target = params.source_path, params.target_path
        error = self._traversal_error(target, params)
        if error:
            return failed_check(error)
        if not source.is_file():
            return failed_check(f"Source not found: {source}")
        if not target.exists():
            return CheckResult(
                status=ModuleStatus.MISSING,
                message=f"Target does not exist: {target}",
                drift_kind=DriftKind.NEVER_SYNCED if params.state_ref else None,
            )
        if target.is_dir():
            return failed_check(f"Target is a directory: {target}")

        try:
            source_hash = await hash_file_async(source)
            target_hash = await hash_file_async(target)
        except OSError as exc:
            return failed_check(f"Cannot hash {source} / {target}: {exc}")

        drift_kind = self._drift(params.state_ref, source_hash, target_hash)
        if source_hash == target_hash:
            return CheckResult(
                status=ModuleStatus.OK, message="Files match", drift_kind=drift_kind
            )

        if drift_kind == DriftKind.TARGET_CHANGED and params.pullback:
            message = "Target changed (pullback available)"
            diff = _text_diff(source, target, "source", "target (changed)")
        else:
            message = {
                DriftKind.TARGET_CHANGED: "Target changed",
                DriftKind.BOTH_CHANGED: "Both source and target changed (conflict)",
                DriftKind.SOURCE_CHANGED: "Source changed",
            }.get(drift_kind, "Files differ")
            diff = _text_diff(target, source, "target", "source")

        return CheckResult(
            status=ModuleStatus.DRIFTED,
            message=message,
            diff=diff,
            drift_kind=drift_kind,
        )

    async def apply(self, params: FileCopyParams) -> ApplyResult:
        source, target = params.source_path, params.target_path
        error = self._traversal_error(target, params)
        if error:
            return failed_apply(error)
        if not source.is_file():
            return failed_apply(f"Source not found: {source}")

        try:
            source_hash = await hash_file_async(source)
            target_hash = await hash_file_async(target) if target.is_file() else None
        except OSError as exc:
            return failed_apply(f"Cannot hash {source} / {target}: {exc}")

        if params.pullback and target_hash is not None:
            drift_kind = self._drift(params.state_ref, source_hash, target_hash)
            if drift_kind == DriftKind.TARGET_CHANGED:
                return await self.apply_pullback(params)

        if source_hash == target_hash:
            self._record(params.state_ref, source_hash, target_hash, source, target)
            return ApplyResult(changed=False, message="Files already match")

        backup = None
        try:
            backup = self._backup(target, params)
            atomic_copy_file(source, target)
            self._record(params.state_ref, source_hash, source_hash, source, target)
        except OSError as exc:
            logger.error("Failed to copy %s -> %s: %s", source, target, exc)
            return ApplyResult(
                changed=False,
                message=f"Failed to copy {source} -> {target}",
                backup=str(backup) if backup else None,
                error=str(exc),
            )

        logger.info("Copied %s -> %s", source, target)
        return ApplyResult(
            changed=True,
            message=f"Copied {source} -> {target}",
            backup=str(backup) if backup else None,
        )

    async def apply_pullback(self, params: FileCopyParams) -> ApplyResult:
        """Copy target -> source, backing up the source first."""
        source, target = params.source_path, params.target_path
        if not target.is_file():
            return failed_apply(f"Target not found: {target}")

        backup = None
        try:
            backup = self._backup(source, params)
            atomic_copy_file(target, source)
            digest = await hash_file_async(source)
            self._record(params.state_ref, digest, digest, source, target)
        except OSError as exc:
            logger.error("Failed to pull back %s -> %s: %s", target, source, exc)
            return ApplyResult(
                changed=False,
                message=f"Failed to pull back {target} -> {source}",
                backup=str(backup) if backup else None,
                error=str(exc),
            )

        logger.info("Pulled back %s -> %s", target, source)
        return ApplyResult(
            changed=True,
            message=f"Pulled back {target} -> {source}",
            backup=str(backup) if backup else None,
        )
