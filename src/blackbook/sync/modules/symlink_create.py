"""``symlink-create``: the target must be a symlink whose link value is the source."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ..hashing import hash_path_async
from ..models import ApplyResult, CheckResult, DriftKind, ModuleStatus
from .base import FileSystemModule, TargetParams, exists, failed_apply, failed_check

logger = logging.getLogger(__name__)


class SymlinkCreateParams(TargetParams):
    source_path: Path
    target_path: Path


class SymlinkCreateModule(FileSystemModule[SymlinkCreateParams]):
    name = "symlink-create"

    def _precondition(self, params: SymlinkCreateParams) -> str | None:
        error = self._traversal_error(params.target_path, params)
        if error:
            return error
        if not params.source_path.exists():
            return f"Source not found: {params.source_path}"
        return None

    @staticmethod
    def _links_to_source(params: SymlinkCreateParams) -> bool:
        target = params.target_path
        return target.is_symlink() and os.readlink(target) == str(params.source_path)

    async def check(self, params: SymlinkCreateParams) -> CheckResult:
        error = self._precondition(params)
        if error:
            return failed_check(error)

        target = params.target_path
        try:
            if not exists(target):
                return CheckResult(
                    status=ModuleStatus.MISSING,
                    message=f"Symlink missing: {target}",
                    drift_kind=DriftKind.NEVER_SYNCED if params.state_ref else None,
                )
            if self._links_to_source(params):
                return CheckResult(
                    status=ModuleStatus.OK,
                    message=f"Symlink in place: {target}",
                )
            if target.is_symlink():
                return CheckResult(
                    status=ModuleStatus.DRIFTED,
                    message=f"Symlink points to {os.readlink(target)}, expected {params.source_path}",
                )

            drift_kind = None
            if params.state_ref is not None and self.state is not None:
                source_hash, _ = await hash_path_async(params.source_path)
                target_hash, _ = await hash_path_async(target)
                drift_kind = self._drift(params.state_ref, source_hash, target_hash)
            return CheckResult(
                status=ModuleStatus.DRIFTED,
                message=f"Target exists but is not a symlink: {target}",
                drift_kind=drift_kind,
            )
        except OSError as exc:
            return failed_check(f"Cannot inspect {target}: {exc}")

    async def apply(self, params: SymlinkCreateParams) -> ApplyResult:
        error = self._precondition(params)
        if error:
            return failed_apply(error)

        target = params.target_path
        if self._links_to_source(params):
            return ApplyResult(changed=False, message=f"Symlink already in place: {target}")
        if target.is_dir() and not target.is_symlink():
            return failed_apply(
                f"Refusing to replace directory {target} with a symlink"
            )

        backup = None
        try:
            if exists(target):
                backup = self._backup(target, params)
                target.unlink()
            target.parent.mkdir(parents=True, exist_ok=True)
            os.symlink(params.source_path, target)
            if params.state_ref is not None:
                digest, _ = await hash_path_async(params.source_path)
                self._record(
                    params.state_ref, digest, digest, params.source_path, target
                )
        except OSError as exc:
            logger.error("Failed to link %s -> %s: %s", target, params.source_path, exc)
            return ApplyResult(
                changed=False,
                message=f"Failed to create symlink {target}",
                backup=str(backup) if backup else None,
                error=str(exc),
            )

        logger.info("Linked %s -> %s", target, params.source_path)
        return ApplyResult(
            changed=True,
            message=f"Linked {target} -> {params.source_path}",
            backup=str(backup) if backup else None,
        )
