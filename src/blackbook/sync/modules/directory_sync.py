"""``directory-sync``: every file of a source tree present and equal in the target.

Only files that exist in the source are compared.  Extra files a tool keeps
in the same directory are never reported as drift and never deleted.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ...file_handler import atomic_copy_file
from ..hashing import hash_directory_async, hash_file_async, list_tree_files
from ..models import ApplyResult, CheckResult, ModuleStatus
from ..state import StateKeyRef
from .base import FileSystemModule, TargetParams, failed_apply, failed_check

logger = logging.getLogger(__name__)


class DirectorySyncParams(TargetParams):
    source_path: Path
    target_path: Path


class DirectorySyncModule(FileSystemModule[DirectorySyncParams]):
    name = "directory-sync"

    async def _differing_files(
        self, source: Path, target: Path
    ) -> tuple[list[str], list[str]]:
        """Return ``(missing, differing)`` relative paths of managed files."""
        missing: list[str] = []
        differing: list[str] = []
        for rel, source_file in list_tree_files(source):
            target_file = target / rel
            if not target_file.is_file():
                missing.append(rel)
                continue
            if await hash_file_async(source_file) != await hash_file_async(target_file):
                differing.append(rel)
        return missing, differing

    async def check(self, params: DirectorySyncParams) -> CheckResult:
        source, target = params.source_path, params.target_path
        error = self._traversal_error(target, params)
        if error:
            return failed_check(error)

        if not source.exists():
            status = ModuleStatus.OK if target.exists() else ModuleStatus.MISSING
            return CheckResult(status=status, message=f"Source directory not found: {source}")
        if not source.is_dir():
            return failed_check(f"Source is not a directory: {source}")
        if not target.exists():
            return CheckResult(
                status=ModuleStatus.MISSING,
                message=f"Target directory does not exist: {target}",
            )
        if not target.is_dir():
            return failed_check(f"Target is not a directory: {target}")

        try:
            missing, differing = await self._differing_files(source, target)
        except OSError as exc:
            return failed_check(f"Cannot compare {source} / {target}: {exc}")

        if missing:
            return CheckResult(
                status=ModuleStatus.DRIFTED,
                message=f"Target file missing: {missing[0]}"
                + (f" (+{len(missing) - 1} more)" if len(missing) > 1 else ""),
            )
        if differing:
            return CheckResult(
                status=ModuleStatus.DRIFTED,
                message=f"File differs: {differing[0]}"
                + (f" (+{len(differing) - 1} more)" if len(differing) > 1 else ""),
            )
        return CheckResult(status=ModuleStatus.OK, message="All managed files match")

    async def apply(self, params: DirectorySyncParams) -> ApplyResult:
        source, target = params.source_path, params.target_path
        error = self._traversal_error(target, params)
        if error:
            return failed_apply(error)
        if not source.is_dir():
            return failed_apply(f"Source directory not found: {source}")

        try:
            pending = []
            if target.is_dir():
                missing, differing = await self._differing_files(source, target)
                pending = missing + differing
            else:
                pending = [rel for rel, _ in list_tree_files(source)]

            if not pending and target.is_dir():
                await self._record_tree(params.state_ref, source, target)
                return ApplyResult(changed=False, message="All managed files match")

            backup = self._backup(target, params)
            target.mkdir(parents=True, exist_ok=True)
            for rel in pending:
                atomic_copy_file(source / rel, target / rel)
            await self._record_tree(params.state_ref, source, target)
        except OSError as exc:
            logger.error("Failed to sync %s -> %s: %s", source, target, exc)
            return ApplyResult(
                changed=False,
                message=f"Failed to sync directory {source} -> {target}",
                error=str(exc),
            )

        logger.info("Synced %d file(s) %s -> %s", len(pending), source, target)
        return ApplyResult(
            changed=True,
            message=f"Synced directory {source} -> {target} ({len(pending)} file(s))",
            backup=str(backup) if backup else None,
        )

    async def _record_tree(
        self, ref: StateKeyRef | None, source: Path, target: Path
    ) -> None:
        if ref is None or self.state is None:
            return
        # Unmanaged target files are excluded: both sides record the source digest.
        digest = await hash_directory_async(source)
        self._record(ref, digest, digest, source, target)
