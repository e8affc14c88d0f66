"""The check/apply contract every reconciliation module implements.

``check()`` must never touch the filesystem beyond reading it.  ``apply()``
performs the minimal mutation to reach the desired state and reports
``changed=False`` when there was nothing to do, so running it twice in a row
is a no-op the second time.  Neither method raises for filesystem errors;
they come back as ``failed`` checks or ``ApplyResult.error``.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from ...file_handler import is_within
from ..backup import BackupManager
from ..models import ApplyResult, CheckResult, DriftKind, ModuleStatus
from ..state import StateKeyRef, SyncStateStore

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)


class Module(ABC, Generic[P]):
    """A reconciliation kind: inspect one desired state, then enforce it."""

    name: str = ""

    @abstractmethod
    async def check(self, params: P) -> CheckResult:
        """Report how the filesystem differs from the desired state."""

    @abstractmethod
    async def apply(self, params: P) -> ApplyResult:
        """Bring the filesystem to the desired state."""


class TargetParams(BaseModel):
    """Fields shared by the file-level modules.

    Attributes:
        owner: Backup namespace for anything this step overwrites.
        target_root: When set, targets resolving outside it are rejected.
        state_ref: When set, successful applies are recorded in the sync
            state and checks report a ``DriftKind``.
        backup_retention: Overrides the backup manager's retention for
            this step's owner.
    """

    owner: str = "default"
    target_root: Path | None = None
    state_ref: StateKeyRef | None = None
    backup_retention: int | None = Field(default=None, ge=0)

    model_config = {"frozen": True}


class FileSystemModule(Module[P]):
    """Base for modules that back up and record what they overwrite."""

    def __init__(
        self,
        backups: BackupManager,
        state: SyncStateStore | None = None,
    ) -> None:
        self.backups = backups
        self.state = state

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _traversal_error(self, target: Path, params: TargetParams) -> str | None:
        if params.target_root is not None and not is_within(
            params.target_root, target
        ):
            return f"Target {target} escapes {params.target_root}"
        return None

    def _backup(self, path: Path, params: TargetParams) -> Path | None:
        backup = self.backups.create_backup(path, params.owner)
        if backup is not None:
            self.backups.prune_backups(params.owner, params.backup_retention)
        return backup

    def _drift(
        self, ref: StateKeyRef | None, source_hash: str, target_hash: str
    ) -> DriftKind | None:
        if ref is None or self.state is None:
            return None
        return self.state.detect_drift(ref.key(), source_hash, target_hash)

    def _record(
        self,
        ref: StateKeyRef | None,
        source_hash: str,
        target_hash: str,
        source_path: Path,
        target_path: Path,
    ) -> None:
        if ref is None or self.state is None:
            return
        self.state.record_sync(
            ref.key(), source_hash, target_hash, str(source_path), str(target_path)
        )


def failed_check(message: str) -> CheckResult:
    return CheckResult(status=ModuleStatus.FAILED, message=message, error=message)


def failed_apply(message: str) -> ApplyResult:
    return ApplyResult(changed=False, message=message, error=message)


def exists(path: Path) -> bool:
    """True if anything (including a broken symlink) sits at *path*."""
    return os.path.lexists(path)
