"""Timestamped, retained backups of anything about to be overwritten.

Layout::

    <cache>/backups/<owner>/<timestamp>/<basename-of-target>
    <cache>/backups/<owner>/<timestamp>/.backup.json

Timestamps are UTC ISO-8601 with ``:`` and ``.`` replaced by ``-``
(``2025-01-31T09-15-02-123456Z``), so lexicographic order of the directory
names is chronological order.  Retention is enforced per owner.

Backups are a recovery mechanism only; nothing in the sync core reads them
back during drift detection.
"""

from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel

from ..file_handler import (
    atomic_write_text,
    copy_path,
    file_lock,
    remove_path,
)

logger = logging.getLogger(__name__)

BACKUPS_DIRNAME = "backups"
METADATA_FILENAME = ".backup.json"
DEFAULT_RETENTION = 3

_UNSAFE_OWNER_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class BackupMetadata(BaseModel):
    owner: str
    original_path: str
    created_at: str
    is_directory: bool = False

    model_config = {"frozen": True}


def sanitize_owner(owner: str) -> str:
    """Collapse *owner* into a single safe path segment."""
    cleaned = _UNSAFE_OWNER_CHARS.sub("-", owner).strip(".-")
    return cleaned or "default"


def backup_timestamp(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-%fZ")


class BackupManager:
    """Create, list, prune and restore backups under ``<cache>/backups``.

    Args:
        cache_dir: Cache root; backups live in its ``backups`` subdirectory.
        retention: Default number of backups kept per owner by
            :meth:`prune_backups`.
    """

    def __init__(self, cache_dir: Path, retention: int = DEFAULT_RETENTION):
        if retention < 0:
            raise ValueError(f"Backup retention must be >= 0, got {retention}")
        self.root = Path(cache_dir) / BACKUPS_DIRNAME
        self.retention = retention

    def owner_dir(self, owner: str) -> Path:
        return self.root / sanitize_owner(owner)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_backup(self, target_path: Path | str, owner: str) -> Path | None:
        """Copy *target_path* into a new timestamped backup for *owner*.

        Files are copied, directories copied recursively and symlinks kept
        as links.

        Returns:
            Path of the copy inside the backup directory, or ``None`` when
            nothing exists at *target_path*.
        """
        target = Path(target_path)
        if not os.path.lexists(target):
            return None

        owner_dir = self.owner_dir(owner)
        with file_lock(owner_dir):
            backup_dir = self._new_backup_dir(owner_dir)
            destination = backup_dir / target.name
            copy_path(target, destination)
            metadata = BackupMetadata(
                owner=owner,
                original_path=str(target),
                created_at=datetime.now(timezone.utc).isoformat(),
                is_directory=target.is_dir() and not target.is_symlink(),
            )
            atomic_write_text(
                backup_dir / METADATA_FILENAME,
                metadata.model_dump_json(indent=2) + "\n",
            )

        logger.debug("Backed up %s to %s", target, destination)
        return destination

    def _new_backup_dir(self, owner_dir: Path) -> Path:
        stamp = backup_timestamp()
        candidate = owner_dir / stamp
        suffix = 1
        while candidate.exists():
            candidate = owner_dir / f"{stamp}-{suffix}"
            suffix += 1
        candidate.mkdir(parents=True)
        return candidate

    # ------------------------------------------------------------------
    # List / prune
    # ------------------------------------------------------------------

    def list_backups(self, owner: str) -> list[Path]:
        """Return *owner*'s backup directories, newest first."""
        owner_dir = self.owner_dir(owner)
        if not owner_dir.is_dir():
            return []
        return sorted(
            (p for p in owner_dir.iterdir() if p.is_dir()),
            key=lambda p: p.name,
            reverse=True,
        )

    def list_owners(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir())

    def prune_backups(
        self, owner: str, retention: int | None = None
    ) -> list[Path]:
        """Delete all but the *retention* newest backups of *owner*.

        Returns:
            The backup directories that were removed.
        """
        keep = self.retention if retention is None else retention
        if keep < 0:
            raise ValueError(f"Backup retention must be >= 0, got {keep}")

        removed: list[Path] = []
        with file_lock(self.owner_dir(owner)):
            for backup_dir in self.list_backups(owner)[keep:]:
                remove_path(backup_dir)
                removed.append(backup_dir)

        if removed:
            logger.info(
                "Pruned %d old backup(s) for %s (keeping %d)",
                len(removed),
                owner,
                keep,
            )
        return removed

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def read_metadata(self, backup_dir: Path) -> BackupMetadata | None:
        path = Path(backup_dir) / METADATA_FILENAME
        try:
            return BackupMetadata.model_validate(
                json.loads(path.read_text(encoding="utf-8"))
            )
        except (OSError, ValueError) as exc:
            logger.debug("No usable backup metadata in %s: %s", backup_dir, exc)
            return None

    def restore_backup(
        self, backup_dir: Path, target: Path | None = None
    ) -> Path:
        """Restore a backup over its original path (or *target*).

        Whatever currently sits at the destination is backed up first under
        the same owner.

        Raises:
            FileNotFoundError: If the backup holds no restorable item.
            ValueError: If no destination is known.
        """
        backup_dir = Path(backup_dir)
        metadata = self.read_metadata(backup_dir)

        items: list[Path] = []
        if backup_dir.is_dir():
            items = [
                p for p in backup_dir.iterdir() if p.name != METADATA_FILENAME
            ]
        if len(items) != 1:
            raise FileNotFoundError(f"No restorable item in backup {backup_dir}")
        item = items[0]

        if target is not None:
            destination = Path(target)
        elif metadata is not None:
            destination = Path(metadata.original_path)
        else:
            raise ValueError(
                f"Backup {backup_dir} has no metadata; pass an explicit target"
            )

        owner = metadata.owner if metadata else backup_dir.parent.name
        self.create_backup(destination, owner)
        remove_path(destination)
        copy_path(item, destination)
        logger.info("Restored %s from %s", destination, backup_dir)
        return destination
