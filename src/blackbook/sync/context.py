"""Explicit holder for the stores and module instances of one sync run."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ..paths import get_cache_dir
from .backup import DEFAULT_RETENTION, BackupManager
from .manifest import ManifestStore
from .modules import (
    DirectorySyncModule,
    FileCopyModule,
    GlobCopyModule,
    SymlinkCreateModule,
)
from .state import SyncStateStore


@dataclass
class SyncContext:
    """Everything a planner or orchestrator run needs, passed explicitly.

    Build one with :meth:`create`; nothing here is cached at module level,
    so tests and concurrent callers can each hold their own context.
    """

    cache_dir: Path
    state: SyncStateStore
    backups: BackupManager
    manifest: ManifestStore
    retention: int = DEFAULT_RETENTION
    symlink_create: SymlinkCreateModule = field(init=False)
    file_copy: FileCopyModule = field(init=False)
    directory_sync: DirectorySyncModule = field(init=False)
    glob_copy: GlobCopyModule = field(init=False)

    def __post_init__(self) -> None:
        self.symlink_create = SymlinkCreateModule(self.backups, self.state)
        self.file_copy = FileCopyModule(self.backups, self.state)
        self.directory_sync = DirectorySyncModule(self.backups, self.state)
        self.glob_copy = GlobCopyModule(self.backups, self.state)

    @classmethod
    def create(
        cls, cache_dir: Path | None = None, retention: int = DEFAULT_RETENTION
    ) -> SyncContext:
        cache = Path(cache_dir) if cache_dir is not None else get_cache_dir()
        return cls(
            cache_dir=cache,
            state=SyncStateStore(cache),
            backups=BackupManager(cache, retention=retention),
            manifest=ManifestStore(cache),
            retention=retention,
        )
