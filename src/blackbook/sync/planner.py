"""Turn declared configuration into orchestrator steps and diff targets.

Every declared mapping is planned once per enabled tool instance the entry
targets.  The per-instance target is the mapping's override for
``"<toolId>:<instanceId>"`` (if any) or its default target, relative to the
instance's config directory.

Module selection, in order:

1. ``mode: symlink``            -> ``symlink-create``
2. a glob source                -> ``glob-copy``
3. an existing source directory -> ``directory-sync``
4. anything else                -> ``file-copy``

The step label is the mapping's state key
(``<name>:<toolId>:<instanceId>:<targetRel>``) and the backup owner is the
entry name.
"""

from __future__ import annotations

import logging
import os
import posixpath
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from ..config_schema import BlackbookConfig, FileEntry, ToolInstance
from ..paths import resolve_source_path
from .context import SyncContext
from .diff import (
    aggregate_sync_direction,
    build_diff_target,
    build_file_summary,
    differs,
    sync_direction_from_mtimes,
)
from .hashing import hash_path
from .models import (
    DiffFileSummary,
    DiffInstanceRef,
    DiffTarget,
    DriftKind,
    SyncDirection,
    SyncEntry,
)
from .modules import (
    DirectorySyncParams,
    FileCopyParams,
    GlobCopyParams,
    SymlinkCreateParams,
    glob_pairs,
    is_glob,
)
from .orchestrator import OrchestratorStep
from .state import StateKeyRef, classify_drift

logger = logging.getLogger(__name__)

MappingKind = Literal["symlink", "glob", "directory", "file"]


@dataclass(frozen=True)
class PlannedMapping:
    """One declared mapping resolved against one tool instance."""

    entry: FileEntry
    instance: ToolInstance
    source: str
    target_rel: str
    target_path: Path
    state_ref: StateKeyRef
    kind: MappingKind

    @property
    def label(self) -> str:
        return self.state_ref.key()


def _mapping_kind(entry: FileEntry, source: str) -> MappingKind:
    if entry.mode == "symlink":
        return "symlink"
    if is_glob(source):
        return "glob"
    if os.path.isdir(source):
        return "directory"
    return "file"


def iter_mappings(
    config: BlackbookConfig, instances: list[ToolInstance]
) -> Iterator[PlannedMapping]:
    """Yield every (entry mapping x enabled targeted instance) pair."""
    source_repo = config.settings.source_repo
    for entry in config.declared_entries():
        for instance in instances:
            if not instance.enabled or not entry.targets_tool(instance.tool_id):
                continue
            for mapping in entry.mappings():
                source = resolve_source_path(mapping.source, source_repo)
                if source.startswith(("http://", "https://")):
                    logger.warning(
                        "Skipping %s: remote source %s is not synced",
                        entry.name,
                        source,
                    )
                    continue
                target_rel = posixpath.normpath(
                    mapping.overrides.get(instance.key, mapping.target)
                )
                try:
                    state_ref = StateKeyRef(
                        file_name=entry.name,
                        tool_id=instance.tool_id,
                        instance_id=instance.instance_id,
                        target_rel=target_rel,
                    )
                    state_ref.key()
                except ValueError as exc:
                    logger.warning("Skipping %s on %s: %s", entry.name, instance.key, exc)
                    continue
                yield PlannedMapping(
                    entry=entry,
                    instance=instance,
                    source=source,
                    target_rel=target_rel,
                    target_path=Path(instance.config_dir) / target_rel,
                    state_ref=state_ref,
                    kind=_mapping_kind(entry, source),
                )


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def _step_for(planned: PlannedMapping, context: SyncContext, retention: int) -> OrchestratorStep:
    common = {
        "owner": planned.entry.name,
        "target_root": Path(planned.instance.config_dir),
        "state_ref": planned.state_ref,
        "backup_retention": retention,
    }
    if planned.kind == "symlink":
        return OrchestratorStep(
            label=planned.label,
            module=context.symlink_create,
            params=SymlinkCreateParams(
                source_path=Path(planned.source),
                target_path=planned.target_path,
                **common,
            ),
        )
    if planned.kind == "glob":
        return OrchestratorStep(
            label=planned.label,
            module=context.glob_copy,
            params=GlobCopyParams(
                source_pattern=planned.source,
                target_dir=planned.target_path,
                pullback=planned.entry.pullback,
                **common,
            ),
        )
    if planned.kind == "directory":
        return OrchestratorStep(
            label=planned.label,
            module=context.directory_sync,
            params=DirectorySyncParams(
                source_path=Path(planned.source),
                target_path=planned.target_path,
                **common,
            ),
        )
    return OrchestratorStep(
        label=planned.label,
        module=context.file_copy,
        params=FileCopyParams(
            source_path=Path(planned.source),
            target_path=planned.target_path,
            pullback=planned.entry.pullback,
            **common,
        ),
    )


def plan_steps(
    config: BlackbookConfig,
    instances: list[ToolInstance],
    context: SyncContext,
) -> list[OrchestratorStep]:
    """Build the ordered orchestrator steps for the declared configuration."""
    retention = config.settings.backup_retention
    steps = [
        _step_for(planned, context, retention)
        for planned in iter_mappings(config, instances)
    ]
    logger.debug("Planned %d step(s)", len(steps))
    return steps


# ---------------------------------------------------------------------------
# Diffs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlannedDiff:
    label: str
    target: DiffTarget
    direction: SyncDirection


def _instance_ref(instance: ToolInstance) -> DiffInstanceRef:
    return DiffInstanceRef(
        tool_id=instance.tool_id,
        instance_id=instance.instance_id,
        instance_name=instance.name,
        config_dir=instance.config_dir,
    )


def _recorded_kind(
    entries: dict[str, SyncEntry], ref: StateKeyRef, summary: DiffFileSummary
) -> DriftKind | None:
    if summary.source_path is None or summary.target_path is None:
        return None
    entry = entries.get(ref.key())
    if entry is None:
        return None
    try:
        source_hash, _ = hash_path(summary.source_path)
        target_hash, _ = hash_path(summary.target_path)
    except OSError:
        return None
    return classify_drift(entry, source_hash, target_hash)


def _direction(
    planned: PlannedMapping,
    files: list[DiffFileSummary],
    entries: dict[str, SyncEntry],
) -> SyncDirection:
    """Prefer recorded drift kinds; fall back to modification times."""
    kinds: list[DriftKind] = []
    if planned.kind in ("file", "symlink"):
        for summary in files:
            kind = _recorded_kind(entries, planned.state_ref, summary)
            if kind is not None:
                kinds.append(kind)
    elif planned.kind == "glob":
        for summary in files:
            kind = _recorded_kind(entries, planned.state_ref.for_file(summary.id), summary)
            if kind is not None:
                kinds.append(kind)

    if kinds:
        return aggregate_sync_direction(kinds)
    return sync_direction_from_mtimes(files)


def _glob_diff_target(planned: PlannedMapping) -> DiffTarget:
    files: list[DiffFileSummary] = []
    for rel, source_file, target_file in glob_pairs(
        planned.source, planned.target_path, planned.entry.pullback
    ):
        summary = build_file_summary(rel, rel, source_file, target_file)
        if differs(summary):
            files.append(summary)
    return DiffTarget(
        title=planned.entry.name,
        instance=_instance_ref(planned.instance),
        files=files,
    )


def plan_diffs(
    config: BlackbookConfig,
    instances: list[ToolInstance],
    context: SyncContext,
    name: str | None = None,
) -> list[PlannedDiff]:
    """Diff every declared mapping (or only entry *name*) that differs."""
    entries = context.state.entries()
    diffs: list[PlannedDiff] = []
    for planned in iter_mappings(config, instances):
        if name is not None and planned.entry.name != name:
            continue
        try:
            if planned.kind == "glob":
                target = _glob_diff_target(planned)
            else:
                target = build_diff_target(
                    planned.entry.name,
                    planned.source,
                    planned.target_path,
                    _instance_ref(planned.instance),
                )
        except OSError as exc:
            logger.error("Cannot diff %s: %s", planned.label, exc)
            continue
        if not target.files:
            continue
        diffs.append(
            PlannedDiff(
                label=planned.label,
                target=target,
                direction=_direction(planned, target.files, entries),
            )
        )
    return diffs
