"""Diff Engine: file-level status, line counts, unified hunks, direction.

Orientation: the *target* is always the "old" side and the *source* the
"new" side, so ``+`` lines are what still has to be applied to the target.

Two speeds are offered:

* :func:`build_file_summary` -- status plus added/removed line counts, cheap
  enough for list views.
* :func:`compute_file_detail` -- full unified-diff hunks (3 lines of
  context), computed only when a caller asks for one file's detail.

Nothing here mutates the filesystem.
"""

from __future__ import annotations

import difflib
import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import NamedTuple

from ..file_handler import is_binary_file, read_text
from .hashing import list_tree_files
from .models import (
    DiffFileDetail,
    DiffFileStatus,
    DiffFileSummary,
    DiffHunk,
    DiffInstanceRef,
    DiffLine,
    DiffTarget,
    DriftKind,
    SyncDirection,
)

logger = logging.getLogger(__name__)

CONTEXT_LINES = 3
OLD_LABEL = "target"
NEW_LABEL = "source"


class DiffCounts(NamedTuple):
    lines_added: int
    lines_removed: int


# ---------------------------------------------------------------------------
# Text-level diffs
# ---------------------------------------------------------------------------


def compute_diff_counts(old_text: str, new_text: str) -> DiffCounts:
    """Tally added/removed lines between *old_text* and *new_text*."""
    old_lines = old_text.splitlines(True)
    new_lines = new_text.splitlines(True)
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)

    added = removed = 0
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag in ("replace", "delete"):
            removed += i2 - i1
        if tag in ("replace", "insert"):
            added += j2 - j1
    return DiffCounts(added, removed)


def render_unified_diff(
    old_text: str,
    new_text: str,
    old_label: str = OLD_LABEL,
    new_label: str = NEW_LABEL,
) -> str:
    """Unified diff as text.  Empty string if the contents are identical."""
    return "".join(
        difflib.unified_diff(
            old_text.splitlines(True),
            new_text.splitlines(True),
            fromfile=old_label,
            tofile=new_label,
            n=CONTEXT_LINES,
        )
    )


def compute_unified_diff(
    old_text: str,
    new_text: str,
    old_label: str = OLD_LABEL,
    new_label: str = NEW_LABEL,
) -> list[DiffHunk]:
    """Structured unified-diff hunks with each line tagged add/remove/context."""
    diff_lines = list(
        difflib.unified_diff(
            old_text.splitlines(),
            new_text.splitlines(),
            fromfile=old_label,
            tofile=new_label,
            n=CONTEXT_LINES,
            lineterm="",
        )
    )

    hunks: list[DiffHunk] = []
    header: str | None = None
    lines: list[DiffLine] = []
    # The first two lines are the ---/+++ file headers.
    for raw in diff_lines[2:]:
        if raw.startswith("@@"):
            if header is not None:
                hunks.append(DiffHunk(header=header, lines=lines))
            header, lines = raw, []
            continue
        prefix, content = raw[:1], raw[1:]
        if prefix == "+":
            lines.append(DiffLine(type="add", content=content))
        elif prefix == "-":
            lines.append(DiffLine(type="remove", content=content))
        else:
            lines.append(DiffLine(type="context", content=content))
    if header is not None:
        hunks.append(DiffHunk(header=header, lines=lines))
    return hunks


# ---------------------------------------------------------------------------
# File-level summaries
# ---------------------------------------------------------------------------


def _mtime(path: str | None) -> float | None:
    if path is None:
        return None
    try:
        return os.stat(path).st_mtime
    except OSError:
        return None


def _exists(path: str | None) -> bool:
    return path is not None and os.path.exists(path)


def build_file_summary(
    file_id: str,
    display_path: str,
    source_path: Path | str | None,
    target_path: Path | str | None,
) -> DiffFileSummary:
    """Classify one source/target pair and count differing lines."""
    source = str(source_path) if source_path is not None else None
    target = str(target_path) if target_path is not None else None
    source_exists = _exists(source)
    target_exists = _exists(target)

    if target_exists and not source_exists:
        status = DiffFileStatus.EXTRA
    elif source_exists and target_exists:
        if is_binary_file(source) or is_binary_file(target):
            status = DiffFileStatus.BINARY
        else:
            status = DiffFileStatus.MODIFIED
    else:
        status = DiffFileStatus.MISSING

    added = removed = 0
    if status == DiffFileStatus.MODIFIED:
        added, removed = compute_diff_counts(read_text(target), read_text(source))
    elif status == DiffFileStatus.MISSING and source_exists:
        added = len(read_text(source).split("\n"))
    elif status == DiffFileStatus.EXTRA:
        removed = len(read_text(target).split("\n"))

    return DiffFileSummary(
        id=file_id,
        display_path=display_path,
        source_path=source,
        target_path=target,
        status=status,
        lines_added=added,
        lines_removed=removed,
        source_mtime=_mtime(source) if source_exists else None,
        target_mtime=_mtime(target) if target_exists else None,
    )


def compute_file_detail(summary: DiffFileSummary) -> DiffFileDetail:
    """Attach unified-diff hunks to *summary* (none for binary files)."""
    if summary.status == DiffFileStatus.BINARY:
        return DiffFileDetail(**summary.model_dump(), hunks=[])

    old_text = read_text(summary.target_path) if _exists(summary.target_path) else ""
    new_text = read_text(summary.source_path) if _exists(summary.source_path) else ""
    return DiffFileDetail(
        **summary.model_dump(),
        hunks=compute_unified_diff(old_text, new_text),
    )


def differs(summary: DiffFileSummary) -> bool:
    """False only for a text pair with no added or removed lines."""
    return (
        summary.status != DiffFileStatus.MODIFIED
        or summary.lines_added > 0
        or summary.lines_removed > 0
    )


def build_diff_target(
    title: str,
    source_path: Path | str,
    target_path: Path | str,
    instance: DiffInstanceRef | None = None,
) -> DiffTarget:
    """Compare a declared file or directory mapping against one target.

    Only differing files are listed.  A missing source yields no files.
    """
    source = Path(source_path)
    target = Path(target_path)
    files: list[DiffFileSummary] = []

    if source.is_file():
        summary = build_file_summary(title, title, source, target)
        if differs(summary):
            files.append(summary)
    elif source.is_dir():
        source_files = {rel for rel, _ in list_tree_files(source)}
        target_files = (
            {rel for rel, _ in list_tree_files(target)} if target.is_dir() else set()
        )
        for rel in sorted(source_files | target_files):
            summary = build_file_summary(
                rel,
                rel,
                source / rel if rel in source_files else None,
                target / rel if rel in target_files else None,
            )
            if differs(summary):
                files.append(summary)
    else:
        logger.debug("Diff source %s does not exist", source)

    return DiffTarget(title=title, instance=instance, files=files)


# ---------------------------------------------------------------------------
# Sync direction
# ---------------------------------------------------------------------------


def sync_direction_from_mtimes(
    files: Iterable[DiffFileSummary],
) -> SyncDirection:
    """Recommend a direction from which side was modified more recently."""
    source_newer = target_newer = 0
    for f in files:
        if f.source_mtime is None or f.target_mtime is None:
            continue
        if f.source_mtime > f.target_mtime:
            source_newer += 1
        elif f.target_mtime > f.source_mtime:
            target_newer += 1

    if source_newer and target_newer:
        return SyncDirection.BOTH
    if source_newer:
        return SyncDirection.FORWARD
    if target_newer:
        return SyncDirection.PULLBACK
    return SyncDirection.UNKNOWN


_DRIFT_DIRECTIONS = {
    DriftKind.IN_SYNC: SyncDirection.FORWARD,
    DriftKind.SOURCE_CHANGED: SyncDirection.FORWARD,
    DriftKind.TARGET_CHANGED: SyncDirection.PULLBACK,
    DriftKind.BOTH_CHANGED: SyncDirection.BOTH,
    DriftKind.NEVER_SYNCED: SyncDirection.UNKNOWN,
}


def sync_direction_from_drift(kind: DriftKind) -> SyncDirection:
    return _DRIFT_DIRECTIONS[kind]


def aggregate_sync_direction(kinds: Iterable[DriftKind]) -> SyncDirection:
    """Combine per-file drift kinds into one recommendation.

    ``unknown`` contributions are ignored; ``both``, or ``forward`` together
    with ``pullback``, yields ``both``.
    """
    directions = {sync_direction_from_drift(k) for k in kinds}
    directions.discard(SyncDirection.UNKNOWN)
    if not directions:
        return SyncDirection.UNKNOWN
    if SyncDirection.BOTH in directions or len(directions) > 1:
        return SyncDirection.BOTH
    return directions.pop()
