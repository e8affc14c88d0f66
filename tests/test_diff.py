"""Tests for the diff engine.

Covers:
- Added/removed line counts and unified hunks (target is the old side)
- File summaries: missing, extra, modified, binary
- Directory mappings only list differing files
- Direction from mtimes and from drift kinds
"""

from __future__ import annotations

import os
from pathlib import Path

from blackbook.sync.diff import (
    aggregate_sync_direction,
    build_diff_target,
    build_file_summary,
    compute_diff_counts,
    compute_file_detail,
    compute_unified_diff,
    render_unified_diff,
    sync_direction_from_drift,
    sync_direction_from_mtimes,
)
from blackbook.sync.models import DiffFileStatus, DiffFileSummary, DriftKind, SyncDirection


class TestTextDiffs:
    def test_counts(self):
        counts = compute_diff_counts("a\nb\nc\n", "a\nB\nc\nd\n")
        assert counts.lines_added == 2
        assert counts.lines_removed == 1

    def test_counts_identical(self):
        assert compute_diff_counts("x\n", "x\n") == (0, 0)

    def test_hunks_are_tagged(self):
        hunks = compute_unified_diff("one\ntwo\n", "one\nthree\n")
        assert len(hunks) == 1
        assert hunks[0].header.startswith("@@")
        kinds = [(line.type, line.content) for line in hunks[0].lines]
        assert ("context", "one") in kinds
        assert ("remove", "two") in kinds
        assert ("add", "three") in kinds

    def test_no_hunks_when_equal(self):
        assert compute_unified_diff("same\n", "same\n") == []
        assert render_unified_diff("same\n", "same\n") == ""

    def test_distant_changes_split_into_hunks(self):
        old = "".join(f"line{i}\n" for i in range(30))
        new = old.replace("line1\n", "first\n").replace("line28\n", "last\n")
        assert len(compute_unified_diff(old, new)) == 2

    def test_render_labels(self):
        text = render_unified_diff("a\n", "b\n")
        assert text.startswith("--- target\n+++ source\n")


class TestFileSummary:
    def test_modified(self, tmp_path: Path):
        src = tmp_path / "src.md"
        dst = tmp_path / "dst.md"
        src.write_text("a\nnew\n")
        dst.write_text("a\nold\n")
        summary = build_file_summary("f", "f", src, dst)
        assert summary.status == DiffFileStatus.MODIFIED
        assert (summary.lines_added, summary.lines_removed) == (1, 1)
        assert summary.source_mtime is not None

    def test_missing_target(self, tmp_path: Path):
        src = tmp_path / "src.md"
        src.write_text("one\ntwo")
        summary = build_file_summary("f", "f", src, tmp_path / "absent")
        assert summary.status == DiffFileStatus.MISSING
        assert summary.lines_added == 2
        assert summary.target_mtime is None

    def test_extra_target(self, tmp_path: Path):
        dst = tmp_path / "dst.md"
        dst.write_text("only here")
        summary = build_file_summary("f", "f", None, dst)
        assert summary.status == DiffFileStatus.EXTRA
        assert summary.lines_removed == 1

    def test_binary(self, tmp_path: Path):
        src = tmp_path / "a.bin"
        dst = tmp_path / "b.bin"
        src.write_bytes(b"\x00\x01")
        dst.write_bytes(b"\x00\x02")
        summary = build_file_summary("f", "f", src, dst)
        assert summary.status == DiffFileStatus.BINARY
        assert compute_file_detail(summary).hunks == []

    def test_detail_hunks(self, tmp_path: Path):
        src = tmp_path / "src.md"
        dst = tmp_path / "dst.md"
        src.write_text("keep\nadded\n")
        dst.write_text("keep\n")
        detail = compute_file_detail(build_file_summary("f", "f", src, dst))
        assert [l.type for l in detail.hunks[0].lines] == ["context", "add"]


class TestDiffTarget:
    def test_identical_file_yields_no_entries(self, tmp_path: Path):
        src = tmp_path / "src.md"
        dst = tmp_path / "dst.md"
        src.write_text("same\n")
        dst.write_text("same\n")
        assert build_diff_target("AGENTS.md", src, dst).files == []

    def test_directory(self, tmp_path: Path):
        src = tmp_path / "src"
        dst = tmp_path / "dst"
        (src / "sub").mkdir(parents=True)
        dst.mkdir()
        (src / "same.md").write_text("x\n")
        (dst / "same.md").write_text("x\n")
        (src / "sub" / "new.md").write_text("n\n")
        (dst / "stale.md").write_text("s\n")

        target = build_diff_target("skills", src, dst)
        statuses = {f.id: f.status for f in target.files}
        assert statuses == {
            "stale.md": DiffFileStatus.EXTRA,
            "sub/new.md": DiffFileStatus.MISSING,
        }

    def test_missing_source(self, tmp_path: Path):
        assert build_diff_target("x", tmp_path / "nope", tmp_path / "t").files == []


def _summary(source_mtime, target_mtime) -> DiffFileSummary:
    return DiffFileSummary(
        id="f",
        display_path="f",
        status=DiffFileStatus.MODIFIED,
        source_mtime=source_mtime,
        target_mtime=target_mtime,
    )


class TestDirection:
    def test_from_mtimes(self):
        assert sync_direction_from_mtimes([_summary(2, 1)]) == SyncDirection.FORWARD
        assert sync_direction_from_mtimes([_summary(1, 2)]) == SyncDirection.PULLBACK
        assert sync_direction_from_mtimes([_summary(2, 1), _summary(1, 2)]) == SyncDirection.BOTH
        assert sync_direction_from_mtimes([_summary(1, 1)]) == SyncDirection.UNKNOWN
        assert sync_direction_from_mtimes([_summary(None, 1)]) == SyncDirection.UNKNOWN

    def test_from_drift(self):
        assert sync_direction_from_drift(DriftKind.IN_SYNC) == SyncDirection.FORWARD
        assert sync_direction_from_drift(DriftKind.SOURCE_CHANGED) == SyncDirection.FORWARD
        assert sync_direction_from_drift(DriftKind.TARGET_CHANGED) == SyncDirection.PULLBACK
        assert sync_direction_from_drift(DriftKind.BOTH_CHANGED) == SyncDirection.BOTH
        assert sync_direction_from_drift(DriftKind.NEVER_SYNCED) == SyncDirection.UNKNOWN

    def test_aggregate(self):
        assert aggregate_sync_direction([]) == SyncDirection.UNKNOWN
        assert (
            aggregate_sync_direction([DriftKind.NEVER_SYNCED, DriftKind.TARGET_CHANGED])
            == SyncDirection.PULLBACK
        )
        assert (
            aggregate_sync_direction([DriftKind.SOURCE_CHANGED, DriftKind.TARGET_CHANGED])
            == SyncDirection.BOTH
        )
        assert (
            aggregate_sync_direction([DriftKind.IN_SYNC, DriftKind.SOURCE_CHANGED])
            == SyncDirection.FORWARD
        )

    def test_mtime_of_real_files(self, tmp_path: Path):
        src = tmp_path / "s"
        dst = tmp_path / "t"
        src.write_text("a\n")
        dst.write_text("b\n")
        os.utime(dst, (1_000_000, 1_000_000))
        summary = build_file_summary("f", "f", src, dst)
        assert sync_direction_from_mtimes([summary]) == SyncDirection.FORWARD
