"""Tests for the directory-sync module."""

from __future__ import annotations

from pathlib import Path

import pytest

from blackbook.sync.hashing import hash_directory
from blackbook.sync.models import ModuleStatus
from blackbook.sync.modules import DirectorySyncModule, DirectorySyncParams


@pytest.fixture
def module(backups, state_store) -> DirectorySyncModule:
    return DirectorySyncModule(backups, state_store)


@pytest.fixture
def source(tmp_path: Path) -> Path:
    src = tmp_path / "repo" / "skills" / "review"
    (src / "refs").mkdir(parents=True)
    (src / "SKILL.md").write_text("skill")
    (src / "refs" / "guide.md").write_text("guide")
    return src


def _params(source: Path, target: Path, **kw) -> DirectorySyncParams:
    return DirectorySyncParams(source_path=source, target_path=target, **kw)


class TestCheck:
    async def test_missing_target(self, module, source, tool_home):
        result = await module.check(_params(source, tool_home / "skills" / "review"))
        assert result.status == ModuleStatus.MISSING

    async def test_missing_source_with_target_ok(self, module, tmp_path, tool_home):
        target = tool_home / "skills" / "gone"
        target.mkdir(parents=True)
        result = await module.check(_params(tmp_path / "nope", target))
        assert result.status == ModuleStatus.OK

    async def test_missing_source_and_target(self, module, tmp_path, tool_home):
        result = await module.check(_params(tmp_path / "nope", tool_home / "x"))
        assert result.status == ModuleStatus.MISSING

    async def test_unmanaged_files_ignored(self, module, source, tool_home):
        target = tool_home / "review"
        await module.apply(_params(source, target))
        (target / "local-notes.md").write_text("mine")
        result = await module.check(_params(source, target))
        assert result.status == ModuleStatus.OK

    async def test_missing_managed_file_drifted(self, module, source, tool_home):
        target = tool_home / "review"
        await module.apply(_params(source, target))
        (target / "refs" / "guide.md").unlink()
        result = await module.check(_params(source, target))
        assert result.status == ModuleStatus.DRIFTED
        assert "refs/guide.md" in result.message

    async def test_changed_file_drifted(self, module, source, tool_home):
        target = tool_home / "review"
        await module.apply(_params(source, target))
        (target / "SKILL.md").write_text("edited")
        result = await module.check(_params(source, target))
        assert result.status == ModuleStatus.DRIFTED
        assert "SKILL.md" in result.message

    async def test_target_is_file_failed(self, module, source, tool_home):
        (tool_home / "review").write_text("file")
        result = await module.check(_params(source, tool_home / "review"))
        assert result.status == ModuleStatus.FAILED


class TestApply:
    async def test_copies_tree_and_records(self, module, source, tool_home, make_ref, state_store):
        target = tool_home / "skills" / "review"
        ref = make_ref("skills/review", file_name="review")
        result = await module.apply(_params(source, target, state_ref=ref))

        assert result.changed is True
        assert (target / "refs" / "guide.md").read_text() == "guide"
        entry = state_store.get_entry(ref.key())
        assert entry.source_hash == hash_directory(source)

    async def test_second_apply_noop(self, module, source, tool_home):
        params = _params(source, tool_home / "review")
        await module.apply(params)
        result = await module.apply(params)
        assert result.changed is False

    async def test_only_pending_files_copied_and_extras_kept(self, module, source, tool_home, backups):
        target = tool_home / "review"
        await module.apply(_params(source, target, owner="review"))
        (target / "SKILL.md").write_text("edited")
        (target / "extra.md").write_text("keep me")

        result = await module.apply(_params(source, target, owner="review"))

        assert result.changed is True
        assert "1 file(s)" in result.message
        assert (target / "SKILL.md").read_text() == "skill"
        assert (target / "extra.md").read_text() == "keep me"
        backup = Path(result.backup)
        assert (backup / "SKILL.md").read_text() == "edited"

    async def test_missing_source_error(self, module, tmp_path, tool_home):
        result = await module.apply(_params(tmp_path / "nope", tool_home / "x"))
        assert result.changed is False
        assert result.error
