"""Tests for turning declared configuration into steps and diffs."""

from __future__ import annotations

from pathlib import Path

import pytest

from blackbook.config_schema import build_config, resolve_tool_instances
from blackbook.sync.models import SyncDirection
from blackbook.sync.modules import (
    DirectorySyncParams,
    FileCopyParams,
    GlobCopyParams,
    SymlinkCreateParams,
)
from blackbook.sync.orchestrator import run_apply
from blackbook.sync.planner import iter_mappings, plan_diffs, plan_steps


@pytest.fixture
def source_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "dotfiles"
    repo.mkdir()
    (repo / "AGENTS.md").write_text("# agents\n")
    (repo / "skills" / "review").mkdir(parents=True)
    (repo / "skills" / "review" / "SKILL.md").write_text("review\n")
    (repo / "commands").mkdir()
    (repo / "commands" / "ship.md").write_text("ship\n")
    return repo


def _config(source_repo: Path, tool_home: Path, files: list[dict], **extra):
    raw = {
        "settings": {"source_repo": str(source_repo), **extra.pop("settings", {})},
        "tools": {
            "claude-code": [
                {"id": "default", "name": "Work", "config_dir": str(tool_home)},
                {
                    "id": "off",
                    "name": "Off",
                    "config_dir": str(tool_home.parent / "off"),
                    "enabled": False,
                },
            ],
        },
        "files": files,
        **extra,
    }
    config = build_config(raw)
    return config, resolve_tool_instances(config)


class TestPlanSteps:
    def test_module_selection(self, source_repo, tool_home, sync_context):
        config, instances = _config(
            source_repo,
            tool_home,
            [
                {"name": "AGENTS.md", "source": "AGENTS.md", "target": "CLAUDE.md"},
                {"name": "linked", "source": "AGENTS.md", "target": "LINKED.md", "mode": "symlink"},
                {"name": "skills", "source": "skills/review", "target": "skills/review"},
                {"name": "commands", "source": "commands/*.md", "target": "commands"},
            ],
        )
        steps = plan_steps(config, instances, sync_context)

        assert [type(s.params) for s in steps] == [
            FileCopyParams,
            SymlinkCreateParams,
            DirectorySyncParams,
            GlobCopyParams,
        ]
        assert steps[0].module is sync_context.file_copy
        assert steps[1].module is sync_context.symlink_create
        assert steps[2].module is sync_context.directory_sync
        assert steps[3].module is sync_context.glob_copy

    def test_labels_owner_and_paths(self, source_repo, tool_home, sync_context):
        config, instances = _config(
            source_repo,
            tool_home,
            [{"name": "AGENTS.md", "source": "AGENTS.md", "target": "./CLAUDE.md"}],
        )
        [step] = plan_steps(config, instances, sync_context)
        assert step.label == "AGENTS.md:claude-code:default:CLAUDE.md"
        assert step.params.owner == "AGENTS.md"
        assert step.params.source_path == source_repo / "AGENTS.md"
        assert step.params.target_path == tool_home / "CLAUDE.md"
        assert step.params.target_root == tool_home
        assert step.params.backup_retention == 3

    def test_override_per_instance(self, source_repo, tool_home, sync_context):
        config, instances = _config(
            source_repo,
            tool_home,
            [
                {
                    "name": "AGENTS.md",
                    "source": "AGENTS.md",
                    "target": "CLAUDE.md",
                    "overrides": {"claude-code:default": "custom/AGENTS.md"},
                }
            ],
        )
        [step] = plan_steps(config, instances, sync_context)
        assert step.params.target_path == tool_home / "custom" / "AGENTS.md"
        assert step.label.endswith(":custom/AGENTS.md")

    def test_tools_filter_and_remote_sources(self, source_repo, tool_home, sync_context):
        config, instances = _config(
            source_repo,
            tool_home,
            [
                {"name": "other", "source": "AGENTS.md", "target": "A.md", "tools": ["opencode"]},
                {"name": "remote", "source": "https://example.com/a.md", "target": "R.md"},
            ],
        )
        assert plan_steps(config, instances, sync_context) == []

    def test_multi_mapping_entry(self, source_repo, tool_home, sync_context):
        config, instances = _config(
            source_repo,
            tool_home,
            [
                {
                    "name": "bundle",
                    "files": [
                        {"source": "AGENTS.md", "target": "A.md"},
                        {"source": "commands/ship.md", "target": "commands/ship.md"},
                    ],
                }
            ],
        )
        labels = [s.label for s in plan_steps(config, instances, sync_context)]
        assert labels == [
            "bundle:claude-code:default:A.md",
            "bundle:claude-code:default:commands/ship.md",
        ]

    def test_configs_need_config_management(self, source_repo, tool_home, sync_context):
        configs = [{"name": "settings", "source": "AGENTS.md", "target": "settings.md"}]
        config, instances = _config(source_repo, tool_home, [], configs=configs)
        assert plan_steps(config, instances, sync_context) == []

        config, instances = _config(
            source_repo,
            tool_home,
            [],
            configs=configs,
            settings={"config_management": True},
        )
        assert len(plan_steps(config, instances, sync_context)) == 1

    def test_mapping_kind(self, source_repo, tool_home):
        config, instances = _config(
            source_repo,
            tool_home,
            [{"name": "skills", "source": "skills/review", "target": "skills/review"}],
        )
        [planned] = list(iter_mappings(config, instances))
        assert planned.kind == "directory"
        assert planned.instance.instance_id == "default"


class TestPlanDiffs:
    def test_only_differing(self, source_repo, tool_home, sync_context):
        (tool_home / "CLAUDE.md").write_text("# agents\n")
        config, instances = _config(
            source_repo,
            tool_home,
            [
                {"name": "same", "source": "AGENTS.md", "target": "CLAUDE.md"},
                {"name": "missing", "source": "AGENTS.md", "target": "NEW.md"},
            ],
        )
        diffs = plan_diffs(config, instances, sync_context)
        assert [d.label for d in diffs] == ["missing:claude-code:default:NEW.md"]
        assert diffs[0].target.instance.instance_name == "Work"

    def test_name_filter(self, source_repo, tool_home, sync_context):
        config, instances = _config(
            source_repo,
            tool_home,
            [
                {"name": "a", "source": "AGENTS.md", "target": "A.md"},
                {"name": "b", "source": "AGENTS.md", "target": "B.md"},
            ],
        )
        diffs = plan_diffs(config, instances, sync_context, name="b")
        assert [d.target.title for d in diffs] == ["b"]

    async def test_direction_from_recorded_state(self, source_repo, tool_home, sync_context):
        config, instances = _config(
            source_repo,
            tool_home,
            [{"name": "AGENTS.md", "source": "AGENTS.md", "target": "CLAUDE.md"}],
        )
        await run_apply(plan_steps(config, instances, sync_context))
        (tool_home / "CLAUDE.md").write_text("# edited in place\n")

        [diff] = plan_diffs(config, instances, sync_context)
        assert diff.direction == SyncDirection.PULLBACK

    async def test_glob_diff(self, source_repo, tool_home, sync_context):
        config, instances = _config(
            source_repo,
            tool_home,
            [{"name": "commands", "source": "commands/*.md", "target": "commands"}],
        )
        [diff] = plan_diffs(config, instances, sync_context)
        assert [f.id for f in diff.target.files] == ["ship.md"]
