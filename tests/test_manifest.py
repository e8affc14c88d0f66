"""Tests for the installed-items manifest and plugin status derivation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from blackbook.config_schema import ToolInstance
from blackbook.sync.manifest import (
    MANIFEST_FILENAME,
    InstalledItem,
    ManifestCorruptError,
    ManifestStore,
    plugin_tool_status,
)
from blackbook.sync.plugins import Plugin


@pytest.fixture
def store(cache_dir: Path) -> ManifestStore:
    return ManifestStore(cache_dir)


def _item(kind="skill", name="review") -> InstalledItem:
    return InstalledItem(kind=kind, name=name, source="/src", dest="/dest")


class TestManifestStore:
    def test_missing_is_empty(self, store):
        assert store.load().tools == {}

    def test_record_and_reload(self, store):
        store.record_item("claude-code:default", _item())
        raw = json.loads(store.path.read_text())
        assert "skill:review" in raw["tools"]["claude-code:default"]["items"]
        assert store.load().items_for("claude-code:default")["skill:review"].dest == "/dest"

    def test_remove_item(self, store):
        store.record_item("claude-code:default", _item())
        store.record_item("claude-code:default", _item("command", "ship"))
        assert store.remove_item("claude-code:default", "skill", "review") is True
        assert list(store.load().items_for("claude-code:default")) == ["command:ship"]

    def test_remove_last_item_drops_tool(self, store):
        store.record_item("pi:default", _item())
        store.remove_item("pi:default", "skill", "review")
        assert store.load().tools == {}

    def test_remove_unknown(self, store):
        assert store.remove_item("pi:default", "skill", "x") is False

    def test_corrupt_raises(self, store, cache_dir: Path):
        cache_dir.mkdir(parents=True)
        (cache_dir / MANIFEST_FILENAME).write_text("{broken")
        with pytest.raises(ManifestCorruptError):
            store.load()
        with pytest.raises(ValueError):
            store.record_item("pi:default", _item())
        assert (cache_dir / MANIFEST_FILENAME).read_text() == "{broken"


class TestPluginToolStatus:
    def _instances(self, tmp_path: Path) -> list[ToolInstance]:
        return [
            ToolInstance(
                tool_id="claude-code",
                instance_id="default",
                name="Claude",
                config_dir=str(tmp_path / "claude"),
                skills_subdir="skills",
                commands_subdir="commands",
                agents_subdir="agents",
            ),
            ToolInstance(
                tool_id="openai-codex",
                instance_id="default",
                name="Codex",
                config_dir=str(tmp_path / "codex"),
                skills_subdir="skills",
            ),
            ToolInstance(
                tool_id="pi",
                instance_id="off",
                name="Pi",
                config_dir=str(tmp_path / "pi"),
                skills_subdir="skills",
                enabled=False,
            ),
        ]

    def test_unsupported_and_disabled(self, store, tmp_path):
        plugin = Plugin(name="p", commands=["ship"])
        statuses = plugin_tool_status(store.load(), plugin, self._instances(tmp_path))
        by_tool = {s.tool_id: s for s in statuses}
        assert by_tool["claude-code"].needs_install is True
        assert by_tool["openai-codex"].supported is False
        assert by_tool["pi"].needs_install is False

    def test_installed_from_disk(self, store, tmp_path):
        skill = tmp_path / "claude" / "skills" / "review"
        skill.mkdir(parents=True)
        plugin = Plugin(name="p", skills=["review"])
        [claude, codex, _] = plugin_tool_status(store.load(), plugin, self._instances(tmp_path))
        assert claude.installed is True
        assert codex.installed is False

    def test_installed_from_manifest(self, store, tmp_path):
        store.record_item("openai-codex:default", _item("skill", "review"))
        plugin = Plugin(name="p", skills=["review"])
        statuses = plugin_tool_status(store.load(), plugin, self._instances(tmp_path))
        assert statuses[1].installed is True

    def test_mcp_only_plugin_supported_on_claude(self, store, tmp_path):
        store.record_item(
            "claude-code:default", InstalledItem(kind="mcp", name="p", source="", dest="")
        )
        plugin = Plugin(name="p", has_mcp=True)
        [claude, codex, _] = plugin_tool_status(store.load(), plugin, self._instances(tmp_path))
        assert claude.supported and claude.installed
        assert codex.supported is False

    def test_escaping_component_ignored(self, store, tmp_path):
        plugin = Plugin(name="p", skills=["../../etc"])
        [claude, *_] = plugin_tool_status(store.load(), plugin, self._instances(tmp_path))
        assert claude.supported is False
