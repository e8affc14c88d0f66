"""Shared pytest fixtures for blackbook tests."""

from pathlib import Path

import pytest

from blackbook.config_schema import ToolInstance
from blackbook.sync.backup import BackupManager
from blackbook.sync.context import SyncContext
from blackbook.sync.state import StateKeyRef, SyncStateStore


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path: Path, monkeypatch):
    """Point config and cache directories into tmp_path for every test."""
    config_dir = tmp_path / "config"
    cache_dir = tmp_path / "cache"
    monkeypatch.setenv("BLACKBOOK_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("BLACKBOOK_CACHE_DIR", str(cache_dir))
    monkeypatch.delenv("BLACKBOOK_LOG_LEVEL", raising=False)
    monkeypatch.delenv("BLACKBOOK_LOG_FILE", raising=False)
    return config_dir, cache_dir


@pytest.fixture
def cache_dir(isolated_dirs) -> Path:
    return isolated_dirs[1]


@pytest.fixture
def config_dir(isolated_dirs) -> Path:
    return isolated_dirs[0]


@pytest.fixture
def state_store(cache_dir: Path) -> SyncStateStore:
    return SyncStateStore(cache_dir)


@pytest.fixture
def backups(cache_dir: Path) -> BackupManager:
    return BackupManager(cache_dir, retention=3)


@pytest.fixture
def sync_context(cache_dir: Path) -> SyncContext:
    return SyncContext.create(cache_dir=cache_dir, retention=3)


@pytest.fixture
def tool_home(tmp_path: Path) -> Path:
    """Config directory of the sample tool instance."""
    home = tmp_path / "tool-home"
    home.mkdir()
    return home


@pytest.fixture
def tool_instance(tool_home: Path) -> ToolInstance:
    return ToolInstance(
        tool_id="claude-code",
        instance_id="default",
        name="Claude Code",
        config_dir=str(tool_home),
        skills_subdir="skills",
        commands_subdir="commands",
        agents_subdir="agents",
    )


@pytest.fixture
def make_ref():
    """Factory for StateKeyRef values with test defaults."""

    def _make(
        target_rel: str,
        file_name: str = "AGENTS.md",
        tool_id: str = "claude-code",
        instance_id: str = "default",
    ) -> StateKeyRef:
        return StateKeyRef(
            file_name=file_name,
            tool_id=tool_id,
            instance_id=instance_id,
            target_rel=target_rel,
        )

    return _make
