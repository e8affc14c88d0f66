"""Tests for config/cache directory resolution and source path handling."""

from __future__ import annotations

from pathlib import Path

from blackbook.paths import (
    expand_path,
    get_cache_dir,
    get_config_dir,
    resolve_source_path,
)


class TestDirectories:
    def test_explicit_env_wins(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("BLACKBOOK_CACHE_DIR", str(tmp_path / "c"))
        assert get_cache_dir() == tmp_path / "c"

    def test_xdg_fallback(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("BLACKBOOK_CONFIG_DIR")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        assert get_config_dir() == tmp_path / "xdg" / "blackbook"

    def test_home_fallback(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("BLACKBOOK_CACHE_DIR")
        monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert get_cache_dir() == tmp_path / ".cache" / "blackbook"


class TestResolveSourcePath:
    def test_url_passthrough(self):
        url = "https://example.com/AGENTS.md"
        assert resolve_source_path(url, "/repo") == url

    def test_relative_joined_to_repo(self):
        assert resolve_source_path("skills/*.md", "/repo") == "/repo/skills/*.md"

    def test_absolute_kept(self):
        assert resolve_source_path("/abs/file", "/repo") == "/abs/file"

    def test_home_expanded(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert resolve_source_path("~/dot/a.md", None) == str(tmp_path / "dot" / "a.md")
        assert expand_path("~") == tmp_path
