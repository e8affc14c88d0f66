"""Installed-items manifest shared with the plugin install collaborator.

``<cache>/installed_items.json``::

    {"tools": {"<toolId>:<instanceId>":
               {"items": {"<kind>:<name>":
                          {"kind": ..., "name": ..., "source": ...,
                           "dest": ..., "backup": ...}}}}}

Unlike the sync state, a manifest that cannot be parsed is an error: it is
the collaborator's record of what it placed on disk, and silently resetting
it would orphan those files.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from ..config_schema import ToolInstance
from ..file_handler import atomic_write_text, file_lock, is_within
from .plugins import Plugin, ToolInstallStatus

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "installed_items.json"

ItemKind = Literal["skill", "command", "agent", "hook", "mcp", "asset"]


class ManifestCorruptError(ValueError):
    """Raised when ``installed_items.json`` exists but cannot be parsed."""


class InstalledItem(BaseModel):
    kind: ItemKind
    name: str
    source: str
    dest: str
    backup: str | None = None
    owner: str | None = None

    model_config = {"frozen": True}

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.name}"


class ToolItems(BaseModel):
    items: dict[str, InstalledItem] = Field(default_factory=dict)


class Manifest(BaseModel):
    tools: dict[str, ToolItems] = Field(default_factory=dict)

    def items_for(self, tool_key: str) -> dict[str, InstalledItem]:
        tool = self.tools.get(tool_key)
        return tool.items if tool else {}


class ManifestStore:
    """Locked, atomic access to the installed-items manifest."""

    def __init__(self, cache_dir: Path) -> None:
        self._cache_dir = Path(cache_dir)

    @property
    def path(self) -> Path:
        return self._cache_dir / MANIFEST_FILENAME

    def load(self) -> Manifest:
        """Load the manifest; a missing file is an empty manifest.

        Raises:
            ManifestCorruptError: If the file exists but is not a valid
                manifest.
        """
        if not self.path.exists():
            return Manifest()
        try:
            return Manifest.model_validate(
                json.loads(self.path.read_text(encoding="utf-8"))
            )
        except ValueError as exc:
            raise ManifestCorruptError(
                f"Installed-items manifest {self.path} is corrupt: {exc}"
            ) from exc

    def save(self, manifest: Manifest) -> None:
        with file_lock(self.path):
            self._write(manifest)

    @contextmanager
    def transaction(self) -> Iterator[Manifest]:
        with file_lock(self.path):
            manifest = self.load()
            yield manifest
            self._write(manifest)

    def _write(self, manifest: Manifest) -> None:
        atomic_write_text(
            self.path,
            json.dumps(manifest.model_dump(mode="json"), indent=2) + "\n",
        )

    def record_item(self, tool_key: str, item: InstalledItem) -> None:
        with self.transaction() as manifest:
            manifest.tools.setdefault(tool_key, ToolItems()).items[item.key] = item
        logger.debug("Recorded %s for %s", item.key, tool_key)

    def remove_item(self, tool_key: str, kind: str, name: str) -> bool:
        """Drop one item; returns whether it was recorded."""
        with self.transaction() as manifest:
            tool = manifest.tools.get(tool_key)
            if tool is None:
                return False
            removed = tool.items.pop(f"{kind}:{name}", None) is not None
            if not tool.items:
                del manifest.tools[tool_key]
        return removed


# ---------------------------------------------------------------------------
# Plugin status
# ---------------------------------------------------------------------------


def _component_paths(
    plugin: Plugin, instance: ToolInstance
) -> list[tuple[str, str, Path]]:
    """``(kind, name, path)`` for every component the instance can hold."""
    base = Path(instance.config_dir)
    layout = [
        ("skill", plugin.skills, instance.skills_subdir, ""),
        ("command", plugin.commands, instance.commands_subdir, ".md"),
        ("agent", plugin.agents, instance.agents_subdir, ".md"),
    ]
    paths: list[tuple[str, str, Path]] = []
    for kind, names, subdir, suffix in layout:
        if not subdir:
            continue
        for name in names:
            candidate = base / subdir / f"{name}{suffix}"
            if is_within(base / subdir, candidate):
                paths.append((kind, name, candidate))
            else:
                logger.warning(
                    "Ignoring %s %r of plugin %s: escapes %s",
                    kind,
                    name,
                    plugin.name,
                    base / subdir,
                )
    return paths


def plugin_tool_status(
    manifest: Manifest, plugin: Plugin, instances: list[ToolInstance]
) -> list[ToolInstallStatus]:
    """Derive per-instance install status of *plugin*.

    An instance supports the plugin when it has a subdirectory for at least
    one of its component kinds (or, for claude-code, when the plugin ships
    an MCP server).  It has the plugin installed when the manifest records
    one of its components there, or the component exists on disk.
    """
    statuses: list[ToolInstallStatus] = []
    for instance in instances:
        components = _component_paths(plugin, instance)
        supported = bool(components) or (
            instance.tool_id == "claude-code" and plugin.has_mcp
        )

        installed = False
        if instance.enabled and supported:
            recorded = manifest.items_for(instance.key)
            installed = any(
                f"{kind}:{name}" in recorded or os.path.lexists(path)
                for kind, name, path in components
            )
            if not installed and plugin.has_mcp:
                installed = f"mcp:{plugin.name}" in recorded

        statuses.append(
            ToolInstallStatus(
                tool_id=instance.tool_id,
                instance_id=instance.instance_id,
                name=instance.name,
                enabled=instance.enabled,
                supported=supported,
                installed=installed,
            )
        )
    return statuses
