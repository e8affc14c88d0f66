"""Declared configuration schema for blackbook.

Defines Pydantic models for the merged ``config.yaml`` document plus the
resolved ``ToolInstance`` view consumed by the sync core.

Usage:
    from blackbook.config_schema import build_config, resolve_tool_instances

    raw = {...}  # merged YAML mapping
    config = build_config(raw)
    instances = resolve_tool_instances(config)
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from .paths import expand_path

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Built-in tool definitions
# ---------------------------------------------------------------------------


class ToolDefinition(BaseModel):
    """Static layout of a supported coding-assistant tool."""

    name: str
    config_dir: str
    skills_subdir: str | None = None
    commands_subdir: str | None = None
    agents_subdir: str | None = None

    model_config = {"frozen": True}


TOOL_DEFINITIONS: dict[str, ToolDefinition] = {
    "claude-code": ToolDefinition(
        name="Claude Code",
        config_dir="~/.claude",
        skills_subdir="skills",
        commands_subdir="commands",
        agents_subdir="agents",
    ),
    "opencode": ToolDefinition(
        name="OpenCode",
        config_dir="~/.config/opencode",
        skills_subdir="skill",
        commands_subdir="command",
        agents_subdir="agent",
    ),
    "amp-code": ToolDefinition(
        name="Amp",
        config_dir="~/.config/amp",
        skills_subdir="skills",
        commands_subdir="commands",
    ),
    "openai-codex": ToolDefinition(
        name="OpenAI Codex",
        config_dir="~/.codex",
        skills_subdir="skills",
    ),
    "pi": ToolDefinition(
        name="Pi",
        config_dir="~/.pi/agent",
        skills_subdir="skills",
        commands_subdir="prompts",
    ),
}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class Settings(BaseModel):
    """Global settings.

    Attributes:
        source_repo: Directory that relative ``source`` paths resolve against.
        backup_retention: Backups kept per owner after each prune.
        config_management: Whether ``configs`` entries are reconciled.
    """

    source_repo: str | None = Field(
        default=None, description="Base directory for relative sources"
    )
    backup_retention: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Backups retained per owner (1-100)",
    )
    config_management: bool = Field(
        default=False,
        description="Reconcile tool-specific config files",
    )

    model_config = {"frozen": True}


class ToolInstanceConfig(BaseModel):
    """One configured installation of a tool."""

    id: str = "default"
    name: str = Field(min_length=1)
    enabled: bool = True
    config_dir: str = Field(min_length=1)

    model_config = {"frozen": True}


class FileMapping(BaseModel):
    """A single source -> target mapping of a declared entry.

    ``overrides`` maps ``"<toolId>:<instanceId>"`` to an alternative target
    path for that instance.
    """

    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    overrides: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}


class FileEntry(BaseModel):
    """A declared file, asset or config entry.

    Either ``source`` + ``target`` (single mapping) or ``files`` (one or
    more mappings) must be given.
    """

    name: str = Field(min_length=1)
    source: str | None = None
    target: str | None = None
    files: list[FileMapping] = Field(default_factory=list)
    tools: list[str] | None = None
    overrides: dict[str, str] = Field(default_factory=dict)
    pullback: bool = False
    mode: Literal["copy", "symlink"] = "copy"

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_mappings(self) -> FileEntry:
        single = self.source is not None or self.target is not None
        if single and self.files:
            raise ValueError(
                f"{self.name}: use either source/target or files, not both"
            )
        if not self.files and (self.source is None or self.target is None):
            raise ValueError(
                f"{self.name}: source and target are required when files is empty"
            )
        return self

    def mappings(self) -> list[FileMapping]:
        """Return every mapping, folding entry-level overrides into the single form."""
        if self.files:
            return list(self.files)
        return [
            FileMapping(
                source=self.source or "",
                target=self.target or "",
                overrides=dict(self.overrides),
            )
        ]

    def targets_tool(self, tool_id: str) -> bool:
        """True if this entry applies to *tool_id*."""
        return self.tools is None or tool_id in self.tools


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class BlackbookConfig(BaseModel):
    """Top-level declared configuration.

    Every section has defaults, so ``BlackbookConfig()`` (zero-config) is
    always valid.
    """

    settings: Settings = Field(default_factory=Settings)
    tools: dict[str, list[ToolInstanceConfig]] = Field(default_factory=dict)
    files: list[FileEntry] = Field(default_factory=list)
    configs: list[FileEntry] = Field(default_factory=list)

    model_config = {"frozen": True}

    def declared_entries(self) -> list[FileEntry]:
        """Entries the sync core reconciles, honouring ``config_management``."""
        if self.settings.config_management:
            return [*self.files, *self.configs]
        return list(self.files)

    def find_entry(self, name: str) -> FileEntry | None:
        for entry in [*self.files, *self.configs]:
            if entry.name == name:
                return entry
        return None


def build_config(raw_data: dict | None) -> BlackbookConfig:
    """Construct a ``BlackbookConfig`` from a merged raw mapping.

    Raises:
        pydantic.ValidationError: If the mapping does not match the schema.
    """
    if not raw_data:
        return BlackbookConfig()
    return BlackbookConfig.model_validate(raw_data)


# ---------------------------------------------------------------------------
# Resolved tool instances
# ---------------------------------------------------------------------------


class ToolInstance(BaseModel):
    """A resolved, physical tool installation that files are synced into."""

    tool_id: str
    instance_id: str
    name: str
    config_dir: str
    skills_subdir: str | None = None
    commands_subdir: str | None = None
    agents_subdir: str | None = None
    enabled: bool = True

    model_config = {"frozen": True}

    @property
    def key(self) -> str:
        """``"<toolId>:<instanceId>"`` as used by overrides and manifests."""
        return f"{self.tool_id}:{self.instance_id}"


def resolve_tool_instances(config: BlackbookConfig) -> list[ToolInstance]:
    """Combine configured instances with the built-in tool definitions.

    Instances are returned in ``TOOL_DEFINITIONS`` order, then declaration
    order.  Unknown tool ids are skipped with a warning.
    """
    for tool_id in config.tools:
        if tool_id not in TOOL_DEFINITIONS:
            logger.warning("Ignoring unknown tool id in config: %s", tool_id)

    instances: list[ToolInstance] = []
    for tool_id, definition in TOOL_DEFINITIONS.items():
        for index, inst in enumerate(config.tools.get(tool_id, [])):
            instance_id = inst.id.strip() or f"{tool_id}-{index + 1}"
            instances.append(
                ToolInstance(
                    tool_id=tool_id,
                    instance_id=instance_id,
                    name=inst.name.strip() or definition.name,
                    config_dir=str(expand_path(inst.config_dir)),
                    skills_subdir=definition.skills_subdir,
                    commands_subdir=definition.commands_subdir,
                    agents_subdir=definition.agents_subdir,
                    enabled=inst.enabled,
                )
            )
    return instances
