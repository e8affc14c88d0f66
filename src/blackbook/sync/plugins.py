"""Interface to the plugin install collaborator.

The sync core never fetches, unpacks or links plugins itself.  The
``plugin-install`` and ``plugin-remove`` modules ask a ``PluginInstaller``
which instances are missing a plugin and delegate the fan-out to it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field


class Plugin(BaseModel):
    """A plugin as known to the marketplace layer."""

    name: str = Field(min_length=1)
    marketplace: str = ""
    description: str = ""
    source: str = ""
    skills: list[str] = Field(default_factory=list)
    commands: list[str] = Field(default_factory=list)
    agents: list[str] = Field(default_factory=list)
    has_mcp: bool = False
    installed: bool = False

    model_config = {"frozen": True}


class ToolInstallStatus(BaseModel):
    """Whether one tool instance can hold, and does hold, a plugin."""

    tool_id: str
    instance_id: str
    name: str
    enabled: bool = True
    supported: bool = True
    installed: bool = False

    model_config = {"frozen": True}

    @property
    def needs_install(self) -> bool:
        return self.enabled and self.supported and not self.installed


class InstallOutcome(BaseModel):
    success: bool
    errors: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


@runtime_checkable
class PluginInstaller(Protocol):
    """Collaborator that performs plugin installs across tool instances."""

    def tool_status(self, plugin: Plugin) -> list[ToolInstallStatus]: ...

    async def install(
        self, plugin: Plugin, marketplace_url: str | None
    ) -> InstallOutcome: ...

    async def sync_instances(
        self,
        plugin: Plugin,
        marketplace_url: str | None,
        instances: list[ToolInstallStatus],
    ) -> InstallOutcome: ...

    async def uninstall(self, plugin: Plugin) -> bool: ...
