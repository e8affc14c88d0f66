"""``plugin-install``: a plugin present on every enabled, supporting instance."""

from __future__ import annotations

import logging

from pydantic import BaseModel

from ..models import ApplyResult, CheckResult, ModuleStatus
from ..plugins import Plugin, PluginInstaller, ToolInstallStatus
from .base import Module

logger = logging.getLogger(__name__)


class PluginInstallParams(BaseModel):
    plugin: Plugin
    marketplace_url: str | None = None

    model_config = {"frozen": True}


class PluginInstallModule(Module[PluginInstallParams]):
    """Delegates the per-instance fan-out to a :class:`PluginInstaller`."""

    name = "plugin-install"

    def __init__(self, installer: PluginInstaller) -> None:
        self.installer = installer

    def _missing(self, plugin: Plugin) -> list[ToolInstallStatus]:
        return [s for s in self.installer.tool_status(plugin) if s.needs_install]

    async def check(self, params: PluginInstallParams) -> CheckResult:
        plugin = params.plugin
        missing = self._missing(plugin)
        if not missing:
            return CheckResult(
                status=ModuleStatus.OK,
                message=f"{plugin.name} installed on all enabled instances",
            )
        names = ", ".join(s.name for s in missing)
        return CheckResult(
            status=ModuleStatus.MISSING,
            message=f"{plugin.name} missing on: {names}",
        )

    async def apply(self, params: PluginInstallParams) -> ApplyResult:
        plugin = params.plugin
        missing = self._missing(plugin)
        if not missing:
            return ApplyResult(changed=False, message="Already installed on all instances")

        if not plugin.installed and params.marketplace_url:
            outcome = await self.installer.install(plugin, params.marketplace_url)
            message = f"Installed {plugin.name}"
        else:
            outcome = await self.installer.sync_instances(
                plugin, params.marketplace_url, missing
            )
            message = f"Synced {plugin.name} to {len(missing)} instance(s)"

        if not outcome.success or outcome.errors:
            logger.error("Installing %s failed: %s", plugin.name, outcome.errors)
            return ApplyResult(
                changed=False,
                message="; ".join(outcome.errors) or f"Install failed for {plugin.name}",
                error=outcome.errors[0] if outcome.errors else f"Install failed for {plugin.name}",
            )
        logger.info(message)
        return ApplyResult(changed=True, message=message)
