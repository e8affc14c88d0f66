"""``plugin-remove``: a plugin absent from every instance."""

from __future__ import annotations

import logging

from pydantic import BaseModel

from ..models import ApplyResult, CheckResult, ModuleStatus
from ..plugins import Plugin, PluginInstaller
from .base import Module

logger = logging.getLogger(__name__)


class PluginRemoveParams(BaseModel):
    plugin: Plugin

    model_config = {"frozen": True}


class PluginRemoveModule(Module[PluginRemoveParams]):
    name = "plugin-remove"

    def __init__(self, installer: PluginInstaller) -> None:
        self.installer = installer

    async def check(self, params: PluginRemoveParams) -> CheckResult:
        plugin = params.plugin
        installed = [s for s in self.installer.tool_status(plugin) if s.installed]
        if not installed:
            return CheckResult(
                status=ModuleStatus.OK,
                message=f"{plugin.name} not installed anywhere",
            )
        names = ", ".join(s.name for s in installed)
        return CheckResult(
            status=ModuleStatus.DRIFTED,
            message=f"{plugin.name} installed on: {names}",
        )

    async def apply(self, params: PluginRemoveParams) -> ApplyResult:
        plugin = params.plugin
        if not await self.installer.uninstall(plugin):
            logger.error("Uninstalling %s failed", plugin.name)
            return ApplyResult(
                changed=False,
                message=f"Failed to uninstall {plugin.name}",
                error=f"Uninstall failed for {plugin.name}",
            )
        logger.info("Removed %s", plugin.name)
        return ApplyResult(changed=True, message=f"Removed {plugin.name}")
