"""Tests for plugin-install and plugin-remove against a mocked installer."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from blackbook.sync.models import ModuleStatus
from blackbook.sync.modules import (
    PluginInstallModule,
    PluginInstallParams,
    PluginRemoveModule,
    PluginRemoveParams,
)
from blackbook.sync.plugins import InstallOutcome, Plugin, PluginInstaller, ToolInstallStatus


def _status(name: str, installed: bool, **kw) -> ToolInstallStatus:
    return ToolInstallStatus(
        tool_id=kw.pop("tool_id", "claude-code"),
        instance_id=kw.pop("instance_id", name.lower()),
        name=name,
        installed=installed,
        **kw,
    )


@pytest.fixture
def installer():
    mock = MagicMock()
    mock.install = AsyncMock(return_value=InstallOutcome(success=True))
    mock.sync_instances = AsyncMock(return_value=InstallOutcome(success=True))
    mock.uninstall = AsyncMock(return_value=True)
    return mock


class TestProtocol:
    def test_mock_satisfies_protocol(self, installer):
        assert isinstance(installer, PluginInstaller)


class TestPluginInstall:
    async def test_ok_when_installed_everywhere(self, installer):
        installer.tool_status.return_value = [
            _status("Work", True),
            _status("Off", False, enabled=False),
            _status("Codex", False, supported=False),
        ]
        result = await PluginInstallModule(installer).check(
            PluginInstallParams(plugin=Plugin(name="p", installed=True))
        )
        assert result.status == ModuleStatus.OK

    async def test_missing_lists_instances(self, installer):
        installer.tool_status.return_value = [_status("Work", False), _status("Home", True)]
        result = await PluginInstallModule(installer).check(
            PluginInstallParams(plugin=Plugin(name="p"))
        )
        assert result.status == ModuleStatus.MISSING
        assert "Work" in result.message
        assert "Home" not in result.message

    async def test_fresh_install_uses_marketplace(self, installer):
        installer.tool_status.return_value = [_status("Work", False)]
        plugin = Plugin(name="p")
        result = await PluginInstallModule(installer).apply(
            PluginInstallParams(plugin=plugin, marketplace_url="https://m.example/x.json")
        )
        assert result.changed is True
        installer.install.assert_awaited_once_with(plugin, "https://m.example/x.json")
        installer.sync_instances.assert_not_called()

    async def test_partial_install_syncs_missing_instances(self, installer):
        missing = _status("Work", False)
        installer.tool_status.return_value = [missing, _status("Home", True)]
        plugin = Plugin(name="p", installed=True)
        result = await PluginInstallModule(installer).apply(PluginInstallParams(plugin=plugin))
        assert result.changed is True
        installer.sync_instances.assert_awaited_once_with(plugin, None, [missing])

    async def test_failure_reported(self, installer):
        installer.tool_status.return_value = [_status("Work", False)]
        installer.sync_instances.return_value = InstallOutcome(success=False, errors=["network down"])
        result = await PluginInstallModule(installer).apply(
            PluginInstallParams(plugin=Plugin(name="p", installed=True))
        )
        assert result.changed is False
        assert result.error == "network down"

    async def test_apply_noop_when_nothing_missing(self, installer):
        installer.tool_status.return_value = [_status("Work", True)]
        result = await PluginInstallModule(installer).apply(
            PluginInstallParams(plugin=Plugin(name="p", installed=True))
        )
        assert result.changed is False
        installer.install.assert_not_called()


class TestPluginRemove:
    async def test_check_ok_when_absent(self, installer):
        installer.tool_status.return_value = [_status("Work", False)]
        result = await PluginRemoveModule(installer).check(PluginRemoveParams(plugin=Plugin(name="p")))
        assert result.status == ModuleStatus.OK

    async def test_check_drifted_when_present(self, installer):
        installer.tool_status.return_value = [_status("Work", True)]
        result = await PluginRemoveModule(installer).check(PluginRemoveParams(plugin=Plugin(name="p")))
        assert result.status == ModuleStatus.DRIFTED
        assert "Work" in result.message

    async def test_apply(self, installer):
        result = await PluginRemoveModule(installer).apply(PluginRemoveParams(plugin=Plugin(name="p")))
        assert result.changed is True

    async def test_apply_failure(self, installer):
        installer.uninstall.return_value = False
        result = await PluginRemoveModule(installer).apply(PluginRemoveParams(plugin=Plugin(name="p")))
        assert result.changed is False
        assert result.error
