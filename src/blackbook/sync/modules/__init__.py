"""Reconciliation modules implementing the check/apply contract."""

from .base import FileSystemModule, Module, TargetParams
from .directory_sync import DirectorySyncModule, DirectorySyncParams
from .file_copy import FileCopyModule, FileCopyParams
from .glob_copy import (
    GlobCopyModule,
    GlobCopyParams,
    glob_base_dir,
    glob_pairs,
    is_glob,
)
from .plugin_install import PluginInstallModule, PluginInstallParams
from .plugin_remove import PluginRemoveModule, PluginRemoveParams
from .symlink_create import SymlinkCreateModule, SymlinkCreateParams

__all__ = [
    "DirectorySyncModule",
    "DirectorySyncParams",
    "FileCopyModule",
    "FileCopyParams",
    "FileSystemModule",
    "GlobCopyModule",
    "GlobCopyParams",
    "Module",
    "PluginInstallModule",
    "PluginInstallParams",
    "PluginRemoveModule",
    "PluginRemoveParams",
    "SymlinkCreateModule",
    "SymlinkCreateParams",
    "TargetParams",
    "glob_base_dir",
    "glob_pairs",
    "is_glob",
]
