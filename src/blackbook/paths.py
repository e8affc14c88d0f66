"""Filesystem locations used by blackbook.

Resolution order for each directory (highest to lowest):
    BLACKBOOK_* env var > XDG base directory env var > ``~/.config`` / ``~/.cache``

Environment variables:
    BLACKBOOK_CONFIG_DIR: Directory holding ``config.yaml`` and ``config.local.yaml``.
    BLACKBOOK_CACHE_DIR: Directory holding ``state.json``, backups and the
        installed-items manifest.
    XDG_CONFIG_HOME / XDG_CACHE_HOME: Standard XDG base directories.
"""

import os
from pathlib import Path

APP_NAME = "blackbook"


def expand_path(path_value: str) -> Path:
    """Expand a leading ``~`` to the user's home directory."""
    if path_value == "~":
        return Path.home()
    if path_value.startswith("~/"):
        return Path.home() / path_value[2:]
    return Path(path_value)


def get_config_dir() -> Path:
    """Return the directory that holds the declared configuration."""
    explicit = os.environ.get("BLACKBOOK_CONFIG_DIR")
    if explicit:
        return expand_path(explicit)
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / APP_NAME


def get_cache_dir() -> Path:
    """Return the directory that holds sync state, backups and manifests."""
    explicit = os.environ.get("BLACKBOOK_CACHE_DIR")
    if explicit:
        return expand_path(explicit)
    xdg = os.environ.get("XDG_CACHE_HOME")
    base = Path(xdg) if xdg else Path.home() / ".cache"
    return base / APP_NAME


def resolve_source_path(source: str, source_repo: str | None) -> str:
    """Resolve a declared source path.

    Supports:
    - URLs (``http://`` or ``https://``) -- returned unchanged
    - Absolute paths and home-relative paths (``~``)
    - Relative paths, resolved against *source_repo* when one is configured

    Glob characters are preserved, so the result may be a pattern rather
    than a concrete path.
    """
    if source.startswith(("http://", "https://")):
        return source
    if source.startswith(("/", "~")):
        return str(expand_path(source))
    if source_repo:
        return str(expand_path(source_repo) / source)
    return str(expand_path(source))
