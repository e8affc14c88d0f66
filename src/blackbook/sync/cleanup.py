"""Orphan cleanup: remove tracked targets that are no longer declared.

Scope is strictly the keys found in the sync state document.  A file this
system never recorded is never touched, whatever its name.

An entry is orphaned when:

* its name is no longer a declared ``files``/``configs`` entry,
* the declared entry's ``tools`` list no longer includes its tool, or
* its tool instance no longer exists in the resolved instances.

Disabled instances still exist, so their entries are kept.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ..config_schema import BlackbookConfig, ToolInstance
from ..file_handler import remove_path
from .backup import BackupManager
from .models import CleanupApplyResult, CleanupCheckResult, OrphanedEntry
from .state import SyncStateStore, parse_state_key

logger = logging.getLogger(__name__)

CLEANUP_OWNER_PREFIX = "cleanup-"


def _orphan_reason(
    config: BlackbookConfig,
    instance_keys: set[tuple[str, str]],
    file_name: str,
    tool_id: str,
    instance_id: str,
) -> str | None:
    entry = config.find_entry(file_name)
    if entry is None:
        return f"'{file_name}' is no longer declared"
    if not entry.targets_tool(tool_id):
        return f"'{file_name}' no longer targets {tool_id}"
    if (tool_id, instance_id) not in instance_keys:
        return f"instance {tool_id}:{instance_id} no longer exists"
    return None


def check_cleanup(
    config: BlackbookConfig,
    instances: list[ToolInstance],
    state: SyncStateStore,
) -> CleanupCheckResult:
    """List state entries that no longer match declared configuration."""
    instance_keys = {(i.tool_id, i.instance_id) for i in instances}
    orphaned: list[OrphanedEntry] = []

    for key, entry in sorted(state.entries().items()):
        parsed = parse_state_key(key)
        if parsed is None:
            logger.debug("Ignoring malformed state key %r", key)
            continue
        file_name, tool_id, instance_id, _ = parsed
        reason = _orphan_reason(config, instance_keys, file_name, tool_id, instance_id)
        if reason is None:
            continue
        orphaned.append(
            OrphanedEntry(
                state_key=key,
                entry=entry,
                file_name=file_name,
                tool_id=tool_id,
                instance_id=instance_id,
                reason=reason,
            )
        )

    return CleanupCheckResult(orphaned=orphaned)


def apply_cleanup(
    orphans: list[OrphanedEntry],
    state: SyncStateStore,
    backups: BackupManager,
) -> CleanupApplyResult:
    """Remove each orphan's target (after backing it up) and its state entry.

    Removal is best effort: a target that is already gone is fine, and a
    target that cannot be removed is reported in ``errors``.  The state entry
    is cleared either way.
    """
    removed = 0
    errors: list[str] = []

    for orphan in orphans:
        target = Path(orphan.entry.target_path)
        owner = f"{CLEANUP_OWNER_PREFIX}{orphan.file_name}"
        try:
            if os.path.lexists(target):
                if backups.create_backup(target, owner) is not None:
                    backups.prune_backups(owner)
                remove_path(target)
                logger.info("Removed orphaned %s (%s)", target, orphan.reason)
        except OSError as exc:
            logger.error("Failed to remove orphaned %s: %s", target, exc)
            errors.append(f"{orphan.state_key}: {exc}")

        if state.clear_entry(orphan.state_key):
            removed += 1

    return CleanupApplyResult(removed=removed, errors=errors)
