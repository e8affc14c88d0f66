"""Reconciliation core: drift detection and idempotent check/apply sync.

Keeps declared files in sync between a canonical source location and the
installed tool instances that consume them.

Architecture
------------
Drift is detected by **three-way comparison**: the current source hash and
the current target hash are each compared with the hashes recorded at the
last successful sync, so a manual edit of an installed copy is told apart
from a normal source update.  The recorded hashes live in a single state
document that is only ever written atomically under an exclusive lock.

Modules:

- ``hashing``      -- content hashes of files and directory trees.
- ``state``        -- ``SyncStateStore``: persisted ``SyncEntry`` map and
  ``DriftKind`` classification.
- ``backup``       -- ``BackupManager``: timestamped, retained backups.
- ``diff``         -- file status, line counts, unified hunks, direction.
- ``modules``      -- ``symlink-create``, ``file-copy``, ``directory-sync``,
  ``glob-copy``, ``plugin-install``, ``plugin-remove``.
- ``orchestrator`` -- ``run_check`` / ``run_apply`` over ``OrchestratorStep``s.
- ``planner``      -- steps and diffs from declared configuration.
- ``cleanup``      -- orphaned state entries and their targets.
- ``manifest``     -- installed-items manifest of the plugin collaborator.
- ``reporter``     -- human-readable and JSON output.

Usage example
-------------
::

    from blackbook.config_loader import load_config
    from blackbook.config_schema import resolve_tool_instances
    from blackbook.sync import SyncContext, plan_steps, run_apply

    config = load_config().config
    context = SyncContext.create(retention=config.settings.backup_retention)
    steps = plan_steps(config, resolve_tool_instances(config), context)
    result = await run_apply(steps)
    print(format_orchestrator_result(result))
"""

from .backup import BackupManager
from .cleanup import apply_cleanup, check_cleanup
from .context import SyncContext
from .models import (
    ApplyResult,
    CheckResult,
    DriftKind,
    ModuleStatus,
    OrchestratorResult,
    StepResult,
    SyncDirection,
    SyncEntry,
)
from .orchestrator import OrchestratorStep, run_apply, run_check
from .planner import plan_diffs, plan_steps
from .reporter import (
    format_cleanup_report,
    format_orchestrator_result,
    result_to_json,
)
from .state import (
    StateKeyRef,
    SyncStateStore,
    build_state_key,
    parse_state_key,
)

__all__ = [
    "ApplyResult",
    "BackupManager",
    "CheckResult",
    "DriftKind",
    "ModuleStatus",
    "OrchestratorResult",
    "OrchestratorStep",
    "StateKeyRef",
    "StepResult",
    "SyncContext",
    "SyncDirection",
    "SyncEntry",
    "SyncStateStore",
    "apply_cleanup",
    "build_state_key",
    "check_cleanup",
    "format_cleanup_report",
    "format_orchestrator_result",
    "parse_state_key",
    "plan_diffs",
    "plan_steps",
    "result_to_json",
    "run_apply",
    "run_check",
]
