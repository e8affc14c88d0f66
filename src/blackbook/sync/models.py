"""Pydantic models for the reconciliation core.

Defines the data contracts used across all sync modules:

- ``ModuleStatus``: Outcome of a module ``check()``.
- ``DriftKind``: Three-way drift classification against recorded state.
- ``CheckResult`` / ``ApplyResult``: Module contract results.
- ``SyncEntry`` / ``SyncStateDocument``: Persisted sync state.
- ``StepResult`` / ``OrchestratorSummary`` / ``OrchestratorResult``:
  Orchestrator output.
- ``DiffFileStatus``, ``DiffLine``, ``DiffHunk``, ``DiffFileSummary``,
  ``DiffFileDetail``, ``DiffTarget``, ``SyncDirection``: Diff Engine output.
- ``OrphanedEntry``, ``CleanupCheckResult``, ``CleanupApplyResult``:
  Orphan cleanup.

All models except the mutable state document are frozen.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ModuleStatus(str, Enum):
    """Result of inspecting one desired state."""

    OK = "ok"
    MISSING = "missing"
    DRIFTED = "drifted"
    FAILED = "failed"


class DriftKind(str, Enum):
    """How current source/target hashes relate to the last recorded sync."""

    IN_SYNC = "in-sync"
    SOURCE_CHANGED = "source-changed"
    TARGET_CHANGED = "target-changed"
    BOTH_CHANGED = "both-changed"
    NEVER_SYNCED = "never-synced"


class CheckResult(BaseModel):
    """Outcome of a read-only ``check()``.

    Attributes:
        status: One of ok / missing / drifted / failed.
        message: Human-readable summary.
        diff: Optional unified diff (target is "old", source is "new").
        error: Error text for ``failed`` results.
        drift_kind: Three-way classification when state tracking applies.
    """

    status: ModuleStatus
    message: str
    diff: str | None = None
    error: str | None = None
    drift_kind: DriftKind | None = None

    model_config = {"frozen": True}


class ApplyResult(BaseModel):
    """Outcome of ``apply()``.

    Attributes:
        changed: Whether anything on disk was modified.
        message: Human-readable summary.
        backup: Path of the backup taken before overwriting, if any.
        error: Error text when the apply (partly) failed.
    """

    changed: bool
    message: str
    backup: str | None = None
    error: str | None = None

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Persisted state
# ---------------------------------------------------------------------------


class SyncEntry(BaseModel):
    """Hashes observed when a file/directory was last successfully reconciled.

    Serialised with camelCase keys (``sourceHash``, ``targetHash``,
    ``syncedAt``, ``sourcePath``, ``targetPath``).
    """

    source_hash: str = Field(alias="sourceHash")
    target_hash: str = Field(alias="targetHash")
    synced_at: str = Field(alias="syncedAt")
    source_path: str = Field(alias="sourcePath")
    target_path: str = Field(alias="targetPath")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class SyncStateDocument(BaseModel):
    """The single persisted state document (``state.json``)."""

    version: Literal[1] = 1
    files: dict[str, SyncEntry] = Field(default_factory=dict)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Orchestrator output
# ---------------------------------------------------------------------------


class StepResult(BaseModel):
    """Check (and optional apply) outcome for one orchestrator step."""

    label: str
    check: CheckResult
    apply: ApplyResult | None = None

    model_config = {"frozen": True}


class OrchestratorSummary(BaseModel):
    """Status tally over a batch of steps."""

    ok: int = 0
    missing: int = 0
    drifted: int = 0
    failed: int = 0
    changed: int = 0

    model_config = {"frozen": True}


class OrchestratorResult(BaseModel):
    """Ordered step results plus their summary."""

    steps: list[StepResult] = []
    summary: OrchestratorSummary = Field(
        default_factory=OrchestratorSummary
    )

    model_config = {"frozen": True}

    @property
    def failed(self) -> list[StepResult]:
        """Steps whose check failed or whose apply reported an error."""
        return [
            s
            for s in self.steps
            if s.check.status == ModuleStatus.FAILED
            or (s.apply is not None and s.apply.error is not None)
        ]

    @property
    def pending(self) -> list[StepResult]:
        """Steps that still need an apply (missing/drifted, not applied)."""
        return [
            s
            for s in self.steps
            if s.check.status in (ModuleStatus.MISSING, ModuleStatus.DRIFTED)
            and s.apply is None
        ]


# ---------------------------------------------------------------------------
# Diff Engine output
# ---------------------------------------------------------------------------


class DiffFileStatus(str, Enum):
    """File-level comparison status (target is old, source is new)."""

    MISSING = "missing"
    EXTRA = "extra"
    MODIFIED = "modified"
    BINARY = "binary"


class SyncDirection(str, Enum):
    """Recommended reconciliation direction."""

    FORWARD = "forward"
    PULLBACK = "pullback"
    BOTH = "both"
    UNKNOWN = "unknown"


class DiffLine(BaseModel):
    type: Literal["add", "remove", "context"]
    content: str

    model_config = {"frozen": True}


class DiffHunk(BaseModel):
    header: str
    lines: list[DiffLine] = []

    model_config = {"frozen": True}


class DiffFileSummary(BaseModel):
    """Fast-path comparison of one file pair, used in list views."""

    id: str
    display_path: str
    source_path: str | None = None
    target_path: str | None = None
    status: DiffFileStatus
    lines_added: int = 0
    lines_removed: int = 0
    source_mtime: float | None = None
    target_mtime: float | None = None

    model_config = {"frozen": True}


class DiffFileDetail(DiffFileSummary):
    """Summary plus full unified-diff hunks, computed on demand."""

    hunks: list[DiffHunk] = []


class DiffInstanceRef(BaseModel):
    """The tool instance a diff was computed against."""

    tool_id: str
    instance_id: str
    instance_name: str
    config_dir: str

    model_config = {"frozen": True}


class DiffTarget(BaseModel):
    """Differing files of one declared mapping on one tool instance."""

    title: str
    instance: DiffInstanceRef | None = None
    files: list[DiffFileSummary] = []

    model_config = {"frozen": True}

    @property
    def total_added(self) -> int:
        return sum(f.lines_added for f in self.files)

    @property
    def total_removed(self) -> int:
        return sum(f.lines_removed for f in self.files)


# ---------------------------------------------------------------------------
# Orphan cleanup
# ---------------------------------------------------------------------------


class OrphanedEntry(BaseModel):
    """A state entry no longer matched by declared configuration."""

    state_key: str
    entry: SyncEntry
    file_name: str
    tool_id: str
    instance_id: str
    reason: str = ""

    model_config = {"frozen": True}


class CleanupCheckResult(BaseModel):
    orphaned: list[OrphanedEntry] = []

    model_config = {"frozen": True}


class CleanupApplyResult(BaseModel):
    removed: int = 0
    errors: list[str] = []

    model_config = {"frozen": True}
