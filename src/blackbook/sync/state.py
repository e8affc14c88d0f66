"""Sync state persistence layer.

Manages ``<cache>/state.json``, the single document recording what was last
put at every synced target::

    {"version": 1,
     "files": {"<name>:<toolId>:<instanceId>:<targetRel>":
               {"sourceHash": ..., "targetHash": ..., "syncedAt": ...,
                "sourcePath": ..., "targetPath": ...}}}

Key design choices:

* **Atomic writes under a lock** -- every read-modify-write runs inside
  :meth:`SyncStateStore.transaction`, which holds ``state.json.lock``, loads,
  yields the document and writes it back with ``os.replace()``.
* **Corruption is never fatal** -- unparsable JSON, an unknown ``version`` or
  a malformed ``files`` map all load as an empty document.  Forgetting
  history only ever makes files look ``never-synced``.
* **No caching** -- every operation re-reads the document, since another
  process may have written it in between.
"""

from __future__ import annotations

import json
import logging
import posixpath
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel

from ..file_handler import atomic_write_text, file_lock
from .models import DriftKind, SyncEntry, SyncStateDocument

logger = logging.getLogger(__name__)

STATE_FILENAME = "state.json"


# ---------------------------------------------------------------------------
# State keys
# ---------------------------------------------------------------------------


def build_state_key(
    file_name: str, tool_id: str, instance_id: str, target_rel: str
) -> str:
    """Join the four state-key components with ``:``.

    Raises:
        ValueError: If a component is empty, or one of the first three
            contains ``:`` (the target path may contain colons).
    """
    parts = {
        "file_name": file_name,
        "tool_id": tool_id,
        "instance_id": instance_id,
        "target_rel": target_rel,
    }
    for label, value in parts.items():
        if not value:
            raise ValueError(f"State key component '{label}' must not be empty")
    for label in ("file_name", "tool_id", "instance_id"):
        if ":" in parts[label]:
            raise ValueError(
                f"State key component '{label}' must not contain ':': {parts[label]!r}"
            )
    return f"{file_name}:{tool_id}:{instance_id}:{target_rel}"


def parse_state_key(key: str) -> tuple[str, str, str, str] | None:
    """Split *key* on its first three colons.

    Returns ``None`` for malformed keys (fewer than four non-empty parts).
    """
    parts = key.split(":", 3)
    if len(parts) < 4 or not all(parts):
        return None
    return parts[0], parts[1], parts[2], parts[3]


class StateKeyRef(BaseModel):
    """Addresses the state entry (or entries) a module records into."""

    file_name: str
    tool_id: str
    instance_id: str
    target_rel: str

    model_config = {"frozen": True}

    def key(self) -> str:
        return build_state_key(
            self.file_name, self.tool_id, self.instance_id, self.target_rel
        )

    def for_file(self, relative: str) -> StateKeyRef:
        """Ref for one file beneath this ref's target (multi-file modules)."""
        return self.model_copy(
            update={
                "target_rel": posixpath.normpath(
                    posixpath.join(self.target_rel, relative)
                )
            }
        )


# ---------------------------------------------------------------------------
# Drift
# ---------------------------------------------------------------------------


def classify_drift(
    entry: SyncEntry | None, source_hash: str, target_hash: str
) -> DriftKind:
    """Three-way comparison of current hashes against the recorded entry."""
    if entry is None:
        return DriftKind.NEVER_SYNCED
    source_changed = source_hash != entry.source_hash
    target_changed = target_hash != entry.target_hash
    if source_changed and target_changed:
        return DriftKind.BOTH_CHANGED
    if source_changed:
        return DriftKind.SOURCE_CHANGED
    if target_changed:
        return DriftKind.TARGET_CHANGED
    return DriftKind.IN_SYNC


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SyncStateStore:
    """Load, save, and query the persisted sync state.

    Args:
        cache_dir: Directory that holds ``state.json``.
    """

    def __init__(self, cache_dir: Path) -> None:
        self._cache_dir = Path(cache_dir)

    @property
    def path(self) -> Path:
        return self._cache_dir / STATE_FILENAME

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load_state(self) -> SyncStateDocument:
        """Load the state document.

        Returns an empty ``{version: 1, files: {}}`` document when the file is
        missing or cannot be parsed.
        """
        path = self.path
        if not path.exists():
            return SyncStateDocument()
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return SyncStateDocument.model_validate(raw)
        except (OSError, ValueError) as exc:
            logger.warning(
                "Sync state at %s is unreadable, starting empty: %s", path, exc
            )
            return SyncStateDocument()

    def save_state(self, state: SyncStateDocument) -> None:
        """Persist *state* atomically under the state lock."""
        with file_lock(self.path):
            self._write(state)

    @contextmanager
    def transaction(self) -> Iterator[SyncStateDocument]:
        """Lock, load, yield the document for mutation, then write it back.

        Nothing is written if the block raises.
        """
        with file_lock(self.path):
            state = self.load_state()
            yield state
            self._write(state)

    def _write(self, state: SyncStateDocument) -> None:
        atomic_write_text(
            self.path, json.dumps(state.to_json_dict(), indent=2) + "\n"
        )

    # ------------------------------------------------------------------
    # Entry helpers
    # ------------------------------------------------------------------

    def record_sync(
        self,
        key: str,
        source_hash: str,
        target_hash: str,
        source_path: str,
        target_path: str,
    ) -> SyncEntry:
        """Upsert the entry for *key* with ``syncedAt`` set to now."""
        entry = SyncEntry(
            source_hash=source_hash,
            target_hash=target_hash,
            synced_at=_now_iso(),
            source_path=str(source_path),
            target_path=str(target_path),
        )
        with self.transaction() as state:
            state.files[key] = entry
        logger.debug("Recorded sync for %s", key)
        return entry

    def get_entry(self, key: str) -> SyncEntry | None:
        return self.load_state().files.get(key)

    def clear_entry(self, key: str) -> bool:
        """Remove the entry for *key*.  Returns whether one existed."""
        with self.transaction() as state:
            removed = state.files.pop(key, None) is not None
        if removed:
            logger.debug("Cleared sync state for %s", key)
        return removed

    def detect_drift(
        self, key: str, source_hash: str, target_hash: str
    ) -> DriftKind:
        return classify_drift(self.get_entry(key), source_hash, target_hash)

    def entries(self) -> dict[str, SyncEntry]:
        """Snapshot of every tracked entry keyed by state key."""
        return dict(self.load_state().files)
