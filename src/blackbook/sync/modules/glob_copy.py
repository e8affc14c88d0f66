"""``glob-copy``: every file matched by a glob copied under a target directory.

A match's destination keeps its path relative to the glob's base directory
(the directory part of the pattern before its first wildcard)::

    source pattern  /repo/config/settings*.json
    base directory  /repo/config
    match           /repo/config/settings.local.json
    destination     <target_dir>/settings.local.json

With ``pullback`` the target directory is authoritative: the same relative
pattern is expanded inside it and matches are copied back under the base.
"""

from __future__ import annotations

import glob
import logging
import os
import re
from pathlib import Path

from ...file_handler import atomic_copy_file
from ..hashing import hash_file_async
from ..models import ApplyResult, CheckResult, DriftKind, ModuleStatus
from .base import FileSystemModule, TargetParams, failed_apply, failed_check

logger = logging.getLogger(__name__)

_GLOB_CHARS = re.compile(r"[*?\[{]")
_BRACES = re.compile(r"\{([^{}]*)\}")


class GlobCopyParams(TargetParams):
    source_pattern: str
    target_dir: Path
    pullback: bool = False


def is_glob(path_value: str) -> bool:
    return _GLOB_CHARS.search(path_value) is not None


def glob_base_dir(pattern: str) -> str:
    """Directory part before the first glob character, ``"."`` for a bare pattern."""
    match = _GLOB_CHARS.search(pattern)
    head = pattern if match is None else pattern[: match.start()]
    return os.path.dirname(head) or "."


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives, which :mod:`glob` does not support."""
    match = _BRACES.search(pattern)
    if match is None:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


def match_files(pattern: str) -> list[Path]:
    """Regular files (symlinks followed) matching *pattern*, dotfiles included."""
    found: set[str] = set()
    for candidate in expand_braces(pattern):
        for match in glob.glob(candidate, recursive=True, include_hidden=True):
            if os.path.isfile(match):
                found.add(os.path.normpath(match))
    return [Path(p) for p in sorted(found)]


def _relative_pattern(pattern: str, base: str) -> str:
    prefix = base.rstrip("/\\")
    if pattern.startswith((prefix + "/", prefix + "\\")):
        return pattern[len(prefix) :].lstrip("/\\")
    return pattern


def glob_pairs(
    source_pattern: str, target_dir: Path, pullback: bool = False
) -> list[tuple[str, Path, Path]]:
    """``(relative, source_file, target_file)`` for each authoritative match."""
    base = glob_base_dir(source_pattern)
    target_dir = Path(target_dir)
    pairs: list[tuple[str, Path, Path]] = []
    if pullback:
        rel_pattern = _relative_pattern(source_pattern, base)
        for match in match_files(str(target_dir / rel_pattern)):
            rel = Path(os.path.relpath(match, target_dir)).as_posix()
            pairs.append((rel, Path(base) / rel, match))
    else:
        for match in match_files(source_pattern):
            rel = Path(os.path.relpath(match, base)).as_posix()
            pairs.append((rel, match, target_dir / rel))
    return pairs


class GlobCopyModule(FileSystemModule[GlobCopyParams]):
    name = "glob-copy"

    def _zero_match_message(self, params: GlobCopyParams) -> str:
        if params.pullback:
            rel_pattern = _relative_pattern(
                params.source_pattern, glob_base_dir(params.source_pattern)
            )
            return f"No target files match {rel_pattern} in {params.target_dir}"
        return f"Source pattern matched 0 files: {params.source_pattern}"

    def _precondition(self, params: GlobCopyParams) -> str | None:
        error = self._traversal_error(params.target_dir, params)
        if error:
            return error
        if not is_glob(params.source_pattern):
            return f"glob-copy requires a glob pattern, got: {params.source_pattern}"
        return None

    async def check(self, params: GlobCopyParams) -> CheckResult:
        error = self._precondition(params)
        if error:
            return failed_check(error)

        try:
            pairs = glob_pairs(
                params.source_pattern, params.target_dir, params.pullback
            )
        except (OSError, ValueError) as exc:
            return failed_check(f"Cannot expand {params.source_pattern}: {exc}")

        if not pairs:
            # Permissive: a not-yet-populated side is not an error.
            if params.target_dir.exists():
                return CheckResult(
                    status=ModuleStatus.OK, message=self._zero_match_message(params)
                )
            return CheckResult(
                status=ModuleStatus.MISSING,
                message=self._zero_match_message(params),
                drift_kind=DriftKind.NEVER_SYNCED,
            )

        missing: list[str] = []
        drifted: list[str] = []
        kinds: list[DriftKind] = []
        try:
            for rel, source_file, target_file in pairs:
                if not source_file.is_file() or not target_file.is_file():
                    missing.append(rel)
                    continue
                source_hash = await hash_file_async(source_file)
                target_hash = await hash_file_async(target_file)
                if source_hash != target_hash:
                    drifted.append(rel)
                    if params.state_ref is not None:
                        kind = self._drift(
                            params.state_ref.for_file(rel), source_hash, target_hash
                        )
                        if kind is not None:
                            kinds.append(kind)
        except OSError as exc:
            return failed_check(f"Cannot hash files for {params.source_pattern}: {exc}")

        if missing:
            return CheckResult(
                status=ModuleStatus.MISSING,
                message=f"{len(missing)} of {len(pairs)} file(s) missing: {', '.join(missing)}",
            )
        if drifted:
            return CheckResult(
                status=ModuleStatus.DRIFTED,
                message=f"{len(drifted)} of {len(pairs)} file(s) differ: {', '.join(drifted)}",
                drift_kind=_combine_kinds(kinds),
            )
        return CheckResult(
            status=ModuleStatus.OK, message=f"{len(pairs)} file(s) match"
        )

    async def apply(self, params: GlobCopyParams) -> ApplyResult:
        error = self._precondition(params)
        if error:
            return failed_apply(error)

        try:
            pairs = glob_pairs(
                params.source_pattern, params.target_dir, params.pullback
            )
        except (OSError, ValueError) as exc:
            return failed_apply(f"Cannot expand {params.source_pattern}: {exc}")
        if not pairs:
            return failed_apply(self._zero_match_message(params))

        copied = 0
        errors: list[str] = []
        backups: list[str] = []
        for rel, source_file, target_file in pairs:
            origin, destination = (
                (target_file, source_file) if params.pullback else (source_file, target_file)
            )
            try:
                digest = await hash_file_async(origin)
                if destination.is_file() and await hash_file_async(destination) == digest:
                    self._record_file(params, rel, digest, source_file, target_file)
                    continue
                backup = self._backup(destination, params)
                if backup is not None:
                    backups.append(str(backup))
                atomic_copy_file(origin, destination)
                self._record_file(params, rel, digest, source_file, target_file)
                copied += 1
            except OSError as exc:
                logger.error("Failed to copy %s -> %s: %s", origin, destination, exc)
                errors.append(f"{rel}: {exc}")

        if copied or errors:
            direction = "Pulled back" if params.pullback else "Copied"
            message = f"{direction} {copied} of {len(pairs)} file(s)"
        else:
            message = "All files already match"
        if copied:
            logger.info("%s for %s", message, params.source_pattern)
        return ApplyResult(
            changed=copied > 0,
            message=message,
            backup=backups[0] if len(backups) == 1 else None,
            error="; ".join(errors) if errors else None,
        )

    def _record_file(
        self,
        params: GlobCopyParams,
        rel: str,
        digest: str,
        source_file: Path,
        target_file: Path,
    ) -> None:
        if params.state_ref is None:
            return
        self._record(params.state_ref.for_file(rel), digest, digest, source_file, target_file)


def _combine_kinds(kinds: list[DriftKind]) -> DriftKind | None:
    """One kind is reported as-is; a mix is reported as ``both-changed``."""
    distinct = set(kinds)
    if not distinct:
        return None
    if len(distinct) == 1:
        return distinct.pop()
    return DriftKind.BOTH_CHANGED
