"""Content hashing for files and directory trees.

Hashes are hex-encoded SHA-256 digests.  A directory hash is a digest over
the sorted ``(relative path, file digest)`` pairs of every regular file
beneath it, so two trees with the same layout and bytes hash identically
regardless of traversal order, timestamps or permissions.

Symlinks are followed to their real targets; broken symlinks are skipped and
a symlink back to one of its own ancestor directories is not entered.
Sibling links to the same directory are each walked.
"""

from __future__ import annotations

import hashlib
import logging
import os
from collections.abc import Callable, Iterator
from pathlib import Path

from ..core.async_utils import run_sync, yield_control

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[int, str], None]


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_string(text: str) -> str:
    return hash_bytes(text.encode("utf-8"))


def hash_file(path: Path | str) -> str:
    """Return the SHA-256 hex digest of a file's bytes.

    Raises:
        OSError: If the file cannot be read.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


# ---------------------------------------------------------------------------
# Directory traversal
# ---------------------------------------------------------------------------


def _walk_tree(root: Path) -> Iterator[tuple[str, Path, bool]]:
    """Yield ``(relative_path, path, is_file)`` for every entry under *root*.

    Directories are yielded too (``is_file=False``) so async callers can
    yield control per entry.  Relative paths always use ``/``.
    """
    stack: list[tuple[Path, str, frozenset[str]]] = [
        (Path(root), "", frozenset({os.path.realpath(root)}))
    ]

    while stack:
        directory, prefix, ancestors = stack.pop()
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as exc:
            logger.debug("Skipping unreadable directory %s: %s", directory, exc)
            continue

        for entry in entries:
            rel = f"{prefix}{entry.name}"
            path = Path(entry.path)
            try:
                # is_dir/is_file follow symlinks; a broken link is neither.
                if entry.is_dir():
                    real = os.path.realpath(path)
                    if real in ancestors:
                        logger.debug("Skipping symlink cycle at %s", path)
                        continue
                    stack.append((path, f"{rel}/", ancestors | {real}))
                    yield rel, path, False
                elif entry.is_file():
                    yield rel, path, True
                else:
                    logger.debug("Skipping broken symlink or special file %s", path)
            except OSError as exc:
                logger.debug("Skipping %s: %s", path, exc)


def _combine(pairs: list[tuple[str, str]]) -> str:
    digest = hashlib.sha256()
    for rel, file_hash in sorted(pairs):
        digest.update(rel.encode("utf-8"))
        digest.update(b"\0")
        digest.update(file_hash.encode("ascii"))
        digest.update(b"\n")
    return digest.hexdigest()


def list_tree_files(root: Path | str) -> list[tuple[str, Path]]:
    """Return ``(relative_path, path)`` for every file under *root*, sorted."""
    return sorted(
        (rel, path) for rel, path, is_file in _walk_tree(Path(root)) if is_file
    )


def hash_directory(path: Path | str) -> str:
    """Return the digest of a directory tree (see module docstring)."""
    pairs = [(rel, hash_file(p)) for rel, p in list_tree_files(path)]
    return _combine(pairs)


def hash_path(path: Path | str) -> tuple[str, bool]:
    """Hash a file or directory, dereferencing a top-level symlink.

    Returns:
        ``(hash, is_directory)``.

    Raises:
        FileNotFoundError: If *path* (or its symlink target) does not exist.
    """
    resolved = Path(os.path.realpath(path))
    if not resolved.exists():
        raise FileNotFoundError(f"Path does not exist: {path}")
    if resolved.is_dir():
        return hash_directory(resolved), True
    return hash_file(resolved), False


# ---------------------------------------------------------------------------
# Async variants
# ---------------------------------------------------------------------------


async def hash_file_async(path: Path | str) -> str:
    """Hash a file on a worker thread."""
    return await run_sync(hash_file, path)


async def hash_directory_async(
    path: Path | str, on_progress: ProgressCallback | None = None
) -> str:
    """Async :func:`hash_directory` that yields to the event loop.

    Control is yielded after every directory entry and every file hash.
    *on_progress* is called with ``(files_hashed, relative_path)`` after each
    file.
    """
    pairs: list[tuple[str, str]] = []
    for rel, file_path, is_file in _walk_tree(Path(path)):
        if is_file:
            pairs.append((rel, await hash_file_async(file_path)))
            if on_progress is not None:
                on_progress(len(pairs), rel)
        await yield_control()
    return _combine(pairs)


async def hash_path_async(path: Path | str) -> tuple[str, bool]:
    resolved = Path(os.path.realpath(path))
    if not resolved.exists():
        raise FileNotFoundError(f"Path does not exist: {path}")
    if resolved.is_dir():
        return await hash_directory_async(resolved), True
    return await hash_file_async(resolved), False
