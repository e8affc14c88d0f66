"""File handler module: atomic writes, exclusive locks, encoding-aware reads.

Every write to a shared document (sync state, backup metadata, installed
items manifest) goes through :func:`atomic_write_bytes` while holding
:func:`file_lock`, so neither a crash nor a concurrent process can observe
or produce a partially-written file.
"""

import logging
import os
import shutil
import tempfile
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from charset_normalizer import from_bytes

logger = logging.getLogger(__name__)

BINARY_SNIFF_BYTES = 8192

LOCK_RETRY_COUNT = 5
LOCK_RETRY_DELAY = 0.05
LOCK_STALE_SECONDS = 30.0


class LockTimeoutError(TimeoutError):
    """Raised when an exclusive file lock cannot be acquired."""


# =============================================================================
# Atomic writes
# =============================================================================


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write *data* to *path* atomically.

    Writes to a temporary file in the destination directory, fsyncs it,
    then ``os.replace()``s it over *path*.  Parent directories are created.
    The temporary file is removed if anything fails.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def atomic_write_text(
    path: Path, content: str, encoding: str = "utf-8"
) -> None:
    """Text wrapper around :func:`atomic_write_bytes`."""
    atomic_write_bytes(path, content.encode(encoding))


def atomic_copy_file(source: Path, destination: Path) -> None:
    """Copy the bytes of *source* over *destination* atomically."""
    atomic_write_bytes(destination, Path(source).read_bytes())


def copy_path(source: Path, destination: Path) -> None:
    """Copy a file, directory tree or symlink verbatim.

    Symlinks (top-level and inside trees) are recreated as links rather
    than followed.
    """
    source = Path(source)
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    if source.is_symlink():
        os.symlink(os.readlink(source), destination)
    elif source.is_dir():
        shutil.copytree(source, destination, symlinks=True)
    else:
        shutil.copy2(source, destination)


def remove_path(path: Path) -> bool:
    """Remove a file, symlink or directory tree.

    Symlinks are unlinked, never followed.  Returns False when nothing
    existed at *path*.
    """
    path = Path(path)
    if not os.path.lexists(path):
        return False
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
    return True


# =============================================================================
# Exclusive lock
# =============================================================================


@contextmanager
def file_lock(
    path: Path,
    retries: int = LOCK_RETRY_COUNT,
    delay: float = LOCK_RETRY_DELAY,
    stale_after: float = LOCK_STALE_SECONDS,
) -> Iterator[Path]:
    """Hold an exclusive ``<path>.lock`` for the duration of the block.

    The lock file is created with ``O_CREAT | O_EXCL``.  On contention the
    acquisition is retried with linear backoff; a lock older than
    *stale_after* seconds is assumed abandoned and removed.

    Raises:
        LockTimeoutError: If the lock is still held after the last retry.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    lock_path = path.with_name(path.name + ".lock")
    fd: int | None = None

    attempt = 0
    while attempt <= retries:
        try:
            fd = os.open(
                str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY
            )
            os.write(fd, str(os.getpid()).encode("ascii"))
            break
        except FileExistsError:
            try:
                age = time.time() - lock_path.stat().st_mtime
            except FileNotFoundError:
                # Released between our open and stat; retry immediately.
                continue
            if age > stale_after:
                logger.warning("Removing stale lock %s", lock_path)
                lock_path.unlink(missing_ok=True)
                continue
            if attempt == retries:
                raise LockTimeoutError(
                    f"Timed out waiting for lock on {path}"
                ) from None
            time.sleep(delay * (attempt + 1))
            attempt += 1

    try:
        yield lock_path
    finally:
        if fd is not None:
            os.close(fd)
        lock_path.unlink(missing_ok=True)


# =============================================================================
# Reads
# =============================================================================


def read_text_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = Path(path).read_bytes()
    if not raw:
        return ("", "utf-8")

    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    return (str(result), result.encoding)


def read_text(path: Path) -> str:
    """Return the decoded text of *path* (see :func:`read_text_with_encoding`)."""
    content, _ = read_text_with_encoding(path)
    return content


def is_binary_file(path: Path) -> bool:
    """Return True if a null byte appears in the first 8 KiB of *path*.

    Missing or unreadable files are reported as not binary.
    """
    try:
        with open(path, "rb") as fh:
            chunk = fh.read(BINARY_SNIFF_BYTES)
    except OSError:
        return False
    return b"\x00" in chunk


# =============================================================================
# Path validation
# =============================================================================


def is_within(base: Path, path: Path) -> bool:
    """Return True if *path* stays inside *base* once ``..`` is resolved.

    Symlinks are not followed, so a managed symlink inside *base* pointing
    elsewhere is still considered inside.
    """
    base_abs = Path(os.path.normpath(os.path.abspath(base)))
    path_abs = Path(os.path.normpath(os.path.abspath(path)))
    return path_abs == base_abs or path_abs.is_relative_to(base_abs)
