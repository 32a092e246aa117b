"""File and tree copying with glob filtering and cancellation checkpoints."""

import fnmatch
import os
import shutil
from typing import Callable, Iterable, Optional

from .._utils import logger
from .exceptions import BackupCancelledError, BackupIOError
from .paths import is_ancestor_or_same

DEFAULT_CHUNK_SIZE = 1024 * 1024

Checkpoint = Optional[Callable[[], None]]


def matches_filters(name: str, include_pattern: Optional[str] = None, exclude_pattern: Optional[str] = None) -> bool:
    """Whether an entry name passes the include/exclude globs.

    An entry is rejected if ``exclude_pattern`` matches, and kept only if
    ``include_pattern`` is absent or matches.
    """
    if exclude_pattern and fnmatch.fnmatch(name, exclude_pattern):
        return False
    if include_pattern and not fnmatch.fnmatch(name, include_pattern):
        return False
    return True


def copy_file(src: str, dst: str, checkpoint: Checkpoint = None, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Copy a regular file byte for byte.

    ``checkpoint`` is called after every chunk; if it raises, the partial
    destination is removed before the exception propagates.

    Args:
        src: Source file
        dst: Destination file, its parent directory must exist
        checkpoint: Optional cancellation hook
        chunk_size: Bytes copied between checkpoints

    Returns:
        Number of bytes copied

    Raises:
        BackupIOError: If the source is missing or the destination cannot be written
    """
    try:
        fsrc = open(src, "rb")
    except OSError as e:
        raise BackupIOError(f"Failed to copy {src} to {dst}: {e}", cause=e) from e

    copied = 0
    try:
        with fsrc, open(dst, "wb") as fdst:
            for chunk in iter(lambda: fsrc.read(chunk_size), b""):
                fdst.write(chunk)
                copied += len(chunk)
                if checkpoint:
                    checkpoint()
    except BackupCancelledError:
        _discard_partial(dst)
        raise
    except OSError as e:
        _discard_partial(dst)
        raise BackupIOError(f"Failed to copy {src} to {dst}: {e}", cause=e) from e

    return copied


def copy_tree(
    src: str,
    dst: str,
    include_pattern: Optional[str] = None,
    exclude_pattern: Optional[str] = None,
    checkpoint: Checkpoint = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    skip_dirs: Iterable[str] = ()
) -> int:
    """Recursively mirror ``src`` into ``dst``.

    Filters are matched against entry names, not relative paths, at every
    level. Directories are always recreated and descended into; only the
    files inside them are filtered. Symlinks and special files are skipped.
    ``checkpoint`` is called before each file and inside each file copy.

    Args:
        src: Source directory
        dst: Destination directory, created if missing
        include_pattern: Optional glob a file name must match
        exclude_pattern: Optional glob that rejects a file name
        checkpoint: Optional cancellation hook
        chunk_size: Bytes copied between in-file checkpoints
        skip_dirs: Directories never descended into (e.g. the backup stores)

    Returns:
        Number of files copied
    """
    skip_dirs = tuple(skip_dirs)
    try:
        os.makedirs(dst, exist_ok=True)
        entries = sorted(os.scandir(src), key=lambda e: e.name)
    except OSError as e:
        raise BackupIOError(f"Failed to copy {src} to {dst}: {e}", cause=e) from e

    copied = 0
    for entry in entries:
        target = os.path.join(dst, entry.name)

        if entry.is_dir(follow_symlinks=False):
            if any(is_ancestor_or_same(skipped, entry.path) for skipped in skip_dirs):
                logger.debug(f"Skipping backup store inside source tree: {entry.path}")
                continue
            copied += copy_tree(
                entry.path, target,
                include_pattern=include_pattern,
                exclude_pattern=exclude_pattern,
                checkpoint=checkpoint,
                chunk_size=chunk_size,
                skip_dirs=skip_dirs
            )
        elif entry.is_file(follow_symlinks=False):
            if not matches_filters(entry.name, include_pattern, exclude_pattern):
                continue
            if checkpoint:
                checkpoint()
            copy_file(entry.path, target, checkpoint=checkpoint, chunk_size=chunk_size)
            copied += 1
        else:
            logger.debug(f"Skipping non-regular file: {entry.path}")

    return copied


def remove_path(path: str) -> None:
    """Remove a file or a directory tree if it exists."""
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


def prune_empty_dirs(start: str, stop: str) -> None:
    """Remove ``start`` and its ancestors while empty, never removing ``stop`` or anything above it."""
    current = os.path.normpath(start)
    stop = os.path.normpath(stop)
    while current != stop and is_ancestor_or_same(stop, current):
        try:
            os.rmdir(current)
        except OSError:
            break
        current = os.path.dirname(current)


def directory_size(path: str) -> int:
    """Total size in bytes of the regular files below ``path``."""
    total = 0
    for dirpath, _, filenames in os.walk(path):
        for name in filenames:
            file_path = os.path.join(dirpath, name)
            if not os.path.islink(file_path):
                total += os.path.getsize(file_path)
    return total


def _discard_partial(path: str) -> None:
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.warning(f"Failed to remove partial copy {path}: {e}")
