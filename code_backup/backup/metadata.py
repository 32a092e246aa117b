"""Descriptor persistence and descriptor-based lookups.

There is no index: finding the versions of a path means reading every
descriptor below the store root.
"""

import json
import os
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from .._utils import logger
from .exceptions import BackupIOError
from .models import BackupKind, BackupMetadata
from .paths import METADATA_SUFFIX, is_ancestor_or_same, normalize_path


def build_metadata(
    original_path: str,
    kind: BackupKind,
    timestamp: str,
    backup_path: str,
    agent_context: Optional[str] = None,
    include_pattern: Optional[str] = None,
    exclude_pattern: Optional[str] = None,
    emergency: bool = False
) -> BackupMetadata:
    """Assemble the descriptor for a freshly written entry."""
    name = os.path.basename(original_path)
    try:
        relative_path = os.path.relpath(backup_path, os.getcwd())
    except ValueError:
        # different drive than the working directory
        relative_path = backup_path

    return BackupMetadata(
        kind=kind,
        original_path=original_path,
        timestamp=timestamp,
        created_at=datetime.now(timezone.utc).isoformat(),
        backup_path=backup_path,
        relative_path=relative_path,
        agent_context=agent_context,
        emergency=emergency,
        original_filename=name if kind == BackupKind.FILE else None,
        original_foldername=name if kind == BackupKind.FOLDER else None,
        include_pattern=include_pattern,
        exclude_pattern=exclude_pattern,
    )


def save_metadata(metadata: BackupMetadata, metadata_path: str) -> None:
    """Write a descriptor as pretty-printed UTF-8 JSON, replacing any existing one.

    Args:
        metadata: Descriptor to write
        metadata_path: Output file path, its directory must already exist

    Raises:
        BackupIOError: If the file cannot be written
    """
    try:
        with open(metadata_path, "w", encoding="utf-8") as f:
            json.dump(metadata.to_descriptor(), f, indent=2, ensure_ascii=False)
    except OSError as e:
        raise BackupIOError(f"Failed to write metadata {metadata_path}: {e}", cause=e) from e

    logger.debug(f"Metadata saved: {metadata_path}")


def load_metadata(metadata_path: str) -> Optional[BackupMetadata]:
    """Read a descriptor.

    Missing, unreadable, malformed or foreign files yield None so that a
    single bad descriptor never aborts a listing.

    Args:
        metadata_path: Descriptor file path

    Returns:
        Parsed descriptor or None
    """
    try:
        with open(metadata_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read metadata {metadata_path}: {e}")
        return None

    try:
        return BackupMetadata.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Ignoring invalid metadata {metadata_path}: {e.error_count()} error(s)")
        return None


class MetadataStore:
    """Descriptor lookups over one store root."""

    def __init__(self, store_root: str):
        self.store_root = normalize_path(store_root)

    def find_all_descriptors(self, checkpoint: Optional[Callable[[], None]] = None) -> List[str]:
        """Recursively collect every ``*.meta.json`` file below the store root.

        Directories are visited in sorted order so repeated scans return the
        same sequence.
        """
        if not os.path.isdir(self.store_root):
            return []

        descriptors = []
        for dirpath, dirnames, filenames in os.walk(self.store_root):
            if checkpoint:
                checkpoint()
            dirnames.sort()
            for name in sorted(filenames):
                if name.endswith(METADATA_SUFFIX):
                    descriptors.append(os.path.join(dirpath, name))
        return descriptors

    def iter_entries(
        self,
        kind: Optional[BackupKind] = None,
        checkpoint: Optional[Callable[[], None]] = None
    ) -> Iterator[Tuple[str, BackupMetadata]]:
        """Yield ``(descriptor_path, metadata)`` for readable descriptors of live entries.

        Descriptors whose payload is gone (left behind by retention) are skipped.
        """
        for descriptor_path in self.find_all_descriptors(checkpoint=checkpoint):
            metadata = load_metadata(descriptor_path)
            if metadata is None:
                continue
            if kind is not None and metadata.kind != kind:
                continue
            if not os.path.exists(metadata.backup_path):
                logger.debug(f"Skipping stale descriptor without payload: {descriptor_path}")
                continue
            yield descriptor_path, metadata

    def find_file_backups(
        self,
        file_path: str,
        checkpoint: Optional[Callable[[], None]] = None
    ) -> List[BackupMetadata]:
        """All file entries whose ``original_path`` equals ``file_path``, newest first."""
        file_path = normalize_path(file_path)
        backups = [
            metadata
            for _, metadata in self.iter_entries(BackupKind.FILE, checkpoint=checkpoint)
            if metadata.original_path == file_path
        ]
        backups.sort(key=lambda b: b.timestamp, reverse=True)
        return backups

    def find_folder_backups(
        self,
        folder_path: str,
        exact: bool = False,
        checkpoint: Optional[Callable[[], None]] = None
    ) -> List[BackupMetadata]:
        """Folder entries related to ``folder_path``, newest first.

        Args:
            folder_path: Folder whose history is wanted
            exact: Only entries for exactly this folder. Otherwise entries for
                any ancestor or descendant folder are included too.
            checkpoint: Optional cancellation hook called once per directory

        Returns:
            Matching descriptors sorted by timestamp, newest first
        """
        folder_path = normalize_path(folder_path)
        backups = []
        for _, metadata in self.iter_entries(BackupKind.FOLDER, checkpoint=checkpoint):
            original = metadata.original_path
            if original == folder_path:
                backups.append(metadata)
            elif not exact and (
                is_ancestor_or_same(original, folder_path)
                or is_ancestor_or_same(folder_path, original)
            ):
                backups.append(metadata)

        backups.sort(key=lambda b: b.timestamp, reverse=True)
        return backups

    def find_entry(self, original_path: str, timestamp: str, kind: BackupKind) -> Optional[BackupMetadata]:
        """Entry for exactly ``(original_path, timestamp)`` of the given kind."""
        if kind == BackupKind.FILE:
            candidates = self.find_file_backups(original_path)
        else:
            candidates = self.find_folder_backups(original_path, exact=True)

        for metadata in candidates:
            if metadata.timestamp == timestamp:
                return metadata
        return None
