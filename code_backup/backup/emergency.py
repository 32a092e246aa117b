"""Safety-net snapshots taken before a restore overwrites the original.

Emergency entries live in their own store root and are never trimmed by
retention, so that store grows without bound.
"""

import os
from typing import Iterable, Optional

from .._utils import logger
from .copier import DEFAULT_CHUNK_SIZE, Checkpoint, copy_file, copy_tree, prune_empty_dirs, remove_path
from .exceptions import BackupError, BackupIOError
from .metadata import build_metadata, save_metadata
from .models import BackupKind
from .paths import PathMapper, metadata_path_for, normalize_path

EMERGENCY_CONTEXT = "Emergency backup created before restoration"


class EmergencySafetyNet:
    """Snapshots the current on-disk state into the emergency store."""

    def __init__(self, emergency_root: str, chunk_size: int = DEFAULT_CHUNK_SIZE, skip_dirs: Iterable[str] = ()):
        self.mapper = PathMapper(emergency_root)
        self.chunk_size = chunk_size
        self.skip_dirs = tuple(skip_dirs)

    @property
    def store_root(self) -> str:
        return self.mapper.store_root

    def snapshot(
        self,
        original_path: str,
        kind: BackupKind,
        timestamp: str,
        checkpoint: Checkpoint = None
    ) -> Optional[str]:
        """Copy ``original_path`` into the emergency store.

        Args:
            original_path: File or folder about to be overwritten
            kind: Whether ``original_path`` is a file or a folder
            timestamp: Version identifier for the emergency entry
            checkpoint: Optional cancellation hook passed to the copier

        Returns:
            Path of the emergency entry, or None when there is nothing to snapshot

        Raises:
            BackupError: If the snapshot could not be written; partial output is removed
        """
        original_path = normalize_path(original_path)
        exists = os.path.isdir(original_path) if kind == BackupKind.FOLDER else os.path.isfile(original_path)
        if not exists:
            logger.info(f"Nothing to snapshot, {kind.value} not found: {original_path}")
            return None

        backup_dir = self.mapper.backup_dir_for(original_path)
        entry_path = self.mapper.entry_path_for(original_path, timestamp, emergency=True)

        try:
            os.makedirs(backup_dir, exist_ok=True)
            if kind == BackupKind.FOLDER:
                copy_tree(
                    original_path, entry_path,
                    checkpoint=checkpoint,
                    chunk_size=self.chunk_size,
                    skip_dirs=(self.store_root,) + self.skip_dirs
                )
            else:
                copy_file(original_path, entry_path, checkpoint=checkpoint, chunk_size=self.chunk_size)

            metadata = build_metadata(
                original_path, kind, timestamp, entry_path,
                agent_context=EMERGENCY_CONTEXT,
                emergency=True
            )
            save_metadata(metadata, metadata_path_for(entry_path))
        except (BackupError, OSError) as e:
            self._discard(entry_path, backup_dir)
            if isinstance(e, OSError):
                raise BackupIOError(f"Failed to create emergency backup of {original_path}: {e}", cause=e) from e
            raise

        logger.info(f"Created emergency backup: {entry_path}")
        return entry_path

    def _discard(self, entry_path: str, backup_dir: str) -> None:
        try:
            remove_path(entry_path)
            remove_path(metadata_path_for(entry_path))
            prune_empty_dirs(backup_dir, self.store_root)
        except OSError as e:
            logger.warning(f"Failed to clean up emergency backup {entry_path}: {e}")
