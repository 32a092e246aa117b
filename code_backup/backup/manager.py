"""Backup and restore orchestration for files and folder trees."""

import asyncio
import os
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .._utils import logger
from ..config import BackupConfig
from .catalog import CatalogScanner
from .copier import copy_file, copy_tree, prune_empty_dirs, remove_path
from .emergency import EmergencySafetyNet
from .exceptions import (
    BackupCancelledError,
    BackupError,
    BackupIOError,
    BackupNotFoundError,
    BackupValidationError,
)
from .metadata import MetadataStore, build_metadata, save_metadata
from .models import (
    BackupKind,
    BackupMetadata,
    BackupResult,
    CatalogListing,
    Operation,
    RestoreResult,
)
from .operations import OperationTracker
from .paths import PathMapper, generate_timestamp, metadata_path_for, normalize_path
from .retention import enforce_retention


class BackupManager:
    """Create, list and restore versioned backups of files and folders.

    Every public method accepts an optional ``operation``; when given, its
    progress is updated at fixed milestones and its cancellation flag is
    checked before each copy step, after every copied file and inside
    large file copies. Copies run in a worker thread so a cancel request
    arriving on the event loop is observed while they are in flight.
    """

    def __init__(self, config: BackupConfig, tracker: Optional[OperationTracker] = None):
        """Initialize backup manager.

        Args:
            config: Store roots and retention settings
            tracker: Operation registry shared with the dispatcher
        """
        self.config = config
        self.tracker = tracker or OperationTracker()
        self.mapper = PathMapper(config.backup_dir)
        self.store = MetadataStore(config.backup_dir)
        self.safety_net = EmergencySafetyNet(
            config.emergency_backup_dir,
            chunk_size=config.copy_chunk_size,
            skip_dirs=(config.backup_dir,)
        )
        self.scanner = CatalogScanner(config.backup_dir, config.emergency_backup_dir)

        self._last_timestamp = ""
        self._timestamp_lock = threading.Lock()

        os.makedirs(config.backup_dir, exist_ok=True)

    # File backups

    async def create_file_backup(
        self,
        file_path: str,
        agent_context: Optional[str] = None,
        operation: Optional[Operation] = None
    ) -> BackupResult:
        """Create a timestamped backup of a single file.

        Args:
            file_path: File to back up
            agent_context: Optional note stored in the descriptor
            operation: Optional operation for progress and cancellation

        Returns:
            BackupResult with the new descriptor and the number of versions kept
        """
        file_path = self._require_path(file_path, "file_path")
        if not os.path.isfile(file_path):
            raise BackupNotFoundError(f"File not found: {file_path}")
        self._reject_store_path(file_path)

        timestamp = self._next_timestamp()
        backup_dir = self.mapper.backup_dir_for(file_path)
        entry_path = self.mapper.entry_path_for(file_path, timestamp)
        logger.info(f"Starting file backup: {file_path}")

        self._progress(operation, 10)
        self._checkpoint(operation)

        await self._run_copy(
            operation, lambda: self._discard_entry(entry_path, backup_dir),
            self._write_file_entry, file_path, backup_dir, entry_path, operation
        )

        self._progress(operation, 70)
        self._checkpoint(operation, cleanup=lambda: self._discard_entry(entry_path, backup_dir))

        metadata = build_metadata(file_path, BackupKind.FILE, timestamp, entry_path, agent_context=agent_context)
        self._save_entry_metadata(metadata, backup_dir)
        self._progress(operation, 90)

        versions_kept = await asyncio.to_thread(
            enforce_retention, self.store, file_path, self.config.max_versions, BackupKind.FILE
        )
        self._progress(operation, 100)

        logger.info(f"Backup complete: {entry_path} ({versions_kept} versions kept)")
        return BackupResult(entry=metadata, versions_kept=versions_kept)

    async def list_file_backups(self, file_path: str, operation: Optional[Operation] = None) -> List[BackupMetadata]:
        """List backups of a file, newest first."""
        file_path = self._require_path(file_path, "file_path")
        self._progress(operation, 0)

        backups = await asyncio.to_thread(
            self.store.find_file_backups, file_path, lambda: self._checkpoint(operation)
        )

        self._progress(operation, 100)
        return backups

    async def restore_file_backup(
        self,
        file_path: str,
        timestamp: str,
        create_emergency_backup: bool = True,
        operation: Optional[Operation] = None
    ) -> RestoreResult:
        """Overwrite a file with one of its backups.

        The backup is first copied next to the target and then moved over it,
        so a cancelled or failed restore leaves the original untouched.

        Args:
            file_path: File to restore
            timestamp: Version to restore
            create_emergency_backup: Snapshot the current file before overwriting it
            operation: Optional operation for progress and cancellation

        Returns:
            RestoreResult with the restored path and any emergency backup path
        """
        file_path = self._require_path(file_path, "file_path")
        if not timestamp:
            raise BackupValidationError("Invalid params: timestamp is required")
        self._progress(operation, 0)

        backup = await asyncio.to_thread(self.store.find_entry, file_path, timestamp, BackupKind.FILE)
        if backup is None:
            raise BackupNotFoundError(f"Backup with timestamp {timestamp} not found for {file_path}")

        self._progress(operation, 20)
        self._checkpoint(operation)

        emergency_path = None
        if create_emergency_backup:
            emergency_path = await self._emergency_snapshot(file_path, BackupKind.FILE, operation)

        if not os.path.isfile(backup.backup_path):
            raise BackupNotFoundError(f"Backup file not found: {backup.backup_path}")
        target_dir = os.path.dirname(file_path)
        if not os.path.isdir(target_dir):
            raise BackupNotFoundError(f"Restore target directory not found: {target_dir}")

        self._progress(operation, 50)
        self._checkpoint(operation)

        await self._run_copy(operation, None, self._replace_file, backup.backup_path, file_path, operation)

        self._progress(operation, 100)
        logger.info(f"Restored {file_path} from {timestamp}")
        return RestoreResult(restored_path=file_path, timestamp=timestamp, emergency_backup_path=emergency_path)

    # Folder backups

    async def create_folder_backup(
        self,
        folder_path: str,
        include_pattern: Optional[str] = None,
        exclude_pattern: Optional[str] = None,
        agent_context: Optional[str] = None,
        operation: Optional[Operation] = None
    ) -> BackupResult:
        """Create a timestamped backup of a folder tree.

        Args:
            folder_path: Folder to back up
            include_pattern: Optional glob a file name must match to be copied
            exclude_pattern: Optional glob that keeps a file name out of the backup
            agent_context: Optional note stored in the descriptor
            operation: Optional operation for progress and cancellation

        Returns:
            BackupResult with the new descriptor and the number of versions kept
        """
        folder_path = self._require_path(folder_path, "folder_path")
        if not os.path.isdir(folder_path):
            raise BackupNotFoundError(f"Folder not found: {folder_path}")
        self._reject_store_path(folder_path)

        timestamp = self._next_timestamp()
        backup_dir = self.mapper.backup_dir_for(folder_path)
        entry_path = self.mapper.entry_path_for(folder_path, timestamp)
        logger.info(f"Starting folder backup: {folder_path}")

        self._progress(operation, 10)
        self._checkpoint(operation)

        await self._run_copy(
            operation, lambda: self._discard_entry(entry_path, backup_dir),
            self._write_folder_entry, folder_path, backup_dir, entry_path,
            include_pattern, exclude_pattern, operation
        )

        self._progress(operation, 70)
        self._checkpoint(operation, cleanup=lambda: self._discard_entry(entry_path, backup_dir))

        metadata = build_metadata(
            folder_path, BackupKind.FOLDER, timestamp, entry_path,
            agent_context=agent_context,
            include_pattern=include_pattern,
            exclude_pattern=exclude_pattern
        )
        self._save_entry_metadata(metadata, backup_dir)
        self._progress(operation, 90)

        versions_kept = await asyncio.to_thread(
            enforce_retention, self.store, folder_path, self.config.max_versions, BackupKind.FOLDER
        )
        self._progress(operation, 100)

        logger.info(f"Backup complete: {entry_path} ({versions_kept} versions kept)")
        return BackupResult(entry=metadata, versions_kept=versions_kept)

    async def list_folder_backups(self, folder_path: str, operation: Optional[Operation] = None) -> List[BackupMetadata]:
        """List backups of a folder and of its ancestor or nested folders, newest first."""
        folder_path = self._require_path(folder_path, "folder_path")
        self._progress(operation, 0)

        backups = await asyncio.to_thread(
            self.store.find_folder_backups, folder_path, False, lambda: self._checkpoint(operation)
        )

        self._progress(operation, 100)
        return backups

    async def restore_folder_backup(
        self,
        folder_path: str,
        timestamp: str,
        create_emergency_backup: bool = True,
        operation: Optional[Operation] = None
    ) -> RestoreResult:
        """Copy a folder backup back over the original folder.

        The backup is overlaid onto the target: files it contains are
        overwritten, files it does not contain are left in place. The
        include/exclude patterns used at creation are not re-applied.

        Files are overwritten in place, one at a time. A restore that is
        cancelled or fails part way leaves the target partly overlaid; the
        emergency backup taken beforehand holds its previous state.

        Args:
            folder_path: Folder to restore
            timestamp: Version to restore
            create_emergency_backup: Snapshot the current folder before overwriting it
            operation: Optional operation for progress and cancellation

        Returns:
            RestoreResult with the restored path and any emergency backup path
        """
        folder_path = self._require_path(folder_path, "folder_path")
        if not timestamp:
            raise BackupValidationError("Invalid params: timestamp is required")
        self._progress(operation, 0)

        backup = await asyncio.to_thread(self.store.find_entry, folder_path, timestamp, BackupKind.FOLDER)
        if backup is None:
            raise BackupNotFoundError(f"Backup with timestamp {timestamp} not found for {folder_path}")

        self._progress(operation, 10)
        self._checkpoint(operation)

        emergency_path = None
        if create_emergency_backup:
            emergency_path = await self._emergency_snapshot(folder_path, BackupKind.FOLDER, operation)

        if not os.path.isdir(backup.backup_path):
            raise BackupNotFoundError(f"Backup folder not found: {backup.backup_path}")
        target_parent = os.path.dirname(folder_path)
        if not os.path.isdir(target_parent):
            raise BackupNotFoundError(f"Restore target directory not found: {target_parent}")

        self._progress(operation, 50)
        self._checkpoint(operation)

        await self._run_copy(operation, None, self._overlay_folder, backup.backup_path, folder_path, operation)

        self._progress(operation, 100)
        logger.info(f"Restored {folder_path} from {timestamp}")
        return RestoreResult(restored_path=folder_path, timestamp=timestamp, emergency_backup_path=emergency_path)

    # Catalog

    async def list_all_backups(
        self,
        include_pattern: Optional[str] = None,
        exclude_pattern: Optional[str] = None,
        include_emergency: bool = True,
        operation: Optional[Operation] = None
    ) -> CatalogListing:
        """Enumerate every entry in the main store and, optionally, the emergency store.

        A cancellation observed during the scan discards everything gathered so far.
        """
        self._progress(operation, 0)

        listing = await asyncio.to_thread(
            self.scanner.scan,
            include_pattern=include_pattern,
            exclude_pattern=exclude_pattern,
            include_emergency=include_emergency,
            checkpoint=lambda: self._checkpoint(operation),
            progress=lambda value: self._progress(operation, value)
        )

        self._progress(operation, 100)
        return listing

    # Private helper methods

    def _write_file_entry(self, file_path: str, backup_dir: str, entry_path: str, operation: Optional[Operation]) -> None:
        try:
            os.makedirs(backup_dir, exist_ok=True)
            copy_file(
                file_path, entry_path,
                checkpoint=lambda: self._checkpoint(operation),
                chunk_size=self.config.copy_chunk_size
            )
        except OSError as e:
            self._discard_entry(entry_path, backup_dir)
            raise BackupIOError(f"Failed to create backup directory {backup_dir}: {e}", cause=e) from e
        except BackupError:
            self._discard_entry(entry_path, backup_dir)
            raise

    def _write_folder_entry(
        self,
        folder_path: str,
        backup_dir: str,
        entry_path: str,
        include_pattern: Optional[str],
        exclude_pattern: Optional[str],
        operation: Optional[Operation]
    ) -> None:
        try:
            os.makedirs(backup_dir, exist_ok=True)
            copied = copy_tree(
                folder_path, entry_path,
                include_pattern=include_pattern,
                exclude_pattern=exclude_pattern,
                checkpoint=lambda: self._checkpoint(operation),
                chunk_size=self.config.copy_chunk_size,
                skip_dirs=(self.config.backup_dir, self.config.emergency_backup_dir)
            )
        except OSError as e:
            self._discard_entry(entry_path, backup_dir)
            raise BackupIOError(f"Failed to create backup directory {backup_dir}: {e}", cause=e) from e
        except BackupError:
            self._discard_entry(entry_path, backup_dir)
            raise
        logger.debug(f"Copied {copied} files into {entry_path}")

    def _overlay_folder(self, backup_path: str, folder_path: str, operation: Optional[Operation]) -> None:
        copy_tree(
            backup_path, folder_path,
            checkpoint=lambda: self._checkpoint(operation),
            chunk_size=self.config.copy_chunk_size
        )

    def _replace_file(self, backup_path: str, file_path: str, operation: Optional[Operation]) -> None:
        staging_path = os.path.join(
            os.path.dirname(file_path),
            f".{os.path.basename(file_path)}.{uuid.uuid4().hex[:8]}.restoring"
        )
        copy_file(
            backup_path, staging_path,
            checkpoint=lambda: self._checkpoint(operation),
            chunk_size=self.config.copy_chunk_size
        )
        try:
            os.replace(staging_path, file_path)
        except OSError as e:
            remove_path(staging_path)
            raise BackupIOError(f"Failed to restore {file_path}: {e}", cause=e) from e

    def _save_entry_metadata(self, metadata: BackupMetadata, backup_dir: str) -> None:
        try:
            save_metadata(metadata, metadata_path_for(metadata.backup_path))
        except BackupIOError:
            self._discard_entry(metadata.backup_path, backup_dir)
            raise

    async def _run_copy(self, operation: Optional[Operation], cleanup: Optional[Callable[[], None]], func, *args):
        """Run a blocking copy in a worker thread.

        If the awaiting task is cancelled, the operation is flagged cancelled
        and the copy is awaited until it stops, then ``cleanup`` removes its
        output, including output of a copy that got past its last checkpoint.
        """
        copy = asyncio.ensure_future(asyncio.to_thread(func, *args))
        try:
            return await asyncio.shield(copy)
        except asyncio.CancelledError:
            if operation is not None:
                operation.cancelled = True
            try:
                await copy
            except BackupError as e:
                logger.debug(f"Copy stopped after task cancellation: {e}")
            finally:
                if cleanup:
                    cleanup()
            raise

    async def _emergency_snapshot(self, path: str, kind: BackupKind, operation: Optional[Operation]) -> Optional[str]:
        """Take a safety-net snapshot; failures are logged and never block the restore."""
        timestamp = self._next_timestamp()
        try:
            return await asyncio.to_thread(
                self.safety_net.snapshot, path, kind, timestamp, lambda: self._checkpoint(operation)
            )
        except BackupCancelledError:
            raise
        except BackupError as e:
            logger.warning(f"Emergency backup failed, continuing with restore: {e}")
            return None

    def _discard_entry(self, entry_path: str, backup_dir: str) -> None:
        """Remove a partial entry and any mirrored directories left empty."""
        try:
            remove_path(entry_path)
            remove_path(metadata_path_for(entry_path))
            prune_empty_dirs(backup_dir, self.mapper.store_root)
        except OSError as e:
            logger.warning(f"Failed to clean up partial backup {entry_path}: {e}")

    def _checkpoint(self, operation: Optional[Operation], cleanup=None) -> None:
        self.tracker.checkpoint(operation, cleanup)

    def _progress(self, operation: Optional[Operation], value: int) -> None:
        self.tracker.update_progress(operation, value)

    def _next_timestamp(self) -> str:
        """Timestamp strictly later than any handed out before by this manager."""
        with self._timestamp_lock:
            timestamp = generate_timestamp()
            if timestamp <= self._last_timestamp:
                last = datetime.strptime(self._last_timestamp[:15], "%Y%m%d-%H%M%S")
                last += timedelta(milliseconds=int(self._last_timestamp[16:]) + 1)
                timestamp = generate_timestamp(last)
            self._last_timestamp = timestamp
            return timestamp

    def _reject_store_path(self, path: str) -> None:
        if self.mapper.contains(path) or self.safety_net.mapper.contains(path):
            raise BackupValidationError(f"Cannot back up a path inside a backup store: {path}")

    @staticmethod
    def _require_path(path: Optional[str], name: str) -> str:
        if not path:
            raise BackupValidationError(f"Invalid params: {name} is required")
        return normalize_path(path)
