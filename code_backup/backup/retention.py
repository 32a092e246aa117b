"""Version cap enforcement for the main backup store."""

from .._utils import logger
from .copier import remove_path
from .metadata import MetadataStore
from .models import BackupKind


def enforce_retention(
    store: MetadataStore,
    original_path: str,
    max_versions: int,
    kind: BackupKind = BackupKind.FILE
) -> int:
    """Delete the oldest entries of ``original_path`` beyond ``max_versions``.

    Deletion is best-effort: a failure is logged and the pass continues.
    Descriptors of deleted entries are left on disk; lookups ignore them
    because their payload is gone.

    Args:
        store: Metadata store of the main backup root
        original_path: Path whose history is trimmed
        max_versions: Number of newest entries to keep
        kind: Entry kind to trim

    Returns:
        Number of versions kept, ``min(count, max_versions)``
    """
    if kind == BackupKind.FILE:
        backups = store.find_file_backups(original_path)
    else:
        backups = store.find_folder_backups(original_path, exact=True)

    if len(backups) <= max_versions:
        return len(backups)

    backups.sort(key=lambda b: b.timestamp)
    for backup in backups[:len(backups) - max_versions]:
        try:
            remove_path(backup.backup_path)
            logger.info(f"Removed old backup: {backup.backup_path}")
        except OSError as e:
            logger.warning(f"Failed to remove old backup {backup.backup_path}: {e}")

    return max_versions
