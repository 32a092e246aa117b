"""Versioned backup engine for files and folder trees."""

from .exceptions import (
    BackupCancelledError,
    BackupError,
    BackupIOError,
    BackupNotFoundError,
    BackupValidationError,
)
from .manager import BackupManager
from .models import (
    BackupKind,
    BackupMetadata,
    BackupResult,
    CatalogEntry,
    CatalogListing,
    Operation,
    OperationStatus,
    RestoreResult,
)
from .operations import OperationTracker

__all__ = [
    "BackupManager",
    "OperationTracker",
    "BackupKind",
    "BackupMetadata",
    "BackupResult",
    "CatalogEntry",
    "CatalogListing",
    "Operation",
    "OperationStatus",
    "RestoreResult",
    "BackupError",
    "BackupValidationError",
    "BackupNotFoundError",
    "BackupIOError",
    "BackupCancelledError",
]
