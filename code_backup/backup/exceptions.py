"""Error hierarchy for backup operations."""

from typing import Any, Dict, Optional


class BackupError(Exception):
    """Base exception for backup operations."""
    error_type: str = "backup"

    def __init__(
        self,
        message: str,
        operation_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.operation_id = operation_id
        # Extra fields merged into the error body
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            **self.details,
            "error": self.message,
            "error_type": self.error_type,
            "operation_id": self.operation_id,
        }


class BackupValidationError(BackupError):
    """A required argument is missing or malformed."""
    error_type = "validation"


class BackupNotFoundError(BackupError):
    """Source path, backup entry or operation does not exist."""
    error_type = "not_found"


class BackupIOError(BackupError):
    """Copy, read or write failure."""
    error_type = "io"

    def __init__(self, message: str, cause: Optional[OSError] = None, operation_id: Optional[str] = None):
        super().__init__(message, operation_id=operation_id)
        self.cause = cause


class BackupCancelledError(BackupError):
    """Cancellation was observed at a checkpoint."""
    error_type = "cancelled"

    def __init__(self, message: str = "Operation cancelled", operation_id: Optional[str] = None):
        super().__init__(message, operation_id=operation_id)
