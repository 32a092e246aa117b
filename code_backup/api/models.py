"""Pydantic models for tool parameters and API responses."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from code_backup.backup.paths import TIMESTAMP_PATTERN

TIMESTAMP_REGEX = TIMESTAMP_PATTERN.pattern

_CONTEXT_DESCRIPTION = (
    "Optional conversational context stored with the backup metadata, "
    "e.g. the last user instruction that explains why the backup is being created."
)


class FileBackupCreate(BaseModel):
    file_path: str = Field(..., min_length=1, description="Absolute path to the file to back up. The file must exist.")
    agent_context: Optional[str] = Field(None, description=_CONTEXT_DESCRIPTION)


class FileBackupList(BaseModel):
    file_path: str = Field(..., min_length=1, description="Absolute path to the file whose backups you want to list.")


class FileBackupRestore(BaseModel):
    file_path: str = Field(..., min_length=1, description="Absolute path to the file to restore.")
    timestamp: str = Field(
        ..., pattern=TIMESTAMP_REGEX,
        description="Timestamp of the backup version to restore (format: YYYYMMDD-HHMMSS-mmm)."
    )
    create_emergency_backup: bool = Field(
        True, description="Whether to create an emergency backup of the current file before restoring."
    )


class FolderBackupCreate(BaseModel):
    folder_path: str = Field(..., min_length=1, description="Absolute path to the folder to back up. The folder must exist.")
    include_pattern: Optional[str] = Field(None, description='Optional glob a file name must match (e.g., "*.py").')
    exclude_pattern: Optional[str] = Field(None, description='Optional glob of file names to leave out (e.g., "*.tmp").')
    agent_context: Optional[str] = Field(None, description=_CONTEXT_DESCRIPTION)


class FolderBackupList(BaseModel):
    folder_path: str = Field(..., min_length=1, description="Absolute path to the folder whose backups you want to list.")


class FolderBackupRestore(BaseModel):
    folder_path: str = Field(..., min_length=1, description="Absolute path to the folder to restore.")
    timestamp: str = Field(
        ..., pattern=TIMESTAMP_REGEX,
        description="Timestamp of the backup version to restore (format: YYYYMMDD-HHMMSS-mmm)."
    )
    create_emergency_backup: bool = Field(
        True, description="Whether to create an emergency backup of the current folder before restoring."
    )


class ListAllBackups(BaseModel):
    include_pattern: Optional[str] = Field(None, description="Optional glob matched against full backup paths.")
    exclude_pattern: Optional[str] = Field(None, description="Optional glob of backup paths to leave out.")
    include_emergency: bool = Field(True, description="Whether to include emergency backups in the results.")


class OperationRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    operation_id: str = Field(..., min_length=1, alias="operationId", description="ID of the operation.")


class NoParams(BaseModel):
    pass


class ToolCall(BaseModel):
    operation: str = Field(..., min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ToolDescription(BaseModel):
    name: str
    description: str
    input_schema: Dict[str, Any]


class HealthStatus(BaseModel):
    status: str  # "healthy", "degraded"
    backup_dir: str
    emergency_backup_dir: str
    backup_dir_writable: bool
    active_operations: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
