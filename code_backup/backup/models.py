"""Data models for backup/restore operations."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BackupKind(str, Enum):
    """What a backup entry holds."""
    FILE = "file"
    FOLDER = "folder"


_FOLDER_ONLY_FIELDS = {"original_foldername", "include_pattern", "exclude_pattern"}
_FILE_ONLY_FIELDS = {"original_filename"}


class BackupMetadata(BaseModel):
    """Sidecar descriptor stored next to every backup entry as ``<entry>.meta.json``."""

    model_config = ConfigDict(extra="ignore")

    kind: BackupKind = Field(..., description="Whether the entry is a single file or a folder tree")
    original_path: str = Field(..., description="Absolute path of the backed-up file or folder")
    timestamp: str = Field(..., description="Version identifier, YYYYMMDD-HHMMSS-mmm")
    created_at: str = Field(..., description="ISO-8601 creation time")
    backup_path: str = Field(..., description="Absolute path of the backup payload")
    relative_path: str = Field("", description="Payload path relative to the working directory")
    agent_context: Optional[str] = None
    emergency: bool = False
    original_filename: Optional[str] = None
    original_foldername: Optional[str] = None
    include_pattern: Optional[str] = None
    exclude_pattern: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def infer_kind(cls, data: Any) -> Any:
        """Classify descriptors written without a ``kind`` field from the fields they carry."""
        if isinstance(data, dict) and "kind" not in data:
            data = dict(data)
            is_folder = any(key in data for key in _FOLDER_ONLY_FIELDS)
            data["kind"] = BackupKind.FOLDER if is_folder else BackupKind.FILE
        return data

    @property
    def is_folder(self) -> bool:
        return self.kind == BackupKind.FOLDER

    def to_descriptor(self) -> Dict[str, Any]:
        """Serialize to the on-disk descriptor shape for this entry's kind."""
        exclude = _FILE_ONLY_FIELDS if self.is_folder else _FOLDER_ONLY_FIELDS
        return self.model_dump(mode="json", exclude=exclude)


class BackupResult(BaseModel):
    """Outcome of a successful create call."""

    entry: BackupMetadata
    versions_kept: int

    def to_response(self) -> Dict[str, Any]:
        return {**self.entry.to_descriptor(), "versions_kept": self.versions_kept}


class RestoreResult(BaseModel):
    """Outcome of a successful restore call."""

    restored_path: str
    timestamp: str
    emergency_backup_path: Optional[str] = None


class CatalogEntry(BaseModel):
    """One item found by a full scan of a backup store."""

    path: str
    type: str  # "file" or "directory"
    size: int
    created_at: str
    original_path: Optional[str] = None


class CatalogListing(BaseModel):
    """Result of scanning the main and emergency stores."""

    main: List[CatalogEntry] = Field(default_factory=list)
    emergency: List[CatalogEntry] = Field(default_factory=list)


class OperationStatus(str, Enum):
    """Operation status enum."""
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class Operation(BaseModel):
    """In-memory record of one dispatched call."""

    id: str
    type: str
    progress: int = 0
    cancelled: bool = False
    status: OperationStatus = OperationStatus.RUNNING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
