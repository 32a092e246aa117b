"""Tool dispatch: validated ``{operation, parameters}`` calls in, JSON-ready results out."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from code_backup._utils import logger
from code_backup.backup import (
    BackupError,
    BackupManager,
    BackupNotFoundError,
    BackupValidationError,
    Operation,
    OperationTracker,
)
from code_backup.config import BackupConfig

from .models import (
    FileBackupCreate,
    FileBackupList,
    FileBackupRestore,
    FolderBackupCreate,
    FolderBackupList,
    FolderBackupRestore,
    ListAllBackups,
    NoParams,
    OperationRef,
    ToolDescription,
)


@dataclass(frozen=True)
class ToolDef:
    name: str
    description: str
    params_model: Type[BaseModel]
    tracked: bool = True


TOOLS: Dict[str, ToolDef] = {
    tool.name: tool
    for tool in (
        ToolDef(
            "create-file-backup",
            "Create a timestamped backup of a file before making big changes. "
            "The backup mirrors the original directory structure and old versions are trimmed automatically.",
            FileBackupCreate,
        ),
        ToolDef(
            "list-file-backups",
            "List all available backups of a file, newest first, with timestamps and locations.",
            FileBackupList,
        ),
        ToolDef(
            "restore-file-backup",
            "Restore a file from a previous backup by timestamp. "
            "By default the current file is saved as an emergency backup first.",
            FileBackupRestore,
        ),
        ToolDef(
            "create-folder-backup",
            "Create a timestamped backup of a folder tree, optionally filtering files by include/exclude globs.",
            FolderBackupCreate,
        ),
        ToolDef(
            "list-folder-backups",
            "List backups of a folder, including backups of enclosing or nested folders, newest first.",
            FolderBackupList,
        ),
        ToolDef(
            "restore-folder-backup",
            "Restore a folder from a previous backup by timestamp. "
            "By default the current folder is saved as an emergency backup first.",
            FolderBackupRestore,
        ),
        ToolDef(
            "list-all-backups",
            "List every backup in the main store and, optionally, the emergency store.",
            ListAllBackups,
        ),
        ToolDef(
            "cancel",
            "Cancel a running operation. Cancellation takes effect at the operation's next checkpoint.",
            OperationRef,
            tracked=False,
        ),
        ToolDef(
            "get-operation-status",
            "Report progress and status of a running operation.",
            OperationRef,
            tracked=False,
        ),
        ToolDef(
            "list-operations",
            "List all operations that are currently running.",
            NoParams,
            tracked=False,
        ),
    )
}

# Tool names used by earlier releases of the server
TOOL_ALIASES = {
    "backup_create": "create-file-backup",
    "backup_list": "list-file-backups",
    "backup_restore": "restore-file-backup",
    "backup_folder_create": "create-folder-backup",
    "backup_folder_list": "list-folder-backups",
    "backup_folder_restore": "restore-folder-backup",
    "backup_list_all": "list-all-backups",
    "mcp_cancel": "cancel",
    "mcp_backup_status": "get-operation-status",
}


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "parameters"
    if first["type"] in ("missing", "string_too_short"):
        return f"Invalid params: {field} is required"
    return f"Invalid params: {field}: {first['msg']}"


class ToolDispatcher:
    """Routes tool calls to the backup engine.

    Each tracked call runs as one operation registered with the shared
    tracker, so it can be observed and cancelled from another call while
    it is in flight.
    """

    def __init__(self, manager: BackupManager, tracker: Optional[OperationTracker] = None):
        self.manager = manager
        self.tracker = tracker or manager.tracker

    @classmethod
    def from_config(cls, config: BackupConfig) -> "ToolDispatcher":
        tracker = OperationTracker()
        return cls(BackupManager(config, tracker), tracker)

    def list_tools(self) -> List[ToolDescription]:
        return [
            ToolDescription(
                name=tool.name,
                description=tool.description,
                input_schema=tool.params_model.model_json_schema(),
            )
            for tool in TOOLS.values()
        ]

    @staticmethod
    def resolve(name: str) -> ToolDef:
        tool = TOOLS.get(TOOL_ALIASES.get(name, name))
        if tool is None:
            raise BackupValidationError(f"Unknown tool: {name}")
        return tool

    async def call(self, operation: str, parameters: Optional[Dict[str, Any]] = None) -> Any:
        """Dispatch a call and return its result, or a structured error object on failure."""
        try:
            return await self.dispatch(operation, parameters)
        except BackupError as e:
            logger.warning(f"{operation} failed: {e.message}")
            return e.to_dict()
        except Exception as e:
            logger.exception(f"Unexpected error handling {operation}")
            return {"error": str(e), "error_type": "internal", "operation_id": None}

    async def dispatch(self, operation: str, parameters: Optional[Dict[str, Any]] = None) -> Any:
        """Dispatch a call.

        Raises:
            BackupError: Validation, not-found, I/O and cancellation failures,
                with ``operation_id`` set for tracked calls
        """
        tool = self.resolve(operation)
        logger.info(f"Received request for {tool.name}")

        try:
            params = tool.params_model.model_validate(parameters or {})
        except ValidationError as e:
            raise BackupValidationError(_validation_message(e)) from e

        if not tool.tracked:
            return self._handle_untracked(tool.name, params)

        op = None
        try:
            with self.tracker.track(tool.name) as op:
                return await self._handle(tool.name, params, op)
        except BackupError as e:
            e.operation_id = op.id if op else None
            raise

    async def _handle(self, name: str, params: Any, op: Operation) -> Any:
        m = self.manager

        if name == "create-file-backup":
            result = await m.create_file_backup(params.file_path, params.agent_context, operation=op)
            return {**result.to_response(), "operation_id": op.id}

        if name == "list-file-backups":
            backups = await m.list_file_backups(params.file_path, operation=op)
            return [b.to_descriptor() for b in backups]

        if name == "restore-file-backup":
            result = await m.restore_file_backup(
                params.file_path, params.timestamp, params.create_emergency_backup, operation=op
            )
            return {**result.model_dump(), "operation_id": op.id}

        if name == "create-folder-backup":
            result = await m.create_folder_backup(
                params.folder_path, params.include_pattern, params.exclude_pattern,
                params.agent_context, operation=op
            )
            return {**result.to_response(), "operation_id": op.id}

        if name == "list-folder-backups":
            backups = await m.list_folder_backups(params.folder_path, operation=op)
            return [b.to_descriptor() for b in backups]

        if name == "restore-folder-backup":
            result = await m.restore_folder_backup(
                params.folder_path, params.timestamp, params.create_emergency_backup, operation=op
            )
            return {**result.model_dump(), "operation_id": op.id}

        if name == "list-all-backups":
            listing = await m.list_all_backups(
                params.include_pattern, params.exclude_pattern, params.include_emergency, operation=op
            )
            return listing.model_dump(mode="json")

        raise BackupValidationError(f"Unknown tool: {name}")

    def _handle_untracked(self, name: str, params: Any) -> Any:
        if name == "cancel":
            if not self.tracker.cancel(params.operation_id):
                raise BackupNotFoundError(
                    f"Operation {params.operation_id} not found or already completed",
                    details={"success": False, "status": "not_found"},
                )
            return {"success": True, "operation_id": params.operation_id, "status": "cancelled"}

        if name == "get-operation-status":
            operation = self.tracker.get(params.operation_id)
            if operation is None:
                return {"operation_id": params.operation_id, "progress": 0, "status": "not_found"}
            return {
                "operation_id": operation.id,
                "type": operation.type,
                "progress": operation.progress,
                "status": "cancelling" if operation.cancelled else operation.status.value,
            }

        if name == "list-operations":
            return [op.model_dump(mode="json") for op in self.tracker.list_operations()]

        raise BackupValidationError(f"Unknown tool: {name}")
