"""REST endpoints for file and folder backups."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_dispatcher
from ..dispatch import ToolDispatcher
from ..models import (
    FileBackupCreate,
    FileBackupRestore,
    FolderBackupCreate,
    FolderBackupRestore,
)

router = APIRouter(prefix="/backups", tags=["backups"])


@router.get("")
async def list_all_backups(
    include_pattern: Optional[str] = None,
    exclude_pattern: Optional[str] = None,
    include_emergency: bool = True,
    dispatcher: ToolDispatcher = Depends(get_dispatcher)
) -> Dict[str, Any]:
    """List every entry in the main and emergency stores."""
    return await dispatcher.dispatch("list-all-backups", {
        "include_pattern": include_pattern,
        "exclude_pattern": exclude_pattern,
        "include_emergency": include_emergency,
    })


@router.post("/files")
async def create_file_backup(
    request: FileBackupCreate,
    dispatcher: ToolDispatcher = Depends(get_dispatcher)
) -> Dict[str, Any]:
    return await dispatcher.dispatch("create-file-backup", request.model_dump())


@router.get("/files")
async def list_file_backups(
    path: str = Query(..., min_length=1, description="File whose backups to list"),
    dispatcher: ToolDispatcher = Depends(get_dispatcher)
) -> List[Dict[str, Any]]:
    return await dispatcher.dispatch("list-file-backups", {"file_path": path})


@router.post("/files/restore")
async def restore_file_backup(
    request: FileBackupRestore,
    dispatcher: ToolDispatcher = Depends(get_dispatcher)
) -> Dict[str, Any]:
    return await dispatcher.dispatch("restore-file-backup", request.model_dump())


@router.post("/folders")
async def create_folder_backup(
    request: FolderBackupCreate,
    dispatcher: ToolDispatcher = Depends(get_dispatcher)
) -> Dict[str, Any]:
    return await dispatcher.dispatch("create-folder-backup", request.model_dump())


@router.get("/folders")
async def list_folder_backups(
    path: str = Query(..., min_length=1, description="Folder whose backups to list"),
    dispatcher: ToolDispatcher = Depends(get_dispatcher)
) -> List[Dict[str, Any]]:
    """List backups of a folder, including enclosing and nested folder backups."""
    return await dispatcher.dispatch("list-folder-backups", {"folder_path": path})


@router.post("/folders/restore")
async def restore_folder_backup(
    request: FolderBackupRestore,
    dispatcher: ToolDispatcher = Depends(get_dispatcher)
) -> Dict[str, Any]:
    return await dispatcher.dispatch("restore-folder-backup", request.model_dump())
