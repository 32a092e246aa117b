"""Operation tracking router."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_dispatcher
from ..dispatch import ToolDispatcher

router = APIRouter(prefix="/operations", tags=["operations"])


@router.get("")
async def list_operations(dispatcher: ToolDispatcher = Depends(get_dispatcher)) -> List[Dict[str, Any]]:
    """List operations currently in flight."""
    return await dispatcher.dispatch("list-operations")


@router.get("/{operation_id}")
async def get_operation(operation_id: str, dispatcher: ToolDispatcher = Depends(get_dispatcher)) -> Dict[str, Any]:
    status = await dispatcher.dispatch("get-operation-status", {"operation_id": operation_id})
    if status["status"] == "not_found":
        raise HTTPException(status_code=404, detail=f"Operation {operation_id} not found")
    return status


@router.post("/{operation_id}/cancel")
async def cancel_operation(operation_id: str, dispatcher: ToolDispatcher = Depends(get_dispatcher)) -> Dict[str, Any]:
    """Request cooperative cancellation of a running operation."""
    return await dispatcher.dispatch("cancel", {"operation_id": operation_id})
