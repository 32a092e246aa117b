"""Generic tool endpoints: list verbs and dispatch ``{operation, parameters}`` calls."""

from typing import Any, List

from fastapi import APIRouter, Depends

from ..dependencies import get_dispatcher
from ..dispatch import ToolDispatcher
from ..models import ToolCall, ToolDescription

router = APIRouter(prefix="/tools", tags=["tools"])


@router.get("", response_model=List[ToolDescription])
async def list_tools(dispatcher: ToolDispatcher = Depends(get_dispatcher)) -> List[ToolDescription]:
    """List available verbs with their parameter schemas."""
    return dispatcher.list_tools()


@router.post("/call")
async def call_tool(call: ToolCall, dispatcher: ToolDispatcher = Depends(get_dispatcher)) -> Any:
    """Dispatch one call.

    Failures are returned as ``{error, error_type, operation_id}`` with
    status 200, the same shape a tool client receives.
    """
    return await dispatcher.call(call.operation, call.parameters)
