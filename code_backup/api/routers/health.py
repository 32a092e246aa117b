"""Health check endpoints."""

import os
from typing import Dict

from fastapi import APIRouter, Depends

from ..dependencies import get_dispatcher
from ..dispatch import ToolDispatcher
from ..models import HealthStatus

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthStatus)
async def health_check(dispatcher: ToolDispatcher = Depends(get_dispatcher)) -> HealthStatus:
    """Report store locations, writability and the number of active operations."""
    config = dispatcher.manager.config
    writable = os.path.isdir(config.backup_dir) and os.access(config.backup_dir, os.W_OK)

    return HealthStatus(
        status="healthy" if writable else "degraded",
        backup_dir=config.backup_dir,
        emergency_backup_dir=config.emergency_backup_dir,
        backup_dir_writable=writable,
        active_operations=len(dispatcher.tracker.list_operations()),
    )


@router.get("/live")
async def liveness_probe() -> Dict[str, str]:
    """Kubernetes liveness probe."""
    return {"status": "alive"}
