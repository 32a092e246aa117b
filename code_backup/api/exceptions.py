"""Mapping of backup errors onto HTTP responses."""

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from code_backup.backup import (
    BackupCancelledError,
    BackupError,
    BackupIOError,
    BackupNotFoundError,
    BackupValidationError,
)

STATUS_CODES = {
    BackupValidationError: HTTP_400_BAD_REQUEST,
    BackupNotFoundError: HTTP_404_NOT_FOUND,
    BackupIOError: HTTP_500_INTERNAL_SERVER_ERROR,
    BackupCancelledError: HTTP_409_CONFLICT,
}


def status_code_for(error: BackupError) -> int:
    for error_cls, status_code in STATUS_CODES.items():
        if isinstance(error, error_cls):
            return status_code
    return HTTP_500_INTERNAL_SERVER_ERROR


async def backup_error_handler(request: Request, exc: BackupError) -> JSONResponse:
    """Return the structured error body with a status matching the error kind."""
    return JSONResponse(status_code=status_code_for(exc), content=exc.to_dict())
