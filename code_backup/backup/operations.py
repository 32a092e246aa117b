"""Operation tracking for dispatched backup calls."""

import asyncio
import threading
import uuid
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from .._utils import logger
from .exceptions import BackupCancelledError
from .models import Operation, OperationStatus


class OperationTracker:
    """Registry of the operations currently in flight.

    Operations live in memory only and are dropped as soon as their call
    finishes, so a cancel request for a finished operation reports
    not-found. One tracker is shared by every unit of work that needs it.
    """

    def __init__(self):
        self._operations: Dict[str, Operation] = {}
        self._lock = threading.Lock()

    def create(self, op_type: str) -> Operation:
        """Register a new running operation."""
        operation = Operation(id=str(uuid.uuid4()), type=op_type)
        with self._lock:
            self._operations[operation.id] = operation
        logger.debug(f"Created operation {operation.id} ({op_type})")
        return operation

    def get(self, operation_id: str) -> Optional[Operation]:
        with self._lock:
            return self._operations.get(operation_id)

    def list_operations(self) -> List[Operation]:
        """Active operations, oldest first."""
        with self._lock:
            operations = list(self._operations.values())
        operations.sort(key=lambda op: op.created_at)
        return operations

    def update_progress(self, operation: Optional[Operation], progress: int) -> None:
        """Record progress (0-100). Progress is a monitoring hint only."""
        if operation is None:
            return
        operation.progress = max(0, min(100, progress))
        logger.debug(f"Operation {operation.id} progress: {operation.progress}%")

    def cancel(self, operation_id: str) -> bool:
        """Flag an active operation as cancelled.

        Returns:
            True if the operation was found, False if unknown or already finished
        """
        operation = self.get(operation_id)
        if operation is None:
            return False
        operation.cancelled = True
        logger.info(f"Cancellation requested for operation {operation_id}")
        return True

    def checkpoint(self, operation: Optional[Operation], cleanup: Optional[Callable[[], None]] = None) -> None:
        """Raise BackupCancelledError if the operation was cancelled.

        Args:
            operation: Operation to check, None disables the check
            cleanup: Called before raising, typically removes partial output
        """
        if operation is None or not operation.cancelled:
            return

        logger.info(f"Operation {operation.id} cancelled at checkpoint")
        if cleanup:
            cleanup()
        raise BackupCancelledError(operation_id=operation.id)

    def finish(self, operation: Operation, status: OperationStatus) -> None:
        """Mark an operation terminal and drop it from the registry."""
        operation.status = status
        if status == OperationStatus.COMPLETED:
            operation.progress = 100
        with self._lock:
            self._operations.pop(operation.id, None)
        logger.debug(f"Operation {operation.id} finished: {status.value}")

    @contextmanager
    def track(self, op_type: str) -> Iterator[Operation]:
        """Run a block as one operation, recording its terminal status.

        If the task running the block is cancelled, the operation is flagged
        cancelled as well, so work still running in a worker thread stops and
        cleans up at its next checkpoint.
        """
        operation = self.create(op_type)
        try:
            yield operation
        except BackupCancelledError:
            self.finish(operation, OperationStatus.CANCELLED)
            raise
        except asyncio.CancelledError:
            operation.cancelled = True
            logger.info(f"Task running operation {operation.id} was cancelled")
            self.finish(operation, OperationStatus.CANCELLED)
            raise
        except BaseException:
            self.finish(operation, OperationStatus.ERROR)
            raise
        else:
            self.finish(operation, OperationStatus.COMPLETED)
