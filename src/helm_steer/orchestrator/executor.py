"""Sequential executor for undoable operations with automatic rollback."""

from typing import Callable, List, Optional, TextIO
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from helm_steer.helm.client import ReleaseManager
from helm_steer.orchestrator.operations import UndoableOperation
from helm_steer.orchestrator.rollback import RollbackManager, RollbackResult, UndoStack
from helm_steer.utils.errors import ErrorContext, OperationError
from helm_steer.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


class ExecutionStatus(Enum):
    """Status of an operation or of a whole execution."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class OperationResult:
    """Result of applying a single operation."""

    operation: UndoableOperation
    status: ExecutionStatus = ExecutionStatus.PENDING
    error: Optional[OperationError] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        """Check if the operation was applied."""
        return self.status == ExecutionStatus.SUCCEEDED

    def is_failed(self) -> bool:
        """Check if the operation failed."""
        return self.status == ExecutionStatus.FAILED


@dataclass
class ExecutionResult:
    """Complete execution result."""

    status: ExecutionStatus
    operation_results: List[OperationResult] = field(default_factory=list)
    rollback: Optional[RollbackResult] = None
    error: Optional[OperationError] = None
    dry_run: bool = False
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        """Check if the execution succeeded."""
        return self.status == ExecutionStatus.SUCCEEDED

    def is_failed(self) -> bool:
        """Check if the execution failed."""
        return self.status == ExecutionStatus.FAILED

    def get_results_by_status(self, status: ExecutionStatus) -> List[OperationResult]:
        """Get operation results with a given status."""
        return [r for r in self.operation_results if r.status == status]


# Type alias for progress callback: (description, status, error message)
ProgressCallback = Callable[[str, ExecutionStatus, Optional[str]], None]


class OperationExecutor:
    """Applies operations one at a time, in order, rolling back on failure."""

    def __init__(
        self,
        release_manager: ReleaseManager,
        dry_run: bool = False,
        output: Optional[TextIO] = None,
        progress_callback: Optional[ProgressCallback] = None
    ):
        """Initialize operation executor.

        Args:
            release_manager: Release manager executing the commands
            dry_run: Only report the operations, run nothing
            output: Optional stream receiving helm output
            progress_callback: Optional callback for progress updates
        """
        self.release_manager = release_manager
        self.dry_run = dry_run
        self.output = output
        self.progress_callback = progress_callback
        self.logger = get_logger(__name__)

    def execute(self, operations: List[UndoableOperation]) -> ExecutionResult:
        """Execute operations in order.

        On the first failure the remaining operations are not started, and
        the undo commands of every applied operation run, most recent first.

        Args:
            operations: Ordered operations

        Returns:
            ExecutionResult; on failure `error` holds the failed operation's
            OperationError and `rollback` the undo outcome
        """
        start_time = datetime.now(timezone.utc)
        results = [OperationResult(operation=operation) for operation in operations]
        undo_stack = UndoStack()

        mode = " (dry run)" if self.dry_run else ""
        self.logger.info(f"Executing {len(operations)} operation(s){mode}")

        for result in results:
            operation = result.operation
            run = operation.run

            with LogContext(release=operation.release_key, operation=run.kind):
                self.logger.info(run.description)
                self.logger.debug(f"Executing `{run}` ...")

                if self.dry_run:
                    result.status = ExecutionStatus.SKIPPED
                    self._notify(run.description, ExecutionStatus.SKIPPED, None)
                    continue

                result.status = ExecutionStatus.RUNNING
                result.start_time = datetime.now(timezone.utc)
                self._notify(run.description, ExecutionStatus.RUNNING, None)

                try:
                    self.release_manager.run(run.kind, list(run.args), self.output)
                except Exception as e:
                    result.end_time = datetime.now(timezone.utc)
                    result.duration = (result.end_time - result.start_time).total_seconds()
                    result.status = ExecutionStatus.FAILED
                    result.error = OperationError(
                        f"{run.description} failed",
                        context=ErrorContext(
                            release=operation.release_key,
                            operation=run.kind,
                            command=run.command
                        ),
                        cause=e
                    )
                    self.logger.error(f"Last command failed: {e}")
                    self._notify(run.description, ExecutionStatus.FAILED, str(e))
                    return self._fail(result, results, undo_stack, start_time)

                result.end_time = datetime.now(timezone.utc)
                result.duration = (result.end_time - result.start_time).total_seconds()
                result.status = ExecutionStatus.SUCCEEDED
                undo_stack.push(operation)
                self.logger.info("Success")
                self._notify(run.description, ExecutionStatus.SUCCEEDED, None)

        end_time = datetime.now(timezone.utc)
        return ExecutionResult(
            status=ExecutionStatus.SUCCEEDED,
            operation_results=results,
            dry_run=self.dry_run,
            start_time=start_time,
            end_time=end_time,
            duration=(end_time - start_time).total_seconds()
        )

    def _fail(
        self,
        failed: OperationResult,
        results: List[OperationResult],
        undo_stack: UndoStack,
        start_time: datetime
    ) -> ExecutionResult:
        """Roll back and build the failed execution result."""
        rollback_manager = RollbackManager(self.release_manager, self.output)
        rollback = rollback_manager.unwind(undo_stack)

        end_time = datetime.now(timezone.utc)
        return ExecutionResult(
            status=ExecutionStatus.FAILED,
            operation_results=results,
            rollback=rollback,
            error=failed.error,
            dry_run=self.dry_run,
            start_time=start_time,
            end_time=end_time,
            duration=(end_time - start_time).total_seconds()
        )

    def _notify(self, description: str, status: ExecutionStatus, message: Optional[str]) -> None:
        if self.progress_callback:
            self.progress_callback(description, status, message)
