"""Best-effort rollback of the operations applied by one execution."""

from typing import List, Optional, TextIO
from dataclasses import dataclass, field
from datetime import datetime, timezone

from helm_steer.helm.client import ReleaseManager
from helm_steer.orchestrator.operations import Operation, UndoableOperation
from helm_steer.utils.errors import ErrorContext, UndoError
from helm_steer.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


class UndoStack:
    """LIFO stack of the undo halves of successfully applied operations.

    One stack belongs to one execution; it is never shared.
    """

    def __init__(self):
        self._entries: List[UndoableOperation] = []

    def push(self, operation: UndoableOperation) -> None:
        """Record an operation whose forward command succeeded."""
        self._entries.append(operation)

    def pop(self) -> UndoableOperation:
        """Remove and return the most recently applied operation."""
        return self._entries.pop()

    def peek_all(self) -> List[Operation]:
        """Undo commands in the order they would run."""
        return [entry.undo for entry in reversed(self._entries)]

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)


@dataclass
class RollbackResult:
    """Result of unwinding an undo stack."""

    undone: List[str] = field(default_factory=list)  # Descriptions of undo commands that succeeded
    failures: List[UndoError] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        """Check if every undo command succeeded."""
        return not self.failures

    def get_total_operations(self) -> int:
        """Get number of undo commands attempted."""
        return len(self.undone) + len(self.failures)


class RollbackManager:
    """Runs undo commands most-recent first, continuing past failures."""

    def __init__(self, release_manager: ReleaseManager, output: Optional[TextIO] = None):
        """Initialize rollback manager.

        Args:
            release_manager: Release manager executing the undo commands
            output: Optional stream receiving helm output
        """
        self.release_manager = release_manager
        self.output = output
        self.logger = get_logger(__name__)

    def unwind(self, stack: UndoStack) -> RollbackResult:
        """Pop and run every undo command of the stack.

        An undo failure is logged and recorded, then the next entry runs.

        Args:
            stack: Undo stack of the failed execution; emptied by this call

        Returns:
            RollbackResult with undone commands and failures
        """
        start_time = datetime.now(timezone.utc)
        result = RollbackResult(start_time=start_time)

        if stack:
            self.logger.info(f"Undoing {len(stack)} previous operation(s)")

        while stack:
            entry = stack.pop()
            undo = entry.undo

            with LogContext(release=entry.release_key, operation=undo.kind):
                self.logger.info(undo.description)
                self.logger.debug(f"Executing `{undo}` ...")
                try:
                    self.release_manager.run(undo.kind, list(undo.args), self.output)
                except Exception as e:
                    error = UndoError(
                        f"Failed while undoing: {undo.description}",
                        context=ErrorContext(
                            release=entry.release_key,
                            operation=undo.kind,
                            command=undo.command
                        ),
                        cause=e
                    )
                    result.failures.append(error)
                    self.logger.error(f"{error.message}: {e}")
                    continue

            result.undone.append(undo.description)

        result.end_time = datetime.now(timezone.utc)
        result.duration = (result.end_time - start_time).total_seconds()

        if result.failures:
            self.logger.warning(
                f"Rollback completed with failures: {len(result.failures)}/"
                f"{result.get_total_operations()} undo command(s) failed"
            )
        elif result.undone:
            self.logger.info(f"Rollback completed: {len(result.undone)} operation(s) undone")

        return result
