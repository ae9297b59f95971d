"""Unit tests for OperationExecutor and rollback."""

import io
from typing import List

import pytest

from helm_steer.config.models import Release, ReleaseSpec
from helm_steer.orchestrator.executor import ExecutionStatus, OperationExecutor
from helm_steer.orchestrator.operations import OperationBuilder, UndoableOperation
from helm_steer.orchestrator.reconciler import Action, ReleaseChange
from helm_steer.orchestrator.rollback import RollbackManager, UndoStack
from helm_steer.utils.errors import CommandError, OperationError, UndoError


def install_operations(*names: str) -> List[UndoableOperation]:
    """Build install operations for releases of namespace `apps`."""
    changes = []
    for name in names:
        release = Release(spec=ReleaseSpec(chart=f"charts/{name}"))
        release.conform("apps", name)
        changes.append(ReleaseChange(release, Action.INSTALL))
    return OperationBuilder().build_all(changes)


# ===========================================================================
# TestExecute
# ===========================================================================


@pytest.mark.unit
class TestExecute:
    """Tests for OperationExecutor.execute."""

    def test_runs_in_order(self, fake_manager) -> None:
        """Should run every operation in the given order."""
        result = OperationExecutor(fake_manager).execute(install_operations("a", "b", "c"))

        assert result.is_success()
        assert result.error is None
        assert result.rollback is None
        assert fake_manager.commands == ["install a", "install b", "install c"]
        assert all(r.status == ExecutionStatus.SUCCEEDED for r in result.operation_results)

    def test_empty(self, fake_manager) -> None:
        """Should succeed without running anything."""
        result = OperationExecutor(fake_manager).execute([])

        assert result.is_success()
        assert fake_manager.calls == []

    def test_failure_rolls_back_in_reverse(self, fake_manager) -> None:
        """Should undo applied operations most recent first after a failure."""
        fake_manager.fail_on("install", "c")

        result = OperationExecutor(fake_manager).execute(install_operations("a", "b", "c", "d"))

        assert result.is_failed()
        assert fake_manager.commands == [
            "install a", "install b", "install c", "delete b", "delete a"
        ]
        assert result.rollback.undone == ["Deleting apps.b", "Deleting apps.a"]
        assert result.rollback.is_success()

    def test_failure_reports_failed_operation(self, fake_manager) -> None:
        """Should return the failed operation's error with its cause."""
        fake_manager.fail_on("install", "b")

        result = OperationExecutor(fake_manager).execute(install_operations("a", "b", "c"))

        assert isinstance(result.error, OperationError)
        assert isinstance(result.error.cause, CommandError)
        assert result.error.context.release == "apps.b"
        assert result.error.context.operation == "install"
        statuses = [r.status for r in result.operation_results]
        assert statuses == [ExecutionStatus.SUCCEEDED, ExecutionStatus.FAILED, ExecutionStatus.PENDING]

    def test_first_operation_failure_has_nothing_to_undo(self, fake_manager) -> None:
        """Should not run any undo when the first operation fails."""
        fake_manager.fail_on("install", "a")

        result = OperationExecutor(fake_manager).execute(install_operations("a", "b"))

        assert fake_manager.commands == ["install a"]
        assert result.rollback.get_total_operations() == 0

    def test_undo_failure_continues(self, fake_manager) -> None:
        """Should keep undoing after an undo command fails."""
        fake_manager.fail_on("install", "c")
        fake_manager.fail_on("delete", "b")

        result = OperationExecutor(fake_manager).execute(install_operations("a", "b", "c"))

        assert fake_manager.commands == [
            "install a", "install b", "install c", "delete b", "delete a"
        ]
        assert result.rollback.undone == ["Deleting apps.a"]
        assert len(result.rollback.failures) == 1
        assert isinstance(result.rollback.failures[0], UndoError)
        assert result.error.context.release == "apps.c"

    def test_dry_run(self, fake_manager) -> None:
        """Should run nothing and mark every operation skipped."""
        result = OperationExecutor(fake_manager, dry_run=True).execute(install_operations("a", "b"))

        assert result.is_success()
        assert result.dry_run is True
        assert fake_manager.calls == []
        assert all(r.status == ExecutionStatus.SKIPPED for r in result.operation_results)

    def test_each_execution_has_its_own_undo_stack(self, fake_manager) -> None:
        """Should never undo operations of an earlier execution."""
        executor = OperationExecutor(fake_manager)
        executor.execute(install_operations("a"))
        fake_manager.fail_on("install", "c")

        executor.execute(install_operations("b", "c"))

        assert fake_manager.commands == ["install a", "install b", "install c", "delete b"]

    def test_progress_callback(self, fake_manager) -> None:
        """Should report running and final status of each operation."""
        events = []
        fake_manager.fail_on("install", "b")
        executor = OperationExecutor(
            fake_manager,
            progress_callback=lambda d, s, m: events.append((d, s)),
        )

        executor.execute(install_operations("a", "b"))

        assert events == [
            ("Installing apps.a (charts/a)", ExecutionStatus.RUNNING),
            ("Installing apps.a (charts/a)", ExecutionStatus.SUCCEEDED),
            ("Installing apps.b (charts/b)", ExecutionStatus.RUNNING),
            ("Installing apps.b (charts/b)", ExecutionStatus.FAILED),
        ]

    def test_output_is_passed_through(self, fake_manager) -> None:
        """Should hand the output stream to the release manager."""
        sink = io.StringIO()

        OperationExecutor(fake_manager, output=sink).execute(install_operations("a"))

        assert sink.getvalue() == "install a\n"


# ===========================================================================
# TestRollback
# ===========================================================================


@pytest.mark.unit
class TestRollback:
    """Tests for UndoStack and RollbackManager."""

    def test_undo_stack_is_lifo(self) -> None:
        """Should return undo commands most recent first."""
        stack = UndoStack()
        for operation in install_operations("a", "b"):
            stack.push(operation)

        assert [op.description for op in stack.peek_all()] == ["Deleting apps.b", "Deleting apps.a"]
        assert len(stack) == 2
        assert stack.pop().release_key == "apps.b"

    def test_unwind_empties_stack(self, fake_manager) -> None:
        """Should pop every entry while undoing."""
        stack = UndoStack()
        for operation in install_operations("a", "b"):
            stack.push(operation)

        result = RollbackManager(fake_manager).unwind(stack)

        assert not stack
        assert result.undone == ["Deleting apps.b", "Deleting apps.a"]
        assert fake_manager.commands == ["delete b", "delete a"]
