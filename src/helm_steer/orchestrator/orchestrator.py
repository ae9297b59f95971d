"""Main orchestrator that coordinates reconciliation, ordering and execution."""

from typing import Dict, List, Optional, Sequence, TextIO
from dataclasses import dataclass, field

from helm_steer.config.models import Plan
from helm_steer.config.parser import load_plan
from helm_steer.config.settings import load_settings
from helm_steer.helm.client import HelmReleaseManager, ReleaseManager
from helm_steer.helm.models import DeployedRelease
from helm_steer.orchestrator.dependency_graph import DependencyGraph
from helm_steer.orchestrator.executor import ExecutionResult, OperationExecutor, ProgressCallback
from helm_steer.orchestrator.operations import OperationBuilder, UndoableOperation
from helm_steer.orchestrator.reconciler import (
    ReconciliationResult,
    Reconciler,
    ReleaseChange,
    UnmanagedPolicy
)
from helm_steer.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SteerPlan:
    """Ordered operations that would bring the cluster to the plan."""

    reconciliation: ReconciliationResult
    changes: List[ReleaseChange] = field(default_factory=list)  # Dependency order
    operations: List[UndoableOperation] = field(default_factory=list)

    @property
    def unchanged(self) -> List[str]:
        return self.reconciliation.unchanged

    @property
    def unmanaged(self) -> List[DeployedRelease]:
        return self.reconciliation.unmanaged

    def has_changes(self) -> bool:
        """Check if anything needs to run."""
        return len(self.operations) > 0

    def get_summary(self) -> Dict[str, int]:
        """Get a summary of changes by action."""
        return self.reconciliation.get_summary()


class SteerOrchestrator:
    """Coordinates reconciliation, dependency ordering and execution."""

    def __init__(
        self,
        release_manager: ReleaseManager,
        unmanaged_policy: UnmanagedPolicy = UnmanagedPolicy.IGNORE
    ):
        """Initialize orchestrator.

        Args:
            release_manager: Release manager used for listing and commands
            unmanaged_policy: Policy for deployed releases the plan does not name
        """
        self.release_manager = release_manager
        self.reconciler = Reconciler(release_manager, unmanaged_policy)
        self.builder = OperationBuilder()
        self.logger = get_logger(__name__)

    def load_plan(self, plan_path: str) -> Plan:
        """Load and conform a plan file."""
        self.logger.info(f"Loading plan {plan_path}")
        return load_plan(plan_path)

    def plan(self, plan: Plan, namespaces: Optional[Sequence[str]] = None) -> SteerPlan:
        """Compute the ordered operations for a plan without running them.

        Args:
            plan: Conformed plan
            namespaces: Optional namespace allow-list (empty means all)

        Returns:
            SteerPlan

        Raises:
            QueryError: If the deployed releases cannot be listed
            VersionParseError: If a version cannot be parsed
            DependencyCycleError: If the changed releases depend on each other in a cycle
        """
        reconciliation = self.reconciler.reconcile(plan, list(namespaces or []))

        graph = DependencyGraph.from_changes(list(reconciliation.changes.values()))
        changes = graph.resolve()
        operations = self.builder.build_all(changes)

        self.logger.debug(
            "Execution order: " + (", ".join(change.key for change in changes) or "(empty)")
        )
        return SteerPlan(reconciliation=reconciliation, changes=changes, operations=operations)

    def apply(
        self,
        steer_plan: SteerPlan,
        dry_run: bool = False,
        output: Optional[TextIO] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> ExecutionResult:
        """Execute the operations of a computed plan.

        Args:
            steer_plan: Plan computed by `plan()`
            dry_run: Only report the operations
            output: Optional stream receiving helm output
            progress_callback: Optional progress callback

        Returns:
            ExecutionResult
        """
        executor = OperationExecutor(
            self.release_manager,
            dry_run=dry_run,
            output=output,
            progress_callback=progress_callback
        )
        return executor.execute(steer_plan.operations)


def create_release_manager(settings_path: Optional[str] = None) -> ReleaseManager:
    """Create the helm release manager configured by the tool settings."""
    settings = load_settings(settings_path)
    return HelmReleaseManager(settings.helm_binary)


def steer(
    plan_path: str,
    namespaces: Sequence[str] = (),
    dry_run: bool = False,
    prune: bool = False,
    release_manager: Optional[ReleaseManager] = None,
    output: Optional[TextIO] = None,
    progress_callback: Optional[ProgressCallback] = None
) -> ExecutionResult:
    """Bring the deployed releases in line with a plan file.

    Loads the plan, reconciles it against the deployed releases, orders the
    changes by dependency and applies them. Nothing runs if loading,
    reconciliation or ordering fails.

    Args:
        plan_path: Path to the plan YAML file
        namespaces: Optional namespace allow-list (empty means all)
        dry_run: Only report the operations
        prune: Delete deployed releases the plan does not name
        release_manager: Release manager (defaults to the helm binary)
        output: Optional stream receiving helm output
        progress_callback: Optional progress callback

    Returns:
        ExecutionResult of a successful (or dry) run

    Raises:
        LoadError, ValidationError: If the plan cannot be loaded
        QueryError: If the deployed releases cannot be listed
        VersionParseError: If a version cannot be parsed
        DependencyCycleError: If the dependencies form a cycle
        OperationError: If an operation failed; rollback has already run
    """
    if release_manager is None:
        release_manager = create_release_manager()

    policy = UnmanagedPolicy.PRUNE if prune else UnmanagedPolicy.IGNORE
    orchestrator = SteerOrchestrator(release_manager, policy)

    plan = orchestrator.load_plan(plan_path)
    steer_plan = orchestrator.plan(plan, namespaces)
    result = orchestrator.apply(
        steer_plan,
        dry_run=dry_run,
        output=output,
        progress_callback=progress_callback
    )

    if result.error is not None:
        raise result.error
    return result
