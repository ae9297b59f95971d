"""Reconciliation of the desired plan against the deployed releases."""

from typing import Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum

import semver

from helm_steer.config.models import Plan, Release, ReleaseSpec
from helm_steer.helm.client import ReleaseManager
from helm_steer.helm.models import DeployedRelease
from helm_steer.utils.errors import ErrorContext, QueryError, VersionParseError
from helm_steer.utils.logging import get_logger

logger = get_logger(__name__)


class Action(Enum):
    """What a reconciliation decided to do with a release."""
    INSTALL = "install"
    UPGRADE = "upgrade"
    DELETE = "delete"
    NO_OP = "no_op"


class UnmanagedPolicy(Enum):
    """What to do with releases that are deployed but absent from the plan."""
    IGNORE = "ignore"  # Report them, never touch them
    PRUNE = "prune"  # Delete them


@dataclass
class ReleaseChange:
    """A release tagged with its action."""

    release: Release
    action: Action
    deployed: Optional[DeployedRelease] = None
    reason: Optional[str] = None

    @property
    def key(self) -> str:
        return self.release.key


@dataclass
class ReconciliationResult:
    """Outcome of diffing the plan against the deployed releases."""

    changes: Dict[str, ReleaseChange] = field(default_factory=dict)
    unchanged: List[str] = field(default_factory=list)
    unmanaged: List[DeployedRelease] = field(default_factory=list)

    def has_changes(self) -> bool:
        """Check if anything needs to run."""
        return len(self.changes) > 0

    def get_changes_by_action(self, action: Action) -> List[ReleaseChange]:
        """Get all changes of a specific action, ordered by key."""
        return [
            change for key, change in sorted(self.changes.items())
            if change.action == action
        ]

    def get_summary(self) -> Dict[str, int]:
        """Get a summary of changes by action."""
        summary = {action.value: 0 for action in Action}
        for change in self.changes.values():
            summary[change.action.value] += 1
        summary[Action.NO_OP.value] = len(self.unchanged)
        return summary


def parse_version(value: str, release_key: str, origin: str) -> semver.Version:
    """Parse a chart version as a semantic version.

    A leading `v` is accepted and missing minor or patch parts default to 0,
    so `v1.2` reads as `1.2.0`.

    Args:
        value: Version string
        release_key: Release the version belongs to, for error messages
        origin: `deployed` or `specified`

    Raises:
        VersionParseError: If the version is not valid
    """
    text = value[1:] if value[:1] in ("v", "V") else value
    try:
        return semver.Version.parse(text, optional_minor_and_patch=True)
    except ValueError as e:
        raise VersionParseError(
            f"Invalid {origin} chart version '{value}' for release {release_key}",
            version=value,
            context=ErrorContext(release=release_key),
            cause=e
        )


class Reconciler:
    """Computes the install/upgrade (and optionally delete) set of a plan."""

    def __init__(
        self,
        release_manager: ReleaseManager,
        unmanaged_policy: UnmanagedPolicy = UnmanagedPolicy.IGNORE
    ):
        """Initialize reconciler.

        Args:
            release_manager: Source of the deployed releases
            unmanaged_policy: Policy for deployed releases the plan does not name
        """
        self.release_manager = release_manager
        self.unmanaged_policy = unmanaged_policy
        self.logger = get_logger(__name__)

    def reconcile(
        self,
        plan: Plan,
        namespaces: Optional[List[str]] = None
    ) -> ReconciliationResult:
        """Diff the plan against the deployed releases.

        Args:
            plan: Conformed plan
            namespaces: Optional namespace allow-list (empty means all)

        Returns:
            ReconciliationResult with every release to act on

        Raises:
            QueryError: If the deployed releases cannot be listed
            VersionParseError: If a deployed or specified version is invalid
        """
        allowed = set(namespaces or [])

        def is_eligible(namespace: str) -> bool:
            return not allowed or namespace in allowed

        specified: Dict[str, Release] = {
            release.key: release for release in plan.releases(sorted(allowed))
        }
        if not specified:
            self.logger.info("Nothing to do, no release found")
            return ReconciliationResult()

        deployed = self._list_deployed(plan, is_eligible)

        result = ReconciliationResult()

        for key in sorted(specified.keys() - deployed.keys()):
            result.changes[key] = ReleaseChange(
                release=specified[key],
                action=Action.INSTALL,
                reason="not deployed"
            )

        for key in sorted(specified.keys() & deployed.keys()):
            action, reason = self.classify(specified[key], deployed[key])
            if action == Action.NO_OP:
                result.unchanged.append(key)
                self.logger.debug(f"{key}: {reason}")
                continue
            result.changes[key] = ReleaseChange(
                release=specified[key],
                action=action,
                deployed=deployed[key],
                reason=reason
            )

        for key in sorted(deployed.keys() - specified.keys()):
            unmanaged = deployed[key]
            result.unmanaged.append(unmanaged)
            if self.unmanaged_policy == UnmanagedPolicy.PRUNE:
                result.changes[key] = ReleaseChange(
                    release=self._release_for_unmanaged(unmanaged),
                    action=Action.DELETE,
                    deployed=unmanaged,
                    reason="deployed but not in plan"
                )
            else:
                self.logger.warning(f"Release {key} is deployed but not in the plan, leaving it untouched")

        summary = result.get_summary()
        self.logger.info(
            f"Reconciliation: {summary['install']} install, {summary['upgrade']} upgrade, "
            f"{summary['delete']} delete, {summary['no_op']} unchanged"
        )
        return result

    def classify(self, release: Release, deployed: DeployedRelease) -> Tuple[Action, str]:
        """Decide between upgrade and no-op for a deployed release.

        An unset specified version always upgrades.

        Returns:
            Tuple of (action, reason)
        """
        if not release.version:
            return Action.UPGRADE, "no version specified"

        deployed_version = parse_version(deployed.chart_version, release.key, "deployed")
        specified_version = parse_version(release.version, release.key, "specified")

        # Precedence ignores build metadata
        if deployed_version.compare(specified_version) == 0:
            return Action.NO_OP, f"version {deployed.chart_version} already deployed"
        return Action.UPGRADE, f"version {deployed.chart_version} -> {release.version}"

    def _list_deployed(
        self,
        plan: Plan,
        is_eligible: Callable[[str], bool]
    ) -> Dict[str, DeployedRelease]:
        """Deployed releases of eligible namespaces that the plan knows about."""
        try:
            releases = self.release_manager.list_releases()
        except QueryError:
            raise
        except Exception as e:
            raise QueryError(f"Failed to list deployed releases: {e}", cause=e)

        deployed = {}
        for release in releases:
            if not is_eligible(release.namespace):
                continue
            if release.namespace not in plan.namespaces:
                continue
            deployed[release.key] = release
        return deployed

    @staticmethod
    def _release_for_unmanaged(deployed: DeployedRelease) -> Release:
        """Synthesize a release so an unmanaged one can be deleted and restored."""
        release = Release(spec=ReleaseSpec(chart=deployed.chart_name or deployed.name))
        release.conform(deployed.namespace, deployed.name)
        # Keeping history lets the undo roll the release back in
        release.spec.flags.delete.keep_history = True
        return release
