"""Undoable helm operations built from action-tagged releases.

Each command kind owns an explicit, ordered flag manifest. A flag is emitted
only when its value is set: switches when true, values when non-empty, and
list flags once per non-empty element. The release name and the chart (or
revision) are positional arguments following the flags.
"""

from operator import attrgetter
from typing import Any, Callable, List, NamedTuple, Tuple
from dataclasses import dataclass
from enum import Enum

from helm_steer.config.models import Release
from helm_steer.orchestrator.reconciler import Action, ReleaseChange


class FlagKind(Enum):
    """How a flag value is rendered on the command line."""
    SWITCH = "switch"  # `--wait`
    VALUE = "value"  # `--version 1.2.3`
    LIST = "list"  # `--set a=1 --set b=2`


class FlagSpec(NamedTuple):
    """One entry of a flag manifest."""
    name: str
    kind: FlagKind
    accessor: Callable[[Any], Any]


def _switch(name: str) -> FlagSpec:
    return FlagSpec(name, FlagKind.SWITCH, attrgetter(name.replace("-", "_")))


def _value(name: str) -> FlagSpec:
    return FlagSpec(name, FlagKind.VALUE, attrgetter(name.replace("-", "_")))


def _list(name: str) -> FlagSpec:
    return FlagSpec(name, FlagKind.LIST, attrgetter(name.replace("-", "_")))


INSTALL_FLAGS: Tuple[FlagSpec, ...] = (
    _value("ca-file"),
    _value("cert-file"),
    _switch("create-namespace"),
    _switch("devel"),
    _switch("dry-run"),
    _value("key-file"),
    _value("keyring"),
    _value("name-template"),
    _value("namespace"),
    _switch("no-hooks"),
    _switch("replace"),
    _value("repo"),
    _list("set"),
    _value("timeout"),
    _list("values"),
    _switch("verify"),
    _value("version"),
    _switch("wait"),
)

UPGRADE_FLAGS: Tuple[FlagSpec, ...] = (
    _value("ca-file"),
    _value("cert-file"),
    _switch("devel"),
    _switch("dry-run"),
    _switch("force"),
    _switch("install"),
    _value("key-file"),
    _value("keyring"),
    _value("namespace"),
    _switch("no-hooks"),
    _value("repo"),
    _switch("reset-values"),
    _switch("reuse-values"),
    _list("set"),
    _value("timeout"),
    _list("values"),
    _switch("verify"),
    _value("version"),
    _switch("wait"),
)

DELETE_FLAGS: Tuple[FlagSpec, ...] = (
    _switch("dry-run"),
    _switch("keep-history"),
    _value("namespace"),
    _switch("no-hooks"),
    _value("timeout"),
)

ROLLBACK_FLAGS: Tuple[FlagSpec, ...] = (
    _switch("cleanup-on-fail"),
    _switch("dry-run"),
    _switch("force"),
    _value("namespace"),
    _switch("no-hooks"),
    _switch("recreate-pods"),
    _value("timeout"),
    _switch("wait"),
)


def render_flags(manifest: Tuple[FlagSpec, ...], flags: Any) -> List[str]:
    """Render a flag set into command-line arguments.

    Args:
        manifest: Flag manifest of the command kind
        flags: Flag set model of the same kind

    Returns:
        Arguments, in manifest order
    """
    args = []
    for spec in manifest:
        value = spec.accessor(flags)
        switch = f"--{spec.name}"
        if spec.kind == FlagKind.SWITCH:
            if value:
                args.append(switch)
        elif spec.kind == FlagKind.VALUE:
            if value:
                args.extend([switch, str(value)])
        else:
            for item in value:
                if item:
                    args.extend([switch, item])
    return args


def install_args(release: Release) -> List[str]:
    """Arguments of `helm install` for a release."""
    return [*render_flags(INSTALL_FLAGS, release.spec.flags.install), release.name, release.chart]


def upgrade_args(release: Release) -> List[str]:
    """Arguments of `helm upgrade` for a release."""
    return [*render_flags(UPGRADE_FLAGS, release.spec.flags.upgrade), release.name, release.chart]


def delete_args(release: Release) -> List[str]:
    """Arguments of `helm delete` for a release."""
    return [*render_flags(DELETE_FLAGS, release.spec.flags.delete), release.name]


def rollback_args(release: Release, revision: int) -> List[str]:
    """Arguments of `helm rollback` to a revision of a release."""
    return [*render_flags(ROLLBACK_FLAGS, release.spec.flags.rollback), release.name, str(revision)]


@dataclass(frozen=True)
class Operation:
    """A described helm command."""

    description: str
    kind: str
    args: Tuple[str, ...]

    @property
    def command(self) -> List[str]:
        """Full argument vector after `helm`."""
        return [self.kind, *self.args]

    def __str__(self) -> str:
        return " ".join(["helm", *self.command])


@dataclass(frozen=True)
class UndoableOperation:
    """A forward command paired with its compensating command."""

    release_key: str
    action: Action
    run: Operation
    undo: Operation


class OperationBuilder:
    """Maps (action, release) pairs to undoable operations."""

    def build(self, change: ReleaseChange) -> UndoableOperation:
        """Build the undoable operation for one change.

        Args:
            change: Action-tagged release; upgrades and deletes must be bound
                to their deployed release

        Returns:
            UndoableOperation

        Raises:
            ValueError: If the change cannot be turned into an operation
        """
        release = change.release

        if change.action == Action.INSTALL:
            run = self._install(release)
            undo = self._delete(release)

        elif change.action == Action.UPGRADE:
            if change.deployed is None:
                raise ValueError(f"Upgrade of {release.key} is not bound to a deployed release")
            run = self._upgrade(release)
            # Revision 1 has no earlier revision to return to
            if change.deployed.revision > 1:
                undo = self._rollback(release, change.deployed.revision - 1)
            else:
                undo = self._delete(release)

        elif change.action == Action.DELETE:
            if change.deployed is None:
                raise ValueError(f"Delete of {release.key} is not bound to a deployed release")
            run = self._delete(release)
            undo = self._rollback(release, change.deployed.revision)

        else:
            raise ValueError(f"No operation for action {change.action.value} of {release.key}")

        return UndoableOperation(release_key=release.key, action=change.action, run=run, undo=undo)

    def build_all(self, changes: List[ReleaseChange]) -> List[UndoableOperation]:
        """Build operations for ordered changes, keeping their order."""
        return [self.build(change) for change in changes]

    @staticmethod
    def _install(release: Release) -> Operation:
        return Operation(
            description=f"Installing {release.key} ({release.chart_label(release.version)})",
            kind="install",
            args=tuple(install_args(release))
        )

    @staticmethod
    def _upgrade(release: Release) -> Operation:
        version = release.spec.flags.upgrade.version or "latest"
        return Operation(
            description=f"Upgrading {release.key} ({release.chart_label(version)})",
            kind="upgrade",
            args=tuple(upgrade_args(release))
        )

    @staticmethod
    def _delete(release: Release) -> Operation:
        return Operation(
            description=f"Deleting {release.key}",
            kind="delete",
            args=tuple(delete_args(release))
        )

    @staticmethod
    def _rollback(release: Release, revision: int) -> Operation:
        return Operation(
            description=f"Rolling back {release.key} to revision {revision}",
            kind="rollback",
            args=tuple(rollback_args(release, revision))
        )
