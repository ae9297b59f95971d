"""Shared fixtures for helm-steer tests."""

from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, TextIO, Tuple

import pytest
import yaml

from helm_steer.helm.client import ReleaseManager
from helm_steer.helm.models import DeployedRelease
from helm_steer.utils.errors import CommandError


class FakeReleaseManager(ReleaseManager):
    """In-memory release manager recording every command it is asked to run."""

    def __init__(self, deployed: Optional[List[DeployedRelease]] = None):
        self.deployed = list(deployed or [])
        self.calls: List[Tuple[str, List[str]]] = []
        self.list_calls = 0
        # (kind, release name) pairs whose command fails
        self.failures: Set[Tuple[str, str]] = set()

    def fail_on(self, kind: str, name: str) -> None:
        self.failures.add((kind, name))

    def list_releases(self) -> List[DeployedRelease]:
        self.list_calls += 1
        return list(self.deployed)

    def run(self, kind: str, args: List[str], output: Optional[TextIO] = None) -> None:
        self.calls.append((kind, list(args)))
        # Positional arguments follow the flags: name, then chart or revision
        name = args[-1] if kind == "delete" else args[-2]
        if (kind, name) in self.failures:
            raise CommandError(f"helm {kind} failed: {name}", returncode=1)
        if output is not None:
            output.write(f"{kind} {name}\n")

    @property
    def commands(self) -> List[str]:
        """Executed commands as `kind name` strings."""
        return [
            f"{kind} {args[-1] if kind == 'delete' else args[-2]}"
            for kind, args in self.calls
        ]


def deployed(namespace: str, name: str, chart: str, revision: int = 1) -> DeployedRelease:
    """Build a deployed release from a helm chart column value."""
    return DeployedRelease.from_json({
        "namespace": namespace,
        "name": name,
        "chart": chart,
        "revision": str(revision),
        "status": "deployed",
    })


def release_entry(
    chart: str,
    version: str = "",
    depends: Optional[List[str]] = None,
    **flags: Dict
) -> Dict:
    """Build a plan release entry."""
    install = dict(flags.pop("install", {}))
    if version:
        install["version"] = version
    entry = {"spec": {"chart": chart, "flags": {"install": install, **flags}}}
    if depends:
        entry["depends"] = depends
    return entry


@pytest.fixture
def fake_manager() -> FakeReleaseManager:
    """Release manager with nothing deployed."""
    return FakeReleaseManager()


@pytest.fixture
def write_plan(tmp_path: Path) -> Callable[[Dict], str]:
    """Write a plan document to a temporary YAML file and return its path."""

    def _write(document: Dict, filename: str = "plan.yaml") -> str:
        path = tmp_path / filename
        path.write_text(yaml.safe_dump(document))
        return str(path)

    return _write


@pytest.fixture
def make_deployed() -> Callable[..., DeployedRelease]:
    """Factory for deployed releases."""
    return deployed


@pytest.fixture
def make_entry() -> Callable[..., Dict]:
    """Factory for plan release entries."""
    return release_entry
