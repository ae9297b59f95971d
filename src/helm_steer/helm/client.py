"""Release manager interface and its helm CLI implementation.

The release manager is the only component that touches the cluster: it lists
the deployed releases and runs one lifecycle command at a time.
"""

import json
import shutil
import subprocess
from abc import ABC, abstractmethod
from collections import deque
from pathlib import Path
from typing import List, Optional, TextIO

from helm_steer.helm.models import DeployedRelease
from helm_steer.utils.errors import (
    CommandError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    QueryError,
    SteerError,
    error_handler,
)
from helm_steer.utils.logging import get_logger

logger = get_logger(__name__)

COMMAND_KINDS = ("install", "upgrade", "delete", "rollback")

# Lines of helm output kept for error messages
OUTPUT_TAIL_LINES = 20


class ReleaseManager(ABC):
    """Lists deployed releases and executes lifecycle commands."""

    @abstractmethod
    def list_releases(self) -> List[DeployedRelease]:
        """Enumerate every release visible to the environment.

        Returns:
            Deployed releases across all namespaces

        Raises:
            QueryError: If the releases cannot be listed
        """
        pass

    @abstractmethod
    def run(self, kind: str, args: List[str], output: Optional[TextIO] = None) -> None:
        """Execute one lifecycle command and block until it completes.

        Args:
            kind: One of install, upgrade, delete, rollback
            args: Command arguments following the kind
            output: Optional text stream receiving the command output

        Raises:
            SteerError: If the command fails
        """
        pass


class HelmReleaseManager(ReleaseManager):
    """Release manager driving the helm binary through subprocess."""

    def __init__(self, binary_path: Optional[str] = None):
        """Initialize helm release manager.

        Args:
            binary_path: Optional explicit path to the helm binary. If None,
                PATH is searched.

        Raises:
            SteerError: If the binary cannot be found
        """
        self.binary = self._find_binary(binary_path)
        self.logger = get_logger(__name__)
        self.logger.debug(f"Using helm binary: {self.binary}")

    @staticmethod
    def _find_binary(binary_path: Optional[str]) -> str:
        """Locate the helm binary.

        Args:
            binary_path: Explicit path or None to search PATH

        Returns:
            Path to helm binary
        """
        if binary_path:
            path = Path(binary_path).expanduser()
            if path.exists():
                return str(path.resolve())
            found = shutil.which(binary_path)
        else:
            found = shutil.which("helm")

        if not found:
            raise SteerError(
                f"helm binary not found: {binary_path or 'helm'}",
                category=ErrorCategory.COMMAND,
                severity=ErrorSeverity.CRITICAL,
                suggestions=[
                    'Install helm: https://helm.sh/docs/intro/install/',
                    'Set HELM_STEER_HELM_BINARY to the helm executable'
                ]
            )
        return found

    def list_releases(self) -> List[DeployedRelease]:
        """List deployed releases with `helm list --output json`."""
        cmd = [self.binary, "list", "--all-namespaces", "--max", "0", "--output", "json"]
        self.logger.debug(f"Executing `{' '.join(cmd)}` ...")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=True)
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.strip() if e.stderr else f"exit code {e.returncode}"
            raise QueryError(f"Failed to list releases: {stderr}", cause=e)
        except OSError as e:
            raise QueryError(f"Failed to list releases: {e}", cause=e)

        try:
            data = json.loads(result.stdout) if result.stdout.strip() else []
            releases = [DeployedRelease.from_json(entry) for entry in data]
        except (ValueError, TypeError, AttributeError) as e:
            raise QueryError(f"Unexpected `helm list` output: {e}", cause=e)

        self.logger.debug(f"Found {len(releases)} deployed release(s)")
        return releases

    def run(self, kind: str, args: List[str], output: Optional[TextIO] = None) -> None:
        """Run `helm <kind> <args>`, streaming merged stdout/stderr to `output`."""
        if kind not in COMMAND_KINDS:
            raise ValueError(f"Unsupported helm command: {kind}")

        cmd = [self.binary, kind, *args]
        context = ErrorContext(operation=kind, command=[kind, *args])
        self.logger.debug(f"Executing `{' '.join(cmd)}` ...")

        tail = deque(maxlen=OUTPUT_TAIL_LINES)
        try:
            with subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            ) as process:
                for line in process.stdout:
                    tail.append(line.rstrip("\n"))
                    if output is not None:
                        output.write(line)
                        output.flush()
                returncode = process.wait()
        except OSError as e:
            raise error_handler.handle_exception(e, context)

        if returncode != 0:
            detail = tail[-1] if tail else f"exit code {returncode}"
            raise CommandError(
                f"helm {kind} failed: {detail}",
                returncode=returncode,
                context=context,
                suggestions=['Re-run with --verbose to see the full helm output']
            )
