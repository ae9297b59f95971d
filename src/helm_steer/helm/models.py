"""Data models for releases reported by helm."""

import re
from dataclasses import dataclass
from typing import Any, Dict, Tuple

# `<chart name>-<chart version>`; the version starts at the last dash followed
# by something shaped like MAJOR.MINOR
_CHART_RE = re.compile(
    r"^(?P<name>.+)-(?P<version>v?\d+\.\d+(?:\.\d+)?(?:[-+][0-9A-Za-z.+-]*)?)$"
)


def split_chart(chart: str) -> Tuple[str, str]:
    """Split helm's chart column into chart name and chart version.

    Args:
        chart: Value such as `nginx-ingress-4.10.1`

    Returns:
        Tuple of (name, version); version is empty if none can be found
    """
    match = _CHART_RE.match(chart)
    if not match:
        return chart, ""
    return match.group("name"), match.group("version")


@dataclass(frozen=True)
class DeployedRelease:
    """A release currently deployed in the cluster."""

    namespace: str
    name: str
    chart_name: str
    chart_version: str
    revision: int
    status: str = ""
    app_version: str = ""

    @property
    def key(self) -> str:
        """Plan-wide key of the release (`namespace.name`)."""
        return f"{self.namespace}.{self.name}"

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "DeployedRelease":
        """Create a DeployedRelease from a `helm list --output json` entry."""
        chart_name, chart_version = split_chart(str(data.get("chart", "")))
        return cls(
            namespace=str(data.get("namespace", "")),
            name=str(data.get("name", "")),
            chart_name=chart_name,
            chart_version=chart_version,
            revision=int(data.get("revision", 0)),
            status=str(data.get("status", "")),
            app_version=str(data.get("app_version", "")),
        )
