"""Helm release manager."""

from helm_steer.helm.models import DeployedRelease, split_chart
from helm_steer.helm.client import COMMAND_KINDS, HelmReleaseManager, ReleaseManager

__all__ = [
    'DeployedRelease',
    'split_chart',
    'COMMAND_KINDS',
    'HelmReleaseManager',
    'ReleaseManager',
]
