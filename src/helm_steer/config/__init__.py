"""Plan document and settings for helm-steer."""

from .models import (
    FlagSet,
    InstallFlags,
    UpgradeFlags,
    DeleteFlags,
    RollbackFlags,
    ReleaseFlags,
    ReleaseSpec,
    Release,
    Plan,
    SteerSettings,
)
from .parser import PlanLoader, load_plan
from .settings import load_settings

__all__ = [
    "FlagSet",
    "InstallFlags",
    "UpgradeFlags",
    "DeleteFlags",
    "RollbackFlags",
    "ReleaseFlags",
    "ReleaseSpec",
    "Release",
    "Plan",
    "SteerSettings",
    "PlanLoader",
    "load_plan",
    "load_settings",
]
