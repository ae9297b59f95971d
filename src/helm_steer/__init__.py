"""Helm Steer: converge Helm releases to a declarative plan."""

__version__ = "0.3.0"
