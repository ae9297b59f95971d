"""YAML plan parser."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from helm_steer.config.models import Plan
from helm_steer.utils.errors import LoadError, ValidationError
from helm_steer.utils.logging import get_logger

logger = get_logger(__name__)


class PlanLoader:
    """Loads, validates and conforms a plan file."""

    def __init__(self, plan_path: str):
        """Initialize plan loader.

        Args:
            plan_path: Path to the plan YAML file
        """
        self.plan_path = Path(plan_path)
        self.data: Dict[str, Any] = {}
        self.plan: Optional[Plan] = None

    def load(self) -> Plan:
        """Load and validate the plan.

        Returns:
            Conformed Plan, with every release stamped with its identity

        Raises:
            LoadError: If the file is missing, unreadable or not a YAML mapping
            ValidationError: If the document violates the schema, contains
                duplicate release names or unknown dependencies
        """
        if not self.plan_path.exists():
            raise LoadError(
                f"Plan file not found: {self.plan_path}",
                suggestions=["Check the path given on the command line"]
            )

        try:
            with open(self.plan_path, "r") as f:
                self.data = yaml.safe_load(f) or {}
        except OSError as e:
            raise LoadError(f"Failed to read plan {self.plan_path}: {e}", cause=e)
        except yaml.YAMLError as e:
            raise LoadError(f"Failed to parse YAML: {e}", cause=e)

        if not isinstance(self.data, dict):
            raise LoadError(f"Plan {self.plan_path} must be a YAML mapping")

        self.plan = self.parse(self.data)
        logger.debug(
            f"Loaded plan {self.plan_path} (version {self.plan.version}, "
            f"{len(self.plan.namespaces)} namespace(s))"
        )
        return self.plan

    @staticmethod
    def parse(data: Dict[str, Any]) -> Plan:
        """Build a conformed Plan from an already decoded document.

        Args:
            data: Decoded plan document

        Returns:
            Conformed Plan

        Raises:
            ValidationError: If the document is invalid
        """
        try:
            plan = Plan(**data)
        except PydanticValidationError as e:
            errors = [{"loc": list(error["loc"]), "msg": error["msg"]} for error in e.errors()]
            raise ValidationError(
                f"Plan validation failed with {len(errors)} error(s)",
                errors=errors,
                cause=e
            )

        verify_errors = plan.verify()
        if verify_errors:
            raise ValidationError(
                f"Plan validation failed with {len(verify_errors)} error(s)",
                errors=verify_errors
            )

        plan.conform()
        return plan

    def validate(self) -> List[Dict[str, Any]]:
        """Validate the plan file without raising.

        Returns:
            List of validation errors (empty if valid)
        """
        try:
            self.load()
        except ValidationError as e:
            return e.errors or [{"loc": [], "msg": e.message}]
        except LoadError as e:
            return [{"loc": [str(self.plan_path)], "msg": e.message}]
        return []


def load_plan(plan_path: str) -> Plan:
    """Load a plan file.

    Args:
        plan_path: Path to the plan YAML file

    Returns:
        Conformed Plan
    """
    return PlanLoader(plan_path).load()
