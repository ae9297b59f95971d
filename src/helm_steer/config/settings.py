"""Tool settings: optional YAML file in the home directory plus environment overrides."""

import os
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from helm_steer.config.models import SteerSettings
from helm_steer.utils.errors import LoadError, ValidationError
from helm_steer.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SETTINGS_FILE = "~/.helm-steer.yaml"
ENV_PREFIX = "HELM_STEER_"


def load_settings(
    settings_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None
) -> SteerSettings:
    """Load settings from file and environment.

    An explicitly given file must exist; the default file is optional.
    Environment variables (`HELM_STEER_HELM_BINARY`, `HELM_STEER_LOG_LEVEL`,
    `HELM_STEER_LOG_DIR`) override file values.

    Args:
        settings_path: Optional path to a settings YAML file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated SteerSettings

    Raises:
        LoadError: If the settings file cannot be read or parsed
        ValidationError: If a setting has an invalid value
    """
    environ = os.environ if environ is None else environ
    data: Dict = {}

    path = Path(settings_path or DEFAULT_SETTINGS_FILE).expanduser()
    if path.exists():
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise LoadError(f"Failed to read settings file {path}: {e}", cause=e)
        if not isinstance(data, dict):
            raise LoadError(f"Settings file {path} must contain a mapping")
        logger.debug(f"Using settings file: {path}")
    elif settings_path:
        raise LoadError(f"Settings file not found: {path}")

    for field_name in SteerSettings.model_fields:
        value = environ.get(ENV_PREFIX + field_name.upper())
        if value:
            data[field_name] = value

    try:
        return SteerSettings(**data)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid settings",
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
            cause=e
        )
