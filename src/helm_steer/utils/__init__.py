"""Utility modules for logging and error handling."""

from helm_steer.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    SteerError,
    LoadError,
    ValidationError,
    QueryError,
    VersionParseError,
    DependencyCycleError,
    CommandError,
    OperationError,
    UndoError,
    ErrorHandler,
    error_handler
)
from helm_steer.utils.logging import get_logger, setup_logging, LogContext

__all__ = [
    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'SteerError',
    'LoadError',
    'ValidationError',
    'QueryError',
    'VersionParseError',
    'DependencyCycleError',
    'CommandError',
    'OperationError',
    'UndoError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',
]
