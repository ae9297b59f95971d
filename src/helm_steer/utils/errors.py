"""Error handling framework for plan reconciliation and release operations."""

import subprocess
from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass

from helm_steer.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors that can occur while steering a plan."""
    LOAD = "load"
    VALIDATION = "validation"
    QUERY = "query"
    VERSION = "version"
    DEPENDENCY = "dependency"
    OPERATION = "operation"
    UNDO = "undo"
    COMMAND = "command"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Nothing was changed, the run cannot start
    ERROR = "error"  # A release operation failed
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"  # Informational message


@dataclass
class ErrorContext:
    """Context information for an error."""
    release: Optional[str] = None
    namespace: Optional[str] = None
    operation: Optional[str] = None
    command: Optional[List[str]] = None
    additional_info: Optional[Dict[str, Any]] = None


class SteerError(Exception):
    """Base exception for helm-steer errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize steer error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = [f"{self.severity.value.upper()}: {self.message}"]

        if self.context.release:
            lines.append(f"   Release: {self.context.release}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")
        if self.context.command:
            lines.append(f"   Command: helm {' '.join(self.context.command)}")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'release': self.context.release,
                'namespace': self.context.namespace,
                'operation': self.context.operation,
                'command': self.context.command,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class LoadError(SteerError):
    """Plan file is missing, unreadable or not parsable."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.LOAD,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class ValidationError(SteerError):
    """Plan document does not satisfy the schema or the plan invariants."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )
        self.errors = errors or []

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  * {location}: {msg}")

        return "\n".join(error_lines)


class QueryError(SteerError):
    """Listing the deployed releases failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.QUERY,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class VersionParseError(SteerError):
    """A deployed or specified chart version is not a valid version."""

    def __init__(self, message: str, version: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.VERSION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )
        self.version = version


class DependencyCycleError(SteerError):
    """Release dependencies contain a cycle.

    ``unresolved`` maps every node that could not be ordered to the
    dependencies it was still waiting on.
    """

    def __init__(self, message: str, unresolved: Optional[Dict[str, List[str]]] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.DEPENDENCY,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )
        self.unresolved = unresolved or {}


class CommandError(SteerError):
    """An external helm command exited with a non-zero status."""

    def __init__(self, message: str, returncode: Optional[int] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.COMMAND,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )
        self.returncode = returncode


class OperationError(SteerError):
    """The forward half of an operation failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.OPERATION,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class UndoError(SteerError):
    """An undo command failed while rolling back. Reported, never raised."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.UNDO,
            severity=ErrorSeverity.WARNING,
            **kwargs
        )


class ErrorHandler:
    """Converts and logs errors coming from helm and the operating system."""

    def __init__(self):
        """Initialize error handler."""
        self.logger = get_logger(__name__)

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> SteerError:
        """Handle an exception and convert to SteerError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            SteerError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, SteerError):
            return error

        if isinstance(error, subprocess.CalledProcessError):
            output = error.output.strip() if isinstance(error.output, str) else ''
            return CommandError(
                message=f"helm exited with status {error.returncode}"
                        + (f": {output}" if output else ""),
                returncode=error.returncode,
                context=context,
                cause=error,
                suggestions=['Re-run with --verbose to see the helm output']
            )

        if isinstance(error, FileNotFoundError):
            return SteerError(
                message=f"File not found: {error.filename or error}",
                category=ErrorCategory.COMMAND,
                severity=ErrorSeverity.CRITICAL,
                context=context,
                cause=error,
                suggestions=[
                    'Check that helm is installed and on your PATH',
                    'Set HELM_STEER_HELM_BINARY to the helm executable'
                ]
            )

        if isinstance(error, OSError):
            return SteerError(
                message=f"System error: {error}",
                category=ErrorCategory.COMMAND,
                severity=ErrorSeverity.ERROR,
                context=context,
                cause=error
            )

        return SteerError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Check logs for more details']
        )

    def log_error(self, error: SteerError):
        """Log an error with appropriate level.

        Args:
            error: The error to log
        """
        log_message = error.to_user_message()

        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR):
            self.logger.error(log_message)
        elif error.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

        self.logger.debug(f"Error details: {error.to_dict()}")


# Global error handler instance
error_handler = ErrorHandler()
