"""
Error taxonomy for booking and status transitions.

Every error carries the context needed to render a one-line diagnostic
(appointment id, actor, attempted status). Severity drives how loudly the
error is logged.
"""
from enum import Enum
from typing import Any, Dict, Optional

from apptbook.core.logging import get_logger

logger = get_logger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels for logging."""
    LOW = "low"           # validation errors, expected user mistakes
    MEDIUM = "medium"     # conflicts, wrong state, unknown ids
    HIGH = "high"         # authorization failures, data collisions


class SchedulerError(Exception):
    """Base class for all domain errors."""

    severity = ErrorSeverity.MEDIUM

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={_render(v)}" for k, v in self.context.items())
        return f"{self.message} ({details})"


def _render(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class InvalidInputError(SchedulerError, ValueError):
    """Malformed date/time, unknown user, self-booking."""
    severity = ErrorSeverity.LOW


class ConflictError(SchedulerError):
    """Overlapping interval for a participant."""
    severity = ErrorSeverity.MEDIUM

    def __init__(self, message: str, conflicting_id: Optional[int] = None, **context: Any):
        super().__init__(message, conflicting_id=conflicting_id, **context)
        self.conflicting_id = conflicting_id


class NotFoundError(SchedulerError, LookupError):
    """Unknown appointment or notification id."""
    severity = ErrorSeverity.MEDIUM


class AuthorizationError(SchedulerError):
    """Actor lacks the required role for the operation."""
    severity = ErrorSeverity.HIGH


class InvalidStateError(SchedulerError):
    """Transition attempted from a disallowed status."""
    severity = ErrorSeverity.MEDIUM


class DuplicateIdError(SchedulerError):
    """Id collision while appending (import path)."""
    severity = ErrorSeverity.HIGH


class StoreFormatError(SchedulerError):
    """A data file whose header is not one this tool writes."""
    severity = ErrorSeverity.HIGH


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None) -> ErrorSeverity:
    """Log a domain or unexpected error with its severity and context."""
    context = dict(context or {})
    if isinstance(error, SchedulerError):
        severity = error.severity
        context.update(error.context)
    else:
        severity = ErrorSeverity.HIGH

    log = logger.warning if severity is ErrorSeverity.LOW else logger.error
    log(
        "scheduler_error",
        error_type=type(error).__name__,
        error=getattr(error, "message", str(error)),
        severity=severity.value,
        **{k: _render(v) for k, v in context.items()},
    )
    return severity


def invalid_input_from(error, **context: Any) -> InvalidInputError:
    """Turn the first pydantic validation error into a one-line InvalidInputError."""
    err = error.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ()))
    message = err.get("msg", str(error))
    return InvalidInputError(f"Invalid {field}: {message}" if field else message, **context)
