"""
EduShield Exception Hierarchy

Structured exceptions for the records core. Every error carries a
machine-readable code, a severity, and a retry classification so callers
and log pipelines can tell data corruption apart from ordinary
"not found" / "conflict" outcomes.

Authorization denials are *not* exceptions; see ``edushield.auth.access``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for categorizing exceptions."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RetryPolicy(Enum):
    """Retry policy classification for exceptions."""

    NEVER = "never"  # Permanent failures (conflicts, corrupt data)
    IMMEDIATE = "immediate"  # Retry immediately (temporary glitch)
    BACKOFF = "backoff"  # Retry with exponential backoff


class EduShieldError(Exception):
    """
    Base exception class for all EduShield errors.

    Attributes
    ----------
    message : str
        Human-readable error message
    error_code : str
        Machine-readable error code for categorization
    severity : ErrorSeverity
        Error severity level
    retry_policy : RetryPolicy
        Retry classification for this error type
    context : Dict[str, Any]
        Additional error context (entity ids, operation name)
    timestamp : datetime
        When the error occurred
    cause : Optional[Exception]
        Original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        retry_policy: RetryPolicy = RetryPolicy.NEVER,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.retry_policy = retry_policy
        self.context = dict(context or {})  # Create a copy to avoid mutation
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and serialization."""
        return {
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "retry_policy": self.retry_policy.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
            "exception_type": self.__class__.__name__,
        }

    def is_retryable(self) -> bool:
        return self.retry_policy in (RetryPolicy.IMMEDIATE, RetryPolicy.BACKOFF)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"severity={self.severity.value}, "
            f"retry_policy={self.retry_policy.value}"
            f")"
        )


# ---------------------------------------------------------------------------
# Data integrity
# ---------------------------------------------------------------------------

class DataCorruptionError(EduShieldError):
    """Persisted data could not be interpreted. Fatal; never retried."""

    def __init__(
        self,
        message: str,
        error_code: str = "data_corruption",
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.CRITICAL,
            retry_policy=RetryPolicy.NEVER,
            context=context,
            cause=cause,
        )


class DecodeError(DataCorruptionError):
    """Ciphertext is malformed or was produced under a different key."""

    def __init__(self, reason: str, cause: Optional[Exception] = None) -> None:
        super().__init__(
            message=f"Unable to decode encrypted field: {reason}",
            error_code="ciphertext_invalid",
            context={"reason": reason},
            cause=cause,
        )
        self.reason = reason


# ---------------------------------------------------------------------------
# Caller-facing domain errors
# ---------------------------------------------------------------------------

class NotFoundError(EduShieldError):
    """A referenced entity or relationship row does not exist."""

    def __init__(self, entity: str, **keys: Any) -> None:
        described = ", ".join(f"{k}={v}" for k, v in keys.items())
        super().__init__(
            message=f"{entity} not found ({described})",
            error_code="not_found",
            severity=ErrorSeverity.LOW,
            context={"entity": entity, **{k: str(v) for k, v in keys.items()}},
        )
        self.entity = entity
        self.keys = keys


class ConflictError(EduShieldError):
    """The requested write collides with an existing row."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="conflict",
            severity=ErrorSeverity.LOW,
            context=context,
        )


class ValidationError(EduShieldError):
    """Input violates a business rule (score bounds, empty bulk request, ...)."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(
            message=message,
            error_code="validation_error",
            severity=ErrorSeverity.LOW,
            context={"field": field} if field else None,
        )
        self.field = field


class UnknownRoleError(EduShieldError):
    """The principal carries a role this core does not recognize."""

    def __init__(self, role: Any) -> None:
        super().__init__(
            message=f"Unrecognized role: {role!r}",
            error_code="unknown_role",
            severity=ErrorSeverity.HIGH,
            context={"role": str(role)},
        )
        self.role = role


# ---------------------------------------------------------------------------
# Internal only
# ---------------------------------------------------------------------------

class CacheBackendError(EduShieldError):
    """
    A cache round trip failed. Raised by backends and always absorbed by
    ``CacheCoherentStore``; it never reaches service callers.
    """

    def __init__(self, operation: str, key: str, cause: Optional[Exception] = None) -> None:
        super().__init__(
            message=f"Cache {operation} failed for key '{key}'",
            error_code="cache_backend_error",
            severity=ErrorSeverity.LOW,
            retry_policy=RetryPolicy.NEVER,
            context={"operation": operation, "key": key},
            cause=cause,
        )
        self.operation = operation
        self.key = key


__all__ = [
    "ErrorSeverity",
    "RetryPolicy",
    "EduShieldError",
    "DataCorruptionError",
    "DecodeError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "UnknownRoleError",
    "CacheBackendError",
]
