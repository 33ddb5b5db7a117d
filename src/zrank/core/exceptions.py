"""
Infrastructure exceptions.

Store failures reach callers as `StoreError`, or as its retryable subclass
`StoreUnavailableError` when Redis could not be reached in time. Each
exception carries a stable `error_code`, a `severity` for log routing and a
`details` dict that is safe to log.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ZRankInfrastructureException(Exception):
    severity: ErrorSeverity = ErrorSeverity.ERROR
    is_retryable: bool = False
    error_code: str = "INFRASTRUCTURE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }


class ConfigurationError(ZRankInfrastructureException):
    """A configuration value the application cannot start with."""

    severity = ErrorSeverity.CRITICAL
    error_code = "CONFIG_ERROR"

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Invalid configuration for {config_key}: {message}",
            {"config_key": config_key, "message": message},
        )


class StoreError(ZRankInfrastructureException):
    """
    A rank-store operation failed on the server side (wrong key type,
    script error, ...).

    `operation` is the adapter method, `collection` the sorted-set key and
    `member` the player involved, when there is one.
    """

    error_code = "STORE_ERROR"

    def __init__(
        self,
        operation: str,
        collection: str,
        member: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.operation = operation
        self.collection = collection
        self.member = member
        self.original_error = original_error

        reason = str(original_error) if original_error is not None else "operation failed"
        target = collection if member is None else f"{collection}/{member}"
        super().__init__(
            f"{operation} on {target} failed: {reason}",
            {
                "operation": operation,
                "collection": collection,
                "member": member,
                "error": reason,
                "error_type": type(original_error).__name__ if original_error is not None else None,
            },
        )


class StoreUnavailableError(StoreError):
    """Redis refused the connection, timed out, or the circuit is open."""

    severity = ErrorSeverity.WARNING
    is_retryable = True
    error_code = "STORE_UNAVAILABLE"


def is_transient_error(exc: BaseException) -> bool:
    return isinstance(exc, ZRankInfrastructureException) and exc.is_retryable


def get_error_severity(exc: BaseException) -> ErrorSeverity:
    if isinstance(exc, ZRankInfrastructureException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: BaseException) -> bool:
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)


__all__ = [
    "ErrorSeverity",
    "ZRankInfrastructureException",
    "ConfigurationError",
    "StoreError",
    "StoreUnavailableError",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
]
