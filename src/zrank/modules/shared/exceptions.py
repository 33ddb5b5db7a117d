"""
Domain exceptions raised by the leaderboard service.

They share `ErrorSeverity` with the infrastructure hierarchy so a single
handler can route both by severity and `error_code`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from zrank.core.exceptions import ErrorSeverity


class ZRankDomainException(Exception):
    severity: ErrorSeverity = ErrorSeverity.ERROR
    is_retryable: bool = False
    error_code: str = "DOMAIN_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details or {}
        if error_code is not None:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }


class NotFoundError(ZRankDomainException):
    severity = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Any = None, error_code: Optional[str] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        suffix = "" if identifier is None else f": {identifier}"
        super().__init__(
            f"{resource_type} not found{suffix}",
            {"resource_type": resource_type, "identifier": identifier},
            error_code or f"{resource_type.upper()}_NOT_FOUND",
        )


class PlayerNotFoundError(NotFoundError):
    """The player has no entry; `rank` is the unranked value -1."""

    UNRANKED: int = -1

    def __init__(self, name: str, collection: Optional[str] = None) -> None:
        self.name = name
        self.collection = collection
        self.rank = self.UNRANKED
        super().__init__("Player", name, "PLAYER_NOT_FOUND")
        self.details["rank"] = self.rank
        if collection is not None:
            self.details["collection"] = collection


class EncodingError(ZRankDomainException):
    """A score/timestamp pair does not fit the composite key, or a stored key is malformed."""

    severity = ErrorSeverity.WARNING
    error_code = "ENCODING_ERROR"

    def __init__(self, reason: str, value: Any = None) -> None:
        self.reason = reason
        self.value = value
        super().__init__(f"Cannot encode score: {reason}", {"reason": reason, "value": value})


class ValidationError(ZRankDomainException):
    severity = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(
            f"Invalid {field}: {message}",
            {"field": field, "validation_message": message},
            f"VALIDATION_{field.upper()}",
        )


class ConcurrentUpdateError(ZRankDomainException):
    """
    Every compare-and-swap attempt of one `update_score` call lost to another
    writer. Nothing was written; the call can be repeated.
    """

    severity = ErrorSeverity.WARNING
    is_retryable = True
    error_code = "CONCURRENT_UPDATE"

    def __init__(self, name: str, attempts: int) -> None:
        self.name = name
        self.attempts = attempts
        super().__init__(
            f"Score update for {name} lost {attempts} compare-and-swap attempts",
            {"player": name, "attempts": attempts},
        )


def is_transient_error(exc: BaseException) -> bool:
    return isinstance(exc, ZRankDomainException) and exc.is_retryable


def get_error_severity(exc: BaseException) -> ErrorSeverity:
    if isinstance(exc, ZRankDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


__all__ = [
    "ZRankDomainException",
    "NotFoundError",
    "PlayerNotFoundError",
    "EncodingError",
    "ValidationError",
    "ConcurrentUpdateError",
    "is_transient_error",
    "get_error_severity",
]
