"""
Shared domain foundations: base service, domain exceptions and validators.
"""

from zrank.modules.shared.base_service import BaseService
from zrank.modules.shared.exceptions import (
    ConcurrentUpdateError,
    EncodingError,
    NotFoundError,
    PlayerNotFoundError,
    ValidationError,
    ZRankDomainException,
)

__all__ = [
    "BaseService",
    "ZRankDomainException",
    "NotFoundError",
    "PlayerNotFoundError",
    "EncodingError",
    "ValidationError",
    "ConcurrentUpdateError",
]
