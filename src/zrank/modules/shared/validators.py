"""
zrank Domain Validators

Purpose
-------
Input validation for leaderboard operations. Validators raise structured
domain exceptions on failure and return the normalized value on success.

Usage
-----
    from zrank.modules.shared.validators import validate_player_name

    name = validate_player_name("alice")
    validate_window(11, max_window=100)
    # Raises: ValidationError if out of range
"""

from __future__ import annotations

from typing import Any

from .exceptions import ValidationError


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_player_name(name: Any) -> str:
    """
    Validate a player name (sorted-set member).

    Names are opaque, case-sensitive strings; they are not trimmed.

    Raises:
        ValidationError: If name is not a string or is empty/blank
    """
    if not isinstance(name, str):
        raise ValidationError("name", f"name must be a string, got {type(name).__name__}")
    if not name.strip():
        raise ValidationError("name", "name must be a non-empty string")
    return name


def validate_delta(delta: Any) -> int:
    """
    Validate a score delta. Any integer is accepted, including negatives.

    Raises:
        ValidationError: If delta is not an int (bools rejected)
    """
    if not _is_int(delta):
        raise ValidationError(
            "delta", f"delta must be an integer, got {type(delta).__name__}"
        )
    return delta


def validate_window(window: Any, max_window: int) -> int:
    """
    Validate the neighbourhood size for windowed rank queries.

    Raises:
        ValidationError: If window is not an int or outside [0, max_window]
    """
    if not _is_int(window):
        raise ValidationError(
            "window", f"window must be an integer, got {type(window).__name__}"
        )
    if not (0 <= window <= max_window):
        raise ValidationError(
            "window", f"window must be between 0 and {max_window}, got {window}"
        )
    return window


def validate_limit(limit: Any, max_limit: int) -> int:
    """
    Validate the size of a top-N query.

    Raises:
        ValidationError: If limit is not an int or outside [1, max_limit]
    """
    if not _is_int(limit):
        raise ValidationError(
            "limit", f"limit must be an integer, got {type(limit).__name__}"
        )
    if not (1 <= limit <= max_limit):
        raise ValidationError(
            "limit", f"limit must be between 1 and {max_limit}, got {limit}"
        )
    return limit


def validate_timeout(timeout: Any) -> None:
    """
    Validate an operation deadline in seconds (None means no deadline).

    Raises:
        ValidationError: If timeout is not a positive number
    """
    if timeout is None:
        return
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValidationError(
            "timeout", f"timeout must be a positive number of seconds, got {timeout!r}"
        )
