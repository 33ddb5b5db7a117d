"""
Score codec: packs an accumulated score and an update timestamp into one
orderable sorted-set value.

Layout
------
A composite key is a 16-digit decimal integer::

    SSSSSS TTTTTTTTTT
    score  timestamp suffix

    key = user_score * 10**10 + suffix

Ordering keys descending orders players by score descending; among equal
scores the suffix decides:

- ``EARLIEST_FIRST``: suffix = MAX_TIMESTAMP - timestamp, so the player who
  reached the score first ranks higher.
- ``LATEST_FIRST``: suffix = timestamp, so the most recent update ranks higher.

A key of 0 is the "no entry" sentinel and decodes to (0, 0).

Redis stores values as IEEE-754 doubles. Keys above 2**53 (scores above
900719) are not exactly representable, so the timestamp part of such keys
may come back off by one or two seconds. The score part stays exact as long
as the suffix is not within that distance of 0 or MAX_TIMESTAMP, which holds
for every realistic epoch timestamp.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Tuple

from zrank.core.logging.logger import get_logger
from zrank.modules.shared.exceptions import EncodingError

logger = get_logger(__name__)

SCORE_DIGITS = 6
TIMESTAMP_DIGITS = 10
TOTAL_DIGITS = SCORE_DIGITS + TIMESTAMP_DIGITS

MAX_USER_SCORE = 10**SCORE_DIGITS - 1  # 999_999
MAX_TIMESTAMP = 10**TIMESTAMP_DIGITS - 1  # 9_999_999_999

_TIMESTAMP_BASE = 10**TIMESTAMP_DIGITS
_KEY_LIMIT = 10**TOTAL_DIGITS


class TieBreak(Enum):
    """Ordering of players holding the same score."""

    EARLIEST_FIRST = "earliest_first"
    LATEST_FIRST = "latest_first"

    @classmethod
    def from_string(cls, value: Any) -> "TieBreak":
        """
        Parse a configured tie-break name, falling back to EARLIEST_FIRST.

        >>> TieBreak.from_string("LATEST_FIRST") is TieBreak.LATEST_FIRST
        True
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(
                "Unknown tie-break policy, defaulting to earliest_first",
                extra={"tie_break": value},
            )
            return cls.EARLIEST_FIRST


def _require_int(value: Any, field: str, upper: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"{field} must be an integer, got {type(value).__name__}", value)
    if not (0 <= value <= upper):
        raise EncodingError(f"{field} must be between 0 and {upper}, got {value}", value)
    return value


def encode(
    user_score: int,
    timestamp: int,
    tie_break: TieBreak = TieBreak.EARLIEST_FIRST,
) -> int:
    """
    Pack ``(user_score, timestamp)`` into a composite key.

    Raises:
        EncodingError: If either part is not an int or does not fit its width
    """
    _require_int(user_score, "user_score", MAX_USER_SCORE)
    _require_int(timestamp, "timestamp", MAX_TIMESTAMP)

    if tie_break is TieBreak.EARLIEST_FIRST:
        suffix = MAX_TIMESTAMP - timestamp
    else:
        suffix = timestamp

    return user_score * _TIMESTAMP_BASE + suffix


def _as_key(composite_key: Any) -> int:
    if isinstance(composite_key, bool):
        raise EncodingError("composite key must be a number, got bool", composite_key)

    if isinstance(composite_key, float):
        if not math.isfinite(composite_key):
            raise EncodingError("composite key must be finite", composite_key)
        if not composite_key.is_integer():
            raise EncodingError("composite key must be integral", composite_key)
        composite_key = int(composite_key)

    if not isinstance(composite_key, int):
        raise EncodingError(
            f"composite key must be a number, got {type(composite_key).__name__}",
            composite_key,
        )

    if not (0 <= composite_key < _KEY_LIMIT):
        raise EncodingError(
            f"composite key must have at most {TOTAL_DIGITS} digits and be non-negative",
            composite_key,
        )
    return composite_key


def decode(
    composite_key: int | float,
    tie_break: TieBreak = TieBreak.EARLIEST_FIRST,
) -> Tuple[int, int]:
    """
    Unpack a composite key into ``(user_score, timestamp)``.

    Accepts ints and integral floats (what the store hands back).

    >>> decode(encode(150, 1_700_000_000))
    (150, 1700000000)
    >>> decode(0)
    (0, 0)

    Raises:
        EncodingError: On negative, oversized, non-finite or fractional keys
    """
    key = _as_key(composite_key)
    if key == 0:
        return 0, 0

    user_score, suffix = divmod(key, _TIMESTAMP_BASE)
    if tie_break is TieBreak.EARLIEST_FIRST:
        timestamp = MAX_TIMESTAMP - suffix
    else:
        timestamp = suffix
    return user_score, timestamp


class ScoreCodec:
    """
    Codec bound to one tie-break policy.

    >>> codec = ScoreCodec(TieBreak.LATEST_FIRST)
    >>> codec.decode(codec.encode(7, 42))
    (7, 42)
    """

    def __init__(self, tie_break: TieBreak = TieBreak.EARLIEST_FIRST) -> None:
        self.tie_break = TieBreak.from_string(tie_break)

    @classmethod
    def from_config(cls, config_manager: Any) -> "ScoreCodec":
        """Build a codec from `leaderboard.tie_break`."""
        return cls(TieBreak.from_string(
            config_manager.get("leaderboard.tie_break", TieBreak.EARLIEST_FIRST.value)
        ))

    @property
    def max_user_score(self) -> int:
        return MAX_USER_SCORE

    def encode(self, user_score: int, timestamp: int) -> int:
        return encode(user_score, timestamp, self.tie_break)

    def decode(self, composite_key: int | float) -> Tuple[int, int]:
        return decode(composite_key, self.tie_break)

    def __repr__(self) -> str:
        return f"ScoreCodec(tie_break={self.tie_break.value!r})"


__all__ = [
    "SCORE_DIGITS",
    "TIMESTAMP_DIGITS",
    "TOTAL_DIGITS",
    "MAX_USER_SCORE",
    "MAX_TIMESTAMP",
    "TieBreak",
    "ScoreCodec",
    "encode",
    "decode",
]
