"""
Leaderboard value objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True, slots=True)
class ScoreEntry:
    """One sorted-set member with its raw stored value (a composite key)."""

    member: str
    value: float


@dataclass(frozen=True, slots=True)
class Player:
    """
    A ranked player as returned by the leaderboard service.

    `score` is the decoded accumulated score, `updated_at` the epoch second of
    the last update, and `rank` the 1-based position at query time (None when
    the operation did not compute it).
    """

    name: str
    score: int
    rank: Optional[int] = None
    updated_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "score": self.score,
            "rank": self.rank,
            "updated_at": self.updated_at,
        }
