"""
Leaderboard module: score codec, rank stores and the leaderboard service.
"""

from zrank.modules.leaderboard.codec import (
    MAX_TIMESTAMP,
    MAX_USER_SCORE,
    SCORE_DIGITS,
    TIMESTAMP_DIGITS,
    TOTAL_DIGITS,
    ScoreCodec,
    TieBreak,
    decode,
    encode,
)
from zrank.modules.leaderboard.models import Player, ScoreEntry
from zrank.modules.leaderboard.service import LeaderboardService, register_config_validators
from zrank.modules.leaderboard.store import InMemoryRankStore, RankStore, RedisRankStore

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
    "Player",
    "ScoreEntry",
    "RankStore",
    "RedisRankStore",
    "InMemoryRankStore",
    "LeaderboardService",
    "register_config_validators",
]
