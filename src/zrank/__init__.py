"""
zrank: a leaderboard on a Redis sorted set.

Players are ranked by accumulated score; equal scores are ordered by the time
of the last update. Score and timestamp are packed into one sorted-set value
by `zrank.modules.leaderboard.codec`.

>>> from zrank.core.infra import ApplicationContext
>>> async with ApplicationContext() as context:
...     await context.leaderboard.update_score(25, "alice")
...     rank = await context.leaderboard.get_user_rank("alice")
"""

__version__ = "1.0.0"
