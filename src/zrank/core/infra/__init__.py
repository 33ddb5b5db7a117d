"""
Infrastructure orchestration for zrank.

- ApplicationContext: builds config, Redis, rank store and leaderboard
  service in dependency order and shuts them down in reverse.
"""

from zrank.core.infra.application_context import ApplicationContext

__all__ = ["ApplicationContext"]
