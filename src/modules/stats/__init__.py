"""User stats: lazy creation, XP gain, energy refill."""

from .service import StatsService

__all__ = ["StatsService"]
