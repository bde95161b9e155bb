"""Pomodoro session history and daily battle reports."""

from .service import BattleReportService, day_start

__all__ = ["BattleReportService", "day_start"]
