from .service import GoalService, parse_target_date

__all__ = ["GoalService", "parse_target_date"]
