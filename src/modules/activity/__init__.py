from .service import ACTIVITY_ACTIONS, ActivityService

__all__ = ["ActivityService", "ACTIVITY_ACTIONS"]
