from .service import AIService, rule_based_task

__all__ = ["AIService", "rule_based_task"]
