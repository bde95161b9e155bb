from .constants import CORE_SKILL_NAMES, CORE_SKILLS, resolve_core_skill_name
from .service import SkillService

__all__ = ["SkillService", "CORE_SKILLS", "CORE_SKILL_NAMES", "resolve_core_skill_name"]
