"""
Skill constants.

The six core skills every user gets, and the keyword map that routes
free-form skill names (AI output, goal skill tags) onto them.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Tuple

CORE_SKILLS: List[Mapping[str, str]] = [
    {"name": "身体掌控力", "color": "#EF4444", "icon": "fas fa-dumbbell", "category": "Physical Mastery"},
    {"name": "情绪稳定力", "color": "#8B5CF6", "icon": "fas fa-heart", "category": "Emotional Resilience"},
    {"name": "心智成长力", "color": "#06B6D4", "icon": "fas fa-brain", "category": "Cognitive Agility"},
    {"name": "关系经营力", "color": "#10B981", "icon": "fas fa-users", "category": "Relational Intelligence"},
    {"name": "财富掌控力", "color": "#F59E0B", "icon": "fas fa-coins", "category": "Financial Wisdom"},
    {"name": "意志执行力", "color": "#DC2626", "icon": "fas fa-bullseye", "category": "Purposeful Action"},
]

CORE_SKILL_NAMES: Tuple[str, ...] = tuple(skill["name"] for skill in CORE_SKILLS)

DEFAULT_SKILL_NAME = "意志执行力"

# Checked in order; first keyword contained in the name wins
SKILL_KEYWORDS: Dict[str, str] = {
    "学习": "心智成长力",
    "研究": "心智成长力",
    "写作": "心智成长力",
    "阅读": "心智成长力",
    "工作": "意志执行力",
    "运动": "身体掌控力",
    "健身": "身体掌控力",
    "锻炼": "身体掌控力",
    "跑步": "身体掌控力",
    "社交": "关系经营力",
    "交流": "关系经营力",
    "沟通": "关系经营力",
    "理财": "财富掌控力",
    "投资": "财富掌控力",
    "赚钱": "财富掌控力",
    "情绪": "情绪稳定力",
    "心理": "情绪稳定力",
    "冥想": "情绪稳定力",
    "执行": "意志执行力",
    "计划": "意志执行力",
}

# English categories resolve to the same skills
SKILL_KEYWORDS.update(
    {skill["category"].lower(): skill["name"] for skill in CORE_SKILLS}
)


def resolve_core_skill_name(name: str) -> str:
    """
    Map a free-form skill name onto a core skill.

    Example:
        >>> resolve_core_skill_name("英语学习")
        '心智成长力'
        >>> resolve_core_skill_name("something else")
        '意志执行力'
    """
    if name in CORE_SKILL_NAMES:
        return name
    lowered = name.strip().lower()
    for keyword, skill_name in SKILL_KEYWORDS.items():
        if keyword in lowered:
            return skill_name
    return DEFAULT_SKILL_NAME
