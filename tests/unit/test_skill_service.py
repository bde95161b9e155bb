"""
Unit Tests for SkillService and ActivityService
===============================================

Purpose
-------
Test core skill provisioning, skill XP and level-ups, free-form skill name
resolution and the activity history.
"""

import pytest

from src.modules.shared.exceptions import NotFoundError, ValidationError
from src.modules.skills.constants import CORE_SKILL_NAMES, resolve_core_skill_name
from tests.conftest import NOW, OTHER_USER_ID, TEST_USER_ID

pytestmark = pytest.mark.unit


# ============================================================================
# CORE SKILLS
# ============================================================================


class TestCoreSkills:
    async def test_first_listing_creates_core_skills(self, container):
        skills = await container.skills.list_skills(TEST_USER_ID)

        assert [skill["name"] for skill in skills] == list(CORE_SKILL_NAMES)
        assert all(skill["level"] == 1 and skill["exp"] == 0 for skill in skills)
        assert all(skill["maxExp"] == 100 for skill in skills)
        assert {skill["skillType"] for skill in skills} == {"core"}

    async def test_listing_is_idempotent(self, container):
        first = await container.skills.list_skills(TEST_USER_ID)
        second = await container.skills.list_skills(TEST_USER_ID)

        assert [skill["id"] for skill in first] == [skill["id"] for skill in second]

    async def test_skills_are_per_user(self, container):
        mine = await container.skills.list_skills(TEST_USER_ID)
        theirs = await container.skills.list_skills(OTHER_USER_ID)

        assert not {skill["id"] for skill in mine} & {skill["id"] for skill in theirs}
        assert all(skill["userId"] == OTHER_USER_ID for skill in theirs)


# ============================================================================
# SKILL EXPERIENCE
# ============================================================================


class TestAddSkillExp:
    async def test_level_up(self, container, published_events):
        # Arrange
        skills = await container.skills.list_skills(TEST_USER_ID)
        skill_id = skills[0]["id"]

        # Act
        result = await container.skills.add_skill_exp(TEST_USER_ID, skill_id, 150, now=NOW)

        # Assert
        assert result["expGained"] == 150
        assert result["leveledUp"] is True
        assert result["skill"]["level"] == 2
        assert result["skill"]["exp"] == 50
        assert result["skill"]["maxExp"] == 115

        leveled = published_events.payloads("skill.leveled_up")
        assert leveled == [
            {
                "user_id": TEST_USER_ID,
                "skill_id": skill_id,
                "skill_name": skills[0]["name"],
                "old_level": 1,
                "new_level": 2,
            }
        ]

        activity = await container.activity.list_activity(TEST_USER_ID)
        assert [entry["action"] for entry in activity] == ["skill_levelup"]

    async def test_small_gain(self, container, published_events):
        skills = await container.skills.list_skills(TEST_USER_ID)

        result = await container.skills.add_skill_exp(TEST_USER_ID, skills[1]["id"], 30, now=NOW)

        assert result["leveledUp"] is False
        assert result["skill"]["exp"] == 30
        assert "skill.leveled_up" not in published_events.names
        assert published_events.payloads("skill.experience_gained") == [
            {"user_id": TEST_USER_ID, "skill_id": skills[1]["id"], "amount": 30, "level": 1}
        ]

    async def test_small_gain_invalidates_cached_skills(self, container, mocker):
        invalidate = mocker.patch(
            "src.core.cache.service.CacheService.invalidate_user", new=mocker.AsyncMock(return_value=1)
        )
        skills = await container.skills.list_skills(TEST_USER_ID)

        await container.skills.add_skill_exp(TEST_USER_ID, skills[0]["id"], 5, now=NOW)

        invalidate.assert_awaited_with(TEST_USER_ID)

    @pytest.mark.parametrize("amount", [0, -1, "lots"])
    async def test_invalid_amount(self, container, amount):
        skills = await container.skills.list_skills(TEST_USER_ID)

        with pytest.raises(ValidationError):
            await container.skills.add_skill_exp(TEST_USER_ID, skills[0]["id"], amount, now=NOW)

    async def test_unknown_skill(self, container):
        with pytest.raises(NotFoundError) as exc_info:
            await container.skills.add_skill_exp(TEST_USER_ID, 404, 10, now=NOW)

        assert exc_info.value.error_code == "SKILL_NOT_FOUND"

    async def test_other_users_skill(self, container):
        skills = await container.skills.list_skills(TEST_USER_ID)

        with pytest.raises(NotFoundError):
            await container.skills.add_skill_exp(OTHER_USER_ID, skills[0]["id"], 10, now=NOW)


# ============================================================================
# NAME RESOLUTION
# ============================================================================


class TestResolveCoreSkillName:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("心智成长力", "心智成长力"),
            ("英语学习", "心智成长力"),
            ("晨跑", "意志执行力"),
            ("跑步训练", "身体掌控力"),
            ("投资理财", "财富掌控力"),
            ("Physical Mastery", "身体掌控力"),
            ("something else", "意志执行力"),
        ],
    )
    def test_resolve(self, name, expected):
        assert resolve_core_skill_name(name) == expected


# ============================================================================
# ACTIVITY
# ============================================================================


class TestActivity:
    async def test_newest_first_and_limited(self, container):
        # Arrange
        for index in range(3):
            task = await container.tasks.create_task(
                TEST_USER_ID, {"title": f"Task {index}", "requiredEnergyBalls": 1}, now=NOW
            )
            await container.tasks.complete_task(TEST_USER_ID, task["id"], now=NOW)

        # Act
        entries = await container.activity.list_activity(TEST_USER_ID, limit=2)

        # Assert
        assert len(entries) == 2
        assert entries[0]["description"] == "完成任务: Task 2"
        assert entries[1]["description"] == "完成任务: Task 1"
        assert entries[0]["userId"] == TEST_USER_ID

    @pytest.mark.parametrize("limit", [0, 201, "many"])
    async def test_invalid_limit(self, container, limit):
        with pytest.raises(ValidationError):
            await container.activity.list_activity(TEST_USER_ID, limit=limit)

    async def test_record_appends_entry(self, container):
        async with container.stores.unit_of_work(TEST_USER_ID) as uow:
            entry = container.activity.record(uow, "goal_complete", 50, "完成目标: Ship", now=NOW)

        entries = await container.activity.list_activity(TEST_USER_ID)

        assert entry.user_id == TEST_USER_ID
        assert [item["action"] for item in entries] == ["goal_complete"]
        assert entries[0]["expGained"] == 50

    async def test_unknown_action_rejected(self, container):
        with pytest.raises(ValidationError):
            async with container.stores.unit_of_work(TEST_USER_ID) as uow:
                container.activity.record(uow, "teleport", 0, now=NOW)
