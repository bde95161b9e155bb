"""
Unit Tests for GoalService
==========================

Purpose
-------
Test goal CRUD, one-time completion rewards and the goal pomodoro reward
with its skill XP share.

Test Coverage
-------------
- create_goal() defaults and validation
- update_goal() patching, `completed` toggle, reopen rejection
- complete_goal() XP, skill share, activity, double completion
- complete_goal_pomodoro()
- milestones: create, patch, complete, delete, progress recompute
- delete_goal()
- parse_target_date()
"""

from datetime import datetime, timezone

import pytest

from src.modules.goals.service import parse_target_date
from src.modules.shared.exceptions import InvalidOperationError, NotFoundError, ValidationError
from tests.conftest import NOW, OTHER_USER_ID, TEST_USER_ID

pytestmark = pytest.mark.unit


# ============================================================================
# CRUD
# ============================================================================


class TestCreateGoal:
    async def test_defaults(self, container, published_events):
        # Act
        goal = await container.goals.create_goal(TEST_USER_ID, {"title": "Learn Spanish"}, now=NOW)

        # Assert
        assert goal["title"] == "Learn Spanish"
        assert goal["completed"] is False
        assert goal["progress"] == 0.0
        assert goal["expReward"] == 50
        assert goal["pomodoroExpReward"] == 10
        assert goal["requiredEnergyBalls"] == 4
        assert goal["skillTags"] == []
        assert published_events.payloads("goal.created") == [{"user_id": TEST_USER_ID, "goal_id": goal["id"]}]

    async def test_explicit_values(self, container):
        goal = await container.goals.create_goal(
            TEST_USER_ID,
            {
                "title": "Run a marathon",
                "targetDate": "2026-12-31",
                "progress": 0.25,
                "expReward": 200,
                "skillTags": ["身体", "身体", "意志"],
            },
            now=NOW,
        )

        assert goal["targetDate"] == "2026-12-31T00:00:00+00:00"
        assert goal["progress"] == 0.25
        assert goal["expReward"] == 200
        assert goal["skillTags"] == ["身体", "意志"]

    @pytest.mark.parametrize(
        "data,field_name",
        [
            ({}, "title"),
            ({"title": "x", "progress": 1.5}, "progress"),
            ({"title": "x", "progress": True}, "progress"),
            ({"title": "x", "targetDate": "next tuesday"}, "targetDate"),
            ({"title": "x", "expReward": -10}, "expReward"),
        ],
    )
    async def test_invalid_input(self, container, data, field_name):
        with pytest.raises(ValidationError) as exc_info:
            await container.goals.create_goal(TEST_USER_ID, data, now=NOW)

        assert exc_info.value.field == field_name


class TestUpdateAndDelete:
    async def test_patch_progress(self, container, published_events):
        goal = await container.goals.create_goal(TEST_USER_ID, {"title": "Read 20 books"}, now=NOW)

        result = await container.goals.update_goal(TEST_USER_ID, goal["id"], {"progress": 0.5}, now=NOW)

        assert result["progress"] == 0.5
        assert "goal.updated" in published_events.names

    async def test_completed_toggle_pays_reward(self, container):
        goal = await container.goals.create_goal(TEST_USER_ID, {"title": "Ship v1"}, now=NOW)

        result = await container.goals.update_goal(TEST_USER_ID, goal["id"], {"completed": True}, now=NOW)
        stats = await container.stats.get_stats(TEST_USER_ID, now=NOW)

        assert result["completed"] is True
        assert stats["experience"] == 50

    async def test_reopen_rejected(self, container):
        goal = await container.goals.create_goal(TEST_USER_ID, {"title": "Ship v1"}, now=NOW)
        await container.goals.complete_goal(TEST_USER_ID, goal["id"], now=NOW)

        with pytest.raises(InvalidOperationError) as exc_info:
            await container.goals.update_goal(TEST_USER_ID, goal["id"], {"completed": False}, now=NOW)

        assert exc_info.value.error_code == "INVALID_REOPEN_GOAL"

    async def test_delete(self, container):
        goal = await container.goals.create_goal(TEST_USER_ID, {"title": "Temporary"}, now=NOW)

        result = await container.goals.delete_goal(TEST_USER_ID, goal["id"])

        assert result == {"message": "目标删除成功", "id": goal["id"]}
        assert await container.goals.list_goals(TEST_USER_ID) == []

    async def test_other_user_cannot_see_goal(self, container):
        goal = await container.goals.create_goal(TEST_USER_ID, {"title": "Private"}, now=NOW)

        with pytest.raises(NotFoundError) as exc_info:
            await container.goals.get_goal(OTHER_USER_ID, goal["id"])

        assert exc_info.value.error_code == "GOAL_NOT_FOUND"


# ============================================================================
# COMPLETION
# ============================================================================


class TestCompleteGoal:
    async def test_complete_rewards_player_and_skills(self, container, published_events):
        # Arrange
        goal = await container.goals.create_goal(
            TEST_USER_ID, {"title": "Finish course", "skillTags": ["心智"]}, now=NOW
        )

        # Act
        result = await container.goals.complete_goal(TEST_USER_ID, goal["id"], now=NOW)

        # Assert
        assert result["expGained"] == 50
        assert result["goal"]["completed"] is True
        assert result["goal"]["progress"] == 1.0
        assert result["stats"]["experience"] == 50
        assert result["leveledUp"] is False
        assert len(result["skills"]) == 1
        assert result["skills"][0]["name"] == "心智成长力"
        assert result["skills"][0]["expGained"] == 25

        activity = await container.activity.list_activity(TEST_USER_ID)
        assert activity[0]["action"] == "goal_complete"
        assert published_events.payloads("goal.completed") == [
            {"user_id": TEST_USER_ID, "goal_id": goal["id"], "exp_gained": 50}
        ]

    async def test_complete_twice_rejected(self, container):
        goal = await container.goals.create_goal(TEST_USER_ID, {"title": "Once"}, now=NOW)
        await container.goals.complete_goal(TEST_USER_ID, goal["id"], now=NOW)

        with pytest.raises(InvalidOperationError) as exc_info:
            await container.goals.complete_goal(TEST_USER_ID, goal["id"], now=NOW)

        assert exc_info.value.error_code == "INVALID_COMPLETE_GOAL"

    async def test_untagged_goal_rewards_no_skills(self, container):
        goal = await container.goals.create_goal(TEST_USER_ID, {"title": "Plain"}, now=NOW)

        result = await container.goals.complete_goal(TEST_USER_ID, goal["id"], now=NOW)

        assert result["skills"] == []


class TestGoalPomodoro:
    async def test_pomodoro_reward(self, container, published_events):
        # Arrange
        goal = await container.goals.create_goal(
            TEST_USER_ID, {"title": "Thesis", "skillTags": ["心智", "意志"]}, now=NOW
        )

        # Act
        result = await container.goals.complete_goal_pomodoro(TEST_USER_ID, goal["id"], now=NOW)

        # Assert
        assert result["message"] == "番茄钟完成奖励已发放"
        assert result["expGained"] == 10
        assert result["stats"]["experience"] == 10
        assert [skill["expGained"] for skill in result["skills"]] == [5, 5]
        assert (await container.goals.get_goal(TEST_USER_ID, goal["id"]))["completed"] is False
        assert published_events.payloads("pomodoro.completed")[-1]["goal_id"] == goal["id"]

    async def test_repeatable(self, container):
        goal = await container.goals.create_goal(TEST_USER_ID, {"title": "Thesis"}, now=NOW)

        await container.goals.complete_goal_pomodoro(TEST_USER_ID, goal["id"], now=NOW)
        result = await container.goals.complete_goal_pomodoro(TEST_USER_ID, goal["id"], now=NOW)

        assert result["stats"]["experience"] == 20

    async def test_unknown_goal(self, container):
        with pytest.raises(NotFoundError):
            await container.goals.complete_goal_pomodoro(TEST_USER_ID, 77, now=NOW)


# ============================================================================
# MILESTONES
# ============================================================================


class TestMilestones:
    async def create_with_milestones(self, container, *titles):
        return await container.goals.create_goal(
            TEST_USER_ID, {"title": "Launch", "milestones": list(titles)}, now=NOW
        )

    async def test_create_keeps_order_and_skips_blank(self, container):
        # Act
        goal = await container.goals.create_goal(
            TEST_USER_ID,
            {"title": "Launch", "milestones": ["Design", "  ", {"title": "Build", "description": "MVP"}]},
            now=NOW,
        )

        # Assert
        assert [(m["title"], m["order"]) for m in goal["milestones"]] == [("Design", 0), ("Build", 1)]
        assert goal["milestones"][1]["description"] == "MVP"
        assert all(m["goalId"] == goal["id"] for m in goal["milestones"])
        assert (await container.goals.get_goal(TEST_USER_ID, goal["id"]))["milestones"] == goal["milestones"]

    async def test_create_rejects_non_list(self, container):
        with pytest.raises(ValidationError) as exc_info:
            await container.goals.create_goal(TEST_USER_ID, {"title": "Launch", "milestones": "Design"}, now=NOW)

        assert exc_info.value.field == "milestones"

    async def test_list_goals_includes_milestones(self, container):
        await self.create_with_milestones(container, "Design")
        await container.goals.create_goal(TEST_USER_ID, {"title": "Plain"}, now=NOW)

        goals = {goal["title"]: goal for goal in await container.goals.list_goals(TEST_USER_ID)}

        assert [m["title"] for m in goals["Launch"]["milestones"]] == ["Design"]
        assert goals["Plain"]["milestones"] == []

    async def test_completing_milestones_drives_progress(self, container, published_events):
        # Arrange
        goal = await self.create_with_milestones(container, "Design", "Build", "Ship", "Review")
        design, build = goal["milestones"][0], goal["milestones"][1]

        # Act
        await container.goals.update_milestone(TEST_USER_ID, goal["id"], design["id"], {"completed": True}, now=NOW)
        result = await container.goals.update_milestone(
            TEST_USER_ID, goal["id"], build["id"], {"completed": True}, now=NOW
        )

        # Assert
        assert result["milestone"]["completed"] is True
        assert result["milestone"]["completedAt"] == NOW.isoformat()
        assert result["goal"]["progress"] == 0.5
        assert result["goal"]["completed"] is False
        assert [p["milestone_id"] for p in published_events.payloads("goal.milestone_completed")] == [
            design["id"],
            build["id"],
        ]

    async def test_reopening_clears_completion(self, container, published_events):
        goal = await self.create_with_milestones(container, "Design", "Build")
        design = goal["milestones"][0]
        await container.goals.update_milestone(TEST_USER_ID, goal["id"], design["id"], {"completed": True}, now=NOW)
        published_events.clear()

        result = await container.goals.update_milestone(
            TEST_USER_ID, goal["id"], design["id"], {"completed": False}, now=NOW
        )

        assert result["milestone"]["completedAt"] is None
        assert result["goal"]["progress"] == 0.0
        assert "goal.milestone_completed" not in published_events.names
        assert "goal.updated" in published_events.names

    async def test_patch_title_and_order(self, container):
        goal = await self.create_with_milestones(container, "Design", "Build")
        design = goal["milestones"][0]

        await container.goals.update_milestone(
            TEST_USER_ID, goal["id"], design["id"], {"title": "Design v2", "order": 5}, now=NOW
        )
        milestones = await container.goals.list_milestones(TEST_USER_ID, goal["id"])

        assert [(m["title"], m["order"]) for m in milestones] == [("Build", 1), ("Design v2", 5)]

    async def test_add_appends_and_lowers_progress(self, container):
        # Arrange
        goal = await self.create_with_milestones(container, "Design")
        await container.goals.update_milestone(
            TEST_USER_ID, goal["id"], goal["milestones"][0]["id"], {"completed": True}, now=NOW
        )

        # Act
        result = await container.goals.add_milestone(TEST_USER_ID, goal["id"], {"title": "Build"}, now=NOW)

        # Assert
        assert result["milestone"]["order"] == 1
        assert result["milestone"]["completed"] is False
        assert result["goal"]["progress"] == 0.5

    async def test_add_requires_title(self, container):
        goal = await self.create_with_milestones(container)

        with pytest.raises(ValidationError):
            await container.goals.add_milestone(TEST_USER_ID, goal["id"], {"title": "   "}, now=NOW)

    async def test_delete_recomputes_progress(self, container):
        # Arrange
        goal = await self.create_with_milestones(container, "Design", "Build")
        design, build = goal["milestones"]
        await container.goals.update_milestone(TEST_USER_ID, goal["id"], design["id"], {"completed": True}, now=NOW)

        # Act
        result = await container.goals.delete_milestone(TEST_USER_ID, goal["id"], build["id"], now=NOW)

        # Assert
        assert result == {"message": "里程碑删除成功", "id": build["id"], "goalProgress": 1.0}
        assert [m["id"] for m in await container.goals.list_milestones(TEST_USER_ID, goal["id"])] == [design["id"]]

    async def test_milestone_of_other_goal_not_found(self, container):
        first = await self.create_with_milestones(container, "Design")
        second = await container.goals.create_goal(TEST_USER_ID, {"title": "Other"}, now=NOW)

        with pytest.raises(NotFoundError) as exc_info:
            await container.goals.update_milestone(
                TEST_USER_ID, second["id"], first["milestones"][0]["id"], {"completed": True}, now=NOW
            )

        assert exc_info.value.error_code == "MILESTONE_NOT_FOUND"

    async def test_other_user_cannot_touch_milestones(self, container):
        goal = await self.create_with_milestones(container, "Design")

        with pytest.raises(NotFoundError):
            await container.goals.list_milestones(OTHER_USER_ID, goal["id"])

    async def test_completed_goal_keeps_full_progress(self, container):
        # Arrange
        goal = await self.create_with_milestones(container, "Design", "Build")
        await container.goals.complete_goal(TEST_USER_ID, goal["id"], now=NOW)

        # Act
        result = await container.goals.update_milestone(
            TEST_USER_ID, goal["id"], goal["milestones"][0]["id"], {"completed": True}, now=NOW
        )

        # Assert
        assert result["goal"]["progress"] == 1.0
        assert result["goal"]["completed"] is True

    async def test_delete_goal_removes_milestones(self, container):
        goal = await self.create_with_milestones(container, "Design", "Build")

        await container.goals.delete_goal(TEST_USER_ID, goal["id"])
        replacement = await container.goals.create_goal(TEST_USER_ID, {"title": "Next"}, now=NOW)

        assert replacement["milestones"] == []
        assert (await container.goals.list_goals(TEST_USER_ID))[0]["milestones"] == []


# ============================================================================
# DATE PARSING
# ============================================================================


class TestParseTargetDate:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, None),
            ("", None),
            ("2026-12-31", datetime(2026, 12, 31, tzinfo=timezone.utc)),
            ("2026-12-31T08:30:00Z", datetime(2026, 12, 31, 8, 30, tzinfo=timezone.utc)),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_target_date(value) == expected

    def test_invalid(self):
        with pytest.raises(ValidationError):
            parse_target_date("31/12/2026")
