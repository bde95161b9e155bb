"""
Unit Tests for the In-Memory Demo Store
=======================================

Purpose
-------
Test seeding, per-user isolation, id assignment, ordering and the
all-or-nothing rollback of a failed unit of work.
"""

from datetime import timedelta

import pytest

from src.database.models import DailyBattleReport, Goal, Milestone, PomodoroSession, TaskRow
from src.modules.store.demo_store import DEMO_GOALS, DEMO_TASKS, DemoDataStore
from src.modules.store.provider import StoreProvider
from tests.conftest import NOW

pytestmark = pytest.mark.unit


class TestSeeding:
    async def test_demo_user_is_seeded_once(self):
        store = DemoDataStore(seeded_users=["demo_user"])

        async with store.unit_of_work("demo_user") as uow:
            tasks = await uow.list_tasks()
            goals = await uow.list_goals()
        async with store.unit_of_work("demo_user") as uow:
            again = await uow.list_tasks()

        assert len(tasks) == len(DEMO_TASKS) == 3
        assert len(goals) == len(DEMO_GOALS) == 1
        assert [task.id for task in again] == [task.id for task in tasks]
        # newest first: the last seeded task lists first
        assert tasks[0].title == DEMO_TASKS[-1]["title"]

    async def test_other_users_start_empty(self):
        store = DemoDataStore(seeded_users=["demo_user"])

        async with store.unit_of_work("user-1") as uow:
            assert await uow.list_tasks() == []

    async def test_seeded_rows_have_column_defaults(self):
        store = DemoDataStore(seeded_users=["demo_user"])

        async with store.unit_of_work("demo_user") as uow:
            task = (await uow.list_tasks())[0]

        assert task.completed is False
        assert task.habit_streak == 0


class TestSessions:
    async def test_ids_and_user_assigned(self):
        store = DemoDataStore()

        async with store.unit_of_work("user-1") as uow:
            first = uow.add_task(TaskRow(title="a", created_at=NOW))
            second = uow.add_task(TaskRow(title="b", created_at=NOW + timedelta(minutes=1)))

        assert (first.id, second.id) == (1, 2)
        assert first.user_id == "user-1"

    async def test_tasks_are_private(self):
        store = DemoDataStore()
        async with store.unit_of_work("user-1") as uow:
            row = uow.add_task(TaskRow(title="mine", created_at=NOW))

        async with store.unit_of_work("user-2") as uow:
            assert await uow.get_task(row.id) is None

    async def test_failed_unit_of_work_rolls_back(self):
        # Arrange
        store = DemoDataStore()
        async with store.unit_of_work("user-1") as uow:
            row = uow.add_task(TaskRow(title="before", created_at=NOW))

        # Act
        with pytest.raises(RuntimeError):
            async with store.unit_of_work("user-1") as uow:
                task = await uow.get_task(row.id)
                task.title = "after"
                uow.add_task(TaskRow(title="extra", created_at=NOW))
                raise RuntimeError("abort")

        # Assert
        async with store.unit_of_work("user-1") as uow:
            tasks = await uow.list_tasks()
        assert [task.title for task in tasks] == ["before"]

    async def test_rollback_covers_focus_history(self):
        # Arrange
        store = DemoDataStore()
        day = NOW.replace(hour=0)
        async with store.unit_of_work("user-1") as uow:
            goal = uow.add_goal(Goal(title="Launch", created_at=NOW))
            report = uow.add_battle_report(DailyBattleReport(date=day, total_battle_time=25, task_details=[]))

        # Act
        with pytest.raises(RuntimeError):
            async with store.unit_of_work("user-1") as uow:
                uow.add_milestone(Milestone(goal_id=goal.id, title="Design", created_at=NOW))
                uow.add_pomodoro_session(PomodoroSession(work_duration=25, start_time=NOW, created_at=NOW))
                (await uow.get_battle_report(day, for_update=True)).total_battle_time = 50
                raise RuntimeError("abort")

        # Assert
        async with store.unit_of_work("user-1") as uow:
            assert await uow.list_milestones() == []
            assert await uow.list_pomodoro_sessions() == []
            assert (await uow.get_battle_report(day)).total_battle_time == 25
        assert report.total_battle_time == 25

    async def test_delete_goal_detaches_sessions_and_drops_milestones(self):
        store = DemoDataStore()
        async with store.unit_of_work("user-1") as uow:
            goal = uow.add_goal(Goal(title="Launch", created_at=NOW))
            uow.add_milestone(Milestone(goal_id=goal.id, title="Design", created_at=NOW))
            session = uow.add_pomodoro_session(
                PomodoroSession(goal_id=goal.id, work_duration=25, start_time=NOW, created_at=NOW)
            )

        async with store.unit_of_work("user-1") as uow:
            await uow.delete_goal(goal)
            assert await uow.list_milestones() == []
            assert [s.id for s in await uow.list_pomodoro_sessions()] == [session.id]

        assert session.goal_id is None

    async def test_unbound_session_rejects_user_data(self):
        store = DemoDataStore()

        with pytest.raises(RuntimeError):
            async with store.unit_of_work(None) as uow:
                await uow.list_tasks()


class TestStoreProvider:
    def test_in_memory_routes_everyone_to_demo_store(self):
        provider = StoreProvider.in_memory("demo_user")

        assert provider.store_for("demo_user") is provider.demo_store
        assert provider.store_for("user-1") is provider.demo_store
        assert provider.is_demo("demo_user")
        assert not provider.is_demo("user-1")

    def test_persistent_store_serves_real_users(self, mocker):
        persistent = mocker.Mock()
        provider = StoreProvider(DemoDataStore(), persistent, "demo_user")

        assert provider.store_for("user-1") is persistent
        assert provider.store_for("demo_user") is provider.demo_store
