"""
Task Domain Model.

Purpose
-------
Rich domain model for a task, habit or daily. Holds the completion
lifecycle; the ORM row (`TaskRow`) stays a plain schema.

Lifecycle
---------
- habit: long-lived, toggles `completed` across days through the habit
  streak tracker (`src.domain.progression.habit`)
- daily: Incomplete -> Completed, reset to Incomplete by the daily reset
- todo:  Incomplete -> Completed, terminal

Usage Example
-------------
>>> task = Task.from_row(task_row)
>>> bonus = task.complete(now)
>>> task.apply_to(task_row)
>>> for event in task.clear_domain_events():
...     await event_bus.publish(event.event_name, event.payload)
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from src.core.event.types import TASK_COMPLETED, TASK_UNCOMPLETED
from src.domain.models.base import AggregateRoot, validate_non_negative
from src.domain.progression import habit as habit_tracker
from src.domain.progression.rewards import Difficulty, Reward, TaskCategory, normalize_category
from src.modules.shared.exceptions import InvalidOperationError

if TYPE_CHECKING:
    from src.database.models.task import TaskRow


class Task(AggregateRoot):
    """
    Task aggregate.

    Business Rules
    --------------
    - A habit can be completed once per UTC day
    - A non-habit task cannot be completed twice
    - Only a completed task can be uncompleted; habits only on the same day
    - `habit_value` stays within [-3, 3]

    Domain Events
    -------------
    - task.completed
    - task.uncompleted
    """

    def __init__(
        self,
        task_id: Optional[int],
        user_id: str,
        title: str,
        category: TaskCategory = TaskCategory.TODO,
        difficulty: Difficulty = Difficulty.MEDIUM,
        completed: bool = False,
        completed_at: Optional[datetime] = None,
        exp_reward: int = 20,
        required_energy_balls: int = 1,
        habit: Optional[habit_tracker.HabitProgress] = None,
        skill_id: Optional[int] = None,
        goal_id: Optional[int] = None,
    ) -> None:
        super().__init__(task_id)
        validate_non_negative(exp_reward, "exp_reward")
        validate_non_negative(required_energy_balls, "required_energy_balls")

        self.user_id = user_id
        self.title = title
        self.category = category
        self.difficulty = difficulty
        self.completed = completed
        self.completed_at = completed_at
        self.exp_reward = exp_reward
        self.required_energy_balls = required_energy_balls
        self.skill_id = skill_id
        self.goal_id = goal_id
        self._habit = habit or habit_tracker.HabitProgress(completed=completed)

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def is_habit(self) -> bool:
        return self.category is TaskCategory.HABIT

    @property
    def habit(self) -> habit_tracker.HabitProgress:
        return self._habit

    @property
    def reward(self) -> Reward:
        """Stored reward; resolved once at creation time."""
        return Reward(exp=self.exp_reward, energy=self.required_energy_balls)

    # ========================================================================
    # BUSINESS LOGIC - COMPLETION
    # ========================================================================

    def complete(self, now: datetime) -> int:
        """
        Mark the task completed.

        Returns
        -------
        int
            Streak bonus XP (habits past a 7-day streak), 0 otherwise

        Raises
        ------
        DuplicateCompletionError
            Habit already completed today
        InvalidOperationError
            Non-habit task already completed
        """
        bonus = 0
        if self.is_habit:
            self._habit = habit_tracker.complete(self._habit, now, task_id=self.id)
            bonus = habit_tracker.streak_bonus(self._habit.streak)
        elif self.completed:
            raise InvalidOperationError("complete_task", "Task is already completed")

        self.completed = True
        self.completed_at = now

        self.add_domain_event(
            TASK_COMPLETED,
            {
                "user_id": self.user_id,
                "task_id": self.id,
                "category": self.category.value,
                "habit_streak": self._habit.streak if self.is_habit else None,
            },
        )
        return bonus

    def uncomplete(self, now: datetime) -> None:
        """
        Undo a completion.

        Habits go through the same-day rule; other tasks can be reverted
        whenever they are completed.

        Raises
        ------
        InvalidUncompleteError
            Habit not completed today
        InvalidOperationError
            Non-habit task is not completed
        """
        if self.is_habit:
            self._habit = habit_tracker.uncomplete(self._habit, now, task_id=self.id)
        elif not self.completed:
            raise InvalidOperationError("uncomplete_task", "Task is not completed")

        self.completed = False
        self.completed_at = None

        self.add_domain_event(
            TASK_UNCOMPLETED,
            {"user_id": self.user_id, "task_id": self.id, "category": self.category.value},
        )

    def reset_for_new_day(self) -> bool:
        """
        Clear yesterday's completion on a habit or daily.

        `last_completed_date` is kept so a habit's streak can continue
        tomorrow. Todos are never reset.

        Returns
        -------
        bool
            True when the task changed
        """
        if not self.category.is_repeating or not self.completed:
            return False
        self.completed = False
        if self.is_habit:
            self._habit = habit_tracker.HabitProgress(
                streak=self._habit.streak,
                value=self._habit.value,
                last_completed_at=self._habit.last_completed_at,
                completed=False,
            )
        return True

    # ========================================================================
    # ROW MAPPING
    # ========================================================================

    @classmethod
    def from_row(cls, row: TaskRow) -> Task:
        """Build the aggregate from its row; `habit_value` is clamped to [-3, 3]."""
        return cls(
            task_id=row.id,
            user_id=row.user_id,
            title=row.title,
            category=normalize_category(row.category),
            difficulty=Difficulty.parse(row.difficulty),
            completed=bool(row.completed),
            completed_at=row.completed_at,
            exp_reward=max(0, row.exp_reward or 0),
            required_energy_balls=max(0, row.required_energy_balls or 0),
            habit=habit_tracker.HabitProgress(
                streak=max(0, row.habit_streak or 0),
                value=habit_tracker.clamp_value(row.habit_value or 0.0),
                last_completed_at=row.last_completed_date,
                completed=bool(row.completed),
            ),
            skill_id=row.skill_id,
            goal_id=row.goal_id,
        )

    def apply_to(self, row: TaskRow) -> TaskRow:
        """Copy lifecycle state back onto the row."""
        row.completed = self.completed
        row.completed_at = self.completed_at
        if self.is_habit:
            row.habit_streak = self._habit.streak
            row.habit_value = self._habit.value
            row.last_completed_date = self._habit.last_completed_at
        return row
