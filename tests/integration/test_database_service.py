"""
Integration Tests for the Database Schema
=========================================

Purpose
-------
Test database operations with real PostgreSQL using testcontainers.
Verifies the Level Up Solo schema, transaction management and the
constraints the services rely on.

Test Coverage
-------------
- Database connection and schema creation
- Transaction commit and rollback
- Model persistence and JSONB columns
- Cascades and ON DELETE SET NULL
- Constraint violations

Testing Strategy
----------------
- Integration tests (uses testcontainers for real PostgreSQL)
- Tests actual database behavior, not mocks
- Each test gets clean database session (automatic rollback)
"""

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, ProgrammingError

from src.database.models import ActivityLog, Goal, Skill, TaskRow, User, UserStatsRow

pytestmark = pytest.mark.asyncio(loop_scope="session")


async def add_user(db_session, user_id: str = "user-db-1", email: str = "db@example.com") -> User:
    user = User(id=user_id, email=email, first_name="Db")
    db_session.add(user)
    await db_session.flush()
    return user


# ============================================================================
# DATABASE CONNECTION TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseConnection:
    """Test database connection and basic operations."""

    async def test_database_connection(self, db_session):
        """Test that we can connect to the database."""
        # Act
        result = await db_session.execute(text("SELECT 1 as value"))
        row = result.fetchone()

        # Assert
        assert row is not None
        assert row.value == 1

    async def test_database_schema_created(self, database_engine):
        """Test that every table is created."""
        # Arrange
        async with database_engine.connect() as conn:
            # Act - Query table existence
            result = await conn.execute(
                text(
                    """
                    SELECT table_name
                    FROM information_schema.tables
                    WHERE table_schema = 'public'
                    """
                )
            )
            tables = {row.table_name for row in result.fetchall()}

        # Assert
        assert {
            "users",
            "user_stats",
            "tasks",
            "skills",
            "goals",
            "activity_logs",
            "milestones",
            "pomodoro_sessions",
            "daily_battle_reports",
        } <= tables


# ============================================================================
# TRANSACTION TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseTransactions:
    """Test transaction management and isolation."""

    async def test_transaction_commit(self, db_session):
        """Test that changes are visible within the transaction."""
        # Arrange
        await add_user(db_session)

        # Act
        result = await db_session.execute(
            text("SELECT email FROM users WHERE id = :id"),
            {"id": "user-db-1"},
        )

        # Assert
        row = result.fetchone()
        assert row is not None
        assert row.email == "db@example.com"

    async def test_transaction_rollback_automatic(self, db_session):
        """The previous test's user is gone: each test rolls back."""
        result = await db_session.execute(
            text("SELECT count(*) FROM users WHERE id = :id"),
            {"id": "user-db-1"},
        )

        assert result.scalar() == 0


# ============================================================================
# MODEL PERSISTENCE TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestModelPersistence:
    """Test persisting and retrieving database models."""

    async def test_stats_defaults(self, db_session):
        # Arrange
        await add_user(db_session)
        stats = UserStatsRow(user_id="user-db-1")

        # Act
        db_session.add(stats)
        await db_session.flush()
        await db_session.refresh(stats)

        # Assert
        assert stats.level == 1
        assert stats.energy_balls == 18
        assert stats.experience_to_next == 100
        assert stats.created_at is not None

    async def test_task_with_tags_and_links(self, db_session):
        # Arrange
        await add_user(db_session)
        skill = Skill(user_id="user-db-1", name="意志执行力")
        goal = Goal(user_id="user-db-1", title="Run a marathon", skill_tags=["意志"])
        db_session.add_all([skill, goal])
        await db_session.flush()

        # Act
        task = TaskRow(
            user_id="user-db-1",
            title="Morning run",
            category="habit",
            skill_id=skill.id,
            goal_id=goal.id,
            tags=["health", "outdoor"],
        )
        db_session.add(task)
        await db_session.flush()

        stmt = select(TaskRow).where(TaskRow.user_id == "user-db-1")
        found = (await db_session.execute(stmt)).scalar_one()

        # Assert
        assert found.tags == ["health", "outdoor"]
        assert found.skill_id == skill.id
        assert found.habit_streak == 0
        assert found.completed is False

    async def test_update_goal(self, db_session):
        # Arrange
        await add_user(db_session)
        goal = Goal(user_id="user-db-1", title="Read 12 books")
        db_session.add(goal)
        await db_session.flush()

        # Act
        goal.progress = 0.25
        await db_session.flush()
        await db_session.refresh(goal)

        # Assert
        assert goal.progress == 0.25
        assert goal.exp_reward == 50

    async def test_deleting_goal_unlinks_tasks(self, db_session):
        # Arrange
        await add_user(db_session)
        goal = Goal(user_id="user-db-1", title="Temporary")
        db_session.add(goal)
        await db_session.flush()
        task = TaskRow(user_id="user-db-1", title="Linked", goal_id=goal.id)
        db_session.add(task)
        await db_session.flush()

        # Act
        await db_session.execute(text("DELETE FROM goals WHERE id = :id"), {"id": goal.id})
        result = await db_session.execute(
            text("SELECT goal_id FROM tasks WHERE id = :id"), {"id": task.id}
        )

        # Assert
        assert result.scalar() is None

    async def test_deleting_user_cascades(self, db_session):
        # Arrange
        await add_user(db_session)
        db_session.add_all(
            [
                UserStatsRow(user_id="user-db-1"),
                ActivityLog(user_id="user-db-1", action="task_complete", exp_gained=20),
            ]
        )
        await db_session.flush()

        # Act
        await db_session.execute(text("DELETE FROM users WHERE id = 'user-db-1'"))
        stats = await db_session.execute(text("SELECT count(*) FROM user_stats WHERE user_id = 'user-db-1'"))
        logs = await db_session.execute(text("SELECT count(*) FROM activity_logs WHERE user_id = 'user-db-1'"))

        # Assert
        assert stats.scalar() == 0
        assert logs.scalar() == 0


# ============================================================================
# CONCURRENT ACCESS TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.slow
class TestConcurrentAccess:
    """Test concurrent database access and connection pooling."""

    async def test_multiple_sessions(self, database_engine):
        """Test that multiple sessions can be created from the engine."""
        # Arrange
        from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

        async_session_maker = async_sessionmaker(
            database_engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        # Act - Create multiple sessions
        async with async_session_maker() as session1:
            async with async_session_maker() as session2:
                result1 = await session1.execute(text("SELECT 1"))
                result2 = await session2.execute(text("SELECT 2"))

                # Assert
                assert result1.scalar() == 1
                assert result2.scalar() == 2


# ============================================================================
# ERROR HANDLING TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseErrorHandling:
    """Test database error handling."""

    async def test_duplicate_email_rejected(self, db_session):
        # Arrange
        await add_user(db_session)

        # Act & Assert
        db_session.add(User(id="user-db-2", email="db@example.com"))
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_one_stats_row_per_user(self, db_session):
        await add_user(db_session)
        db_session.add(UserStatsRow(user_id="user-db-1"))
        await db_session.flush()

        db_session.add(UserStatsRow(user_id="user-db-1"))
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_task_requires_existing_user(self, db_session):
        db_session.add(TaskRow(user_id="nobody", title="Orphan"))

        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_invalid_sql_query(self, db_session):
        """Test that invalid SQL queries raise appropriate errors."""
        with pytest.raises(ProgrammingError):
            await db_session.execute(text("SELECT * FROM nonexistent_table"))
