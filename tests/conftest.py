"""
Pytest Configuration and Fixtures for Level Up Solo Tests
=========================================================

Purpose
-------
Centralized test fixtures and configuration for the Level Up Solo test
suite. Provides reusable fixtures for the database, the service container,
the HTTP app and authentication.

Responsibilities
----------------
- Testcontainers setup for PostgreSQL and Redis
- Database session management for integration tests
- Service container backed by the in-memory store for unit tests
- FastAPI TestClient with bearer tokens for the demo and a regular user

Non-Responsibilities
--------------------
- Test implementation (delegated to test files)
- Business logic (delegated to services and domain models)
- Production configuration (test-specific only)

Architecture Notes
------------------
- Unit tests use the in-memory store (fast, isolated, no network)
- Integration tests use testcontainers (real PostgreSQL)
- Fixtures follow scope hierarchy: session > module > function
- Database fixtures provide clean slate per test
"""

from __future__ import annotations

import os

# Config reads the environment once, when src.core.config is first imported
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ["OPENAI_API_KEY"] = ""
os.environ.pop("REDIS_URL", None)
os.environ.setdefault("JWT_SECRET", "level-up-solo-test-secret-0123456789abcdef")

from datetime import datetime, timezone  # noqa: E402
from typing import Any, AsyncGenerator, Dict, Generator, List  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from testcontainers.postgres import PostgresContainer  # noqa: E402
from testcontainers.redis import RedisContainer  # noqa: E402

import src.database.models  # noqa: E402,F401
from src.api import create_app  # noqa: E402
from src.core.cache.service import CacheService  # noqa: E402
from src.core.config.config import Config  # noqa: E402
from src.core.config.manager import ConfigManager  # noqa: E402
from src.core.database.base import Base  # noqa: E402
from src.core.event.bus import EventBus  # noqa: E402
from src.core.logging.logger import get_logger  # noqa: E402
from src.core.services.container import ServiceContainer  # noqa: E402
from src.modules.store import StoreProvider  # noqa: E402

logger = get_logger(__name__)

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
TEST_USER_ID = "user-1"
OTHER_USER_ID = "user-2"

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Register markers."""
    config.addinivalue_line("markers", "unit: fast tests without external services")
    config.addinivalue_line("markers", "domain: pure progression rules")
    config.addinivalue_line("markers", "api: HTTP tests through the FastAPI app")
    config.addinivalue_line("markers", "integration: tests against real infrastructure")
    config.addinivalue_line("markers", "database: tests that need PostgreSQL")
    config.addinivalue_line("markers", "slow: tests that take noticeably longer")


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL testcontainer for integration tests.

    Scope: session (container persists across all tests)
    Uses: Integration tests that need real database
    """
    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(
        image="postgres:17-alpine",
        driver="asyncpg",
    )
    container.start()

    logger.info("PostgreSQL testcontainer started")

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer, None, None]:
    """
    Start Redis testcontainer for integration tests.

    Scope: session (container persists across all tests)
    Uses: Integration tests that need real Redis
    """
    logger.info("Starting Redis testcontainer...")
    container = RedisContainer(image="redis:7-alpine")
    container.start()

    yield container

    logger.info("Stopping Redis testcontainer...")
    container.stop()


@pytest.fixture(scope="session")
def database_url(postgres_container: PostgresContainer) -> str:
    # Older testcontainers releases ignore `driver` and hand out psycopg2 URLs
    return postgres_container.get_connection_url().replace("psycopg2", "asyncpg")


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def database_engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create async database engine connected to testcontainer.

    Scope: session (one engine for all tests)
    Uses: Integration tests that need database access
    """
    engine = create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )

    async with engine.begin() as conn:
        logger.info("Creating database schema...")
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    logger.info("Disposing database engine...")
    await engine.dispose()


@pytest_asyncio.fixture(loop_scope="session")
async def db_session(
    database_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Create clean database session for each test.

    Scope: function (new session per test, clean slate)
    Uses: Integration tests that need to write to database

    Features:
    - Automatic rollback after each test (clean slate)
    """
    async_session_maker = async_sessionmaker(
        database_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        transaction = await session.begin()
        yield session
        await transaction.rollback()


# ============================================================================
# SERVICE FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def config_manager() -> Generator[type[ConfigManager], None, None]:
    """
    ConfigManager loaded from the built-in defaults and config/*.yaml.

    Overrides applied by a test are dropped afterwards.
    """
    ConfigManager.reset()
    ConfigManager.initialize()
    yield ConfigManager
    ConfigManager.reset()


@pytest.fixture
def event_bus() -> EventBus:
    """Fresh EventBus per test."""
    return EventBus()


class PublishedEvents:
    """Read-only view over the calls recorded by a spy on `EventBus.publish`."""

    def __init__(self, spy: Any) -> None:
        self._spy = spy

    @property
    def names(self) -> List[str]:
        return [call.args[0] for call in self._spy.call_args_list]

    def payloads(self, event_name: str) -> List[Dict[str, Any]]:
        return [call.args[1] for call in self._spy.call_args_list if call.args[0] == event_name]

    def clear(self) -> None:
        self._spy.reset_mock()


@pytest.fixture
def published_events(event_bus: EventBus, mocker) -> PublishedEvents:
    """
    Record every event published through `event_bus`.

    Usage:
        await container.tasks.complete_task(user_id, task_id)
        assert "task.completed" in published_events.names
    """
    return PublishedEvents(mocker.spy(event_bus, "publish"))


@pytest.fixture
def stores() -> StoreProvider:
    """In-memory store for every user; `demo_user` is seeded."""
    return StoreProvider.in_memory(Config.DEMO_USER_ID)


@pytest.fixture(autouse=True)
def reset_cache_stats() -> Generator[None, None, None]:
    CacheService.reset_stats()
    yield
    CacheService.reset_stats()


@pytest_asyncio.fixture
async def container(
    config_manager: type[ConfigManager],
    event_bus: EventBus,
    stores: StoreProvider,
) -> AsyncGenerator[ServiceContainer, None]:
    """
    Initialized ServiceContainer over the in-memory store.

    AI calls use the deterministic fallbacks (no API key in tests).
    """
    service_container = ServiceContainer(
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.container"),
        stores=stores,
    )
    await service_container.initialize()
    yield service_container
    await service_container.shutdown()


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    Uses: Unit tests that only need to assert on publishing
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock(return_value="listener")
    mock_bus.unsubscribe = mocker.MagicMock(return_value=True)
    mock_bus.drain = mocker.AsyncMock()
    return mock_bus


@pytest.fixture
def mock_openai_client(mocker):
    """
    Stand-in for `AsyncOpenAI`: `chat.completions.create` is an AsyncMock.

    Usage:
        mock_openai_client.reply('{"category": "habit"}')
    """
    client = mocker.MagicMock()
    client.chat.completions.create = mocker.AsyncMock()

    def reply(content: str) -> None:
        message = mocker.MagicMock()
        message.content = content
        choice = mocker.MagicMock()
        choice.message = message
        response = mocker.MagicMock()
        response.choices = [choice]
        client.chat.completions.create.return_value = response

    client.reply = reply
    return client


# ============================================================================
# HTTP FIXTURES (API Tests)
# ============================================================================


@pytest.fixture
def client(
    config_manager: type[ConfigManager],
    event_bus: EventBus,
    stores: StoreProvider,
) -> Generator[TestClient, None, None]:
    """
    TestClient around an app whose container runs on the client's event loop.
    """
    service_container = ServiceContainer(
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.api"),
        stores=stores,
    )
    with TestClient(create_app(service_container)) as test_client:
        test_client.portal.call(service_container.initialize)
        yield test_client
        test_client.portal.call(service_container.shutdown)


def _bearer(test_client: TestClient, user_id: str, email: str) -> Dict[str, str]:
    tokens = test_client.app.state.container.auth.issue_tokens(user_id, email)
    return {"Authorization": f"Bearer {tokens['accessToken']}"}


@pytest.fixture
def demo_headers(client: TestClient) -> Dict[str, str]:
    """Authorization header for the seeded demo account."""
    return _bearer(client, Config.DEMO_USER_ID, Config.DEMO_EMAIL)


@pytest.fixture
def user_headers(client: TestClient) -> Dict[str, str]:
    """Authorization header for an empty regular account."""
    return _bearer(client, TEST_USER_ID, "player@example.com")
