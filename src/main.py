"""
Level Up Solo - Application Entry Point
=======================================

Bootstrap order
---------------
1. Config validation
2. Logging (configured on import of src.core.logging)
3. Database initialization + schema
4. Redis cache (optional)
5. ConfigManager initialization
6. Service container initialization
7. HTTP server (uvicorn) until SIGINT/SIGTERM
8. Graceful shutdown in reverse order
"""

import asyncio
import sys
from typing import Optional

import uvicorn

from src.api import create_app
from src.core.config.config import Config
from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event import event_bus
from src.core.logging.logger import get_logger, shutdown_logging
from src.core.redis.service import RedisService
from src.core.services.container import ServiceContainer
from src.modules.store import DemoDataStore, SqlDataStore, StoreProvider

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================

async def _startup() -> ServiceContainer:
    """Initialize all infrastructure components before serving requests."""
    logger.info("========== LEVEL UP SOLO INITIALIZATION START ==========")

    try:
        Config.validate()
        logger.info("✓ Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    try:
        await DatabaseService.initialize()
        await DatabaseService.create_tables()
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    if await RedisService.initialize():
        logger.info("✓ Redis cache connected")
    else:
        logger.warning("Redis cache unavailable; serving uncached reads")

    try:
        ConfigManager.initialize(event_bus=event_bus)
        logger.info("✓ Config manager initialized")
    except Exception as exc:
        logger.critical(f"Config manager initialization failed: {exc}", exc_info=True)
        raise

    stores = StoreProvider(
        demo_store=DemoDataStore(seeded_users=[Config.DEMO_USER_ID]),
        persistent_store=SqlDataStore(),
        demo_user_id=Config.DEMO_USER_ID,
    )
    container = ServiceContainer(
        config_manager=ConfigManager,
        event_bus=event_bus,
        logger=get_logger("src.core.services.container"),
        stores=stores,
    )
    await container.initialize()
    logger.info("✓ Service container initialized")

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return container


# ============================================================================
# Application Shutdown
# ============================================================================

async def _shutdown(container: Optional[ServiceContainer]) -> None:
    """Gracefully shut down services and infrastructure."""
    logger.info("========== LEVEL UP SOLO SHUTDOWN START ==========")

    if container is not None:
        try:
            await container.shutdown()
            logger.info("✓ Service container shut down")
        except Exception as exc:
            logger.error(f"Service container shutdown error: {exc}", exc_info=True)

    try:
        await RedisService.shutdown()
        logger.info("✓ Redis connection closed")
    except Exception as exc:
        logger.error(f"Redis shutdown error: {exc}", exc_info=True)

    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Application Entrypoint
# ============================================================================

async def main() -> None:
    """
    Lifecycle:
        1. Validate configuration
        2. Initialize infrastructure (DB, Redis, ConfigManager, Services)
        3. Serve HTTP; uvicorn handles SIGINT/SIGTERM
        4. Shut down gracefully
    """
    container: Optional[ServiceContainer] = None

    try:
        container = await _startup()
        server = uvicorn.Server(
            uvicorn.Config(
                create_app(container),
                host=Config.HOST,
                port=Config.PORT,
                log_config=None,
                access_log=False,
            )
        )
        logger.info("Starting HTTP server", extra={"host": Config.HOST, "port": Config.PORT})
        await server.serve()

    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise

    finally:
        await _shutdown(container)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server manually stopped via keyboard interrupt.")
    except Exception as exc:
        logger.critical(f"Startup failure: {exc}", exc_info=True)
        sys.exit(1)
    finally:
        shutdown_logging()
