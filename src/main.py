"""
Progression Engine - Application Entry Point
============================================

Bootstrap
---------
- Logging setup
- Config validation
- Database initialization and schema creation
- Balance file loading
- Service container initialization
- Startup decay check for the active profile
- Graceful shutdown

Run with ``python -m src.main [profile_id]``.
"""

import asyncio
import signal
import sys
from typing import Optional

from src.core.config.config import Config
from src.core.database.service import DatabaseService
from src.core.event import event_bus
from src.core.logging.logger import get_logger, setup_logging, shutdown_logging
from src.core.services.container import ServiceContainer
from src.modules.progression.sql_store import SqlRecordStore
from src.modules.shared.balance import load_balance_config

logger = get_logger(__name__)

DEFAULT_PROFILE_ID = "local"


# ============================================================================
# Application Bootstrap
# ============================================================================

async def _startup() -> ServiceContainer:
    """Initialize all infrastructure components and build the services."""
    logger.info("========== PROGRESSION ENGINE INITIALIZATION START ==========")

    # Step 1: Validate configuration early
    try:
        Config.validate()
        logger.info("✓ Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    # Step 2: Initialize database service
    try:
        await DatabaseService.initialize()
        await DatabaseService.create_schema()
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    # Step 3: Load balance values
    try:
        balance = load_balance_config()
        logger.info("✓ Balance configuration loaded")
    except Exception as exc:
        logger.critical(f"Balance configuration failed: {exc}", exc_info=True)
        raise

    # Step 4: Initialize service container
    try:
        container = ServiceContainer(
            SqlRecordStore(DatabaseService),
            Config,
            event_bus,
            get_logger("src.core.services.container"),
            balance=balance,
        )
        container.initialize()
        logger.info("✓ Service container initialized")
    except Exception as exc:
        logger.critical(f"Service container initialization failed: {exc}", exc_info=True)
        raise

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return container


# ============================================================================
# Application Shutdown
# ============================================================================

async def _shutdown(container: Optional[ServiceContainer]) -> None:
    """Shut down services and infrastructure."""
    logger.info("========== PROGRESSION ENGINE SHUTDOWN START ==========")

    if container is not None:
        container.shutdown()
        logger.info("✓ Service container shut down")

    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Application Entrypoint
# ============================================================================

async def main(profile_id: str = DEFAULT_PROFILE_ID) -> None:
    """
    Entry point.

    Lifecycle:
        1. Initialize infrastructure (DB, balance, services)
        2. Load or create the profile
        3. Run the startup decay check
        4. Shut down
    """
    container: Optional[ServiceContainer] = None

    try:
        container = await _startup()

        profile = await container.profile.get_or_create_profile(profile_id)
        result = await container.lifecycle.initialize(profile.id)

        for warning in result.warnings:
            logger.warning(warning.message)
        logger.info(
            "Startup decay check finished",
            extra={"decay_applied": result.applied, "skipped_reason": result.skipped_reason},
        )

    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise

    except Exception as exc:
        logger.critical(f"Fatal startup error: {exc}", exc_info=True)
        sys.exit(1)

    finally:
        await _shutdown(container)


# ============================================================================
# Process Startup
# ============================================================================

def _install_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    try:
        loop.add_signal_handler(signal.SIGTERM, loop.stop)
        logger.debug("SIGTERM handler installed")
    except NotImplementedError:
        logger.debug("SIGTERM not supported on this platform (likely Windows)")


def run() -> None:
    setup_logging()
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _install_signal_handlers(loop)

    try:
        loop.run_until_complete(main(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_PROFILE_ID))
    except KeyboardInterrupt:
        logger.info("Manually stopped via keyboard interrupt.")
    finally:
        loop.close()
        shutdown_logging()


if __name__ == "__main__":
    run()
