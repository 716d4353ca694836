"""
Application entry point.

Bootstrap order
---------------
1. Logging and configuration validation
2. Database engine (tables created when missing)
3. ConfigManager (defaults plus YAML under config/)
4. EventBus and ServiceContainer
5. Bot start

Shutdown runs in reverse and never raises.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Optional, Tuple

from src.bot.bot import LawFirmBot
from src.core.config.config import Config
from src.core.config.config_manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event.bus import EventBus
from src.core.logging.logger import get_logger, setup_logging, shutdown_logging
from src.core.services.container import ServiceContainer

logger = get_logger(__name__)


# ============================================================================
# Bootstrap
# ============================================================================

async def _startup() -> Tuple[LawFirmBot, ServiceContainer]:
    logger.info("========== LAW FIRM BOT INITIALIZATION START ==========")

    try:
        Config.validate()
        logger.info("Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    try:
        await DatabaseService.initialize()
        await DatabaseService.create_all()
        logger.info("Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    try:
        ConfigManager.initialize()
        logger.info("Config manager initialized")
    except Exception as exc:
        logger.critical(f"Config manager initialization failed: {exc}", exc_info=True)
        raise

    event_bus = EventBus()
    try:
        container = ServiceContainer(
            config_manager=ConfigManager,
            event_bus=event_bus,
            logger=get_logger("src.core.services.container"),
        )
        await container.initialize()
        logger.info("Service container initialized")
    except Exception as exc:
        logger.critical(f"Service container initialization failed: {exc}", exc_info=True)
        raise

    bot = LawFirmBot(ConfigManager, container, event_bus)
    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return bot, container


# ============================================================================
# Shutdown
# ============================================================================

async def _shutdown(bot: Optional[LawFirmBot], container: Optional[ServiceContainer]) -> None:
    logger.info("========== SHUTDOWN START ==========")

    if bot and not bot.is_closed():
        try:
            await bot.close()
            logger.info("Bot closed")
        except Exception as exc:
            logger.error(f"Error while closing bot: {exc}", exc_info=True)

    if container is not None:
        try:
            await container.shutdown()
            logger.info("Service container shut down")
        except Exception as exc:
            logger.error(f"Service container shutdown error: {exc}", exc_info=True)

    try:
        await DatabaseService.shutdown()
        logger.info("Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Entrypoint
# ============================================================================

async def main() -> None:
    bot: Optional[LawFirmBot] = None
    container: Optional[ServiceContainer] = None

    try:
        bot, container = await _startup()
        logger.info("Starting Discord bot...")
        await bot.start(Config.DISCORD_TOKEN)

    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise

    except KeyboardInterrupt:
        logger.info("Manual shutdown via keyboard interrupt.")

    except Exception as exc:
        logger.critical(f"Fatal startup error: {exc}", exc_info=True)
        sys.exit(1)

    finally:
        await _shutdown(bot, container)


def _install_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    try:
        loop.add_signal_handler(signal.SIGTERM, loop.stop)
        logger.debug("SIGTERM handler installed")
    except NotImplementedError:
        logger.debug("SIGTERM not supported on this platform")


if __name__ == "__main__":
    setup_logging()
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _install_signal_handlers(loop)

    try:
        loop.run_until_complete(main())
    except KeyboardInterrupt:
        logger.info("Bot manually stopped via keyboard interrupt.")
    except Exception as exc:
        logger.critical(f"Startup failure: {exc}", exc_info=True)
        sys.exit(1)
    finally:
        loop.close()
        logger.info("Event loop closed.")
        shutdown_logging()
