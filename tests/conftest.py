"""
Pytest configuration and shared fixtures.

- Unit tests mock collaborators (event bus, config, repositories)
- Integration tests run services against a PostgreSQL testcontainer
  through the real DatabaseService
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from sqlalchemy import delete
from testcontainers.postgres import PostgresContainer

from src.core.config.config_manager import ConfigManager
from src.core.database.base import Base
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.modules.shared.permission_context import PermissionContext

logger = get_logger(__name__)

GUILD_ID = 111222333
OWNER_ID = 1000
ACTOR_ID = 2000
TARGET_ID = 3000


def pytest_configure(config):
    os.environ["ENVIRONMENT"] = "testing"
    os.environ.setdefault("LOG_LEVEL", "DEBUG")


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """PostgreSQL container shared by every integration test in the session."""
    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    container.start()
    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def database(postgres_container: PostgresContainer) -> AsyncGenerator[type, None]:
    """
    DatabaseService bound to the container, with every table emptied after
    the test. Services under test use it exactly as in production.
    """
    url = postgres_container.get_connection_url().replace("psycopg2", "asyncpg")
    await DatabaseService.initialize(url)
    await DatabaseService.create_all()

    yield DatabaseService

    async with DatabaseService.get_transaction() as session:
        for table in reversed(Base.metadata.sorted_tables):
            await session.execute(delete(table))
    await DatabaseService.shutdown()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator:
    async with database.get_transaction() as session:
        yield session


@pytest.fixture
def config_manager() -> Generator[type, None, None]:
    """The real ConfigManager loaded from config/, overrides cleared afterwards."""
    ConfigManager.initialize()
    yield ConfigManager
    ConfigManager.clear_overrides()


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock()
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_config_manager(mocker):
    """Config that answers every lookup with the caller's default."""
    mock_config = mocker.MagicMock()
    mock_config.get = mocker.MagicMock(side_effect=lambda key, default=None: default)
    return mock_config


@pytest.fixture
def mock_logger(mocker):
    return mocker.MagicMock()


@pytest.fixture
def mock_session(mocker):
    return mocker.MagicMock(name="session")


@pytest.fixture
def patch_database(mocker, mock_session):
    """Route DatabaseService session/transaction helpers to ``mock_session``."""

    @asynccontextmanager
    async def _session():
        yield mock_session

    mocker.patch.object(DatabaseService, "get_session", side_effect=_session)
    mocker.patch.object(DatabaseService, "get_transaction", side_effect=_session)
    return mock_session


# ============================================================================
# PERMISSION CONTEXTS
# ============================================================================


@pytest.fixture
def owner_context() -> PermissionContext:
    return PermissionContext(guild_id=GUILD_ID, user_id=OWNER_ID, is_guild_owner=True)


@pytest.fixture
def member_context() -> PermissionContext:
    return PermissionContext(guild_id=GUILD_ID, user_id=ACTOR_ID, user_roles=(555,))


# ============================================================================
# DISCORD.PY MOCK FIXTURES
# ============================================================================


@pytest.fixture
def mock_interaction(mocker):
    """Slash-command interaction whose response has not been used yet."""
    interaction = mocker.MagicMock()
    interaction.user.id = ACTOR_ID
    interaction.guild_id = GUILD_ID
    interaction.guild.id = GUILD_ID
    interaction.response.is_done = mocker.MagicMock(return_value=False)
    interaction.response.send_message = mocker.AsyncMock()
    interaction.response.defer = mocker.AsyncMock()
    interaction.followup.send = mocker.AsyncMock()
    return interaction
