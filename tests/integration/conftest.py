"""
Fixtures for integration tests: the real service graph over the
testcontainers database.
"""

import pytest_asyncio

from src.core.logging.logger import get_logger
from src.core.services.container import ServiceContainer


@pytest_asyncio.fixture
async def services(database, config_manager, mock_event_bus):
    container = ServiceContainer(config_manager, mock_event_bus, get_logger("tests.integration"))
    await container.initialize()
    yield container
    await container.shutdown()
