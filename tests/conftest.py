"""Pytest configuration and shared fixtures for all tests.

This module provides:
- Test configuration and markers
- Shared fixtures for the conversation engine (repository, API configs, tools)
"""

import pytest
from _pytest.config import Config

from domain.models import ApiConfig
from infrastructure import InMemoryPlaygroundRepository
from tests.fixtures.factories import ApiConfigFactory, ToolFactory

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config: Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "asyncio: Async tests")


# ============================================================================
# ENGINE FIXTURES
# ============================================================================


@pytest.fixture
def repository() -> InMemoryPlaygroundRepository:
    """Provide an empty in-memory playground repository."""
    return InMemoryPlaygroundRepository()


@pytest.fixture
def api_config() -> ApiConfig:
    """Provide an OpenAI configuration with a key and endpoint."""
    return ApiConfigFactory.create()


@pytest.fixture
def weather_tool():
    """Provide a simulated get_weather({city}) tool."""
    return ToolFactory.create_weather_tool()
