"""
Pytest configuration and shared fixtures for the TalkBack relay test suite.

This module provides common fixtures and configuration for all tests.
"""

import pytest
import pytest_asyncio

from talkback_relay.config.settings import RelayConfig
from talkback_relay.core import RelayCoordinator

from tests.helpers import make_websocket


@pytest.fixture
def mock_config():
    """Create a configuration for testing."""
    return RelayConfig(
        host="127.0.0.1",
        port=0,
        ping_interval=0,
        api_enabled=False,
        auth_token="test-token",
        log_level="DEBUG",
    )


@pytest.fixture
def open_config():
    """Configuration without announce credentials."""
    return RelayConfig(host="127.0.0.1", port=0, ping_interval=0, api_enabled=False)


@pytest.fixture
def mock_websocket():
    """Create a mock WebSocket connection for testing."""
    return make_websocket("ws-1")


@pytest_asyncio.fixture
async def coordinator():
    """A running RelayCoordinator."""
    relay_coordinator = RelayCoordinator()
    await relay_coordinator.start()
    yield relay_coordinator
    await relay_coordinator.stop()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
