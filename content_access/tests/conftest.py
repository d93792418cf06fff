"""
Shared fixtures for content access tests.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from shared.config import create_test_config
from shared.logging import configure_logging
from content_access.app.adapters.resources import ApiClient
from content_access.app.adapters.transport import TransportExecutor

from .helpers import FakeClock, RecordingHandler, SleepRecorder


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def config():
    return create_test_config()


@pytest.fixture
def handler():
    return RecordingHandler()


@pytest.fixture
def executor(config, handler, sleep_recorder):
    return TransportExecutor(config, transport=httpx.MockTransport(handler), sleep=sleep_recorder)


@pytest.fixture
def api_client(config, executor):
    return ApiClient(config, executor=executor)


@pytest.fixture
def mock_client():
    """Resource client double returning canned ``ApiResponse`` values."""
    client = AsyncMock()
    client.validate_create = lambda payload: None
    client.validate_update = lambda payload: None
    return client


@pytest.fixture(scope="session", autouse=True)
def structured_logging():
    configure_logging("content_access", "debug")
