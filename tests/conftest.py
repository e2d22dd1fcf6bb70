"""
Pytest configuration and fixtures
"""
import pytest
from datetime import datetime, timezone

from chat_client.core.config import ClientSettings
from chat_client.orchestration import SessionOrchestrator, SessionStateStore
from chat_client.realtime import ConnectionManager
from tests.mocks import FakeConnector, MockGateway

RECONNECT_DELAY = 0.05


@pytest.fixture
def test_settings():
    """Client settings with short delays for fast tests"""
    return ClientSettings(
        api_base_url="http://backend.test",
        ws_url="ws://backend.test/ws/chat",
        reconnect_delay_ms=int(RECONNECT_DELAY * 1000),
        connect_timeout=1.0,
        ping_interval=None,
        request_timeout=1.0,
        request_retry_attempts=3,
        request_retry_backoff=0,
        max_message_length=1000
    )


@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def connector():
    """Connector that succeeds unless outcomes are queued"""
    return FakeConnector()


@pytest.fixture
async def connection_manager(test_settings, connector):
    """Connection manager wired to the fake connector"""
    manager = ConnectionManager.from_settings(test_settings, connector=connector)
    yield manager
    await manager.shutdown()


@pytest.fixture
def store():
    counter = iter(range(1, 10_000))
    return SessionStateStore(id_factory=lambda: f"msg-{next(counter):03d}")


@pytest.fixture
def mock_gateway():
    return MockGateway()


@pytest.fixture
async def orchestrator(test_settings, mock_gateway, connection_manager, store):
    """Orchestrator with a mock gateway and a fake websocket connector"""
    orchestrator = SessionOrchestrator(
        settings=test_settings,
        gateway=mock_gateway,
        connection=connection_manager,
        store=store
    )
    yield orchestrator
    await orchestrator.shutdown()
