"""Mock objects for testing"""

from .mock_websocket import FakeWebSocket, FakeConnector, wait_until
from .mock_gateway import MockGateway
from .mock_responses import (
    message_response,
    SCENARIO_RESPONSE,
    FULL_RESPONSE,
    UNKNOWN_KIND,
    MALFORMED_PAYLOADS
)

__all__ = [
    'FakeWebSocket',
    'FakeConnector',
    'wait_until',
    'MockGateway',
    'message_response',
    'SCENARIO_RESPONSE',
    'FULL_RESPONSE',
    'UNKNOWN_KIND',
    'MALFORMED_PAYLOADS'
]
