"""
Error taxonomy for the realtime session client.
None of these errors is fatal to the process.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Error categories reported to callers and error subscribers."""
    NOT_CONNECTED = "not_connected"
    TRANSPORT = "transport"
    MALFORMED_PAYLOAD = "malformed_payload"
    UNKNOWN_EVENT_KIND = "unknown_event_kind"
    INVALID_SENTIMENT = "invalid_sentiment"
    VALIDATION = "validation"
    BOOTSTRAP = "bootstrap"


class ChatClientError(Exception):
    """Base class for all client errors."""

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value}: {self.message})"


class TransportError(ChatClientError):
    """Connection refused, reset or timed out. Triggers the reconnect policy."""

    kind = ErrorKind.TRANSPORT


class DecodeError(ChatClientError):
    """
    An inbound payload that could not be turned into an event.

    Returned by the codec rather than raised, so the connection loop
    can log and discard it without unwinding.
    """

    def __init__(self, kind: ErrorKind, message: str, raw: Any = None):
        super().__init__(message, kind)
        self.raw = raw


class EncodeError(ChatClientError):
    """Outbound text that cannot be encoded."""

    kind = ErrorKind.VALIDATION


class MessageValidationError(ChatClientError):
    """Outbound text rejected at the call boundary."""

    kind = ErrorKind.VALIDATION


class GatewayError(ChatClientError):
    """A request/response call to the REST backend failed."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class SessionBootstrapError(ChatClientError):
    """The backend is unreachable or unhealthy at startup."""

    kind = ErrorKind.BOOTSTRAP

    def __init__(self, message: str, stage: str = "health_probe"):
        super().__init__(message)
        self.stage = stage
