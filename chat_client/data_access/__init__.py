"""Request/response access to the backend REST API."""

from .base_gateway import BaseGateway
from .request_gateway import RequestGateway, HealthStatus, SessionInfo, HistoryMessage

__all__ = ['BaseGateway', 'RequestGateway', 'HealthStatus', 'SessionInfo', 'HistoryMessage']
