"""
REST gateway for the non-realtime backend calls.
Health probe, session bookkeeping and message history, with retry on transient failures.
"""

import httpx
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)

from chat_client.core.errors import GatewayError
from chat_client.data_access.base_gateway import BaseGateway
from chat_client.models import SessionIdentity

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class HealthStatus(BaseModel):
    """Response of GET /health."""
    status: str
    active_connections: int = 0
    timestamp: Optional[datetime] = None


class SessionInfo(BaseModel):
    """Server-side session record."""
    id: str
    created_at: datetime
    total_messages: int = 0
    total_words: int = 0
    questions_count: int = 0

    def to_identity(self) -> SessionIdentity:
        return SessionIdentity(id=self.id, created_at=self.created_at)


class HistoryMessage(BaseModel):
    """One persisted message with its analytics."""
    id: int
    session_id: str
    content: str
    word_count: int
    char_count: int
    sentence_count: int
    is_question: bool
    sentiment: str
    timestamp: datetime


class MessageHistory(BaseModel):
    messages: List[HistoryMessage] = []


class RequestGateway(BaseGateway):
    """
    Stateless request/response client for the backend REST API.

    Connection errors and timeouts are retried with exponential backoff;
    HTTP error statuses are not retried and raise GatewayError.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        retry_attempts: int = 3,
        retry_backoff: float = 1.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the gateway.

        Args:
            base_url: Backend base URL, e.g. http://localhost:8000
            timeout: Request timeout in seconds
            retry_attempts: Total attempts for transient failures
            retry_backoff: Multiplier for the exponential wait between attempts
            headers: Extra default headers
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(base_url)
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.default_headers = {'Content-Type': 'application/json', **(headers or {})}
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "RequestGateway":
        """Create a gateway from ClientSettings."""
        return cls(
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
            retry_attempts=settings.request_retry_attempts,
            retry_backoff=settings.request_retry_backoff,
            transport=transport
        )

    async def connect(self) -> None:
        """Create the HTTP client."""
        if self.client is not None:
            return
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            headers=self.default_headers,
            transport=self.transport
        )
        self.is_connected = True
        logger.debug(f"HTTP client ready for {self.base_url}")

    async def disconnect(self) -> None:
        """Close HTTP client and cleanup resources."""
        if self.client:
            await self.client.aclose()
            self.client = None
            self.is_connected = False
            logger.debug(f"HTTP client for {self.base_url} closed")

    async def request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        Execute an HTTP request with retry on transient failures.

        Args:
            method: HTTP method
            endpoint: Path relative to the base URL
            **kwargs: Extra arguments for httpx (params, json, ...)

        Returns:
            Decoded JSON body, or None for an empty body

        Raises:
            GatewayError: on HTTP error status, exhausted retries or a non-JSON body
        """
        if self.client is None:
            await self.connect()

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=self.retry_backoff, max=10),
                retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True
            ):
                with attempt:
                    logger.debug(f"Making {method} request to {endpoint}")
                    response = await self.client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Request failed for {method} {endpoint}: {e}")
            raise GatewayError(f"{method} {endpoint} failed: {e}") from e

        if response.is_error:
            message = self._error_message(response)
            logger.error(f"HTTP error {response.status_code} for {method} {endpoint}: {message}")
            raise GatewayError(message, status_code=response.status_code)

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(f"Invalid JSON from {endpoint}: {e}", status_code=response.status_code) from e

    def _error_message(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            message = data.get('message') or data.get('detail')
            if message:
                return str(message)
        return f"HTTP {response.status_code}"

    def _parse(self, model: Type[ModelT], data: Any, endpoint: str) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise GatewayError(f"Unexpected response from {endpoint}: {e.error_count()} error(s)") from e

    async def health_check(self) -> HealthStatus:
        """GET /health."""
        return self._parse(HealthStatus, await self.request('GET', '/health'), '/health')

    async def is_healthy(self) -> bool:
        """True only if /health answers with status "healthy". Never raises."""
        try:
            health = await self.health_check()
        except GatewayError as e:
            logger.warning(f"Health check failed: {e}")
            return False
        return health.status == 'healthy'

    async def create_session(self) -> SessionInfo:
        """POST /sessions."""
        return self._parse(SessionInfo, await self.request('POST', '/sessions'), '/sessions')

    async def get_session(self, session_id: str) -> SessionInfo:
        endpoint = f'/sessions/{session_id}'
        return self._parse(SessionInfo, await self.request('GET', endpoint), endpoint)

    async def delete_session(self, session_id: str) -> None:
        await self.request('DELETE', f'/sessions/{session_id}')

    async def get_message_history(self, session_id: str) -> List[HistoryMessage]:
        endpoint = f'/sessions/{session_id}/messages'
        return self._parse(MessageHistory, await self.request('GET', endpoint), endpoint).messages

    async def get_session_stats(self, session_id: str) -> Dict[str, Any]:
        """GET /sessions/{id}/stats. The shape is backend-defined, returned as-is."""
        endpoint = f'/sessions/{session_id}/stats'
        data = await self.request('GET', endpoint)
        if not isinstance(data, dict):
            raise GatewayError(f"Unexpected response from {endpoint}")
        return data
