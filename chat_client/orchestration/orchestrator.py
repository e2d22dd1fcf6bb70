"""
Session orchestrator.
Bootstraps the backend session, opens the realtime channel and relays traffic
between the user, the connection manager and the session state store.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel, ConfigDict

from chat_client.core.config import ClientSettings, get_settings
from chat_client.core.errors import (
    ErrorKind,
    GatewayError,
    MessageValidationError,
    SessionBootstrapError,
)
from chat_client.data_access.base_gateway import BaseGateway
from chat_client.data_access.request_gateway import RequestGateway
from chat_client.models import ConnectionState, DecodedEvent, SessionIdentity, SessionSnapshot
from chat_client.orchestration.session_store import SessionStateStore, SnapshotCallback
from chat_client.realtime.codec import encode_outbound
from chat_client.realtime.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


class BootstrapState(str, Enum):
    PENDING = "pending"
    CHECKING = "checking"
    UNHEALTHY = "unhealthy"
    READY = "ready"


class OrchestratorStatus(BaseModel):
    """Read-only view of the orchestrator for the presentation layer."""
    model_config = ConfigDict(frozen=True)

    bootstrap_state: BootstrapState
    connection_state: ConnectionState
    session_id: Optional[str] = None
    bootstrap_error: Optional[str] = None

    @property
    def can_send(self) -> bool:
        return self.connection_state == ConnectionState.OPEN


StatusCallback = Callable[[OrchestratorStatus], Any]


def validate_outbound(text: str, max_length: int) -> str:
    """
    Check user input before it is encoded.
    Surrounding whitespace counts for neither check; the caller sends the text as given.

    Raises:
        MessageValidationError: if the text is empty or too long
    """
    content = (text or "").strip()
    if not content:
        raise MessageValidationError("Message is empty")
    if len(content) > max_length:
        raise MessageValidationError(f"Message exceeds {max_length} characters")
    return content


class SessionOrchestrator:
    """
    Top-level coordinator of one client session.

    Startup: health probe -> create session -> open the realtime connection.
    An unhealthy backend blocks startup until the caller retries the probe.
    A failed session creation does not: the realtime channel is opened anyway
    and the session identity stays None. The failure is still reported through
    bootstrap_error with stage "session_creation".
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        gateway: Optional[BaseGateway] = None,
        connection: Optional[ConnectionManager] = None,
        store: Optional[SessionStateStore] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            settings: Client settings (defaults to the loaded configuration)
            gateway: Request/response gateway (defaults to a RequestGateway)
            connection: Realtime connection manager
            store: Session state store
        """
        self.settings = settings or get_settings()
        self.gateway = gateway or RequestGateway.from_settings(self.settings)
        self.connection = connection or ConnectionManager.from_settings(self.settings)
        self.store = store or SessionStateStore()

        self._bootstrap_state = BootstrapState.PENDING
        self._bootstrap_error: Optional[SessionBootstrapError] = None
        self._session_identity: Optional[SessionIdentity] = None
        self._status_subscribers: List[StatusCallback] = []

        self.connection.on_event(self._handle_event)
        self.connection.on_status_change(self._handle_connection_state)

    # Read-only views

    @property
    def session_identity(self) -> Optional[SessionIdentity]:
        return self._session_identity

    @property
    def bootstrap_error(self) -> Optional[SessionBootstrapError]:
        return self._bootstrap_error

    @property
    def snapshot(self) -> SessionSnapshot:
        return self.store.snapshot

    @property
    def status(self) -> OrchestratorStatus:
        return OrchestratorStatus(
            bootstrap_state=self._bootstrap_state,
            connection_state=self.connection.state,
            session_id=self._session_identity.id if self._session_identity else None,
            bootstrap_error=self._bootstrap_error.message if self._bootstrap_error else None
        )

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Subscribe to session snapshots."""
        return self.store.subscribe(callback)

    def on_status_change(self, callback: StatusCallback) -> Callable[[], None]:
        """Subscribe to orchestrator status changes."""
        self._status_subscribers.append(callback)

        def unsubscribe():
            if callback in self._status_subscribers:
                self._status_subscribers.remove(callback)

        return unsubscribe

    # Lifecycle

    async def start(self) -> bool:
        """
        Run the startup sequence.

        Returns:
            True once the realtime connection has been opened, False if the
            backend is unhealthy (see bootstrap_error)
        """
        if self._bootstrap_state == BootstrapState.READY:
            return True

        self._set_bootstrap(BootstrapState.CHECKING)

        if self.settings.enable_health_check:
            logger.info(f"Checking backend health at {self.gateway.base_url}")
            if not await self.gateway.is_healthy():
                error = SessionBootstrapError(f"Backend at {self.gateway.base_url} is unavailable")
                logger.error(f"Startup blocked: {error.message}")
                self._set_bootstrap(BootstrapState.UNHEALTHY, error)
                return False

        session_error = None
        if self.settings.enable_session_management and self._session_identity is None:
            session_error = await self._create_session()

        self.connection.connect()
        self._set_bootstrap(BootstrapState.READY, session_error)
        return True

    async def retry_health_probe(self) -> bool:
        """
        Caller-triggered retry after an unhealthy probe.
        On success the rest of the startup sequence runs.
        """
        logger.info("Retrying backend health probe")
        return await self.start()

    async def shutdown(self):
        """Close the realtime connection and the HTTP client."""
        await self.connection.shutdown()
        await self.gateway.disconnect()
        self._set_bootstrap(BootstrapState.PENDING)
        logger.info("Session orchestrator shut down")

    async def end_session(self, delete: bool = False):
        """Shut down, optionally deleting the server-side session first."""
        if delete and self._session_identity is not None:
            try:
                await self.gateway.delete_session(self._session_identity.id)
                logger.info(f"Deleted session {self._session_identity.id}")
            except GatewayError as e:
                logger.warning(f"Failed to delete session {self._session_identity.id}: {e}")
        await self.shutdown()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    # User actions

    async def send_user_message(self, text: str) -> Optional[ErrorKind]:
        """
        Send a user message over the realtime channel.

        In-flight sends are not tracked; echoes are matched to the log by
        arrival order only.

        Returns:
            None if sent, otherwise VALIDATION, NOT_CONNECTED or TRANSPORT
        """
        try:
            validate_outbound(text, self.settings.max_message_length)
        except MessageValidationError as e:
            logger.debug(f"Message rejected: {e.message}")
            return ErrorKind.VALIDATION

        if not self.connection.is_open:
            logger.warning(f"Cannot send message, connection is {self.connection.state.value}")
            return ErrorKind.NOT_CONNECTED

        self.store.apply_user_send(text)
        error = await self.connection.send(encode_outbound(text))
        if error is not None:
            # No echo will follow a failed send.
            self.store.clear_processing()
        return error

    async def fetch_history(self) -> List[Any]:
        """
        Fetch the persisted message history of the current session.

        Returns an empty list when history is disabled or no session exists.

        Raises:
            GatewayError: if the request fails
        """
        if not self.settings.enable_message_history or self._session_identity is None:
            return []
        return await self.gateway.get_message_history(self._session_identity.id)

    async def fetch_session_stats(self) -> Optional[Dict[str, Any]]:
        """Fetch server-side statistics of the current session, None without a session."""
        if self._session_identity is None:
            return None
        return await self.gateway.get_session_stats(self._session_identity.id)

    # Internals

    async def _create_session(self) -> Optional[SessionBootstrapError]:
        try:
            info = await self.gateway.create_session()
        except GatewayError as e:
            logger.warning(f"Session creation failed, continuing without a session id: {e}")
            return SessionBootstrapError(f"Session creation failed: {e.message}", stage="session_creation")
        self._session_identity = info.to_identity()
        logger.info(f"Created session {self._session_identity.id}")
        return None

    def _handle_event(self, event: DecodedEvent):
        self.store.apply_server_event(event)

    def _handle_connection_state(self, state: ConnectionState):
        self._publish_status()

    def _set_bootstrap(self, state: BootstrapState, error: Optional[SessionBootstrapError] = None):
        self._bootstrap_state = state
        self._bootstrap_error = error
        self._publish_status()

    def _publish_status(self):
        status = self.status
        for callback in list(self._status_subscribers):
            try:
                callback(status)
            except Exception as e:
                logger.error(f"Status subscriber {callback!r} failed: {e}", exc_info=True)
