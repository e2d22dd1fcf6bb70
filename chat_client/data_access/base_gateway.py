"""
Base interface for request/response gateways to the backend.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)


class BaseGateway(ABC):
    """
    Abstract base class for request/response gateways.
    The orchestrator depends on this interface only.
    """

    def __init__(self, base_url: str):
        self.base_url = base_url
        self.is_connected = False

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying client."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the underlying client."""
        pass

    @abstractmethod
    async def is_healthy(self) -> bool:
        """
        Probe the backend.

        Returns:
            True if the backend reports itself healthy, False otherwise
        """
        pass

    @abstractmethod
    async def create_session(self) -> Any:
        """Create a new server-side session."""
        pass

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        """Delete a server-side session."""
        pass

    @abstractmethod
    async def get_message_history(self, session_id: str) -> List[Any]:
        """Fetch the persisted messages of a session, oldest first."""
        pass

    @abstractmethod
    async def get_session_stats(self, session_id: str) -> Dict[str, Any]:
        """Fetch the server-side statistics of a session."""
        pass

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.disconnect()
