"""Orchestration layer: session state and the session lifecycle."""

from .session_store import SessionStateStore
from .orchestrator import SessionOrchestrator, OrchestratorStatus, BootstrapState

__all__ = [
    'SessionStateStore',
    'SessionOrchestrator',
    'OrchestratorStatus',
    'BootstrapState'
]
