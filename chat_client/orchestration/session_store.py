"""
Session state store.
Folds decoded events into the message log and statistics, one frozen snapshot per apply.
"""

import logging
from typing import Any, Callable, List, Optional

from chat_client.models import (
    ChatMessage,
    DecodedEvent,
    MessageOrigin,
    SessionSnapshot,
    SessionStatistics,
    new_message_id,
    utc_now,
)

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[SessionSnapshot], Any]


class SessionStateStore:
    """
    Owns the canonical in-memory session state.

    Statistics are never computed locally: they only change when the server
    sends a statistics payload, and then they are replaced, not merged.
    """

    def __init__(self, id_factory: Optional[Callable[[], str]] = None, clock: Optional[Callable[[], Any]] = None):
        self._id_factory = id_factory or new_message_id
        self._clock = clock or utc_now
        self._snapshot = SessionSnapshot()
        self._subscribers: List[SnapshotCallback] = []

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Subscribe to snapshots. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def apply_user_send(self, text: str) -> SessionSnapshot:
        """Append a user message. Statistics are left alone."""
        message = ChatMessage(
            id=self._id_factory(),
            origin=MessageOrigin.USER,
            content=text,
            created_at=self._clock()
        )
        return self._publish(
            messages=self._snapshot.messages + (message,),
            statistics=self._snapshot.statistics,
            is_processing=True
        )

    def apply_server_event(self, event: DecodedEvent) -> SessionSnapshot:
        """
        Apply one decoded server event.

        The echo becomes a system message when the event carries analytics.
        A statistics payload replaces the current statistics wholesale.
        """
        current = self._snapshot
        messages = current.messages
        statistics = current.statistics

        if event.analytics is not None:
            messages = messages + (ChatMessage(
                id=self._id_factory(),
                origin=MessageOrigin.SYSTEM,
                content=event.echo,
                analytics=event.analytics,
                created_at=event.received_at
            ),)

        if event.session_stats is not None:
            if event.session_stats.total_messages < statistics.total_messages:
                logger.warning(
                    f"Server reported total_messages={event.session_stats.total_messages}, "
                    f"down from {statistics.total_messages}"
                )
            statistics = event.session_stats

        return self._publish(messages=messages, statistics=statistics, is_processing=False)

    def clear_processing(self) -> SessionSnapshot:
        """Drop the processing flag after a send that never reached the server."""
        if not self._snapshot.is_processing:
            return self._snapshot
        return self._publish(
            messages=self._snapshot.messages,
            statistics=self._snapshot.statistics,
            is_processing=False
        )

    def reset(self) -> SessionSnapshot:
        """Start a fresh session: empty log, zero statistics."""
        return self._publish(messages=(), statistics=SessionStatistics(), is_processing=False)

    def _publish(self, messages, statistics: SessionStatistics, is_processing: bool) -> SessionSnapshot:
        self._snapshot = SessionSnapshot(
            messages=messages,
            statistics=statistics,
            is_processing=is_processing,
            version=self._snapshot.version + 1
        )
        for callback in list(self._subscribers):
            try:
                callback(self._snapshot)
            except Exception as e:
                logger.error(f"Snapshot subscriber {callback!r} failed: {e}", exc_info=True)
        return self._snapshot
