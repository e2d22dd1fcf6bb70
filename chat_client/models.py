"""
Canonical data model for the session client.
Every model is frozen: snapshots handed to observers can never change under them.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


Sentiment = Literal["positive", "negative", "neutral"]
SENTIMENTS: Tuple[str, ...] = ("positive", "negative", "neutral")


def utc_now() -> datetime:
    """Current wall-clock time in UTC."""
    return datetime.now(timezone.utc)


def new_message_id() -> str:
    return str(uuid.uuid4())


class MessageOrigin(str, Enum):
    USER = "user"
    SYSTEM = "system"


class ConnectionState(str, Enum):
    """Lifecycle states of the realtime connection."""
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED_RETRYING = "closed_retrying"


class MessageAnalytics(BaseModel):
    """Analytics computed by the backend for one message."""
    model_config = ConfigDict(frozen=True)

    word_count: int
    char_count: int
    sentence_count: int
    is_question: bool
    sentiment: Sentiment
    processed_at: datetime


class ChatMessage(BaseModel):
    """One entry of the append-only message log."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_message_id)
    origin: MessageOrigin
    content: str
    analytics: Optional[MessageAnalytics] = None
    created_at: datetime = Field(default_factory=utc_now)


class SentimentBreakdown(BaseModel):
    """Per-category sentiment tally."""
    model_config = ConfigDict(frozen=True)

    positive: int = 0
    negative: int = 0
    neutral: int = 0

    @property
    def total(self) -> int:
        return self.positive + self.negative + self.neutral

    @property
    def dominant(self) -> Sentiment:
        """
        Category with the largest count.
        Ties go to the earlier category in positive, negative, neutral order.
        """
        best = SENTIMENTS[0]
        for sentiment in SENTIMENTS[1:]:
            if getattr(self, sentiment) > getattr(self, best):
                best = sentiment
        return best


class SessionStatistics(BaseModel):
    """Aggregate statistics as reported by the backend."""
    model_config = ConfigDict(frozen=True)

    total_messages: int = 0
    total_words: int = 0
    questions_asked: int = 0
    avg_message_length: float = 0
    sentiment_breakdown: SentimentBreakdown = Field(default_factory=SentimentBreakdown)

    @property
    def question_rate(self) -> float:
        """Share of messages that were questions (0 when no messages)."""
        if self.total_messages <= 0:
            return 0.0
        return self.questions_asked / self.total_messages

    @property
    def dominant_sentiment(self) -> Sentiment:
        return self.sentiment_breakdown.dominant


class SessionIdentity(BaseModel):
    """Server-side session identity, assigned once at startup."""
    model_config = ConfigDict(frozen=True)

    id: str
    created_at: datetime


class DecodedEvent(BaseModel):
    """An inbound realtime event in canonical form."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["message_response"] = "message_response"
    echo: str = ""
    original_message: Optional[str] = None
    analytics: Optional[MessageAnalytics] = None
    session_stats: Optional[SessionStatistics] = None
    server_timestamp: Optional[datetime] = None
    received_at: datetime = Field(default_factory=utc_now)


class SessionSnapshot(BaseModel):
    """Read-only view of the session state after one applied event."""
    model_config = ConfigDict(frozen=True)

    messages: Tuple[ChatMessage, ...] = ()
    statistics: SessionStatistics = Field(default_factory=SessionStatistics)
    is_processing: bool = False
    version: int = 0

    @property
    def last_user_message(self) -> Optional[ChatMessage]:
        for message in reversed(self.messages):
            if message.origin == MessageOrigin.USER:
                return message
        return None
