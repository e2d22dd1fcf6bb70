"""
Wire codec for the realtime channel.

Translates between the JSON payloads exchanged with the backend and the
canonical models in chat_client.models. This is the only module that knows
the external field names; everything else sees canonical models.
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Literal, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from chat_client.core.errors import DecodeError, EncodeError, ErrorKind
from chat_client.models import (
    DecodedEvent,
    MessageAnalytics,
    Sentiment,
    SentimentBreakdown,
    SessionStatistics,
    utc_now,
)

USER_MESSAGE = "user_message"
MESSAGE_RESPONSE = "message_response"


class WireEnvelope(BaseModel):
    """Outbound envelope, ready to be serialized onto the socket."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: Literal["user_message"] = Field(USER_MESSAGE, alias="type")
    content: str
    timestamp: datetime


class _WireAnalytics(BaseModel):
    word_count: int
    char_count: int
    sentence_count: int
    is_question: bool
    sentiment: Sentiment
    processed_at: Optional[datetime] = None


class _WireSentimentBreakdown(BaseModel):
    positive: int = 0
    negative: int = 0
    neutral: int = 0


class _WireSessionStats(BaseModel):
    total_messages: int
    total_words: int
    questions_asked: int
    avg_message_length: Optional[float] = None
    # The backend sends this one key in camelCase.
    sentiment_breakdown: Optional[_WireSentimentBreakdown] = Field(
        None,
        validation_alias=AliasChoices("sentimentBreakdown", "sentiment_breakdown")
    )


class _WireMessageResponse(BaseModel):
    type: Literal["message_response"]
    echo: Optional[str] = None
    original_message: Optional[str] = None
    analytics: Optional[_WireAnalytics] = None
    session_stats: Optional[_WireSessionStats] = None
    timestamp: Optional[datetime] = None


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with millisecond precision and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def encode_outbound(text: str, now: Optional[datetime] = None) -> WireEnvelope:
    """
    Build the outbound envelope for a user message.

    Callers validate the text first; an empty text here is a programming error.

    Raises:
        EncodeError: if text is empty after trimming
    """
    if not text or not text.strip():
        raise EncodeError("Cannot encode an empty message")
    return WireEnvelope(kind=USER_MESSAGE, content=text, timestamp=now or utc_now())


def serialize_envelope(envelope: WireEnvelope) -> str:
    """Serialize an outbound envelope to the JSON text sent on the wire."""
    return json.dumps({
        "type": envelope.kind,
        "content": envelope.content,
        "timestamp": format_timestamp(envelope.timestamp),
    })


def _is_sentiment_error(exc: ValidationError) -> bool:
    return any(
        tuple(err.get("loc", ()))[:1] == ("analytics",) and tuple(err.get("loc", ()))[-1:] == ("sentiment",)
        for err in exc.errors()
    )


def _decode_message_response(payload: Dict[str, Any], now: datetime) -> Union[DecodedEvent, DecodeError]:
    try:
        wire = _WireMessageResponse.model_validate(payload)
    except ValidationError as e:
        if _is_sentiment_error(e):
            sentiment = (payload.get("analytics") or {}).get("sentiment")
            return DecodeError(ErrorKind.INVALID_SENTIMENT, f"Invalid sentiment value: {sentiment!r}", payload)
        return DecodeError(ErrorKind.MALFORMED_PAYLOAD, f"Malformed message_response: {e.error_count()} error(s)", payload)

    analytics = None
    if wire.analytics is not None:
        analytics = MessageAnalytics(
            word_count=wire.analytics.word_count,
            char_count=wire.analytics.char_count,
            sentence_count=wire.analytics.sentence_count,
            is_question=wire.analytics.is_question,
            sentiment=wire.analytics.sentiment,
            processed_at=wire.analytics.processed_at or now
        )

    session_stats = None
    if wire.session_stats is not None:
        breakdown = wire.session_stats.sentiment_breakdown
        session_stats = SessionStatistics(
            total_messages=wire.session_stats.total_messages,
            total_words=wire.session_stats.total_words,
            questions_asked=wire.session_stats.questions_asked,
            avg_message_length=wire.session_stats.avg_message_length or 0,
            sentiment_breakdown=SentimentBreakdown(**breakdown.model_dump()) if breakdown else SentimentBreakdown()
        )

    return DecodedEvent(
        kind=MESSAGE_RESPONSE,
        echo=wire.echo or "",
        original_message=wire.original_message,
        analytics=analytics,
        session_stats=session_stats,
        server_timestamp=wire.timestamp,
        received_at=now
    )


_EVENT_DECODERS: Dict[str, Callable[[Dict[str, Any], datetime], Union[DecodedEvent, DecodeError]]] = {
    MESSAGE_RESPONSE: _decode_message_response,
}


def decode_inbound(raw: Union[bytes, str], now: Optional[datetime] = None) -> Union[DecodedEvent, DecodeError]:
    """
    Decode one inbound transport payload.

    Never raises: failures come back as a DecodeError value so the caller can
    log and discard the payload while keeping the connection open.

    Args:
        raw: Text or binary frame received from the socket
        now: Decode time, used as the default for missing processed_at

    Returns:
        DecodedEvent on success, DecodeError otherwise
    """
    now = now or utc_now()

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            return DecodeError(ErrorKind.MALFORMED_PAYLOAD, f"Payload is not UTF-8: {e}", raw)

    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        return DecodeError(ErrorKind.MALFORMED_PAYLOAD, f"Invalid JSON: {e}", raw)

    if not isinstance(payload, dict):
        return DecodeError(ErrorKind.MALFORMED_PAYLOAD, "Payload is not a JSON object", raw)

    kind = payload.get("type")
    decoder = _EVENT_DECODERS.get(kind) if isinstance(kind, str) else None
    if decoder is None:
        return DecodeError(ErrorKind.UNKNOWN_EVENT_KIND, f"Unknown event kind: {kind!r}", raw)

    return decoder(payload, now)
