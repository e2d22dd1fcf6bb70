"""Realtime channel: wire codec and connection lifecycle."""

from .codec import WireEnvelope, encode_outbound, serialize_envelope, decode_inbound
from .connection_manager import ConnectionManager

__all__ = [
    'WireEnvelope',
    'encode_outbound',
    'serialize_envelope',
    'decode_inbound',
    'ConnectionManager'
]
