"""Core modules for the session client."""

from .config import ClientSettings, ConfigLoader, config_loader, get_config, get_settings
from .errors import (
    ErrorKind,
    ChatClientError,
    TransportError,
    DecodeError,
    EncodeError,
    MessageValidationError,
    GatewayError,
    SessionBootstrapError,
)

__all__ = [
    'ClientSettings',
    'ConfigLoader',
    'config_loader',
    'get_config',
    'get_settings',
    'ErrorKind',
    'ChatClientError',
    'TransportError',
    'DecodeError',
    'EncodeError',
    'MessageValidationError',
    'GatewayError',
    'SessionBootstrapError',
]
