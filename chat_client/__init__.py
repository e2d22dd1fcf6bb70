"""Realtime session client for the message-analytics backend."""

__version__ = "1.0.0"
