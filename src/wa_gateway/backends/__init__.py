"""Messaging backends that drive the automation client."""

from .base import MessagingBackend, SendResult
from .http_bridge import HttpBridgeBackend

__all__ = ["MessagingBackend", "SendResult", "HttpBridgeBackend"]
