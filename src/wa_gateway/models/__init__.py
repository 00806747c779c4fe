"""Data models for WA Gateway."""

from .events import (
    parse_bridge_event,
    BridgeEvent,
    ClientAuthenticated,
    LoggedOut,
    PairingArtifactIssued,
    SessionEvent,
    TransportLost,
    TransportRestored,
)
from .messages import (
    ActionResponse,
    ConnectivityEvent,
    PairingArtifactEvent,
    PushEvent,
    ReadinessEvent,
)
from .session import SessionSnapshot, SessionState

__all__ = [
    "BridgeEvent",
    "parse_bridge_event",
    "ClientAuthenticated",
    "LoggedOut",
    "PairingArtifactIssued",
    "SessionEvent",
    "TransportLost",
    "TransportRestored",
    "ActionResponse",
    "ConnectivityEvent",
    "PairingArtifactEvent",
    "PushEvent",
    "ReadinessEvent",
    "SessionSnapshot",
    "SessionState",
]
