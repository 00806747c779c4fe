"""Common type definitions for WA Gateway.

This module provides TypedDict definitions for the JSON frames that
cross the WebSocket, plus the callback signatures shared by components.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, TypedDict, Union

from .models.events import SessionEvent
from .models.session import SessionSnapshot


class ConnectivityDict(TypedDict):
    """Transport liveness frame."""
    type: str
    version: int
    connected: bool


class PairingArtifactDict(TypedDict):
    """QR frame; image is None once the artifact is cleared."""
    type: str
    version: int
    image: Optional[str]


class ReadinessDict(TypedDict, total=False):
    """Readiness frame; apiKey only on first minting or replay."""
    type: str
    version: int
    ready: bool
    apiKey: str


# Union of all frames the server pushes to observers
WireEvent = Union[
    ConnectivityDict,
    PairingArtifactDict,
    ReadinessDict,
    Dict[str, Any],  # pong and future frame types
]

# Called by the store, under its lock, after every applied transition
TransitionListener = Callable[[SessionSnapshot, SessionSnapshot], None]

# Handed to messaging backends so they can report runtime events
EventSink = Callable[[SessionEvent], Awaitable[SessionSnapshot]]
