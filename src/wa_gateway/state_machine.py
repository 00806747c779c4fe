"""Pairing/readiness state machine.

Maps a runtime event and the current snapshot to the next snapshot.
The machine holds no session data itself; the store owns the snapshot
and is the only caller.

Transition table:

    pairing_artifact_issued  any but READY          -> AWAITING_PAIRING
    client_authenticated     AWAITING_PAIRING,
                             DISCONNECTED           -> READY
    transport_lost           any                    -> DISCONNECTED
    transport_restored       DISCONNECTED           -> UNPAIRED
                             UNPAIRED (offline)     -> UNPAIRED (online)
    logged_out               READY, DISCONNECTED    -> UNPAIRED (key cleared)
                             AWAITING_PAIRING       -> AWAITING_PAIRING (key cleared)
                             (only while a key is held)

Anything else raises IgnoredTransition and leaves the snapshot untouched.
"""

import logging
import secrets
import string
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .config import ApiKeyPolicy
from .exceptions import IgnoredTransition
from .models.events import (
    ClientAuthenticated,
    LoggedOut,
    PairingArtifactIssued,
    SessionEvent,
    TransportLost,
    TransportRestored,
)
from .models.session import SessionSnapshot, SessionState

logger = logging.getLogger(__name__)

API_KEY_ALPHABET = string.ascii_letters + string.digits + "-_"

KeyFactory = Callable[[int], str]


def mint_api_key(length: int = 32) -> str:
    """Generate a fixed-length key from the URL-safe alphabet."""
    if length <= 0:
        raise ValueError(f"API key length must be positive, got {length}")
    return "".join(secrets.choice(API_KEY_ALPHABET) for _ in range(length))


class SessionStateMachine:
    """
    Pure transition function over session snapshots.

    Features:
    - Deterministic for a given key factory (replay folds identically)
    - All-or-nothing: the next snapshot is built before anything is stored
    - Configurable key policy for transport loss
    """

    def __init__(
        self,
        api_key_length: int = 32,
        api_key_policy: ApiKeyPolicy = "retain",
        key_factory: Optional[KeyFactory] = None,
    ):
        self.api_key_length = api_key_length
        self.api_key_policy = api_key_policy
        self.key_factory = key_factory or mint_api_key
        self._handlers: Dict[str, Callable[[SessionSnapshot, Any], Dict[str, Any]]] = {
            "pairing_artifact_issued": self._on_pairing_artifact_issued,
            "client_authenticated": self._on_client_authenticated,
            "transport_lost": self._on_transport_lost,
            "transport_restored": self._on_transport_restored,
            "logged_out": self._on_logged_out,
        }

    def apply(self, snapshot: SessionSnapshot, event: SessionEvent) -> SessionSnapshot:
        """
        Compute the snapshot that follows ``event``.

        Args:
            snapshot: Current session snapshot
            event: Runtime or gateway event

        Returns:
            New snapshot with ``version`` bumped

        Raises:
            IgnoredTransition: If the event does not apply in the current state
        """
        handler = self._handlers.get(event.type)
        if handler is None:
            raise IgnoredTransition(event.type, snapshot.state.value)

        changes = handler(snapshot, event)
        changes["version"] = snapshot.version + 1
        changes["updated_at"] = datetime.now()
        return snapshot.model_copy(update=changes)

    def _on_pairing_artifact_issued(
        self, snapshot: SessionSnapshot, event: PairingArtifactIssued
    ) -> Dict[str, Any]:
        if snapshot.state == SessionState.READY:
            raise IgnoredTransition(event.type, snapshot.state.value)
        return {
            "state": SessionState.AWAITING_PAIRING,
            "pairing_artifact": event.image,
            "connected": True,
        }

    def _on_client_authenticated(
        self, snapshot: SessionSnapshot, event: ClientAuthenticated
    ) -> Dict[str, Any]:
        if snapshot.state not in (SessionState.AWAITING_PAIRING, SessionState.DISCONNECTED):
            raise IgnoredTransition(event.type, snapshot.state.value)

        api_key = snapshot.api_key
        if api_key is None:
            if event.secret:
                api_key = event.secret
                logger.info("Using backend-supplied API key")
            else:
                api_key = self.key_factory(self.api_key_length)
                logger.info("Minted new API key")

        return {
            "state": SessionState.READY,
            "pairing_artifact": None,
            "api_key": api_key,
            "connected": True,
        }

    def _on_transport_lost(
        self, snapshot: SessionSnapshot, event: TransportLost
    ) -> Dict[str, Any]:
        changes: Dict[str, Any] = {
            "state": SessionState.DISCONNECTED,
            "pairing_artifact": None,
            "connected": False,
        }
        if self.api_key_policy == "rotate_on_disconnect" and snapshot.api_key is not None:
            changes["api_key"] = None
            logger.info("Dropped API key on transport loss (rotate_on_disconnect)")
        return changes

    def _on_transport_restored(
        self, snapshot: SessionSnapshot, event: TransportRestored
    ) -> Dict[str, Any]:
        if snapshot.state == SessionState.DISCONNECTED:
            return {"state": SessionState.UNPAIRED, "connected": True}
        if snapshot.state == SessionState.UNPAIRED and not snapshot.connected:
            return {"connected": True}
        raise IgnoredTransition(event.type, snapshot.state.value)

    def _on_logged_out(
        self, snapshot: SessionSnapshot, event: LoggedOut
    ) -> Dict[str, Any]:
        # The transport may drop while the backend is logging out; the key
        # must still be invalidated wherever the session ended up.
        if snapshot.api_key is None:
            raise IgnoredTransition(event.type, snapshot.state.value)
        if snapshot.state == SessionState.AWAITING_PAIRING:
            return {"api_key": None}
        return {
            "state": SessionState.UNPAIRED,
            "pairing_artifact": None,
            "api_key": None,
        }
