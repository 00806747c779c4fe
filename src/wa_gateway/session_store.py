"""In-memory store for the single automation session."""

import asyncio
import logging
from typing import List, Optional

from .config import ApiKeyPolicy
from .exceptions import IgnoredTransition
from .models.events import SessionEvent
from .models.session import SessionSnapshot
from .state_machine import KeyFactory, SessionStateMachine
from .types import TransitionListener

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Source of truth for the session snapshot.

    Single writer (apply_transition, serialized by a lock), many readers
    (get_snapshot hands out the frozen snapshot). Listeners are called
    synchronously inside the lock, so every listener sees transitions in
    the order they were applied.
    """

    def __init__(
        self,
        api_key_length: int = 32,
        api_key_policy: ApiKeyPolicy = "retain",
        key_factory: Optional[KeyFactory] = None,
        state_machine: Optional[SessionStateMachine] = None,
    ):
        self.state_machine = state_machine or SessionStateMachine(
            api_key_length=api_key_length,
            api_key_policy=api_key_policy,
            key_factory=key_factory,
        )
        self._snapshot = SessionSnapshot()
        self._lock = asyncio.Lock()
        self._listeners: List[TransitionListener] = []

    def get_snapshot(self) -> SessionSnapshot:
        """Return the current snapshot (immutable)."""
        return self._snapshot

    def add_listener(self, listener: TransitionListener) -> None:
        """Register a callback for applied transitions."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: TransitionListener) -> None:
        """Unregister a transition callback (no-op if absent)."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def apply_transition(self, event: SessionEvent) -> SessionSnapshot:
        """
        Run ``event`` through the state machine and store the result.

        Ignored events are logged and leave the snapshot unchanged.

        Args:
            event: Runtime or gateway event

        Returns:
            The snapshot after the event (unchanged if ignored)
        """
        async with self._lock:
            previous = self._snapshot
            try:
                current = self.state_machine.apply(previous, event)
            except IgnoredTransition as e:
                logger.warning(f"{e.message} (version {previous.version})")
                return previous

            self._snapshot = current
            logger.info(
                f"Session {previous.state.value} -> {current.state.value} "
                f"via {event.type} (version {current.version})"
            )
            self._notify(previous, current)
            return current

    def _notify(self, previous: SessionSnapshot, current: SessionSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(previous, current)
            except Exception as e:
                # The mutation already happened; a listener cannot undo it
                logger.error(f"Transition listener failed: {e}", exc_info=True)
