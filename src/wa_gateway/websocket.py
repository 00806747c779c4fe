"""WebSocket notification channel."""

import asyncio
import json
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set

from fastapi import WebSocket, status

from .exceptions import ConnectionLimitError, InvalidOriginError
from .models.messages import (
    ConnectivityEvent,
    PairingArtifactEvent,
    PushEvent,
    ReadinessEvent,
)
from .models.session import SessionSnapshot, SessionState
from .session_store import SessionStore
from .types import WireEvent

logger = logging.getLogger(__name__)


class Observer:
    """A connected subscriber with its own outbound queue."""

    def __init__(self, observer_id: str, websocket: WebSocket, queue_size: int = 256) -> None:
        self.observer_id = observer_id
        self.websocket = websocket
        self.subscribed_at = datetime.now()
        # Room for at least the replay frames
        self.queue: asyncio.Queue[WireEvent] = asyncio.Queue(maxsize=max(queue_size, 4))
        self.sender_task: Optional[asyncio.Task[None]] = None


class NotificationChannel:
    """
    Fans session changes out to every connected observer.

    Features:
    - Origin validation and connection limits
    - Current-state replay on subscribe
    - One FIFO queue and sender task per observer (ordered, non-blocking)
    - Slow or broken observers are dropped without affecting others
    """

    def __init__(
        self,
        store: SessionStore,
        max_connections: int = 100,
        allowed_origins: Optional[Sequence[str]] = None,
        queue_size: int = 256,
        include_api_key: bool = True,
    ):
        self.store = store
        self.max_connections = max_connections
        self.allowed_origins = list(allowed_origins or [])
        self.queue_size = queue_size
        self.include_api_key = include_api_key  # False while the reveal gate is on
        self.observers: Dict[str, Observer] = {}
        self._close_tasks: Set[asyncio.Task[None]] = set()
        store.add_listener(self.on_transition)

    async def subscribe(self, observer_id: str, websocket: WebSocket) -> Observer:
        """
        Accept an observer and queue the current state for it.

        Args:
            observer_id: Unique observer identifier
            websocket: FastAPI WebSocket instance

        Raises:
            InvalidOriginError: If origin is not in the allow-list
            ConnectionLimitError: If max connections reached
        """
        origin = websocket.headers.get("origin", "")
        if self.allowed_origins and not any(
            origin.startswith(allowed) for allowed in self.allowed_origins
        ):
            logger.warning(f"Rejected connection from invalid origin: {origin}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            raise InvalidOriginError(origin)

        if len(self.observers) >= self.max_connections:
            logger.warning("Connection limit reached")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Server at capacity")
            raise ConnectionLimitError(self.max_connections)

        await websocket.accept()

        # No await between reading the snapshot and registering: a broadcast
        # cannot slip in between the replay and the live stream.
        observer = Observer(observer_id, websocket, self.queue_size)
        snapshot = self.store.get_snapshot()
        for event in self.replay_events(snapshot):
            observer.queue.put_nowait(event.to_wire())
        self.observers[observer_id] = observer
        observer.sender_task = asyncio.create_task(self._sender_loop(observer))

        logger.info(
            f"Observer connected: {observer_id} at version {snapshot.version} "
            f"(total: {len(self.observers)})"
        )
        return observer

    def unsubscribe(self, observer_id: str) -> None:
        """Remove observer and cancel its sender (idempotent)."""
        observer = self.observers.pop(observer_id, None)
        if observer is None:
            return

        task = observer.sender_task
        if task and task is not asyncio.current_task():
            task.cancel()

        logger.info(f"Observer disconnected: {observer_id} (total: {len(self.observers)})")

    def send(self, observer_id: str, message: WireEvent) -> bool:
        """Queue a frame for one observer, behind anything already queued."""
        observer = self.observers.get(observer_id)
        if not observer:
            logger.warning(f"Attempted to send to non-existent observer: {observer_id}")
            return False
        return self._enqueue(observer, message)

    def broadcast(self, events: List[WireEvent]) -> int:
        """
        Queue frames for every observer.

        Returns:
            Number of observers the frames were queued for
        """
        delivered = 0
        for observer in list(self.observers.values()):
            if all(self._enqueue(observer, event) for event in events):
                delivered += 1
        return delivered

    def on_transition(self, previous: SessionSnapshot, current: SessionSnapshot) -> None:
        """Store listener: push the events describing one transition."""
        events = self.transition_events(previous, current)
        if events:
            self.broadcast([event.to_wire() for event in events])

    def replay_events(self, snapshot: SessionSnapshot) -> List[PushEvent]:
        """Events that bring a fresh observer up to ``snapshot``."""
        version = snapshot.version
        events: List[PushEvent] = [
            ConnectivityEvent(version=version, connected=snapshot.connected),
            ReadinessEvent(
                version=version,
                ready=snapshot.ready,
                api_key=snapshot.api_key if snapshot.ready and self.include_api_key else None,
            ),
        ]
        if snapshot.state == SessionState.AWAITING_PAIRING:
            events.append(PairingArtifactEvent(version=version, image=snapshot.pairing_artifact))
        return events

    def transition_events(
        self, previous: SessionSnapshot, current: SessionSnapshot
    ) -> List[PushEvent]:
        """Events describing the change from ``previous`` to ``current``."""
        version = current.version
        events: List[PushEvent] = []

        if previous.connected != current.connected:
            events.append(ConnectivityEvent(version=version, connected=current.connected))

        if current.pairing_artifact is not None:
            if current.pairing_artifact != previous.pairing_artifact:
                events.append(
                    PairingArtifactEvent(version=version, image=current.pairing_artifact)
                )
        elif previous.pairing_artifact is not None:
            events.append(PairingArtifactEvent(version=version, image=None))

        if previous.ready != current.ready:
            newly_minted = current.ready and previous.api_key is None
            events.append(
                ReadinessEvent(
                    version=version,
                    ready=current.ready,
                    api_key=current.api_key if newly_minted and self.include_api_key else None,
                )
            )

        return events

    def get_connection_count(self) -> int:
        """Get number of connected observers."""
        return len(self.observers)

    async def close_all(self) -> None:
        """Disconnect every observer (shutdown)."""
        for observer_id, observer in list(self.observers.items()):
            self.unsubscribe(observer_id)
            try:
                await observer.websocket.close(code=status.WS_1001_GOING_AWAY)
            except Exception as e:
                logger.debug(f"Close failed for {observer_id}: {e}")

    def _enqueue(self, observer: Observer, message: WireEvent) -> bool:
        try:
            observer.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            # Dropping frames would break ordering; drop the observer instead
            logger.warning(
                f"Observer {observer.observer_id} queue full "
                f"({self.queue_size} frames), disconnecting"
            )
            self.unsubscribe(observer.observer_id)
            task = asyncio.create_task(self._close_quietly(observer, "Observer too slow"))
            self._close_tasks.add(task)
            task.add_done_callback(self._close_tasks.discard)
            return False

    async def _sender_loop(self, observer: Observer) -> None:
        """
        Background task draining one observer's queue onto its socket.

        Args:
            observer: Observer to serve
        """
        observer_id = observer.observer_id
        try:
            while True:
                message = await observer.queue.get()
                msg_type = message.get("type", "unknown")
                logger.debug(
                    f"[WS OUT] {observer_id[:8]}... | {msg_type} | "
                    f"{json.dumps(self._redact(message))[:200]}"
                )
                try:
                    await observer.websocket.send_json(message)
                except Exception as e:
                    logger.warning(f"Cannot send to {observer_id}: {e}")
                    break
        except asyncio.CancelledError:
            logger.debug(f"Sender task cancelled for {observer_id}")
        finally:
            if self.observers.get(observer_id) is observer:
                self.unsubscribe(observer_id)

    async def _close_quietly(self, observer: Observer, reason: str) -> None:
        try:
            await observer.websocket.close(code=status.WS_1013_TRY_AGAIN_LATER, reason=reason)
        except Exception as e:
            logger.debug(f"Close failed for {observer.observer_id}: {e}")

    @staticmethod
    def _redact(message: WireEvent) -> WireEvent:
        redacted = dict(message)
        if redacted.get("apiKey"):
            redacted["apiKey"] = "***"
        if redacted.get("image"):
            redacted["image"] = f"<{len(redacted['image'])} chars>"
        return redacted
